from pydantic import BaseModel, AliasChoices, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal

from app.models.commission_payout import PayoutStatus, PayoutSource


class UserSummary(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    limit: int
    offset: int


class PayoutResponse(BaseModel):
    id: str
    user_id: str
    period: str
    amount: Decimal
    status: PayoutStatus
    source: PayoutSource
    # ORM attribute is payout_metadata, "metadata" is taken by the declarative base
    metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("payout_metadata", "metadata")
    )
    created_at: datetime
    updated_at: Optional[datetime] = None
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class CalculateCommissionsRequest(BaseModel):
    # Optional so a missing period gets the API's own 400 message
    period: Optional[str] = None


class CalculateCommissionsResponse(BaseModel):
    success: bool
    payouts: List[PayoutResponse]
    message: str
    count: int


class PayoutListResponse(BaseModel):
    payouts: List[PayoutResponse]
    pagination: Pagination


class ManualPayoutCreate(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    amount: Optional[Decimal] = None
    period: Optional[str] = None
    status: Optional[PayoutStatus] = None
    metadata: Optional[Dict[str, Any]] = None

    class Config:
        populate_by_name = True


class PayoutSummaryResponse(BaseModel):
    pending: Decimal
    approved: Decimal
    paid: Decimal
    recent_payouts: List[PayoutResponse]


class CommissionRuleCreate(BaseModel):
    name: Optional[str] = None
    rule: Optional[Dict[str, Any]] = None
    active: Optional[bool] = None


class CommissionRuleUpdate(BaseModel):
    name: Optional[str] = None
    rule: Optional[Dict[str, Any]] = None
    active: Optional[bool] = None


class CommissionRuleResponse(BaseModel):
    id: str
    name: str
    rule: Dict[str, Any]
    active: bool
    created_by: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    creator: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class CommissionRuleListResponse(BaseModel):
    rules: List[CommissionRuleResponse]
    pagination: Pagination
