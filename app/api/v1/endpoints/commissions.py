import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AppException, ValidationError
from app.core.security import get_current_user, require_role
from app.schemas.commission import (
    CalculateCommissionsRequest,
    CalculateCommissionsResponse,
    PayoutListResponse,
    PayoutResponse,
    PayoutSummaryResponse,
    ManualPayoutCreate,
    CommissionRuleCreate,
    CommissionRuleUpdate,
    CommissionRuleResponse,
    CommissionRuleListResponse,
    Pagination
)
from app.models.user import User, UserRole
from app.models.commission_payout import PayoutStatus
from app.services.commission_service import CommissionService

logger = logging.getLogger(__name__)

router = APIRouter()


def _page_size(limit: int) -> int:
    return min(limit, settings.MAX_PAGE_SIZE)


@router.post("/calculate", response_model=CalculateCommissionsResponse)
async def calculate_commissions(
    request: Optional[CalculateCommissionsRequest] = None,
    current_user: User = Depends(require_role(UserRole.ADMIN, UserRole.STAFF)),
    db: Session = Depends(get_db)
):
    """Calculate commission payouts for a period (admin/staff only)"""
    if request is None or not request.period:
        raise ValidationError("Period is required (format: YYYY-MM)")

    try:
        payouts = CommissionService.calculate_commissions(
            db=db,
            period=request.period,
            triggered_by=current_user.id
        )
        payout_responses = [PayoutResponse.model_validate(p) for p in payouts]
    except AppException:
        raise
    except Exception:
        logger.exception("Error calculating commissions for %s", request.period)
        raise AppException(
            message="Failed to calculate commissions",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_ERROR"
        )

    return CalculateCommissionsResponse(
        success=True,
        payouts=payout_responses,
        message=f"Calculated commissions for {request.period}",
        count=len(payout_responses)
    )


@router.get("/payouts", response_model=PayoutListResponse)
async def list_payouts(
    user_id: Optional[str] = Query(None, alias="userId"),
    period: Optional[str] = None,
    status: Optional[PayoutStatus] = None,
    limit: int = Query(10, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List payouts; reps only ever see their own"""
    if current_user.role not in (UserRole.ADMIN, UserRole.STAFF):
        user_id = current_user.id

    limit = _page_size(limit)
    payouts = CommissionService.get_payouts(
        db=db,
        user_id=user_id,
        period=period,
        status=status,
        limit=limit,
        offset=offset
    )

    return PayoutListResponse(
        payouts=[PayoutResponse.model_validate(p) for p in payouts],
        pagination=Pagination(limit=limit, offset=offset)
    )


@router.post("/payouts", response_model=PayoutResponse, status_code=status.HTTP_201_CREATED)
async def create_payout(
    payout_data: ManualPayoutCreate,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """Create a manual payout (admin only)"""
    if not payout_data.user_id or payout_data.amount is None or not payout_data.period:
        raise ValidationError("User ID, amount, and period are required")

    payout = CommissionService.create_payout(
        db=db,
        user_id=payout_data.user_id,
        amount=payout_data.amount,
        period=payout_data.period,
        created_by=current_user.id,
        status=payout_data.status or PayoutStatus.PENDING,
        metadata=payout_data.metadata
    )
    return PayoutResponse.model_validate(payout)


@router.get("/payouts/summary", response_model=PayoutSummaryResponse)
async def get_payout_summary(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Payout totals for the current user"""
    summary = CommissionService.get_payout_summary(db, current_user.id)
    return PayoutSummaryResponse(
        pending=summary["pending"],
        approved=summary["approved"],
        paid=summary["paid"],
        recent_payouts=[PayoutResponse.model_validate(p) for p in summary["recent_payouts"]]
    )


@router.get("/rules", response_model=CommissionRuleListResponse)
async def list_rules(
    active: Optional[bool] = None,
    created_by: Optional[str] = Query(None, alias="createdBy"),
    limit: int = Query(10, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_role(UserRole.ADMIN, UserRole.STAFF)),
    db: Session = Depends(get_db)
):
    """List commission rules (admin/staff only)"""
    limit = _page_size(limit)
    rules = CommissionService.get_all_rules(
        db=db,
        active=active,
        created_by=created_by,
        limit=limit,
        offset=offset
    )

    return CommissionRuleListResponse(
        rules=[CommissionRuleResponse.model_validate(r) for r in rules],
        pagination=Pagination(limit=limit, offset=offset)
    )


@router.post("/rules", response_model=CommissionRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    rule_data: CommissionRuleCreate,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """Create a commission rule (admin only)"""
    if not rule_data.name or not rule_data.rule:
        raise ValidationError("Name and rule are required")

    rule = CommissionService.create_rule(
        db=db,
        name=rule_data.name,
        rule=rule_data.rule,
        created_by=current_user.id,
        active=True if rule_data.active is None else rule_data.active
    )
    return CommissionRuleResponse.model_validate(rule)


@router.get("/rules/{rule_id}", response_model=CommissionRuleResponse)
async def get_rule(
    rule_id: str,
    current_user: User = Depends(require_role(UserRole.ADMIN, UserRole.STAFF)),
    db: Session = Depends(get_db)
):
    return CommissionRuleResponse.model_validate(CommissionService.get_rule_by_id(db, rule_id))


@router.put("/rules/{rule_id}", response_model=CommissionRuleResponse)
async def update_rule(
    rule_id: str,
    rule_update: CommissionRuleUpdate,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """Update a commission rule (admin only)"""
    rule = CommissionService.update_rule(
        db=db,
        rule_id=rule_id,
        updated_by=current_user.id,
        name=rule_update.name,
        rule=rule_update.rule,
        active=rule_update.active
    )
    return CommissionRuleResponse.model_validate(rule)


@router.delete("/rules/{rule_id}")
async def delete_rule(
    rule_id: str,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """Delete a commission rule (admin only)"""
    CommissionService.delete_rule(db, rule_id, deleted_by=current_user.id)
    return {"success": True}
