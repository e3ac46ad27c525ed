from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import datetime

from app.core.database import get_db
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.security import (
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token
)
from app.schemas.auth import LoginRequest, LoginResponse, RefreshTokenRequest
from app.models.user import User
from app.services.audit_service import AuditService

router = APIRouter()


def _issue_tokens(user: User) -> LoginResponse:
    token_data = {"sub": user.id, "role": user.role.value}
    return LoginResponse(
        access_token=create_access_token(token_data),
        refresh_token=create_refresh_token(token_data),
        user={
            "id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "role": user.role.value
        }
    )


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Login with email and password"""
    user = db.query(User).filter(User.email == request.email).first()

    if not user or not verify_password(request.password, user.hashed_password):
        AuditService.log_action(
            db=db,
            action="login_failed",
            entity_type="user",
            changes={"email": request.email}
        )
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        raise AuthorizationError("User account is inactive")

    user.last_login = datetime.utcnow()
    db.commit()

    AuditService.log_action(
        db=db,
        user_id=user.id,
        action="login_success",
        entity_type="user",
        entity_id=user.id
    )

    return _issue_tokens(user)


@router.post("/refresh", response_model=LoginResponse)
async def refresh_token(request: RefreshTokenRequest, db: Session = Depends(get_db)):
    """Exchange a refresh token for a new token pair"""
    payload = decode_token(request.refresh_token)

    if payload.get("type") != "refresh":
        raise AuthenticationError("Invalid token type")

    user = db.query(User).filter(User.id == payload.get("sub")).first()
    if not user or not user.is_active:
        raise AuthenticationError("Invalid token")

    return _issue_tokens(user)
