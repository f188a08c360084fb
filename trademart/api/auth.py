"""
Authentication API routes.
"""
import re
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import func
from sqlalchemy.orm import Session

from trademart.api.serializers import ok, supplier_to_dict
from trademart.core.config import settings
from trademart.core.errors import ConflictError, ForbiddenError, NotFoundError, UnauthenticatedError
from trademart.core.security import (
    get_current_user_id, get_password_hash, get_role_value, issue_user_token, verify_password,
)
from trademart.db.models import User, UserRole
from trademart.db.session import get_db
from trademart.services.audit import client_ip, record_audit

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

SELF_SERVICE_ROLES = (UserRole.BUYER.value, UserRole.SUPPLIER.value)


# ============= SCHEMAS =============

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., max_length=128)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    role: str = UserRole.BUYER.value

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not re.search(r'[A-Za-z]', v):
            raise ValueError('Password must contain at least one letter')
        if not re.search(r'[0-9]', v):
            raise ValueError('Password must contain at least one number')
        return v

    @field_validator('role')
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in SELF_SERVICE_ROLES:
            raise ValueError("Role must be 'buyer' or 'supplier'")
        return v


def _token_for(user: User) -> dict:
    token, expires_in = issue_user_token(user.id, user.email, user.role)
    return {
        "accessToken": token,
        "tokenType": "bearer",
        "expiresIn": expires_in,
        "user": _user_to_dict(user),
    }


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "role": get_role_value(user.role),
        "supplier": supplier_to_dict(user.supplier, include_user=False),
    }


# ============= ROUTES =============

@router.post("/login")
async def login(
    request: Request,
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """Authenticate user and return JWT token."""
    user = db.query(User).filter(func.lower(User.email) == login_data.email.lower()).first()

    if not user or not verify_password(login_data.password, user.hashed_password):
        raise UnauthenticatedError("Invalid email or password")

    if not user.is_active:
        raise UnauthenticatedError("Account is disabled")

    user.last_login = datetime.now(timezone.utc)
    record_audit(
        db, "login", user.id, "user", user.id,
        details={"email": user.email}, ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(user)

    return ok(_token_for(user))


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    register_data: RegisterRequest,
    db: Session = Depends(get_db)
):
    """Register a buyer or supplier account."""
    if not settings.ALLOW_PUBLIC_REGISTRATION:
        raise ForbiddenError("Public registration is disabled. Contact an administrator.")

    existing = db.query(User).filter(func.lower(User.email) == register_data.email.lower()).first()
    if existing:
        raise ConflictError("Email already registered")

    user = User(
        email=register_data.email,
        hashed_password=get_password_hash(register_data.password),
        name=register_data.name,
        phone=register_data.phone,
        role=UserRole(register_data.role),
    )
    db.add(user)
    db.flush()

    record_audit(
        db, "register", user.id, "user", user.id,
        details={"email": user.email, "role": register_data.role},
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(user)

    return ok(_token_for(user))


@router.get("/me")
async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Get current authenticated user."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")

    return ok(_user_to_dict(user))
