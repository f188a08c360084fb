"""
Admin API routes - user management and supplier verification.
Requires the admin role for all endpoints.
"""
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field, StrictBool
from sqlalchemy import desc, or_
from sqlalchemy.orm import Session, joinedload

from trademart.api.serializers import (
    ok, product_to_dict, quote_to_dict, rfq_to_dict, supplier_to_dict, user_summary, user_to_dict,
)
from trademart.core.errors import InvalidArgumentError, NotFoundError
from trademart.core.rbac import require_admin
from trademart.db.models import RFQ, Product, Quote, Supplier, Transaction, User, UserRole
from trademart.db.session import get_db
from trademart.services import notifications as notify
from trademart.services.audit import client_ip, record_audit
from trademart.services.notifications import NotificationDispatcher, get_notifier

router = APIRouter(prefix="/api/admin", tags=["Admin"])

RECENT_LIMIT = 10


# ============= SCHEMAS =============

class UserUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(..., alias="userId")
    role: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias="isActive")


class SupplierVerification(BaseModel):
    verified: StrictBool


def _parse_role(value: Optional[str]) -> Optional[UserRole]:
    if not value or value == "all":
        return None
    try:
        return UserRole(value.lower())
    except ValueError:
        raise InvalidArgumentError(f"Role must be one of: {', '.join(r.value for r in UserRole)}")


# ============= ROUTES =============

@router.get("/dashboard")
async def dashboard(
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Marketplace counts plus the newest users and RFQs."""
    recent_users = db.query(User).order_by(desc(User.created_at), desc(User.id)).limit(RECENT_LIMIT).all()
    recent_rfqs = db.query(RFQ).options(joinedload(RFQ.quotes)).order_by(
        desc(RFQ.created_at), desc(RFQ.id)
    ).limit(RECENT_LIMIT).all()
    top_suppliers = db.query(Supplier).options(joinedload(Supplier.user)).order_by(
        desc(Supplier.rating), Supplier.id
    ).limit(RECENT_LIMIT).all()

    return ok({
        "totalUsers": db.query(User).count(),
        "totalSuppliers": db.query(Supplier).count(),
        "totalProducts": db.query(Product).count(),
        "totalRfqs": db.query(RFQ).count(),
        "totalQuotes": db.query(Quote).count(),
        "totalTransactions": db.query(Transaction).count(),
        "pendingVerifications": db.query(Supplier).filter(Supplier.verified.isnot(True)).count(),
        "recentUsers": [user_summary(u) for u in recent_users],
        "recentRfqs": [rfq_to_dict(r) for r in recent_rfqs],
        "topSuppliers": [supplier_to_dict(s) for s in top_suppliers],
    })


@router.get("/users")
async def list_users(
    role: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    List accounts, newest first.

    role filters by marketplace role ("all" means any); search matches
    name or email.
    """
    query = db.query(User)
    role_filter = _parse_role(role)
    if role_filter:
        query = query.filter(User.role == role_filter)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    total = query.count()
    users = query.options(joinedload(User.supplier)).order_by(
        desc(User.created_at), desc(User.id)
    ).offset((page - 1) * limit).limit(limit).all()

    return ok(
        [user_to_dict(u) for u in users],
        pagination={"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    )


@router.patch("/users")
async def update_user(
    request: Request,
    update_data: UserUpdate,
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Change a user's role or active flag. Admins cannot change their own."""
    new_role = _parse_role(update_data.role) if update_data.role is not None else None
    if new_role is None and update_data.is_active is None:
        raise InvalidArgumentError("Nothing to update: provide role or isActive")
    if update_data.user_id == user_context["user_id"]:
        raise InvalidArgumentError("Cannot change your own role or status")

    user = db.query(User).filter(User.id == update_data.user_id).first()
    if not user:
        raise NotFoundError("User not found")

    changes = {}
    if new_role is not None and new_role != user.role:
        changes["role"] = {"from": user.role.value, "to": new_role.value}
        user.role = new_role
    if update_data.is_active is not None and update_data.is_active != bool(user.is_active):
        changes["is_active"] = update_data.is_active
        user.is_active = update_data.is_active

    if changes:
        record_audit(
            db, "update_user", user_context["user_id"], "user", user.id,
            details=changes, ip_address=client_ip(request),
        )
        db.commit()
        db.refresh(user)
    return ok(user_to_dict(user))


@router.get("/suppliers/{supplier_id}")
async def get_supplier_detail(
    supplier_id: int,
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Supplier with account details and its latest products and quotes."""
    supplier = db.query(Supplier).options(joinedload(Supplier.user)).filter(
        Supplier.id == supplier_id
    ).first()
    if not supplier:
        raise NotFoundError("Supplier not found")

    products = db.query(Product).filter(Product.supplier_id == supplier.id).order_by(
        desc(Product.created_at), desc(Product.id)
    ).limit(RECENT_LIMIT).all()
    quotes = db.query(Quote).options(joinedload(Quote.rfq)).filter(
        Quote.supplier_id == supplier.id
    ).order_by(desc(Quote.created_at), desc(Quote.id)).limit(RECENT_LIMIT).all()

    data = supplier_to_dict(supplier, include_user=False)
    data["user"] = user_to_dict(supplier.user)
    data["products"] = [product_to_dict(p, include_supplier=False) for p in products]
    data["quotes"] = [quote_to_dict(q, include_rfq=True) for q in quotes]
    return ok(data)


@router.patch("/suppliers/{supplier_id}/verify")
async def verify_supplier(
    supplier_id: int,
    request: Request,
    verification: SupplierVerification,
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    """Mark a supplier verified or unverified; the supplier is told when verified."""
    supplier = db.query(Supplier).options(joinedload(Supplier.user)).filter(
        Supplier.id == supplier_id
    ).first()
    if not supplier:
        raise NotFoundError("Supplier not found")

    supplier.verified = verification.verified
    record_audit(
        db, "verify_supplier" if verification.verified else "unverify_supplier",
        user_context["user_id"], "supplier", supplier.id,
        details={"company_name": supplier.company_name, "verified": verification.verified},
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(supplier)

    if supplier.verified:
        notifier.notify(
            supplier.user_id,
            notify.SUPPLIER_VERIFIED,
            "Supplier verified",
            f"{supplier.company_name} is now a verified supplier",
            {"supplierId": supplier.id},
        )
    return ok(supplier_to_dict(supplier))
