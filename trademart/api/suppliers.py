"""
Supplier directory and profile routes.
"""
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import asc, desc, func, or_
from sqlalchemy.orm import Session, joinedload

from trademart.api.serializers import ok, supplier_to_dict
from trademart.core.errors import NotFoundError
from trademart.core.rbac import require_supplier
from trademart.db.models import Supplier
from trademart.db.session import get_db
from trademart.services.audit import client_ip, record_audit

router = APIRouter(prefix="/api/suppliers", tags=["Suppliers"])


class SupplierProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    company_name: str = Field(..., min_length=1, max_length=255, alias="companyName")
    industry: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    country: Optional[str] = Field(None, max_length=100)


SUPPLIER_SORTS = {
    "rating": (desc(Supplier.rating), asc(Supplier.id)),
    "verified": (desc(Supplier.verified), desc(Supplier.rating), asc(Supplier.id)),
    "newest": (desc(Supplier.created_at), desc(Supplier.id)),
    "oldest": (asc(Supplier.created_at), asc(Supplier.id)),
}


@router.get("")
async def list_suppliers(
    search: Optional[str] = Query(None),
    industry: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """
    Supplier directory.

    search matches company name, industry or country; industry and country
    filter exactly ("all" means no filter). sortBy is rating (default),
    verified, newest or oldest. Stats cover every supplier, not just the page.
    """
    query = db.query(Supplier)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Supplier.company_name.ilike(pattern),
            Supplier.industry.ilike(pattern),
            Supplier.country.ilike(pattern),
        ))
    if industry and industry != "all":
        query = query.filter(Supplier.industry == industry)
    if country and country != "all":
        query = query.filter(Supplier.country == country)

    total = query.count()
    ordering = SUPPLIER_SORTS.get(sort_by or "rating", SUPPLIER_SORTS["rating"])
    suppliers = query.options(joinedload(Supplier.user)).order_by(*ordering).offset(
        (page - 1) * limit
    ).limit(limit).all()

    supplier_count, average_rating = db.query(func.count(Supplier.id), func.avg(Supplier.rating)).one()
    verified_count = db.query(func.count(Supplier.id)).filter(Supplier.verified.is_(True)).scalar()

    return ok(
        [supplier_to_dict(s) for s in suppliers],
        pagination={"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
        stats={
            "totalSuppliers": supplier_count,
            "averageRating": round(float(average_rating or 0), 2),
            "verifiedSuppliers": verified_count,
        },
    )


@router.put("/profile")
async def upsert_profile(
    request: Request,
    profile: SupplierProfile,
    user_context: dict = Depends(require_supplier),
    db: Session = Depends(get_db)
):
    """Create or update the calling supplier's company profile."""
    user_id = user_context["user_id"]
    supplier = db.query(Supplier).filter(Supplier.user_id == user_id).first()
    created = supplier is None
    if created:
        supplier = Supplier(user_id=user_id, company_name=profile.company_name)
        db.add(supplier)

    supplier.company_name = profile.company_name
    supplier.industry = profile.industry
    supplier.description = profile.description
    supplier.country = profile.country
    db.flush()

    record_audit(
        db, "create_supplier_profile" if created else "update_supplier_profile",
        user_id, "supplier", supplier.id,
        details={"company_name": supplier.company_name}, ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(supplier)
    return ok(supplier_to_dict(supplier))


@router.get("/{supplier_id}")
async def get_supplier(supplier_id: int, db: Session = Depends(get_db)):
    supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not supplier:
        raise NotFoundError("Supplier not found")
    return ok(supplier_to_dict(supplier))
