"""
RFQ API routes - buyers post requests for quotation, suppliers browse them.
"""
import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy import desc
from sqlalchemy.orm import Session, joinedload

from trademart.api.serializers import ok, rfq_to_dict
from trademart.core.config import settings
from trademart.core.errors import InvalidArgumentError, NotFoundError
from trademart.core.rbac import get_current_user_context, require_buyer
from trademart.db.models import RFQ, Quote, RFQStatus, Supplier, UserRole
from trademart.db.session import get_db
from trademart.services.audit import client_ip, record_audit

router = APIRouter(prefix="/api/rfqs", tags=["RFQs"])


# ============= SCHEMAS =============

class RFQCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: Optional[str] = Field(None, max_length=100)
    quantity: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = Field(None, max_length=50)
    budget: Optional[float] = Field(None, gt=0)
    currency: Optional[str] = Field(None, max_length=10)
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")

    model_config = {"populate_by_name": True}


def _parse_status(value: Optional[str]) -> Optional[RFQStatus]:
    if not value:
        return None
    try:
        return RFQStatus(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown RFQ status: {value}")


# ============= ROUTES =============

@router.get("")
async def list_rfqs(
    category: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """List RFQs, open ones by default."""
    rfq_status = _parse_status(status_filter) or RFQStatus.OPEN
    query = db.query(RFQ).filter(RFQ.status == rfq_status)
    if category:
        query = query.filter(RFQ.category == category)

    total = query.count()
    rfqs = query.options(joinedload(RFQ.quotes)).order_by(
        desc(RFQ.created_at), desc(RFQ.id)
    ).offset((page - 1) * limit).limit(limit).all()

    return ok(
        [rfq_to_dict(rfq) for rfq in rfqs],
        pagination={"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_rfq(
    request: Request,
    rfq_data: RFQCreate,
    user_context: dict = Depends(require_buyer),
    db: Session = Depends(get_db)
):
    rfq = RFQ(
        buyer_id=user_context["user_id"],
        title=rfq_data.title,
        description=rfq_data.description,
        category=rfq_data.category,
        quantity=rfq_data.quantity,
        unit=rfq_data.unit,
        budget=rfq_data.budget,
        currency=rfq_data.currency or settings.DEFAULT_CURRENCY,
        expires_at=rfq_data.expires_at,
        status=RFQStatus.OPEN,
    )
    db.add(rfq)
    db.flush()

    record_audit(
        db, "create_rfq", user_context["user_id"], "rfq", rfq.id,
        details={"title": rfq.title, "budget": rfq.budget},
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(rfq)
    return ok(rfq_to_dict(rfq))


@router.get("/mine")
async def list_my_rfqs(
    user_context: dict = Depends(require_buyer),
    db: Session = Depends(get_db)
):
    """RFQs posted by the calling buyer, newest first."""
    rfqs = db.query(RFQ).options(joinedload(RFQ.quotes)).filter(
        RFQ.buyer_id == user_context["user_id"]
    ).order_by(desc(RFQ.created_at), desc(RFQ.id)).all()
    return ok([rfq_to_dict(rfq) for rfq in rfqs])


@router.get("/{rfq_id}")
async def get_rfq(
    rfq_id: int,
    user_context: dict = Depends(get_current_user_context),
    db: Session = Depends(get_db)
):
    """RFQ detail with its quotes."""
    rfq = db.query(RFQ).options(
        joinedload(RFQ.buyer),
        joinedload(RFQ.quotes).joinedload(Quote.supplier).joinedload(Supplier.user),
    ).filter(RFQ.id == rfq_id).first()
    if not rfq:
        raise NotFoundError("RFQ not found")

    # Suppliers only see their own quote on someone else's RFQ
    quotes = rfq.quotes
    if user_context["role"] != UserRole.ADMIN and rfq.buyer_id != user_context["user_id"]:
        quotes = [q for q in rfq.quotes if q.supplier and q.supplier.user_id == user_context["user_id"]]
    return ok(rfq_to_dict(rfq, include_quotes=True, quotes=quotes))
