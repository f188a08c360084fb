"""
Order routes. Orders are opened by quote acceptance; these are read-only.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, or_
from sqlalchemy.orm import Session, joinedload

from trademart.api.serializers import ok, order_to_dict, qc_report_to_dict
from trademart.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from trademart.core.rbac import get_current_user_context
from trademart.db.models import Order, OrderStatus, Supplier, UserRole
from trademart.db.session import get_db
from trademart.services.escrow_ledger import is_order_party

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.get("")
async def list_orders(
    status: Optional[str] = Query(None),
    user_context: dict = Depends(get_current_user_context),
    db: Session = Depends(get_db)
):
    """Orders where the caller is buyer or supplier, newest first."""
    user_id = user_context["user_id"]
    query = db.query(Order).join(Supplier, Order.supplier_id == Supplier.id).filter(
        or_(Order.buyer_id == user_id, Supplier.user_id == user_id)
    )
    if status:
        try:
            query = query.filter(Order.status == OrderStatus(status))
        except ValueError:
            raise InvalidArgumentError(f"Unknown order status: {status}")

    orders = query.options(joinedload(Order.escrow)).order_by(desc(Order.created_at), desc(Order.id)).all()
    return ok([order_to_dict(o, include_escrow=True) for o in orders])


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    user_context: dict = Depends(get_current_user_context),
    db: Session = Depends(get_db)
):
    order = db.query(Order).options(
        joinedload(Order.supplier), joinedload(Order.escrow),
    ).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order not found")

    if user_context["role"] != UserRole.ADMIN and not is_order_party(order, user_context["user_id"]):
        raise ForbiddenError("Access denied to this order")

    data = order_to_dict(order, include_escrow=True)
    data["qcReports"] = [
        qc_report_to_dict(r) for r in sorted(order.qc_reports, key=lambda r: r.id, reverse=True)
    ]
    return ok(data)
