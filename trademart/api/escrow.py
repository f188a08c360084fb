"""
Escrow account routes: open, fund, refund and look up by order.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from trademart.api.deps import get_escrow_ledger
from trademart.api.serializers import escrow_to_dict, ok
from trademart.core.rbac import get_current_user_context
from trademart.services.escrow_ledger import EscrowLedger

router = APIRouter(prefix="/api/escrow", tags=["Escrow"])


# ============= SCHEMAS =============

class EscrowCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: int = Field(..., alias="orderId")
    amount: Optional[float] = None
    currency: Optional[str] = Field(None, max_length=10)


class EscrowFund(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_method: str = Field(..., alias="paymentMethod", max_length=50)
    payment_reference: str = Field(..., alias="paymentReference", max_length=255)


class EscrowRefund(BaseModel):
    reason: str


# ============= ROUTES =============

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_escrow(
    data: EscrowCreate,
    user_context: dict = Depends(get_current_user_context),
    ledger: EscrowLedger = Depends(get_escrow_ledger),
):
    account = ledger.create_account(user_context["user_id"], data.order_id, amount=data.amount, currency=data.currency)
    return ok(escrow_to_dict(account))


@router.post("/{escrow_id}/fund")
async def fund_escrow(
    escrow_id: int,
    data: EscrowFund,
    user_context: dict = Depends(get_current_user_context),
    ledger: EscrowLedger = Depends(get_escrow_ledger),
):
    account = ledger.fund(user_context["user_id"], escrow_id, data.payment_method, data.payment_reference)
    return ok(escrow_to_dict(account))


@router.post("/{escrow_id}/refund")
async def refund_escrow(
    escrow_id: int,
    data: EscrowRefund,
    user_context: dict = Depends(get_current_user_context),
    ledger: EscrowLedger = Depends(get_escrow_ledger),
):
    account = ledger.refund(user_context["user_id"], user_context["role"], escrow_id, data.reason)
    return ok(escrow_to_dict(account))


@router.get("")
async def get_escrow_for_order(
    order_id: int = Query(..., alias="orderId"),
    user_context: dict = Depends(get_current_user_context),
    ledger: EscrowLedger = Depends(get_escrow_ledger),
):
    account = ledger.get_for_order(user_context["user_id"], user_context["role"], order_id)
    return ok(escrow_to_dict(account))
