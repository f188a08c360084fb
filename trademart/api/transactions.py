"""
Transaction API routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from trademart.api.deps import get_escrow_ledger
from trademart.api.serializers import ok, transaction_to_dict
from trademart.core.rbac import get_current_user_context
from trademart.services.escrow_ledger import EscrowLedger

router = APIRouter(prefix="/api/transactions", tags=["Transactions"])


@router.get("")
async def list_transactions(
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_context: dict = Depends(get_current_user_context),
    ledger: EscrowLedger = Depends(get_escrow_ledger),
):
    """Transactions where the caller is the buyer or the supplier."""
    result = ledger.list_transactions(user_context["user_id"], status=status, page=page, limit=limit)
    return ok(
        [transaction_to_dict(t) for t in result["transactions"]],
        pagination=result["pagination"],
    )


@router.patch("/{transaction_id}/release")
async def release_transaction(
    transaction_id: int,
    user_context: dict = Depends(get_current_user_context),
    ledger: EscrowLedger = Depends(get_escrow_ledger),
):
    """Buyer releases held funds to the supplier."""
    transaction = ledger.release_transaction(user_context["user_id"], transaction_id)
    return ok(transaction_to_dict(transaction))
