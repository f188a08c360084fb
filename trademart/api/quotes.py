"""
Quote API routes - supplier submissions and buyer decisions.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from trademart.api.deps import get_quote_manager
from trademart.api.serializers import ok, order_to_dict, quote_to_dict, transaction_to_dict, rfq_to_dict
from trademart.core.rbac import get_current_user_context, require_buyer
from trademart.services.quote_lifecycle import QuoteLifecycleManager, group_quotes_by_rfq

router = APIRouter(prefix="/api/quotes", tags=["Quotes"])


# ============= SCHEMAS =============

class QuoteCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rfq_id: int = Field(..., alias="rfqId")
    price: float
    lead_time_days: int = Field(..., alias="leadTimeDays")
    notes: Optional[str] = None
    currency: Optional[str] = Field(None, max_length=10)


class QuoteDecisionRequest(BaseModel):
    status: str


# ============= ROUTES =============

@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_quote(
    quote_data: QuoteCreate,
    user_context: dict = Depends(get_current_user_context),
    manager: QuoteLifecycleManager = Depends(get_quote_manager),
):
    """Submit a quote on an open RFQ. Requires a supplier profile."""
    quote = manager.submit_quote(
        user_context["user_id"],
        quote_data.rfq_id,
        quote_data.price,
        quote_data.lead_time_days,
        notes=quote_data.notes,
        currency=quote_data.currency,
    )
    return ok(quote_to_dict(quote, include_rfq=True))


@router.patch("/{quote_id}")
async def decide_quote(
    quote_id: int,
    decision: QuoteDecisionRequest,
    user_context: dict = Depends(get_current_user_context),
    manager: QuoteLifecycleManager = Depends(get_quote_manager),
):
    """
    Accept or reject a quote (RFQ buyer only).

    Accepting closes the RFQ and opens a held transaction and a confirmed
    order for the quoted price.
    """
    result = manager.decide_quote(user_context["user_id"], quote_id, decision.status)
    data = {"quote": quote_to_dict(result.quote, include_rfq=True)}
    if result.accepted:
        data["transaction"] = transaction_to_dict(result.transaction)
        data["order"] = order_to_dict(result.order)
    return ok(data)


@router.get("/buyer")
async def list_buyer_quotes(
    rfq_id: Optional[int] = Query(None, alias="rfqId"),
    user_context: dict = Depends(require_buyer),
    manager: QuoteLifecycleManager = Depends(get_quote_manager),
):
    """Quotes on the calling buyer's RFQs, newest first and grouped by RFQ."""
    quotes = manager.list_buyer_quotes(user_context["user_id"], rfq_id=rfq_id)
    grouped = group_quotes_by_rfq(quotes)
    return ok({
        "quotes": [quote_to_dict(q, include_rfq=True) for q in quotes],
        "quotesByRfq": [
            {"rfq": rfq_to_dict(entry["rfq"]), "quotes": [quote_to_dict(q) for q in entry["quotes"]]}
            for entry in grouped.values()
        ],
        "totalQuotes": len(quotes),
    })


@router.get("/supplier")
async def list_supplier_quotes(
    user_context: dict = Depends(get_current_user_context),
    manager: QuoteLifecycleManager = Depends(get_quote_manager),
):
    quotes = manager.list_supplier_quotes(user_context["user_id"])
    return ok([quote_to_dict(q, include_rfq=True) for q in quotes])
