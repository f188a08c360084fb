"""
Quote lifecycle: submission by suppliers and accept/reject by the RFQ buyer.

Accepting a quote is the one multi-row write in the marketplace. The RFQ is
closed with a conditional UPDATE (only while it is still open), and the quote
status change, Transaction insert and Order insert ride in the same database
transaction. If the conditional update matches no row, another acceptance got
there first and everything is rolled back.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from trademart.core.errors import (
    ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError,
)
from trademart.core.logging import get_logger
from trademart.db.models import (
    RFQ, Quote, Supplier, Transaction, Order,
    RFQStatus, QuoteStatus, TransactionStatus, OrderStatus,
    ACCEPTING_RFQ_STATUSES,
)
from trademart.services import notifications as notify
from trademart.services.audit import record_audit
from trademart.services.notifications import NotificationDispatcher

logger = get_logger(__name__)

DECISIONS = (QuoteStatus.ACCEPTED, QuoteStatus.REJECTED)


@dataclass
class QuoteDecision:
    """Outcome of accept/reject. transaction and order are set only on accept."""
    quote: Quote
    decision: QuoteStatus
    transaction: Optional[Transaction] = None
    order: Optional[Order] = None

    @property
    def accepted(self) -> bool:
        return self.decision == QuoteStatus.ACCEPTED


def parse_decision(value) -> QuoteStatus:
    try:
        decision = QuoteStatus(value)
    except ValueError:
        decision = None
    if decision not in DECISIONS:
        raise InvalidArgumentError("Status must be 'accepted' or 'rejected'")
    return decision


def group_quotes_by_rfq(quotes: List[Quote]) -> Dict[int, dict]:
    """Group quotes under their RFQ, keeping the incoming (newest first) order."""
    grouped: Dict[int, dict] = {}
    for quote in quotes:
        entry = grouped.setdefault(quote.rfq_id, {"rfq": quote.rfq, "quotes": []})
        entry["quotes"].append(quote)
    return grouped


class QuoteLifecycleManager:
    def __init__(self, db: Session, notifier: NotificationDispatcher, ip_address: Optional[str] = None):
        self.db = db
        self.notifier = notifier
        self.ip_address = ip_address

    # ----- submission -----

    def submit_quote(
        self,
        user_id: int,
        rfq_id: int,
        price: float,
        lead_time_days: int,
        notes: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Quote:
        supplier = self.db.query(Supplier).filter(Supplier.user_id == user_id).first()
        if not supplier:
            raise ForbiddenError("Only suppliers can submit quotes", user_id=user_id)

        if price is None or price <= 0:
            raise InvalidArgumentError("Price must be greater than zero")
        if lead_time_days is None or lead_time_days < 1:
            raise InvalidArgumentError("Lead time must be at least one day")

        rfq = self.db.query(RFQ).filter(RFQ.id == rfq_id).first()
        if not rfq:
            raise NotFoundError("RFQ not found", rfq_id=rfq_id)

        if rfq.status != RFQStatus.OPEN:
            raise ConflictError("RFQ is not open for quotes", rfq_id=rfq_id)

        existing = self.db.query(Quote.id).filter(
            Quote.rfq_id == rfq_id,
            Quote.supplier_id == supplier.id,
        ).first()
        if existing:
            raise ConflictError("You have already submitted a quote for this RFQ", rfq_id=rfq_id)

        quote = Quote(
            rfq_id=rfq_id,
            supplier_id=supplier.id,
            price=float(price),
            currency=currency or rfq.currency,
            lead_time_days=int(lead_time_days),
            notes=notes,
            status=QuoteStatus.PENDING,
        )
        self.db.add(quote)
        try:
            self.db.flush()
            record_audit(
                self.db, "submit_quote", user_id, "quote", quote.id,
                details={"rfq_id": rfq_id, "price": quote.price},
                ip_address=self.ip_address,
            )
            self.db.commit()
        except IntegrityError:
            # uq_quote_rfq_supplier: a concurrent submission won
            self.db.rollback()
            raise ConflictError("You have already submitted a quote for this RFQ", rfq_id=rfq_id)
        self.db.refresh(quote)

        self.notifier.notify(
            rfq.buyer_id,
            notify.QUOTE_RECEIVED,
            "New quote received",
            f"{supplier.company_name} quoted {quote.price:.2f} {quote.currency} on '{rfq.title}'",
            {"rfqId": rfq.id, "quoteId": quote.id},
        )
        return quote

    # ----- decision -----

    def decide_quote(self, user_id: int, quote_id: int, decision) -> QuoteDecision:
        decision = parse_decision(decision)

        quote = self.db.query(Quote).options(
            joinedload(Quote.rfq), joinedload(Quote.supplier),
        ).filter(Quote.id == quote_id).first()
        if not quote:
            raise NotFoundError("Quote not found")

        rfq = quote.rfq
        if rfq.buyer_id != user_id:
            raise ForbiddenError("Only the buyer can accept/reject quotes", user_id=user_id)

        if quote.status != QuoteStatus.PENDING:
            raise ConflictError(f"Quote has already been {quote.status.value}")

        if decision == QuoteStatus.REJECTED:
            return self._reject(user_id, quote)
        return self._accept(user_id, quote)

    def _reject(self, user_id: int, quote: Quote) -> QuoteDecision:
        updated = self.db.query(Quote).filter(
            Quote.id == quote.id,
            Quote.status == QuoteStatus.PENDING,
        ).update({Quote.status: QuoteStatus.REJECTED}, synchronize_session=False)
        if not updated:
            self.db.rollback()
            raise ConflictError("Quote is no longer pending")

        record_audit(
            self.db, "reject_quote", user_id, "quote", quote.id,
            details={"rfq_id": quote.rfq_id}, ip_address=self.ip_address,
        )
        self.db.commit()
        self.db.refresh(quote)

        self.notifier.notify(
            quote.supplier.user_id,
            notify.QUOTE_REJECTED,
            "Quote rejected",
            f"Your quote on '{quote.rfq.title}' was not selected",
            {"rfqId": quote.rfq_id, "quoteId": quote.id},
        )
        return QuoteDecision(quote=quote, decision=QuoteStatus.REJECTED)

    def _accept(self, user_id: int, quote: Quote) -> QuoteDecision:
        now = datetime.now(timezone.utc)
        rfq_id = quote.rfq_id
        try:
            closed = self.db.query(RFQ).filter(
                RFQ.id == rfq_id,
                RFQ.status.in_(ACCEPTING_RFQ_STATUSES),
            ).update(
                {RFQ.status: RFQStatus.CLOSED, RFQ.closed_at: now},
                synchronize_session=False,
            )
            if not closed:
                raise ConflictError("RFQ is no longer open; another quote was already accepted", rfq_id=rfq_id)

            updated = self.db.query(Quote).filter(
                Quote.id == quote.id,
                Quote.status == QuoteStatus.PENDING,
            ).update({Quote.status: QuoteStatus.ACCEPTED}, synchronize_session=False)
            if not updated:
                raise ConflictError("Quote is no longer pending", rfq_id=rfq_id)

            transaction = Transaction(
                buyer_id=user_id,
                supplier_id=quote.supplier_id,
                rfq_id=rfq_id,
                quote_id=quote.id,
                amount=quote.price,
                currency=quote.currency,
                status=TransactionStatus.HELD,
            )
            self.db.add(transaction)
            self.db.flush()

            order = Order(
                transaction_id=transaction.id,
                rfq_id=rfq_id,
                buyer_id=user_id,
                supplier_id=quote.supplier_id,
                amount=quote.price,
                currency=quote.currency,
                status=OrderStatus.CONFIRMED,
            )
            self.db.add(order)
            self.db.flush()

            record_audit(
                self.db, "accept_quote", user_id, "quote", quote.id,
                details={"rfq_id": rfq_id, "transaction_id": transaction.id, "order_id": order.id, "amount": quote.price},
                ip_address=self.ip_address,
            )
            self.db.commit()
        except IntegrityError:
            # unique transaction per RFQ/quote: a concurrent acceptance committed first
            self.db.rollback()
            raise ConflictError("RFQ is no longer open; another quote was already accepted", rfq_id=rfq_id)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(quote)
        self.db.refresh(transaction)
        self.db.refresh(order)
        logger.info(
            f"Quote {quote.id} accepted; transaction {transaction.id}, order {order.id} opened",
            extra={"user_id": user_id, "rfq_id": rfq_id, "order_id": order.id},
        )

        self.notifier.notify(
            quote.supplier.user_id,
            notify.QUOTE_ACCEPTED,
            "Quote accepted",
            f"Your quote on '{quote.rfq.title}' was accepted for {quote.price:.2f} {quote.currency}",
            {"rfqId": rfq_id, "quoteId": quote.id, "orderId": order.id, "transactionId": transaction.id},
        )
        return QuoteDecision(quote=quote, decision=QuoteStatus.ACCEPTED, transaction=transaction, order=order)

    # ----- listings -----

    def list_buyer_quotes(self, user_id: int, rfq_id: Optional[int] = None) -> List[Quote]:
        query = self.db.query(Quote).join(RFQ, Quote.rfq_id == RFQ.id).options(
            joinedload(Quote.rfq), joinedload(Quote.supplier).joinedload(Supplier.user),
        ).filter(RFQ.buyer_id == user_id)

        if rfq_id:
            query = query.filter(Quote.rfq_id == rfq_id)

        return query.order_by(desc(Quote.created_at), desc(Quote.id)).all()

    def list_supplier_quotes(self, user_id: int) -> List[Quote]:
        supplier = self.db.query(Supplier).filter(Supplier.user_id == user_id).first()
        if not supplier:
            raise ForbiddenError("Supplier profile not found")

        return self.db.query(Quote).options(joinedload(Quote.rfq)).filter(
            Quote.supplier_id == supplier.id
        ).order_by(desc(Quote.created_at), desc(Quote.id)).all()
