"""
Escrow ledger: per-order escrow accounts and transaction release.

Every status change is a single conditional UPDATE guarded on the expected
source states, so concurrent or repeated requests cannot move an account
twice. A released account is terminal.
"""
import enum
import math
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session, joinedload

from trademart.core.errors import (
    ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError,
)
from trademart.core.logging import get_logger
from trademart.db.models import (
    EscrowAccount, Order, QCReport, Supplier, Transaction,
    EscrowStatus, QCStatus, TransactionStatus, UserRole,
    RELEASABLE_ESCROW_STATUSES, REFUNDABLE_ESCROW_STATUSES,
)
from trademart.services import notifications as notify
from trademart.services.audit import record_audit
from trademart.services.notifications import NotificationDispatcher

logger = get_logger(__name__)


class ReleaseOutcome(str, enum.Enum):
    RELEASED = "released"
    ALREADY_RELEASED = "already_released"
    NOT_RELEASABLE = "not_releasable"
    NO_ACCOUNT = "no_account"


def generate_account_number() -> str:
    return f"ESC{uuid.uuid4().hex[:8].upper()}"


def is_order_party(order: Order, user_id: int) -> bool:
    supplier_user_id = order.supplier.user_id if order.supplier else None
    return user_id in (order.buyer_id, supplier_user_id)


class EscrowLedger:
    def __init__(self, db: Session, notifier: NotificationDispatcher, ip_address: Optional[str] = None):
        self.db = db
        self.notifier = notifier
        self.ip_address = ip_address

    def _get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).options(joinedload(Order.supplier)).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    def _get_account(self, escrow_id: int) -> EscrowAccount:
        account = self.db.query(EscrowAccount).options(
            joinedload(EscrowAccount.order).joinedload(Order.supplier)
        ).filter(EscrowAccount.id == escrow_id).first()
        if not account:
            raise NotFoundError("Escrow account not found")
        return account

    def _transition(self, escrow_id: int, from_statuses, values: dict) -> bool:
        updated = self.db.query(EscrowAccount).filter(
            EscrowAccount.id == escrow_id,
            EscrowAccount.status.in_(from_statuses),
        ).update(values, synchronize_session=False)
        return bool(updated)

    # ----- account lifecycle -----

    def create_account(
        self,
        user_id: int,
        order_id: int,
        amount: Optional[float] = None,
        currency: Optional[str] = None,
    ) -> EscrowAccount:
        order = self._get_order(order_id)
        if order.buyer_id != user_id:
            raise ForbiddenError("Only the buyer can open escrow for this order")

        if amount is not None and amount <= 0:
            raise InvalidArgumentError("Amount must be greater than zero")

        if self.db.query(EscrowAccount.id).filter(EscrowAccount.order_id == order_id).first():
            raise ConflictError("Escrow account already exists for this order")

        account = EscrowAccount(
            order_id=order_id,
            account_number=generate_account_number(),
            amount=float(amount) if amount is not None else order.amount,
            currency=currency or order.currency,
            status=EscrowStatus.PENDING,
            qc_passed=False,
        )
        self.db.add(account)
        self.db.flush()
        record_audit(
            self.db, "create_escrow", user_id, "escrow_account", account.id,
            details={"order_id": order_id, "amount": account.amount},
            ip_address=self.ip_address,
        )
        self.db.commit()
        self.db.refresh(account)
        return account

    def fund(self, user_id: int, escrow_id: int, payment_method: str, payment_reference: str) -> EscrowAccount:
        account = self._get_account(escrow_id)
        if account.order.buyer_id != user_id:
            raise ForbiddenError("Only the buyer can fund this escrow account")

        if not payment_method or not payment_reference:
            raise InvalidArgumentError("Payment method and payment reference are required")

        moved = self._transition(escrow_id, (EscrowStatus.PENDING,), {
            EscrowAccount.status: EscrowStatus.FUNDED,
            EscrowAccount.payment_method: payment_method,
            EscrowAccount.payment_reference: payment_reference,
            EscrowAccount.funded_at: datetime.now(timezone.utc),
        })
        if not moved:
            self.db.rollback()
            raise ConflictError(f"Escrow account is {account.status.value}, expected pending")

        record_audit(
            self.db, "fund_escrow", user_id, "escrow_account", escrow_id,
            details={"payment_method": payment_method}, ip_address=self.ip_address,
        )
        self.db.commit()
        self.db.refresh(account)

        self.notifier.notify(
            account.order.supplier.user_id,
            notify.ESCROW_FUNDED,
            "Escrow funded",
            f"Buyer funded escrow {account.account_number} for order #{account.order_id}",
            {"orderId": account.order_id, "escrowId": account.id},
        )
        return account

    def refund(self, user_id: int, role: UserRole, escrow_id: int, reason: str) -> EscrowAccount:
        account = self._get_account(escrow_id)
        if role != UserRole.ADMIN and account.order.buyer_id != user_id:
            raise ForbiddenError("Only the buyer or an admin can refund this escrow account")

        if not reason or not reason.strip():
            raise InvalidArgumentError("Refund reason is required")

        moved = self._transition(escrow_id, REFUNDABLE_ESCROW_STATUSES, {
            EscrowAccount.status: EscrowStatus.REFUNDED,
            EscrowAccount.refund_reason: reason.strip(),
            EscrowAccount.refunded_at: datetime.now(timezone.utc),
        })
        if not moved:
            self.db.rollback()
            raise ConflictError(f"Escrow account is {account.status.value} and cannot be refunded")

        record_audit(
            self.db, "refund_escrow", user_id, "escrow_account", escrow_id,
            details={"reason": reason.strip()}, ip_address=self.ip_address,
        )
        self.db.commit()
        self.db.refresh(account)

        self.notifier.notify_many(
            [account.order.buyer_id, account.order.supplier.user_id],
            notify.ESCROW_REFUNDED,
            "Escrow refunded",
            f"Escrow {account.account_number} for order #{account.order_id} was refunded",
            {"orderId": account.order_id, "escrowId": account.id},
        )
        return account

    def get_for_order(self, user_id: int, role: UserRole, order_id: int) -> EscrowAccount:
        order = self._get_order(order_id)
        if role != UserRole.ADMIN and not is_order_party(order, user_id):
            raise ForbiddenError("Access denied to this order")

        account = self.db.query(EscrowAccount).filter(EscrowAccount.order_id == order_id).first()
        if not account:
            raise NotFoundError("Escrow account not found")
        return account

    # ----- QC-driven release -----

    def release_for_qc(self, order_id: int, qc_report: QCReport) -> ReleaseOutcome:
        """
        Release escrow for an order after a passing QC report.

        Idempotent: a second passing report (or a concurrent one) finds the
        account already released and changes nothing.
        """
        if qc_report is None or qc_report.status != QCStatus.PASSED or qc_report.order_id != order_id:
            raise InvalidArgumentError("Escrow can only be released by a passing QC report for the same order")

        account = self.db.query(EscrowAccount).filter(EscrowAccount.order_id == order_id).first()
        if not account:
            return ReleaseOutcome.NO_ACCOUNT

        moved = self.db.query(EscrowAccount).filter(
            EscrowAccount.order_id == order_id,
            EscrowAccount.status.in_(RELEASABLE_ESCROW_STATUSES),
        ).update({
            EscrowAccount.status: EscrowStatus.RELEASED,
            EscrowAccount.qc_passed: True,
            EscrowAccount.released_at: datetime.now(timezone.utc),
        }, synchronize_session=False)

        if not moved:
            self.db.refresh(account)
            if account.status == EscrowStatus.RELEASED:
                logger.info(f"Escrow for order {order_id} already released", extra={"order_id": order_id})
                return ReleaseOutcome.ALREADY_RELEASED
            logger.info(
                f"Escrow for order {order_id} is {account.status.value}; not released",
                extra={"order_id": order_id},
            )
            return ReleaseOutcome.NOT_RELEASABLE

        record_audit(
            self.db, "release_escrow", qc_report.submitted_by, "escrow_account", account.id,
            details={"order_id": order_id, "qc_report_id": qc_report.id},
            ip_address=self.ip_address,
        )
        self.db.commit()
        logger.info(f"Escrow for order {order_id} released after QC report {qc_report.id}", extra={"order_id": order_id})
        return ReleaseOutcome.RELEASED

    # ----- transactions -----

    def release_transaction(self, user_id: int, transaction_id: int) -> Transaction:
        transaction = self.db.query(Transaction).options(
            joinedload(Transaction.supplier)
        ).filter(Transaction.id == transaction_id).first()
        if not transaction:
            raise NotFoundError("Transaction not found")

        if transaction.buyer_id != user_id:
            raise ForbiddenError("Only the buyer can release funds")

        if transaction.status != TransactionStatus.HELD:
            raise ConflictError("Transaction is not in held status")

        moved = self.db.query(Transaction).filter(
            Transaction.id == transaction_id,
            Transaction.status == TransactionStatus.HELD,
        ).update({
            Transaction.status: TransactionStatus.RELEASED,
            Transaction.released_at: datetime.now(timezone.utc),
        }, synchronize_session=False)
        if not moved:
            self.db.rollback()
            raise ConflictError("Transaction is not in held status")

        record_audit(
            self.db, "release_transaction", user_id, "transaction", transaction_id,
            details={"amount": transaction.amount}, ip_address=self.ip_address,
        )
        self.db.commit()
        self.db.refresh(transaction)

        self.notifier.notify(
            transaction.supplier.user_id,
            notify.PAYMENT_RELEASED,
            "Payment released",
            f"The buyer released {transaction.amount:.2f} {transaction.currency} for transaction #{transaction.id}",
            {"transactionId": transaction.id, "rfqId": transaction.rfq_id},
        )
        return transaction

    def list_transactions(
        self,
        user_id: int,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        if page < 1 or limit < 1:
            raise InvalidArgumentError("page and limit must be positive")

        query = self.db.query(Transaction).join(
            Supplier, Transaction.supplier_id == Supplier.id
        ).filter(or_(
            Transaction.buyer_id == user_id,
            Supplier.user_id == user_id,
        ))

        if status:
            try:
                query = query.filter(Transaction.status == TransactionStatus(status))
            except ValueError:
                raise InvalidArgumentError(f"Unknown transaction status: {status}")

        total = query.count()
        transactions = query.options(
            joinedload(Transaction.buyer),
            joinedload(Transaction.supplier).joinedload(Supplier.user),
            joinedload(Transaction.rfq),
        ).order_by(desc(Transaction.created_at), desc(Transaction.id)).offset((page - 1) * limit).limit(limit).all()

        return {
            "transactions": transactions,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }
