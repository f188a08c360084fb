"""
Quality-control evaluation for delivered orders.

The QC report insert and the order status change are the only writes that
must succeed. Escrow release and notifications run after that commit and
are best-effort: their failures are logged and reported back in the
QCSubmission, never raised.
"""
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session, joinedload

from trademart.core.config import settings
from trademart.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from trademart.core.logging import get_logger
from trademart.db.models import Order, QCReport, OrderStatus, QCStatus
from trademart.services import notifications as notify
from trademart.services.audit import record_audit
from trademart.services.escrow_ledger import EscrowLedger, ReleaseOutcome, is_order_party
from trademart.services.notifications import NotificationDispatcher

logger = get_logger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100

ORDER_STATUS_FOR_OUTCOME = {
    QCStatus.PASSED: OrderStatus.DELIVERED,
    QCStatus.FAILED: OrderStatus.DISPUTED,
}


@dataclass
class QCSubmission:
    report: QCReport
    outcome: QCStatus
    order_status: OrderStatus
    escrow_release: Optional[ReleaseOutcome] = None
    escrow_error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.outcome == QCStatus.PASSED


def derive_status(score: float, explicit_status=None, threshold: Optional[int] = None) -> QCStatus:
    """Explicit status wins; otherwise score >= threshold passes."""
    if explicit_status is not None:
        try:
            return QCStatus(explicit_status)
        except ValueError:
            raise InvalidArgumentError("Status must be 'passed' or 'failed'")

    if threshold is None:
        threshold = settings.QC_PASS_THRESHOLD
    return QCStatus.PASSED if score >= threshold else QCStatus.FAILED


def _clean_media(items: Optional[List[str]]) -> List[str]:
    return [item.strip() for item in (items or []) if item and item.strip()]


class QCEvaluator:
    def __init__(
        self,
        db: Session,
        notifier: NotificationDispatcher,
        ledger: Optional[EscrowLedger] = None,
        threshold: Optional[int] = None,
        ip_address: Optional[str] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.ledger = ledger or EscrowLedger(db, notifier, ip_address=ip_address)
        self.threshold = settings.QC_PASS_THRESHOLD if threshold is None else threshold
        self.ip_address = ip_address

    def _get_order_for_party(self, user_id: int, order_id: int) -> Order:
        order = self.db.query(Order).options(
            joinedload(Order.supplier), joinedload(Order.rfq),
        ).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")

        if not is_order_party(order, user_id):
            raise ForbiddenError("Only the buyer or supplier of this order can access QC reports")
        return order

    def submit_report(
        self,
        user_id: int,
        order_id: int,
        photos: Optional[List[str]] = None,
        videos: Optional[List[str]] = None,
        notes: Optional[str] = None,
        score: float = 0,
        status: Optional[str] = None,
    ) -> QCSubmission:
        photos = _clean_media(photos)
        videos = _clean_media(videos)
        if not photos and not videos:
            raise InvalidArgumentError("At least one photo or video is required")

        if score is None or not MIN_SCORE <= score <= MAX_SCORE:
            raise InvalidArgumentError(f"Score must be between {MIN_SCORE} and {MAX_SCORE}")

        outcome = derive_status(score, status, self.threshold)
        order = self._get_order_for_party(user_id, order_id)

        report = QCReport(
            order_id=order.id,
            submitted_by=user_id,
            photos=photos,
            videos=videos,
            notes=notes,
            score=float(score),
            status=outcome,
        )
        self.db.add(report)
        order.status = ORDER_STATUS_FOR_OUTCOME[outcome]
        self.db.flush()
        record_audit(
            self.db, "submit_qc_report", user_id, "qc_report", report.id,
            details={"order_id": order.id, "score": report.score, "status": outcome.value},
            ip_address=self.ip_address,
        )
        self.db.commit()
        self.db.refresh(report)

        buyer_id = order.buyer_id
        supplier_user_id = order.supplier.user_id
        title = order.rfq.title if order.rfq else f"order #{order.id}"
        submission = QCSubmission(report=report, outcome=outcome, order_status=ORDER_STATUS_FOR_OUTCOME[outcome])

        logger.info(
            f"QC report {report.id} for order {order.id}: {outcome.value} (score {report.score})",
            extra={"user_id": user_id, "order_id": order.id},
        )

        if outcome == QCStatus.PASSED:
            try:
                submission.escrow_release = self.ledger.release_for_qc(order.id, report)
            except Exception as e:
                self.db.rollback()
                submission.escrow_error = str(e)
                logger.exception(
                    f"Escrow release failed for order {order.id} after QC report {report.id}",
                    extra={"order_id": order.id},
                )

            if submission.escrow_release == ReleaseOutcome.RELEASED:
                self.notifier.notify(
                    supplier_user_id,
                    notify.PAYMENT_RELEASED,
                    "Payment released",
                    f"QC passed for '{title}'. Escrow funds have been released.",
                    {"orderId": order_id, "qcReportId": report.id},
                )
        else:
            self.notifier.notify_many(
                [buyer_id, supplier_user_id],
                notify.DISPUTE_CREATED,
                "Order disputed",
                f"QC failed for '{title}' (score {report.score:g}). The order is now disputed.",
                {"orderId": order_id, "qcReportId": report.id},
            )

        self.notifier.notify_many(
            [buyer_id, supplier_user_id],
            notify.QC_COMPLETED,
            "QC completed",
            f"QC inspection for '{title}' {outcome.value}",
            {"orderId": order_id, "qcReportId": report.id, "status": outcome.value},
        )
        return submission

    def list_reports(self, user_id: int, order_id: int) -> List[QCReport]:
        self._get_order_for_party(user_id, order_id)
        return self.db.query(QCReport).filter(
            QCReport.order_id == order_id
        ).order_by(desc(QCReport.created_at), desc(QCReport.id)).all()
