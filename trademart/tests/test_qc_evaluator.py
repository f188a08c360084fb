"""
Tests for QC report evaluation and its settlement side effects.

Tests:
1. Threshold boundary (70 passes, 69 fails) and explicit status override
2. Evidence and score validation create no record
3. Passing report delivers the order and releases funded escrow
4. Failing report disputes the order and leaves escrow untouched
5. Escrow or notification failures never undo the stored report
"""
from unittest.mock import patch

import pytest

from trademart.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from trademart.db.models import (
    EscrowAccount, Order, QCReport,
    EscrowStatus, OrderStatus, QCStatus, UserRole,
)
from trademart.services import notifications as notify
from trademart.services.escrow_ledger import ReleaseOutcome
from trademart.services.notifications import NotificationDispatcher
from trademart.services.qc_evaluator import QCEvaluator, derive_status

PHOTO = "https://cdn.example.com/qc/box-1.jpg"


@pytest.fixture
def evaluator(db, notifier):
    return QCEvaluator(db, notifier, threshold=70)


@pytest.fixture
def order(accepted_deal):
    return accepted_deal.order


def _escrow_for(db, order_id):
    db.expire_all()
    return db.query(EscrowAccount).filter(EscrowAccount.order_id == order_id).one()


class TestDeriveStatus:

    @pytest.mark.parametrize("score,expected", [
        (70, QCStatus.PASSED),
        (69, QCStatus.FAILED),
        (69.99, QCStatus.FAILED),
        (100, QCStatus.PASSED),
        (0, QCStatus.FAILED),
    ])
    def test_threshold_is_inclusive(self, score, expected):
        assert derive_status(score, threshold=70) == expected

    def test_explicit_status_wins(self):
        assert derive_status(95, "failed", threshold=70) == QCStatus.FAILED
        assert derive_status(10, "passed", threshold=70) == QCStatus.PASSED

    def test_unknown_explicit_status(self):
        with pytest.raises(InvalidArgumentError):
            derive_status(80, "maybe", threshold=70)


class TestSubmitValidation:

    def test_empty_evidence_is_rejected_without_a_record(self, db, evaluator, buyer, order):
        with pytest.raises(InvalidArgumentError):
            evaluator.submit_report(buyer.id, order.id, photos=[], videos=[], score=90)

        assert db.query(QCReport).count() == 0

    def test_blank_urls_do_not_count_as_evidence(self, db, evaluator, buyer, order):
        with pytest.raises(InvalidArgumentError):
            evaluator.submit_report(buyer.id, order.id, photos=["", "  "], score=90)
        assert db.query(QCReport).count() == 0

    @pytest.mark.parametrize("score", [-1, 100.5, 250])
    def test_score_out_of_range(self, db, evaluator, buyer, order, score):
        with pytest.raises(InvalidArgumentError):
            evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=score)
        assert db.query(QCReport).count() == 0

    def test_unknown_order(self, evaluator, buyer):
        with pytest.raises(NotFoundError):
            evaluator.submit_report(buyer.id, 999, photos=[PHOTO], score=80)

    def test_outsider_cannot_submit(self, evaluator, make_user, order):
        outsider = make_user(UserRole.BUYER)
        with pytest.raises(ForbiddenError):
            evaluator.submit_report(outsider.id, order.id, photos=[PHOTO], score=80)


class TestPassingReport:

    def test_score_85_delivers_order_and_releases_escrow(self, db, evaluator, recorder, buyer, supplier, order, make_escrow):
        make_escrow(order, EscrowStatus.FUNDED)

        submission = evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=85)

        assert submission.passed
        assert submission.report.status == QCStatus.PASSED
        assert submission.escrow_release == ReleaseOutcome.RELEASED

        escrow = _escrow_for(db, order.id)
        assert escrow.status == EscrowStatus.RELEASED
        assert escrow.qc_passed is True
        assert escrow.released_at is not None
        assert db.get(Order, order.id).status == OrderStatus.DELIVERED

        supplier_types = [n.type for n in recorder.for_user(supplier.user_id)]
        assert notify.PAYMENT_RELEASED in supplier_types
        assert notify.QC_COMPLETED in supplier_types
        assert notify.QC_COMPLETED in [n.type for n in recorder.for_user(buyer.id)]

    def test_score_70_passes(self, evaluator, buyer, order, make_escrow):
        make_escrow(order)
        submission = evaluator.submit_report(buyer.id, order.id, videos=["https://cdn.example.com/qc/walk.mp4"], score=70)
        assert submission.report.status == QCStatus.PASSED

    def test_supplier_may_submit(self, evaluator, supplier, order):
        submission = evaluator.submit_report(supplier.user_id, order.id, photos=[PHOTO], score=88)
        assert submission.report.submitted_by == supplier.user_id

    def test_second_passing_report_does_not_release_again(self, db, evaluator, recorder, buyer, supplier, order, make_escrow):
        make_escrow(order)
        evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=90)
        released_at = _escrow_for(db, order.id).released_at

        second = evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=95)

        assert second.escrow_release == ReleaseOutcome.ALREADY_RELEASED
        assert _escrow_for(db, order.id).released_at == released_at
        payments = [n for n in recorder.for_user(supplier.user_id) if n.type == notify.PAYMENT_RELEASED]
        assert len(payments) == 1

    def test_without_escrow_account_order_is_still_delivered(self, db, evaluator, recorder, buyer, order):
        submission = evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=80)

        assert submission.escrow_release == ReleaseOutcome.NO_ACCOUNT
        db.expire_all()
        assert db.get(Order, order.id).status == OrderStatus.DELIVERED
        assert notify.PAYMENT_RELEASED not in recorder.types()


class TestFailingReport:

    def test_score_40_disputes_order_and_keeps_escrow(self, db, evaluator, recorder, buyer, supplier, order, make_escrow):
        make_escrow(order, EscrowStatus.FUNDED)

        submission = evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=40, notes="Cracked casings")

        assert not submission.passed
        assert submission.report.status == QCStatus.FAILED
        assert submission.escrow_release is None

        escrow = _escrow_for(db, order.id)
        assert escrow.status == EscrowStatus.FUNDED
        assert escrow.released_at is None
        assert db.get(Order, order.id).status == OrderStatus.DISPUTED

        for user_id in (buyer.id, supplier.user_id):
            types = [n.type for n in recorder.for_user(user_id)]
            assert notify.DISPUTE_CREATED in types
            assert notify.QC_COMPLETED in types
        assert notify.PAYMENT_RELEASED not in recorder.types()

    def test_score_69_fails(self, evaluator, buyer, order):
        submission = evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=69)
        assert submission.report.status == QCStatus.FAILED

    def test_latest_report_drives_order_status(self, db, evaluator, buyer, order):
        evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=30)
        evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=75)

        db.expire_all()
        assert db.get(Order, order.id).status == OrderStatus.DELIVERED
        reports = evaluator.list_reports(buyer.id, order.id)
        assert [r.score for r in reports] == [75.0, 30.0]


class TestSideEffectFailures:

    def test_notification_failure_keeps_report(self, db, buyer, order, make_escrow):
        class BrokenChannel:
            def publish(self, notification):
                raise ConnectionError("redis down")

        make_escrow(order)
        evaluator = QCEvaluator(db, NotificationDispatcher(BrokenChannel()), threshold=70)

        submission = evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=85)

        assert submission.report.id is not None
        assert db.query(QCReport).count() == 1
        assert _escrow_for(db, order.id).status == EscrowStatus.RELEASED

    def test_escrow_failure_keeps_report_and_order_status(self, db, evaluator, recorder, buyer, order, make_escrow):
        make_escrow(order)

        with patch.object(evaluator.ledger, "release_for_qc", side_effect=RuntimeError("ledger offline")):
            submission = evaluator.submit_report(buyer.id, order.id, photos=[PHOTO], score=90)

        assert submission.escrow_release is None
        assert "ledger offline" in submission.escrow_error
        assert db.query(QCReport).count() == 1
        assert db.get(Order, order.id).status == OrderStatus.DELIVERED
        assert _escrow_for(db, order.id).status == EscrowStatus.FUNDED
        assert notify.PAYMENT_RELEASED not in recorder.types()
        assert notify.QC_COMPLETED in recorder.types()


class TestListReports:

    def test_outsider_cannot_list(self, evaluator, make_user, order):
        outsider = make_user(UserRole.SUPPLIER)
        with pytest.raises(ForbiddenError):
            evaluator.list_reports(outsider.id, order.id)
