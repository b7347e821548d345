"""Tests for SqlCreditLedger on an in-memory SQLite database."""
import pytest

from app.models.credit_transaction import CreditTransaction
from app.models.user import User
from app.services.credits.ledger import SqlCreditLedger


@pytest.fixture
def ledger(db):
    db.add(User(external_id="user-1", credits=5))
    db.add(User(external_id="banned", credits=50, is_banned=True))
    db.commit()
    return SqlCreditLedger(db)


def _rows(db, **filters):
    return db.query(CreditTransaction).filter_by(**filters).all()


class TestDeduct:
    def test_deduct_moves_balance_and_records(self, ledger, db):
        result = ledger.deduct("user-1", 2, "job-1", "Music generation: Night Drive", {"provider": "replicate"})

        assert result.success is True
        assert result.new_balance == 3
        assert ledger.balance("user-1") == 3
        (tx,) = _rows(db, job_id="job-1")
        assert tx.operation == "DEDUCT"
        assert tx.amount == -2
        assert tx.balance_after == 3
        assert tx.meta == {"provider": "replicate"}
        assert result.transaction_id == tx.id

    def test_repeat_deduct_is_idempotent(self, ledger):
        first = ledger.deduct("user-1", 2, "job-1")
        second = ledger.deduct("user-1", 2, "job-1")
        assert second == first
        assert ledger.balance("user-1") == 3

    def test_insufficient_is_refused_and_recorded(self, ledger, db):
        result = ledger.deduct("user-1", 6, "job-2")

        assert result.success is False
        assert result.new_balance == 5
        assert result.error_message == "Insufficient credits"
        assert ledger.balance("user-1") == 5
        (tx,) = _rows(db, job_id="job-2")
        assert tx.status == "failed"
        assert tx.reason == "insufficient credits"

    def test_exact_balance_allowed(self, ledger):
        assert ledger.deduct("user-1", 5, "job-3").new_balance == 0

    def test_unknown_user(self, ledger):
        result = ledger.deduct("ghost", 1, "job-4")
        assert result.success is False
        assert result.new_balance is None

    def test_banned_user(self, ledger):
        assert ledger.deduct("banned", 1, "job-5").success is False
        assert ledger.balance("banned") == 50


class TestRefund:
    def test_refund_links_deduction(self, ledger, db):
        deduct = ledger.deduct("user-1", 2, "job-1")
        refund = ledger.refund("user-1", 2, "generation_failed", {"error": "boom"}, "job-1")

        assert refund.success is True
        assert refund.new_balance == 5
        tx = _rows(db, job_id="job-1", operation="REFUND")[0]
        assert tx.related_transaction_id == deduct.transaction_id
        assert tx.reason == "generation_failed"
        assert tx.amount == 2

    def test_refund_is_idempotent(self, ledger, db):
        ledger.deduct("user-1", 2, "job-1")
        ledger.refund("user-1", 2, "generation_failed", job_id="job-1")
        again = ledger.refund("user-1", 2, "generation_failed", job_id="job-1")

        assert again.success is True
        assert ledger.balance("user-1") == 5
        assert len(_rows(db, job_id="job-1", operation="REFUND")) == 1

    def test_refund_never_exceeds_deduction(self, ledger):
        ledger.deduct("user-1", 2, "job-1")
        assert ledger.refund("user-1", 10, "generation_failed", job_id="job-1").new_balance == 5

    def test_refund_without_deduction_refused(self, ledger):
        result = ledger.refund("user-1", 2, "generation_failed", job_id="never-deducted")
        assert result.success is False
        assert ledger.balance("user-1") == 5

    def test_refund_of_refused_deduction_refused(self, ledger):
        ledger.deduct("user-1", 50, "job-9")
        assert ledger.refund("user-1", 50, "generation_failed", job_id="job-9").success is False
        assert ledger.balance("user-1") == 5

    def test_job_id_required(self, ledger):
        with pytest.raises(ValueError):
            ledger.refund("user-1", 2, "generation_failed")

    def test_song_and_cover_refunds_are_separate(self, ledger):
        ledger.deduct("user-1", 2, "job-1")
        ledger.deduct("user-1", 1, "job-1:cover")
        ledger.refund("user-1", 1, "generation_failed", job_id="job-1:cover")
        assert ledger.balance("user-1") == 3
