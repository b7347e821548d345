"""
Credit ledger: the only code that changes a user's balance.

Every deduct and refund is one committed transaction that locks the user row,
moves the balance and writes a credit_transactions row. (user_id, job_id,
operation) is unique, so repeating a deduct or refund for the same job returns
the first result instead of moving money twice.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.credit_transaction import CreditTransaction
from app.models.user import User
from app.utils.metrics import credit_operations_total

logger = logging.getLogger(__name__)

DEDUCT = "DEDUCT"
REFUND = "REFUND"


@dataclass(frozen=True)
class DeductResult:
    success: bool
    new_balance: int | None
    error_message: str | None = None
    transaction_id: str | None = None


@dataclass(frozen=True)
class RefundResult:
    success: bool
    new_balance: int | None
    transaction_id: str | None = None


class CreditLedger(ABC):
    @abstractmethod
    def deduct(
        self,
        user_id: str,
        amount: int,
        job_id: str,
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> DeductResult:
        """Atomically take amount from the balance. Refusals are recorded, not raised."""

    @abstractmethod
    def refund(
        self,
        user_id: str,
        amount: int,
        reason: str,
        metadata: dict[str, Any] | None = None,
        job_id: str | None = None,
    ) -> RefundResult:
        """Return amount for a job's deduction. Idempotent per (user_id, job_id)."""

    def balance(self, user_id: str) -> int | None:
        return None


class SqlCreditLedger(CreditLedger):
    def __init__(self, db: Session):
        self.db = db

    def balance(self, user_id: str) -> int | None:
        user = self.db.query(User).filter(User.external_id == user_id).one_or_none()
        return user.credits if user else None

    def _existing(self, user_id: str, job_id: str, operation: str) -> CreditTransaction | None:
        return (
            self.db.query(CreditTransaction)
            .filter(
                CreditTransaction.user_id == user_id,
                CreditTransaction.job_id == job_id,
                CreditTransaction.operation == operation,
            )
            .one_or_none()
        )

    def _lock_user(self, user_id: str) -> User | None:
        return (
            self.db.query(User)
            .filter(User.external_id == user_id)
            .with_for_update()
            .one_or_none()
        )

    def _record_refused(self, user_id: str, amount: int, job_id: str, description: str, reason: str, balance: int | None, metadata: dict) -> None:
        self.db.add(
            CreditTransaction(
                user_id=user_id,
                job_id=job_id,
                operation=DEDUCT,
                status="failed",
                amount=-amount,
                balance_after=balance,
                description=description,
                reason=reason,
                meta=metadata,
            )
        )
        self.db.commit()

    def deduct(self, user_id, amount, job_id, description="", metadata=None) -> DeductResult:
        metadata = dict(metadata or {})
        try:
            prior = self._existing(user_id, job_id, DEDUCT)
            if prior is not None:
                if prior.status == "success":
                    return DeductResult(True, prior.balance_after, None, prior.id)
                return DeductResult(False, prior.balance_after, prior.reason, None)

            user = self._lock_user(user_id)
            if user is None or user.is_banned:
                self.db.rollback()
                reason = "user not found" if user is None else "account disabled"
                self._record_refused(user_id, amount, job_id, description, reason, None, metadata)
                credit_operations_total.labels(operation=DEDUCT, status="failed").inc()
                return DeductResult(False, None, "Failed to deduct credits", None)

            if user.credits < amount:
                balance = user.credits
                self.db.rollback()
                self._record_refused(user_id, amount, job_id, description, "insufficient credits", balance, metadata)
                credit_operations_total.labels(operation=DEDUCT, status="failed").inc()
                logger.info(
                    "credit_deduct_refused",
                    extra={"user_id": user_id, "job_id": job_id, "amount": amount, "balance_after": balance},
                )
                return DeductResult(False, balance, "Insufficient credits", None)

            user.credits -= amount
            tx = CreditTransaction(
                user_id=user_id,
                job_id=job_id,
                operation=DEDUCT,
                status="success",
                amount=-amount,
                balance_after=user.credits,
                description=description,
                meta=metadata,
            )
            self.db.add(tx)
            self.db.commit()
        except IntegrityError:
            # Concurrent deduct for the same job won the race
            self.db.rollback()
            prior = self._existing(user_id, job_id, DEDUCT)
            if prior is not None and prior.status == "success":
                return DeductResult(True, prior.balance_after, None, prior.id)
            return DeductResult(False, None, "Failed to deduct credits", None)

        credit_operations_total.labels(operation=DEDUCT, status="success").inc()
        logger.info(
            "credit_deducted",
            extra={"user_id": user_id, "job_id": job_id, "amount": amount, "balance_after": tx.balance_after, "transaction_id": tx.id},
        )
        return DeductResult(True, tx.balance_after, None, tx.id)

    def refund(self, user_id, amount, reason, metadata=None, job_id=None) -> RefundResult:
        if not job_id:
            raise ValueError("job_id is required for an idempotent refund")
        metadata = dict(metadata or {})
        try:
            prior = self._existing(user_id, job_id, REFUND)
            if prior is not None:
                return RefundResult(True, prior.balance_after, prior.id)

            deduction = self._existing(user_id, job_id, DEDUCT)
            if deduction is None or deduction.status != "success":
                logger.warning("credit_refund_without_deduct", extra={"user_id": user_id, "job_id": job_id, "reason": reason})
                return RefundResult(False, None, None)
            amount = min(amount, -deduction.amount)

            user = self._lock_user(user_id)
            if user is None:
                self.db.rollback()
                return RefundResult(False, None, None)
            user.credits += amount
            tx = CreditTransaction(
                user_id=user_id,
                job_id=job_id,
                operation=REFUND,
                status="success",
                amount=amount,
                balance_after=user.credits,
                description=f"Refund: {reason}",
                reason=reason,
                related_transaction_id=deduction.id,
                meta=metadata,
            )
            self.db.add(tx)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            prior = self._existing(user_id, job_id, REFUND)
            if prior is not None:
                return RefundResult(True, prior.balance_after, prior.id)
            raise

        credit_operations_total.labels(operation=REFUND, status="success").inc()
        logger.info(
            "credit_refund_issued",
            extra={"user_id": user_id, "job_id": job_id, "amount": amount, "reason": reason, "balance_after": tx.balance_after},
        )
        return RefundResult(True, tx.balance_after, tx.id)
