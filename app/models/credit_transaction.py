"""
Credit transaction log: every deduction, refund and refused deduction attempt.
(user_id, job_id, operation) is unique, which makes refunds idempotent per job.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from app.db.base import Base, JSONType


class CreditTransaction(Base):
    __tablename__ = "credit_transactions"
    __table_args__ = (UniqueConstraint("user_id", "job_id", "operation", name="uq_credit_tx_idempotency"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    job_id = Column(String, nullable=False, index=True)
    operation = Column(String, nullable=False)  # DEDUCT, REFUND
    status = Column(String, nullable=False, default="success")  # success | failed
    amount = Column(Integer, nullable=False)  # negative for spend, positive for refund
    balance_after = Column(Integer, nullable=True)
    description = Column(String, nullable=True)
    reason = Column(String, nullable=True)
    related_transaction_id = Column(String, nullable=True)  # REFUND -> DEDUCT
    meta = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
