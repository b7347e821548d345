import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.models.generation_job import GenerationJob
from app.models.library_item import LibraryItem
from app.services.credits.ledger import CreditLedger, SqlCreditLedger
from app.services.generation.lifecycle import HELD_STATES, JobState, check_transition

logger = logging.getLogger(__name__)

# Jobs whose owning thread may have died with credit still held
STALE_CANDIDATE_STATES = tuple(sorted(s.value for s in HELD_STATES))


class ReconciliationService:
    def __init__(self, db: Session, ledger: CreditLedger | None = None):
        self.db = db
        self.ledger = ledger or SqlCreditLedger(db)

    def find_stale_jobs(self, grace_seconds: int, now: datetime | None = None) -> list[GenerationJob]:
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=grace_seconds)
        stale = (
            self.db.query(GenerationJob)
            .filter(
                GenerationJob.status.in_(STALE_CANDIDATE_STATES),
                GenerationJob.heartbeat_at < cutoff,
            )
            .all()
        )
        failed = (
            self.db.query(GenerationJob)
            .filter(GenerationJob.status == JobState.REFUND_FAILED.value)
            .all()
        )
        return stale + failed

    def find_catalog_record(self, job: GenerationJob) -> LibraryItem | None:
        return (
            self.db.query(LibraryItem)
            .filter(LibraryItem.job_id == job.job_id, LibraryItem.media_type == "audio")
            .first()
        )

    def complete_job(self, job: GenerationJob) -> bool:
        """Mark a succeeded job persisted when its song already reached the catalog.
        Returns False when there is no catalog record (the job needs a refund instead)."""
        if job.status != JobState.SUCCEEDED.value:
            return False
        item = self.find_catalog_record(job)
        if item is None:
            return False
        check_transition(JobState.SUCCEEDED, JobState.PERSISTED)
        job.status = JobState.PERSISTED.value
        job.library_id = item.id
        job.artifact_url = item.media_url
        self.db.add(job)
        self.db.commit()
        logger.info("reconciliation_job_persisted", extra={"job_id": job.job_id, "user_id": job.user_id, "library_id": item.id})
        return True

    def refund_job(self, job: GenerationJob, reason: str = "generation_abandoned") -> bool:
        """Refund one orphaned job. Idempotent: the ledger refuses a second refund for the same job.
        Returns True if the job ended up refunded."""
        current = JobState(job.status)
        if current != JobState.REFUND_FAILED and current.value not in STALE_CANDIDATE_STATES:
            return False
        if current == JobState.SUCCEEDED and self.find_catalog_record(job) is not None:
            return False
        check_transition(current, JobState.REFUNDED)

        result = self.ledger.refund(
            job.user_id,
            job.credits_reserved,
            reason,
            {"previous_state": current.value, "provider_job_id": job.provider_job_id, "source": "watchdog"},
            job.job_id,
        )
        if not result.success:
            logger.error("reconciliation_refund_failed", extra={"job_id": job.job_id, "user_id": job.user_id, "state": current.value})
            return False

        job.status = JobState.REFUNDED.value
        job.error_code = reason
        self.db.add(job)
        self.db.commit()
        logger.info(
            "reconciliation_refund_issued",
            extra={
                "job_id": job.job_id,
                "user_id": job.user_id,
                "amount": job.credits_reserved,
                "balance_after": result.new_balance,
                "state": current.value,
            },
        )
        return True
