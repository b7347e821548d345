"""
Celery beat task: refund generation jobs whose worker thread died with credit held.
A job is stale when it sits in any credit-holding state with a heartbeat older
than stale_job_grace_seconds; refund_failed jobs are retried every run. A
succeeded job whose song is already in the catalog is marked persisted instead.
"""
import logging

from sqlalchemy.exc import ProgrammingError

from app.core.celery_app import celery_app
from app.core.config import settings
from app.db.session import SessionLocal
from app.services.reconciliation.service import ReconciliationService
from app.utils.metrics import stale_jobs_refunded_total

logger = logging.getLogger(__name__)


def refund_stale(db, grace_seconds: int) -> dict:
    svc = ReconciliationService(db)
    jobs = svc.find_stale_jobs(grace_seconds)
    refunded = 0
    completed = 0
    failed = 0
    for job in jobs:
        try:
            if svc.complete_job(job):
                completed += 1
            elif svc.refund_job(job):
                refunded += 1
            else:
                failed += 1
        except Exception:
            db.rollback()
            failed += 1
            logger.exception("watchdog_refund_error", extra={"job_id": job.job_id})
    if refunded:
        stale_jobs_refunded_total.inc(refunded)
    if jobs:
        logger.warning("watchdog_stale_jobs", extra={"count": len(jobs), "detail": {"refunded": refunded, "completed": completed, "failed": failed}})
    return {"ok": True, "stale_count": len(jobs), "refunded_count": refunded, "completed_count": completed, "failed_count": failed}


@celery_app.task(
    name="app.workers.tasks.watchdog.refund_stale_jobs",
    time_limit=120,
    soft_time_limit=110,
)
def refund_stale_jobs() -> dict:
    db = SessionLocal()
    try:
        return refund_stale(db, settings.stale_job_grace_seconds)
    except ProgrammingError as e:
        msg = str(e.orig) if getattr(e, "orig", None) else str(e)
        db.rollback()
        if "does not exist" in msg or "UndefinedTable" in msg:
            return {"ok": True, "skipped": "table_not_found"}
        logger.exception("watchdog_error")
        return {"ok": False}
    except Exception:
        logger.exception("watchdog_error")
        db.rollback()
        return {"ok": False}
    finally:
        db.close()
