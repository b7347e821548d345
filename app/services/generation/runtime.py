"""
Wiring for production: builds the controller from settings and runs each job
on its own daemon thread with its own DB session.
"""
import logging
import threading
from typing import Callable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import session_scope
from app.services.credits.ledger import SqlCreditLedger
from app.services.generation.cancellation import CancelSignals
from app.services.generation.controller import JobContext, JobController, JobOutcome
from app.services.generation.cover_art import CoverArtGenerator
from app.services.generation.factory import MusicProviderFactory
from app.services.generation.sanitize import SAFE_MESSAGE
from app.services.generation.stream import StreamEmitter
from app.services.jobs.service import JobService
from app.services.notifications.service import CeleryNotifier
from app.storage.local import LocalArtifactPersister

logger = logging.getLogger(__name__)


def build_job_controller(db: Session) -> JobController:
    ledger = SqlCreditLedger(db)
    persister = LocalArtifactPersister(
        db,
        base_path=settings.storage_base_path,
        public_base_url=settings.public_media_base_url,
        timeout=settings.artifact_download_timeout,
    )
    providers = {
        name: MusicProviderFactory.create_from_settings(settings, name)
        for name in {settings.default_music_provider, settings.regional_music_provider}
    }
    cover_art = CoverArtGenerator(
        client=MusicProviderFactory.create_cover_art_client(settings),
        ledger=ledger,
        persister=persister,
        price=settings.cover_art_cost,
        poll_interval=settings.cover_art_poll_interval_seconds,
        max_attempts=settings.cover_art_poll_max_attempts,
    )
    return JobController(
        ledger=ledger,
        providers=providers,
        persister=persister,
        notifier=CeleryNotifier(),
        config=settings,
        jobs=JobService(db),
        cover_art=cover_art,
    )


def run_generation_job(
    ctx: JobContext,
    emitter: StreamEmitter,
    controller_builder: Callable[[Session], JobController] = build_job_controller,
    cancel_signals: CancelSignals | None = None,
) -> JobOutcome | None:
    signals = cancel_signals or CancelSignals()
    try:
        with session_scope() as db:
            controller = controller_builder(db)
            # The record was loaded by the request session; rebind it to ours
            if controller.jobs is not None:
                ctx.record = controller.jobs.get(ctx.job_id)
            outcome = controller.run(ctx, emitter, lambda: signals.is_requested(ctx.job_id))
            logger.info("generation_finished", extra={"job_id": ctx.job_id, "state": outcome.state.value})
            return outcome
    except Exception:
        # Credit is still held; the stale-job watchdog refunds it
        logger.exception("generation_thread_crashed", extra={"job_id": ctx.job_id, "user_id": ctx.request.user_id})
        emitter.result(False, error=SAFE_MESSAGE)
        emitter.close()
        return None


def launch_generation(ctx: JobContext, emitter: StreamEmitter, target: Callable = run_generation_job) -> threading.Thread:
    thread = threading.Thread(target=target, args=(ctx, emitter), name=f"generation-{ctx.job_id[:8]}", daemon=True)
    thread.start()
    return thread
