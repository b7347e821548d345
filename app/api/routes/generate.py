"""
Song generation endpoints.

POST /api/generate/music streams NDJSON progress once credit is held; every
rejection before that point is a plain JSON error (400/401/402/429).
"""
import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.redis_client import get_redis_client
from app.db.session import get_db
from app.services.generation.cancellation import CancelSignals
from app.services.generation.errors import (
    GenerationValidationError,
    InsufficientBalanceError,
    QuotaError,
)
from app.services.generation.lifecycle import JobState
from app.services.generation.pipeline import GenerationPipeline
from app.services.generation.router import ProviderRouter
from app.services.generation.runtime import build_job_controller, launch_generation
from app.services.generation.stream import StreamEmitter
from app.services.jobs.service import JobService
from app.services.lyrics.quota import DailyQuotaStore
from app.services.lyrics.resolver import ContentResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/generate", tags=["generate"])

# Job statuses after which a cancel has nothing left to stop; created means the hold was refused
_NOT_CANCELLABLE = {s.value for s in JobState if s.is_final} | {
    JobState.CREATED.value,
    JobState.SUCCEEDED.value,
    JobState.FAILED.value,
    JobState.CANCELED.value,
    JobState.TIMED_OUT.value,
}


def get_pipeline(db: Session = Depends(get_db)) -> GenerationPipeline:
    return GenerationPipeline(
        resolver=ContentResolver.from_settings(settings, DailyQuotaStore(get_redis_client())),
        router=ProviderRouter.from_settings(settings),
        controller=build_job_controller(db),
    )


def get_launcher() -> Callable[[Any, StreamEmitter], Any]:
    return launch_generation


def get_cancel_signals() -> CancelSignals:
    return CancelSignals(get_redis_client())


def _user_id(request: Request) -> str | None:
    value = request.headers.get(settings.user_id_header)
    return value.strip() if value and value.strip() else None


async def _ndjson(emitter: StreamEmitter):
    try:
        while True:
            line = await run_in_threadpool(emitter.next_line, 1.0)
            if line is None:
                break
            if line:
                yield line
    finally:
        # Client gone or stream finished; the job thread keeps running either way
        emitter.detach()


@router.post("/music")
async def generate_music(
    request: Request,
    pipeline: GenerationPipeline = Depends(get_pipeline),
    launcher: Callable = Depends(get_launcher),
):
    user_id = _user_id(request)
    if not user_id:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    try:
        raw = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid JSON body", "field": "body"}, status_code=400)

    try:
        ctx = await run_in_threadpool(pipeline.prepare, raw, user_id)
    except GenerationValidationError as e:
        return JSONResponse(e.to_dict(), status_code=400)
    except QuotaError as e:
        return JSONResponse({"error": str(e)}, status_code=429)
    except InsufficientBalanceError as e:
        return JSONResponse(
            {"error": str(e), "creditsNeeded": e.credits_needed, "creditsAvailable": e.balance},
            status_code=402,
        )

    emitter = StreamEmitter(ctx.job_id)
    launcher(ctx, emitter)
    return StreamingResponse(
        _ndjson(emitter),
        media_type="application/x-ndjson",
        headers={"X-Job-Id": ctx.job_id, "Cache-Control": "no-cache"},
    )


@router.post("/music/{job_id}/cancel")
def cancel_music(
    job_id: str,
    request: Request,
    db: Session = Depends(get_db),
    signals: CancelSignals = Depends(get_cancel_signals),
):
    user_id = _user_id(request)
    if not user_id:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    job = JobService(db).get(job_id)
    if job is None or job.user_id != user_id:
        return JSONResponse({"error": "Job not found"}, status_code=404)
    if job.status in _NOT_CANCELLABLE:
        return JSONResponse({"error": "Job already finished", "status": job.status}, status_code=409)
    signals.request(job_id)
    logger.info("generation_cancel_signalled", extra={"job_id": job_id, "user_id": user_id})
    return JSONResponse({"jobId": job_id, "status": "cancel_requested"}, status_code=202)
