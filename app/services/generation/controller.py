"""
JobController: drives one song generation from credit hold to a terminal state.

Every job that gets past hold() ends in exactly one of:
  persisted  - artifact stored and cataloged; the deduction stands
  refunded   - the full deduction returned through the ledger
  refund_failed - every refund attempt failed; left for the watchdog
Client disconnects only stop the stream; the job keeps running.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from uuid import uuid4

from app.services.credits.ledger import CreditLedger
from app.services.generation.base import (
    MusicGenerationProvider,
    ProviderInput,
    ProviderJobHandle,
    ProviderJobStatus,
    ProviderStatus,
)
from app.services.generation.cover_art import CoverArtGenerator
from app.services.generation.errors import (
    CancellationError,
    GenerationError,
    GenerationValidationError,
    InsufficientBalanceError,
    PersistenceError,
    ProviderError,
    ProviderTimeoutError,
)
from app.services.generation.lifecycle import JobState, Lifecycle
from app.services.generation.output import normalize_output
from app.services.generation.retry import submit_with_retry
from app.services.generation.sanitize import sanitize_credit_error, sanitize_error
from app.services.generation.stream import StreamEmitter
from app.services.generation.validation import GenerationRequest
from app.services.lyrics.resolver import ResolvedContent
from app.services.notifications.service import Notifier
from app.storage.base import ArtifactPersister
from app.storage.local import safe_filename
from app.utils.metrics import (
    active_generations,
    generation_duration_seconds,
    generation_jobs_total,
    provider_polls_total,
    provider_submissions_total,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreditHold:
    amount_deducted: int
    balance_after: int | None
    transaction_id: str | None


@dataclass(frozen=True)
class GenerationResult:
    artifact_url: str
    metadata: dict[str, Any]
    credits_deducted: int
    library_id: str
    image_url: str | None = None


@dataclass(frozen=True)
class RefundRecord:
    amount: int
    reason: str
    related_transaction_id: str | None
    balance_after: int | None


@dataclass
class JobOutcome:
    state: JobState
    result: GenerationResult | None = None
    refund: RefundRecord | None = None
    # Internal only; never streamed
    error_detail: str | None = None


@dataclass
class JobContext:
    request: GenerationRequest
    content: ResolvedContent
    provider_name: str
    job_id: str = field(default_factory=lambda: str(uuid4()))
    lifecycle: Lifecycle = field(default_factory=Lifecycle)
    hold: CreditHold | None = None
    handle: ProviderJobHandle | None = None
    record: Any = None

    @property
    def state(self) -> JobState:
        return self.lifecycle.state

    def log_extra(self, **kw: Any) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "user_id": self.request.user_id,
            "provider": self.provider_name,
            "state": self.state.value,
            **kw,
        }


class JobController:
    def __init__(
        self,
        ledger: CreditLedger,
        providers: Mapping[str, MusicGenerationProvider],
        persister: ArtifactPersister,
        notifier: Notifier,
        config: Any,
        jobs: Any = None,
        cover_art: CoverArtGenerator | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ledger = ledger
        self.providers = providers
        self.persister = persister
        self.notifier = notifier
        self.config = config
        self.jobs = jobs
        self.cover_art = cover_art
        self.sleep = sleep
        self.clock = clock

    @property
    def price(self) -> int:
        return self.config.music_generation_cost

    # ------------------------------------------------------------------
    # Job record bookkeeping. The ledger, not this record, is the source of
    # truth for money; a failed write is logged and the job carries on.
    # ------------------------------------------------------------------
    def _record(self, method: str, ctx: JobContext, *args: Any) -> None:
        if self.jobs is None or ctx.record is None:
            return
        try:
            getattr(self.jobs, method)(ctx.record, *args)
        except Exception:
            logger.exception("generation_job_record_failed", extra=ctx.log_extra(detail=method))

    def _advance(self, ctx: JobContext, target: JobState, error_code: str | None = None) -> None:
        ctx.lifecycle.advance(target)
        self._record("set_status", ctx, target.value, error_code)

    def _best_effort(self, ctx: JobContext, name: str, func: Callable[..., None], *args: Any) -> None:
        try:
            func(*args)
        except Exception as e:
            logger.warning("notifier_call_failed", extra=ctx.log_extra(detail=name, error=str(e)[:200]))

    def _current_balance(self, ctx: JobContext) -> int | None:
        """Ledger balance now; the hold-time balance when the ledger cannot say."""
        try:
            balance = self.ledger.balance(ctx.request.user_id)
        except Exception as e:
            logger.warning("balance_read_failed", extra=ctx.log_extra(error=str(e)[:200]))
            balance = None
        return ctx.hold.balance_after if balance is None else balance

    # ------------------------------------------------------------------
    # created -> credit_held
    # ------------------------------------------------------------------
    def hold(self, ctx: JobContext) -> CreditHold:
        req = ctx.request
        provider = self.providers.get(ctx.provider_name)
        if provider is not None and not provider.accepts(ctx.content.text):
            raise GenerationValidationError(
                "lyrics",
                f"lyrics length must be {provider.min_content_chars}-{provider.max_content_chars} for {ctx.provider_name}",
            )
        if self.jobs is not None:
            ctx.record = self.jobs.create_job(
                user_id=req.user_id,
                title=req.title,
                prompt=req.prompt,
                lyrics=ctx.content.text,
                lyrics_source=ctx.content.source,
                provider=ctx.provider_name,
                credits_reserved=self.price,
                status=JobState.CREATED.value,
                language=req.language,
                duration_class=req.duration_class,
                params={
                    "audio_format": req.audio_format,
                    "sample_rate": req.sample_rate,
                    "bitrate": req.bitrate,
                    "genre": req.genre,
                    "bpm": req.bpm,
                    "generate_cover_art": req.generate_cover_art,
                    "template_id": ctx.content.template_id,
                },
                job_id=ctx.job_id,
            )

        result = self.ledger.deduct(
            req.user_id,
            self.price,
            ctx.job_id,
            f"Music generation: {req.title}",
            {
                "prompt": req.prompt,
                "provider": ctx.provider_name,
                "lyrics_source": ctx.content.source,
                "template_id": ctx.content.template_id,
            },
        )
        if not result.success:
            logger.info("generation_hold_refused", extra=ctx.log_extra(reason=result.error_message, balance_after=result.new_balance))
            self._record("set_status", ctx, JobState.CREATED.value, "insufficient_credits")
            raise InsufficientBalanceError(
                sanitize_credit_error(result.error_message), credits_needed=self.price, balance=result.new_balance
            )

        ctx.hold = CreditHold(self.price, result.new_balance, result.transaction_id)
        self._advance(ctx, JobState.CREDIT_HELD)
        self._record("set_deduction", ctx, result.transaction_id)
        logger.info("generation_credit_held", extra=ctx.log_extra(amount=self.price, balance_after=result.new_balance))
        return ctx.hold

    # ------------------------------------------------------------------
    # credit_held -> ... -> persisted | refunded
    # ------------------------------------------------------------------
    def run(
        self,
        ctx: JobContext,
        emitter: StreamEmitter,
        should_cancel: Callable[[], bool] = lambda: False,
    ) -> JobOutcome:
        if ctx.hold is None:
            raise RuntimeError("run() called without a credit hold")
        active_generations.inc()
        started_at = self.clock()
        try:
            outcome = self._run(ctx, emitter, should_cancel)
        except Exception as e:
            if ctx.state.holds_credit:
                logger.exception("generation_unexpected_error", extra=ctx.log_extra())
                outcome = self._fail(ctx, emitter, e)
            else:
                logger.exception("generation_post_terminal_error", extra=ctx.log_extra())
                outcome = JobOutcome(state=ctx.state, error_detail=str(e))
        finally:
            active_generations.dec()
            emitter.close()
        generation_duration_seconds.labels(provider=ctx.provider_name).observe(self.clock() - started_at)
        generation_jobs_total.labels(provider=ctx.provider_name, state=outcome.state.value).inc()
        return outcome

    def _run(self, ctx: JobContext, emitter: StreamEmitter, should_cancel: Callable[[], bool]) -> JobOutcome:
        provider = self.providers[ctx.provider_name]
        try:
            handle = submit_with_retry(
                provider,
                self._provider_input(ctx),
                self.config,
                sleep=self.sleep,
                log_extra={"job_id": ctx.job_id, "user_id": ctx.request.user_id},
            )
        except ProviderError as e:
            provider_submissions_total.labels(provider=ctx.provider_name, status="failed").inc()
            return self._fail(ctx, emitter, e)
        provider_submissions_total.labels(provider=ctx.provider_name, status="ok").inc()

        ctx.handle = handle
        self._record("set_handle", ctx, handle.job_id)
        self._advance(ctx, JobState.SUBMITTED)
        logger.info("generation_submitted", extra=ctx.log_extra(provider_job_id=handle.job_id))
        emitter.started(ctx.job_id, status=JobState.SUBMITTED.value)

        self._advance(ctx, JobState.POLLING)
        terminal, status = self._poll(ctx, provider, handle, emitter, should_cancel)

        if terminal == JobState.SUCCEEDED:
            self._advance(ctx, JobState.SUCCEEDED)
            try:
                result = self._persist(ctx, status)
            except PersistenceError as e:
                return self._fail(ctx, emitter, e)
            return self._succeed(ctx, emitter, result)

        self._advance(ctx, terminal, error_code=terminal.value)
        if terminal == JobState.CANCELED:
            error: GenerationError = CancellationError("cancelled by user")
        elif terminal == JobState.TIMED_OUT:
            error = ProviderTimeoutError("provider job did not finish in time", detail={"provider_job_id": handle.job_id})
        else:
            error = ProviderError(
                (status.error if status else None) or "provider job failed",
                detail={"provider_job_id": handle.job_id},
            )
        return self._fail(ctx, emitter, error)

    def _provider_input(self, ctx: JobContext) -> ProviderInput:
        req = ctx.request
        prompt = req.prompt
        if req.genre and req.genre.lower() not in prompt.lower():
            prompt = f"{req.genre}, {prompt}"
        if req.bpm:
            prompt = f"{prompt}, {req.bpm} bpm"
        return ProviderInput(
            prompt=prompt,
            lyrics=ctx.content.text,
            audio_format=req.audio_format,
            sample_rate=req.sample_rate,
            bitrate=req.bitrate,
            genre=req.genre,
            bpm=req.bpm,
        )

    # ------------------------------------------------------------------
    # polling
    # ------------------------------------------------------------------
    def _cancel_provider(self, ctx: JobContext, provider: MusicGenerationProvider, handle: ProviderJobHandle) -> None:
        try:
            provider.cancel(handle)
        except Exception as e:
            logger.warning("provider_cancel_failed", extra=ctx.log_extra(provider_job_id=handle.job_id, error=str(e)[:200]))

    def _poll(
        self,
        ctx: JobContext,
        provider: MusicGenerationProvider,
        handle: ProviderJobHandle,
        emitter: StreamEmitter,
        should_cancel: Callable[[], bool],
    ) -> tuple[JobState, ProviderStatus | None]:
        cfg = self.config
        consecutive_errors = 0
        last_error: str | None = None

        for attempt in range(1, cfg.poll_max_attempts + 1):
            if should_cancel():
                logger.info("generation_cancel_requested", extra=ctx.log_extra(attempt=attempt))
                self._cancel_provider(ctx, provider, handle)
                return JobState.CANCELED, None

            if emitter.note_disconnect():
                logger.info("generation_client_disconnected", extra=ctx.log_extra(attempt=attempt))

            try:
                status = provider.get_status(handle)
            except ProviderError as e:
                consecutive_errors += 1
                last_error = str(e)
                provider_polls_total.labels(provider=ctx.provider_name, outcome="error").inc()
                logger.warning(
                    "provider_poll_error",
                    extra=ctx.log_extra(attempt=attempt, error=last_error[:300], count=consecutive_errors),
                )
                if consecutive_errors >= cfg.poll_max_consecutive_errors:
                    return JobState.FAILED, ProviderStatus(ProviderJobStatus.FAILED, error=last_error)
            else:
                consecutive_errors = 0
                provider_polls_total.labels(provider=ctx.provider_name, outcome="ok").inc()
                handle.status = status.status
                if status.status == ProviderJobStatus.SUCCEEDED:
                    return JobState.SUCCEEDED, status
                if status.status == ProviderJobStatus.TIMED_OUT:
                    return JobState.TIMED_OUT, status
                if status.status.is_terminal:
                    # Provider-side cancel without our signal counts as a failure
                    return JobState.FAILED, status

            if cfg.heartbeat_every_polls and attempt % cfg.heartbeat_every_polls == 0:
                self._record("heartbeat", ctx)
            if attempt < cfg.poll_max_attempts:
                self.sleep(cfg.poll_interval_seconds)

        logger.warning("generation_poll_budget_exhausted", extra=ctx.log_extra(attempt=cfg.poll_max_attempts))
        self._cancel_provider(ctx, provider, handle)
        return JobState.TIMED_OUT, None

    # ------------------------------------------------------------------
    # succeeded -> persisted
    # ------------------------------------------------------------------
    def _persist(self, ctx: JobContext, status: ProviderStatus | None) -> GenerationResult:
        req = ctx.request
        try:
            ref = normalize_output(status.output if status else None)
        except ProviderError as e:
            raise PersistenceError(f"unusable provider output: {e}") from e

        filename = f"{safe_filename(req.title[:30])}-{ctx.job_id[:8]}.{req.audio_format}"
        stored = self.persister.store(ref.url, req.user_id, "music", filename)
        if not stored.success or not stored.public_url:
            raise PersistenceError(stored.error or "artifact store failed")

        metadata = {
            "provider": ctx.provider_name,
            "language": req.language,
            "format": req.audio_format,
            "lyrics_source": ctx.content.source,
            "provider_job_id": ctx.handle.job_id if ctx.handle else None,
        }
        try:
            library_id = self.persister.write_catalog_record({
                "user_id": req.user_id,
                "job_id": ctx.job_id,
                "media_type": "audio",
                "title": req.title,
                "prompt": req.prompt,
                "lyrics": ctx.content.text,
                "media_url": stored.public_url,
                "audio_format": req.audio_format,
                "sample_rate": req.sample_rate,
                "bitrate": req.bitrate,
                "genre": req.genre,
                "generation_params": {**metadata, "duration_class": req.duration_class, "bpm": req.bpm},
            })
        except Exception as e:
            raise PersistenceError(f"catalog write failed: {e}") from e

        return GenerationResult(
            artifact_url=stored.public_url,
            metadata=metadata,
            credits_deducted=ctx.hold.amount_deducted,
            library_id=library_id,
        )

    def _succeed(self, ctx: JobContext, emitter: StreamEmitter, result: GenerationResult) -> JobOutcome:
        req = ctx.request
        self._advance(ctx, JobState.PERSISTED)
        self._record("set_result", ctx, result.artifact_url, result.library_id)
        logger.info("generation_persisted", extra=ctx.log_extra(library_id=result.library_id))

        self._best_effort(ctx, "notify_complete", self.notifier.notify_complete, req.user_id, result.library_id, "music", req.title)
        self._best_effort(ctx, "notify_credit_change", self.notifier.notify_credit_change, req.user_id, -ctx.hold.amount_deducted, f"Music generation: {req.title}")
        self._best_effort(
            ctx, "track_activity", self.notifier.track_activity, req.user_id, "music_generated",
            {"genre": req.genre, "model": ctx.provider_name, "language": req.language},
        )

        balance = self._current_balance(ctx)
        if req.generate_cover_art and self.cover_art is not None:
            cover = None
            try:
                cover = self.cover_art.generate(ctx.job_id, req.user_id, req.title, req.prompt, req.genre, balance)
            except Exception:
                logger.exception("cover_art_unexpected_error", extra=ctx.log_extra())
            if cover is not None:
                if cover.balance_after is not None:
                    balance = cover.balance_after
                if cover.image_url:
                    result = GenerationResult(
                        artifact_url=result.artifact_url,
                        metadata=result.metadata,
                        credits_deducted=result.credits_deducted,
                        library_id=result.library_id,
                        image_url=cover.image_url,
                    )
                    self._record("set_image", ctx, cover.image_url)

        payload: dict[str, Any] = {
            "audioUrl": result.artifact_url,
            "title": req.title,
            "lyrics": ctx.content.text,
            "libraryId": result.library_id,
            "creditsRemaining": balance,
            "creditsDeducted": result.credits_deducted,
        }
        if result.image_url:
            payload["imageUrl"] = result.image_url
        emitter.result(True, **payload)
        return JobOutcome(state=JobState.PERSISTED, result=result)

    # ------------------------------------------------------------------
    # any held state -> refunded | refund_failed
    # ------------------------------------------------------------------
    def _refund(self, ctx: JobContext, error: BaseException) -> RefundRecord | None:
        reason = getattr(error, "refund_reason", GenerationError.refund_reason)
        metadata = {
            "error": str(error)[:500],
            "error_type": type(error).__name__,
            "detail": getattr(error, "detail", None),
            "provider": ctx.provider_name,
            "provider_job_id": ctx.handle.job_id if ctx.handle else None,
            "state": ctx.state.value,
        }
        attempts = max(1, self.config.refund_retry_attempts)
        for attempt in range(1, attempts + 1):
            try:
                refund = self.ledger.refund(ctx.request.user_id, ctx.hold.amount_deducted, reason, metadata, ctx.job_id)
            except Exception as e:
                logger.warning("credit_refund_attempt_error", extra=ctx.log_extra(attempt=attempt, error=str(e)[:200]))
            else:
                if refund.success:
                    return RefundRecord(ctx.hold.amount_deducted, reason, ctx.hold.transaction_id, refund.new_balance)
                logger.warning("credit_refund_attempt_refused", extra=ctx.log_extra(attempt=attempt))
            if attempt < attempts:
                self.sleep(self.config.refund_retry_backoff_seconds * attempt)
        return None

    def _fail(self, ctx: JobContext, emitter: StreamEmitter, error: BaseException) -> JobOutcome:
        req = ctx.request
        logger.warning(
            "generation_failed",
            extra=ctx.log_extra(error=str(error)[:500], reason=getattr(error, "refund_reason", None)),
        )
        refund = self._refund(ctx, error)
        if refund is None:
            self._advance(ctx, JobState.REFUND_FAILED, error_code="refund_failed")
            logger.error(
                "credit_refund_failed",
                extra=ctx.log_extra(amount=ctx.hold.amount_deducted, reason=getattr(error, "refund_reason", None)),
            )
            balance = ctx.hold.balance_after
        else:
            self._advance(ctx, JobState.REFUNDED)
            balance = refund.balance_after
            self._best_effort(ctx, "notify_credit_change", self.notifier.notify_credit_change, req.user_id, refund.amount, f"Refund: {refund.reason}")

        message = sanitize_error(error, context=f"music generation {ctx.job_id}")
        self._best_effort(ctx, "notify_failed", self.notifier.notify_failed, req.user_id, "music", req.title, message)
        emitter.result(False, error=message, creditsRemaining=balance)
        return JobOutcome(state=ctx.state, refund=refund, error_detail=f"{type(error).__name__}: {error}")
