"""
Submission with retry budget, failure classification and structured logging.
Only submission is retried: once a provider job exists, the poll loop owns it.
"""
import logging
import random
import time
from typing import Any, Callable

from app.services.generation.base import MusicGenerationProvider, ProviderInput, ProviderJobHandle
from app.services.generation.errors import ProviderError
from app.services.generation.failure_types import classify_failure

logger = logging.getLogger(__name__)


def compute_delay(
    attempt: int,
    base: float,
    cap: float,
    retry_after: Any = None,
    jitter: Callable[[float, float], float] = random.uniform,
) -> float:
    """Exponential backoff with jitter; a provider Retry-After wins when present."""
    if retry_after is not None:
        try:
            return min(float(retry_after), cap)
        except (TypeError, ValueError):
            pass
    delay = base * (2 ** (attempt - 1))
    return min(delay + jitter(0, base), cap)


def submit_with_retry(
    provider: MusicGenerationProvider,
    provider_input: ProviderInput,
    settings: Any,
    *,
    sleep: Callable[[float], None] = time.sleep,
    log_extra: dict[str, Any] | None = None,
) -> ProviderJobHandle:
    max_attempts = getattr(settings, "submit_retry_max_attempts", 3)
    backoff_seconds = getattr(settings, "submit_retry_backoff_seconds", 1.0)
    max_delay = getattr(settings, "submit_retry_max_delay_seconds", 30.0)
    respect_retry_after = getattr(settings, "submit_retry_respect_retry_after", True)
    extra = dict(log_extra or {})
    extra["provider"] = provider.name

    attempt = 0
    while True:
        attempt += 1
        try:
            handle = provider.submit(provider_input)
            if attempt > 1:
                logger.info("generation_submit_recovered", extra={**extra, "attempt": attempt})
            return handle
        except ProviderError as e:
            detail = e.detail
            http_status = detail.get("http_status")
            failure_type, retry_allowed = classify_failure(http_status, detail, str(e))
            detail["failure_type"] = failure_type.value
            logger.warning(
                "generation_submit_failed",
                extra={
                    **extra,
                    "attempt": attempt,
                    "failure_type": failure_type.value,
                    "retry_allowed": retry_allowed,
                    "status": http_status,
                    "error": str(e)[:300],
                },
            )
            if not retry_allowed or attempt >= max_attempts:
                raise

            retry_after = detail.get("retry_after") if http_status == 429 and respect_retry_after else None
            delay = compute_delay(attempt, backoff_seconds, max_delay, retry_after)
            logger.info(
                "generation_submit_retry_scheduled",
                extra={**extra, "attempt": attempt, "delay_seconds": round(delay, 2)},
            )
            sleep(delay)
