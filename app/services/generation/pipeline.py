"""
Synchronous front half of a generation request: everything that can still
reject it with a plain HTTP error. validate -> resolve lyrics -> route -> hold.
"""
import logging
from typing import Any

from app.services.generation.controller import JobContext, JobController
from app.services.generation.errors import (
    GenerationValidationError,
    InsufficientBalanceError,
    QuotaError,
)
from app.services.generation.router import ProviderRouter
from app.services.generation.validation import validate_generation_request
from app.services.lyrics.resolver import ContentResolver
from app.utils.metrics import generation_rejected_total

logger = logging.getLogger(__name__)


class GenerationPipeline:
    def __init__(self, resolver: ContentResolver, router: ProviderRouter, controller: JobController) -> None:
        self.resolver = resolver
        self.router = router
        self.controller = controller

    def prepare(self, raw: Any, user_id: str) -> JobContext:
        """Returns a context holding credit, ready for controller.run()."""
        try:
            request = validate_generation_request(raw, user_id)
        except GenerationValidationError as e:
            generation_rejected_total.labels(reason="validation").inc()
            logger.info("generation_request_invalid", extra={"user_id": user_id, "detail": e.field, "error": e.message})
            raise

        try:
            content = self.resolver.resolve(request)
        except QuotaError:
            generation_rejected_total.labels(reason="quota").inc()
            raise

        provider = self.router.select(request.language, content.text)
        ctx = JobContext(request=request, content=content, provider_name=provider)
        try:
            self.controller.hold(ctx)
        except InsufficientBalanceError:
            generation_rejected_total.labels(reason="insufficient_credits").inc()
            self.resolver.release(content, request.user_id)
            raise
        except Exception:
            self.resolver.release(content, request.user_id)
            raise

        logger.info(
            "generation_prepared",
            extra={
                "job_id": ctx.job_id,
                "user_id": request.user_id,
                "provider": provider,
                "detail": content.source,
            },
        )
        return ctx
