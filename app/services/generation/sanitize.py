"""
User-facing error messages.
Raw provider and infrastructure errors are logged server-side and kept in refund
metadata; the caller only ever sees one of the messages below.
"""
import logging
import re

from app.services.generation.errors import CancellationError

logger = logging.getLogger(__name__)

SAFE_MESSAGE = "Generation is temporarily unavailable. Please try again."
INSUFFICIENT_CREDITS = "Insufficient credits"
INSUFFICIENT_CREDITS_ACTIONABLE = "Insufficient credits. Please add more credits to continue."

# Anything matching these must never reach a client. Used for log tagging only:
# sanitize_error() returns SAFE_MESSAGE regardless.
BLOCKED_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"replicate",
        r"fal\.(ai|run)",
        r"postgres|psycopg|sqlalchemy",
        r"redis",
        r"prediction",
        r"ECONNREFUSED|ENOTFOUND|ETIMEDOUT|getaddrinfo",
        r"status:\s*\d{3}",
        r"HTTP\s+\d{3}",
        r"Bad Gateway|Internal Server Error",
        r"Traceback|File \".*\", line \d+",
        r"CUDA|GPU|out of memory|\bOOM\b",
        r"Bearer |Authorization|api[_-]?key|token",
    )
]

_SAFE_CREDIT_MARKERS = (
    "insufficient credits",
    "failed to deduct credits",
    "wallet balance too low",
)


def contains_internal_detail(raw: str) -> bool:
    return any(p.search(raw) for p in BLOCKED_PATTERNS)


def sanitize_error(error: BaseException | str | None, context: str | None = None) -> str:
    """Map any error to a message that is safe to stream to the caller."""
    if isinstance(error, CancellationError):
        return CancellationError.public_message
    raw = str(error) if error is not None else ""
    if context:
        logger.error(
            "generation_internal_error",
            extra={
                "detail": context,
                "error": raw[:500],
                "status": "blocked" if contains_internal_detail(raw) else "generic",
            },
        )
    return SAFE_MESSAGE


def sanitize_credit_error(message: str | None) -> str:
    """Ledger refusals pass through only as one of two fixed credit messages."""
    if not message:
        return INSUFFICIENT_CREDITS
    lower = message.lower()
    if any(marker in lower for marker in _SAFE_CREDIT_MARKERS):
        return INSUFFICIENT_CREDITS_ACTIONABLE
    return INSUFFICIENT_CREDITS
