"""
Failure normalization for provider submission.
Classifies API and transport failures for the submit retry policy and observability.
"""
from enum import Enum
from typing import Any


class FailureType(str, Enum):

    TRANSPORT_TRANSIENT = "transport_transient"  # 429, 5xx, timeout, connection reset
    CLIENT_NON_RETRIABLE = "client_non_retriable"  # 4xx except 429
    PROVIDER_REJECTED = "provider_rejected"  # provider answered but refused the input
    CIRCUIT_OPEN = "circuit_open"


# Provider error codes that mean the input itself was refused (content policy, bad lyrics)
REJECTION_CODES = frozenset({
    "content_policy",
    "invalid_input",
    "lyrics_too_long",
    "lyrics_too_short",
})


def classify_failure(
    http_status: int | None,
    detail: dict[str, Any],
    message: str = "",
) -> tuple[FailureType, bool]:
    """
    Classify failure from HTTP status and provider detail.
    Returns (failure_type, retry_allowed).
    """
    if detail.get("circuit_open"):
        return (FailureType.CIRCUIT_OPEN, False)

    if http_status is not None:
        if http_status == 429:
            return (FailureType.TRANSPORT_TRANSIENT, True)
        if 500 <= http_status < 600:
            return (FailureType.TRANSPORT_TRANSIENT, True)
        if 400 <= http_status < 500:
            return (FailureType.CLIENT_NON_RETRIABLE, False)

    code = (detail.get("error_code") or "").strip().lower()
    if code in REJECTION_CODES:
        return (FailureType.PROVIDER_REJECTED, False)

    if detail.get("transport"):
        return (FailureType.TRANSPORT_TRANSIENT, True)

    # Provider answered with something we could not use: no retry
    if detail:
        return (FailureType.PROVIDER_REJECTED, False)

    # No detail at all (bare network error): treat as transient
    return (FailureType.TRANSPORT_TRANSIENT, True)
