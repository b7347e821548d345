"""
Error taxonomy for song generation.

Raised before the stream opens (no refund needed):
    GenerationValidationError, QuotaError, InsufficientBalanceError
Raised after a credit hold exists (refund required):
    ProviderError, PersistenceError, CancellationError
"""
from typing import Any


class GenerationError(Exception):
    """Base class for all generation errors."""

    # Reason tag written to the refund record
    refund_reason = "generation_error"


class GenerationValidationError(GenerationError):
    """Request failed a structural check. `field` names the offending input."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "field": self.field}


class QuotaError(GenerationError):
    """Daily bonus pack quota already used."""


class InsufficientBalanceError(GenerationError):
    """Ledger refused the deduction. `message` is already safe for the caller."""

    def __init__(self, message: str, credits_needed: int, balance: int | None = None):
        super().__init__(message)
        self.credits_needed = credits_needed
        self.balance = balance


class ProviderError(GenerationError):
    """Provider call failed or the provider job ended without output.
    `detail` carries http_status / retry_after / provider fields for classification and logs."""

    refund_reason = "generation_failed"

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class ProviderTimeoutError(ProviderError):
    refund_reason = "generation_timed_out"


class PersistenceError(GenerationError):
    """Provider succeeded but the artifact could not be stored or cataloged."""

    refund_reason = "persistence_failed"


class CancellationError(GenerationError):
    """Explicit cancel request from the caller."""

    refund_reason = "generation_cancelled"
    public_message = "Generation cancelled"


class IllegalTransition(RuntimeError):
    """Lifecycle state machine was asked for a transition it does not allow."""
