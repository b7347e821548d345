"""
Song generation service with multi-provider support.
"""
from .base import (
    MusicGenerationProvider,
    ProviderInput,
    ProviderJobHandle,
    ProviderJobStatus,
    ProviderStatus,
)
from .errors import (
    CancellationError,
    GenerationError,
    GenerationValidationError,
    IllegalTransition,
    InsufficientBalanceError,
    PersistenceError,
    ProviderError,
    ProviderTimeoutError,
    QuotaError,
)
from .factory import MusicProviderFactory
from .failure_types import FailureType, classify_failure
from .lifecycle import JobState
from .retry import submit_with_retry
from .router import ProviderRouter
from .validation import GenerationRequest, validate_generation_request

__all__ = [
    "MusicGenerationProvider",
    "ProviderInput",
    "ProviderJobHandle",
    "ProviderJobStatus",
    "ProviderStatus",
    "CancellationError",
    "GenerationError",
    "GenerationValidationError",
    "IllegalTransition",
    "InsufficientBalanceError",
    "PersistenceError",
    "ProviderError",
    "ProviderTimeoutError",
    "QuotaError",
    "MusicProviderFactory",
    "FailureType",
    "classify_failure",
    "JobState",
    "submit_with_retry",
    "ProviderRouter",
    "GenerationRequest",
    "validate_generation_request",
]
