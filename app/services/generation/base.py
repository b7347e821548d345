"""
Base classes and types for music generation providers.
Every provider is a job-submission service with a polling status API:
submit() returns a handle, get_status() observes it, cancel() is best effort.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import pybreaker

from app.services.generation.errors import ProviderError


class ProviderJobStatus(str, Enum):
    SUBMITTED = "submitted"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({
    ProviderJobStatus.SUCCEEDED,
    ProviderJobStatus.FAILED,
    ProviderJobStatus.CANCELED,
    ProviderJobStatus.TIMED_OUT,
})


@dataclass
class ProviderInput:
    """Everything a provider needs to start one song."""
    prompt: str
    lyrics: str
    audio_format: str = "mp3"
    sample_rate: int = 44100
    bitrate: int = 256000
    genre: str | None = None
    bpm: int | None = None


@dataclass
class ProviderJobHandle:
    """Opaque reference to an external job. Mutated only by the JobController poll loop."""
    job_id: str
    provider: str
    status: ProviderJobStatus = ProviderJobStatus.SUBMITTED
    urls: dict[str, str] = field(default_factory=dict)


@dataclass
class ProviderStatus:
    """One observation of a provider job."""
    status: ProviderJobStatus
    output: Any = None
    error: str | None = None


class MusicGenerationProvider(ABC):
    """Base class for music generation providers."""

    name: str = ""
    # Accepted lyrics length, inclusive
    min_content_chars: int = 10
    max_content_chars: int = 600

    def __init__(self, config: dict, breaker: pybreaker.CircuitBreaker | None = None) -> None:
        self.config = config
        self.breaker = breaker

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured and available."""
        pass

    @abstractmethod
    def submit(self, provider_input: ProviderInput) -> ProviderJobHandle:
        """Start a job. Raises ProviderError on failure."""
        pass

    @abstractmethod
    def get_status(self, handle: ProviderJobHandle) -> ProviderStatus:
        """Observe a job. Raises ProviderError when the status cannot be read."""
        pass

    def cancel(self, handle: ProviderJobHandle) -> None:
        """Best-effort cancellation. Override where the provider supports it."""
        return None

    def accepts(self, content: str) -> bool:
        return self.min_content_chars <= len(content) <= self.max_content_chars

    def _guarded(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run func through the provider's circuit breaker, if one is configured."""
        if self.breaker is None:
            return func(*args)
        try:
            return self.breaker.call(func, *args)
        except pybreaker.CircuitBreakerError as e:
            raise ProviderError(
                f"{self.name} circuit open",
                detail={"circuit_open": True, "provider": self.name},
            ) from e
