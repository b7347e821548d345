from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class StoreResult:
    success: bool
    public_url: str | None = None
    error: str | None = None


class ArtifactPersister(ABC):
    @abstractmethod
    def store(self, source_url: str, user_id: str, category: str, filename: str) -> StoreResult:
        """Copy a provider artifact into durable storage; returns its stable public URL."""
        raise NotImplementedError

    @abstractmethod
    def write_catalog_record(self, fields: dict[str, Any]) -> str:
        """Create the library record for a stored artifact; returns its id. Raises on failure."""
        raise NotImplementedError
