"""
Provider output normalization.
Providers return the finished artifact as a plain URL string, a list of URLs,
a mapping or object with a `url` field, or an object whose `url` is a callable
accessor. Everything downstream sees a single ArtifactRef.
"""
from dataclasses import dataclass
from typing import Any

from app.services.generation.errors import ProviderError


@dataclass(frozen=True)
class ArtifactRef:
    url: str


def _extract(value: Any, depth: int = 0) -> str | None:
    if depth > 3 or value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (list, tuple)):
        return _extract(value[0], depth + 1) if value else None
    if isinstance(value, dict):
        for key in ("url", "audio", "audio_url", "audio_file", "image", "output"):
            if key in value:
                found = _extract(value[key], depth + 1)
                if found:
                    return found
        return None
    url = getattr(value, "url", None)
    if callable(url):
        url = url()
    if url is not None:
        return _extract(url if isinstance(url, str) else str(url), depth + 1)
    return None


def normalize_output(output: Any) -> ArtifactRef:
    """Reduce a provider output to one artifact URL. Raises ProviderError if none can be found."""
    url = _extract(output)
    if not url or not url.startswith(("http://", "https://", "data:")):
        raise ProviderError(
            "Provider returned no usable output",
            detail={"output_type": type(output).__name__},
        )
    return ArtifactRef(url=url)
