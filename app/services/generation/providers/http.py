"""Shared httpx helpers for provider adapters."""
from typing import Any, Callable

import httpx

from app.services.generation.errors import ProviderError


def call(provider: str, func: Callable[[], httpx.Response]) -> Any:
    """Run one HTTP call and return decoded JSON, mapping every failure to ProviderError."""
    try:
        response = func()
    except httpx.TimeoutException as e:
        raise ProviderError(f"{provider} request timed out", detail={"transport": "timeout", "provider": provider}) from e
    except httpx.TransportError as e:
        raise ProviderError(f"{provider} transport error: {e}", detail={"transport": type(e).__name__, "provider": provider}) from e

    if response.status_code >= 400:
        detail: dict[str, Any] = {"http_status": response.status_code, "provider": provider}
        retry_after = response.headers.get("retry-after")
        if retry_after:
            detail["retry_after"] = retry_after
        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text[:500]}
        if isinstance(body, dict):
            detail["body"] = body
            code = body.get("error_code") or body.get("code")
            if code:
                detail["error_code"] = str(code)
        raise ProviderError(f"{provider} HTTP {response.status_code}", detail=detail)

    try:
        return response.json()
    except ValueError as e:
        raise ProviderError(f"{provider} returned invalid JSON", detail={"provider": provider, "invalid_json": True}) from e
