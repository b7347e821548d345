"""
fal.ai queue API provider (MiniMax Music v2).
Regional provider: handles South Asian and Arabic-script lyrics natively.

Queue flow: POST {queue_url}/{model} -> request_id + status/response/cancel urls;
GET status_url until COMPLETED; GET response_url for the result.
"""
from typing import Any

import httpx

from app.services.generation.base import (
    MusicGenerationProvider,
    ProviderInput,
    ProviderJobHandle,
    ProviderJobStatus,
    ProviderStatus,
)
from app.services.generation.errors import ProviderError
from app.services.generation.providers.http import call

# The model caps the style prompt; longer prompts are rejected
PROMPT_MAX_CHARS = 200

_QUEUE_STATUS_MAP = {
    "IN_QUEUE": ProviderJobStatus.SUBMITTED,
    "IN_PROGRESS": ProviderJobStatus.RUNNING,
    "COMPLETED": ProviderJobStatus.SUCCEEDED,
}


class FalProvider(MusicGenerationProvider):
    name = "fal"
    min_content_chars = 10
    max_content_chars = 3000

    def __init__(self, config: dict, breaker=None):
        super().__init__(config, breaker)
        self.api_key = config.get("api_key")
        self.queue_url = (config.get("queue_url") or "https://queue.fal.run").rstrip("/")
        self.model = config.get("model", "fal-ai/minimax-music/v2")
        self.timeout = config.get("timeout", 60.0)
        self.transport = config.get("transport")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            headers={"Authorization": f"Key {self.api_key}", "Content-Type": "application/json"},
            transport=self.transport,
        )

    def build_payload(self, provider_input: ProviderInput) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "prompt": provider_input.prompt.strip()[:PROMPT_MAX_CHARS],
            "audio_setting": {
                "sample_rate": provider_input.sample_rate,
                "bitrate": provider_input.bitrate,
                "format": provider_input.audio_format,
            },
        }
        lyrics = (provider_input.lyrics or "").strip()
        if lyrics and "[instrumental]" not in lyrics.lower():
            payload["lyrics_prompt"] = lyrics[: self.max_content_chars]
        return payload

    def submit(self, provider_input: ProviderInput) -> ProviderJobHandle:
        return self._guarded(self._submit, provider_input)

    def _submit(self, provider_input: ProviderInput) -> ProviderJobHandle:
        if not self.is_available():
            raise ProviderError("fal provider not configured", detail={"provider": self.name, "not_configured": True})
        payload = self.build_payload(provider_input)
        with self._client() as client:
            body = call(self.name, lambda: client.post(f"{self.queue_url}/{self.model}", json=payload))

        request_id = body.get("request_id") if isinstance(body, dict) else None
        if not request_id:
            raise ProviderError("fal returned no request id", detail={"provider": self.name, "body": body})
        base = f"{self.queue_url}/{self.model}/requests/{request_id}"
        return ProviderJobHandle(
            job_id=request_id,
            provider=self.name,
            urls={
                "status": body.get("status_url") or f"{base}/status",
                "response": body.get("response_url") or base,
                "cancel": body.get("cancel_url") or f"{base}/cancel",
            },
        )

    def get_status(self, handle: ProviderJobHandle) -> ProviderStatus:
        with self._client() as client:
            body = call(self.name, lambda: client.get(handle.urls["status"]))
            raw_status = body.get("status")
            status = _QUEUE_STATUS_MAP.get(raw_status)
            if status is None:
                raise ProviderError(f"fal returned unknown status {raw_status!r}", detail={"provider": self.name, "status": raw_status})
            if status != ProviderJobStatus.SUCCEEDED:
                return ProviderStatus(status=status)
            if body.get("error"):
                return ProviderStatus(status=ProviderJobStatus.FAILED, error=str(body["error"]))

            # COMPLETED covers both success and model failure; the response tells which
            try:
                result = call(self.name, lambda: client.get(handle.urls["response"]))
            except ProviderError as e:
                if e.detail.get("http_status") in (400, 422, 500):
                    return ProviderStatus(status=ProviderJobStatus.FAILED, error=str(e.detail.get("body") or e))
                raise

        output = result.get("audio") if isinstance(result, dict) else None
        if not output:
            return ProviderStatus(status=ProviderJobStatus.FAILED, error="fal result has no audio")
        return ProviderStatus(status=ProviderJobStatus.SUCCEEDED, output=output)

    def cancel(self, handle: ProviderJobHandle) -> None:
        with self._client() as client:
            call(self.name, lambda: client.put(handle.urls["cancel"]))
