"""
Replicate predictions API provider.
Default provider for music (MiniMax Music) and the image model used for cover art.
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

_STATUS_MAP = {
    "starting": ProviderJobStatus.SUBMITTED,
    "processing": ProviderJobStatus.RUNNING,
    "succeeded": ProviderJobStatus.SUCCEEDED,
    "failed": ProviderJobStatus.FAILED,
    "canceled": ProviderJobStatus.CANCELED,
    "aborted": ProviderJobStatus.CANCELED,
}


class ReplicateProvider(MusicGenerationProvider):
    """Replicate API provider for music generation."""

    name = "replicate"
    min_content_chars = 10
    max_content_chars = 600

    def __init__(self, config: dict, breaker=None):
        super().__init__(config, breaker)
        self.api_token = config.get("api_token")
        self.api_url = (config.get("api_url") or "https://api.replicate.com/v1").rstrip("/")
        self.model = config.get("model", "minimax/music-1.5")
        self.timeout = config.get("timeout", 60.0)
        self.transport = config.get("transport")

    def is_available(self) -> bool:
        return bool(self.api_token)

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            headers={
                "Authorization": f"Bearer {self.api_token}",
                "Content-Type": "application/json",
            },
            transport=self.transport,
        )

    def submit(self, provider_input: ProviderInput) -> ProviderJobHandle:
        payload: dict[str, Any] = {
            "prompt": provider_input.prompt,
            "lyrics": provider_input.lyrics,
            "bitrate": provider_input.bitrate,
            "sample_rate": provider_input.sample_rate,
            "audio_format": provider_input.audio_format,
        }
        return self._guarded(self.submit_prediction, self.model, payload)

    def submit_prediction(self, model: str, model_input: dict[str, Any]) -> ProviderJobHandle:
        """Create a prediction for any model. "owner/name:version" goes through /predictions."""
        if not self.is_available():
            raise ProviderError("Replicate provider not configured", detail={"provider": self.name, "not_configured": True})
        if ":" in model:
            url = f"{self.api_url}/predictions"
            body = {"version": model.split(":", 1)[1], "input": model_input}
        else:
            url = f"{self.api_url}/models/{model}/predictions"
            body = {"input": model_input}

        with self._client() as client:
            prediction = call(self.name, lambda: client.post(url, json=body))

        prediction_id = prediction.get("id") if isinstance(prediction, dict) else None
        if not prediction_id:
            raise ProviderError("Replicate returned no prediction id", detail={"provider": self.name, "body": prediction})
        urls = prediction.get("urls") or {}
        return ProviderJobHandle(
            job_id=prediction_id,
            provider=self.name,
            status=_STATUS_MAP.get(prediction.get("status"), ProviderJobStatus.SUBMITTED),
            urls={k: v for k, v in urls.items() if isinstance(v, str)},
        )

    def get_status(self, handle: ProviderJobHandle) -> ProviderStatus:
        url = handle.urls.get("get") or f"{self.api_url}/predictions/{handle.job_id}"
        with self._client() as client:
            prediction = call(self.name, lambda: client.get(url))

        raw_status = prediction.get("status")
        status = _STATUS_MAP.get(raw_status)
        if status is None:
            raise ProviderError(f"Replicate returned unknown status {raw_status!r}", detail={"provider": self.name, "status": raw_status})
        error = prediction.get("error")
        return ProviderStatus(
            status=status,
            output=prediction.get("output") if status == ProviderJobStatus.SUCCEEDED else None,
            error=str(error) if error else None,
        )

    def cancel(self, handle: ProviderJobHandle) -> None:
        url = handle.urls.get("cancel") or f"{self.api_url}/predictions/{handle.job_id}/cancel"
        with self._client() as client:
            call(self.name, lambda: client.post(url))
