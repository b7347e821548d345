import redis

from app.core.config import settings
from app.core.redis_client import get_redis_client


class CancelSignals:
    """Explicit cancel requests, shared across API workers through redis."""

    def __init__(self, client: redis.Redis | None = None, ttl_seconds: int | None = None) -> None:
        self.client = client or get_redis_client()
        self.ttl = ttl_seconds if ttl_seconds is not None else settings.cancel_signal_ttl

    def request(self, job_id: str) -> None:
        self.client.set(f"generation:cancel:{job_id}", "1", ex=self.ttl)

    def is_requested(self, job_id: str) -> bool:
        return bool(self.client.exists(f"generation:cancel:{job_id}"))

    def clear(self, job_id: str) -> None:
        self.client.delete(f"generation:cancel:{job_id}")
