from datetime import datetime, timedelta, timezone

import redis

from app.core.redis_client import get_redis_client


def seconds_until_utc_midnight(now: datetime) -> int:
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max(1, int((tomorrow - now).total_seconds()))


class DailyQuotaStore:
    """Once-per-UTC-day marker per user, backed by redis SET NX EX."""

    def __init__(self, client: redis.Redis | None = None, prefix: str = "bonus_pack", clock=None) -> None:
        self.client = client or get_redis_client()
        self.prefix = prefix
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _key(self, user_id: str, day: str) -> str:
        return f"{self.prefix}:{user_id}:{day}"

    def try_consume(self, user_id: str) -> str | None:
        """Atomic: returns the UTC day consumed, or None if already used today."""
        now = self._clock()
        day = now.date().isoformat()
        created = self.client.set(self._key(user_id, day), "1", nx=True, ex=seconds_until_utc_midnight(now))
        return day if created else None

    def release(self, user_id: str, day: str) -> None:
        self.client.delete(self._key(user_id, day))
