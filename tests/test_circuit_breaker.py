"""Tests for provider circuit breakers with redis-backed state."""
from datetime import datetime, timezone

import pybreaker
import pytest

from app.services.circuit_breaker import RedisCircuitBreakerStorage, _is_caller_error
from app.services.generation.errors import ProviderError


class DictRedis:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = str(value)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)

    def expire(self, key, seconds):
        pass

    def delete(self, key):
        self.data.pop(key, None)


@pytest.mark.parametrize(
    "detail, expected",
    [
        ({"http_status": 400}, True),
        ({"http_status": 422}, True),
        ({"http_status": 429}, False),
        ({"http_status": 503}, False),
        ({"not_configured": True}, True),
        ({"transport": "timeout"}, False),
    ],
)
def test_caller_errors_do_not_trip(detail, expected):
    assert _is_caller_error(ProviderError("x", detail=detail)) is expected


def test_plain_exception_counts():
    assert _is_caller_error(RuntimeError("boom")) is False


class TestStorage:
    def test_defaults(self):
        storage = RedisCircuitBreakerStorage("music_provider:replicate", client=DictRedis())
        assert storage.state == pybreaker.STATE_CLOSED
        assert storage.counter == 0
        assert storage.opened_at is None

    def test_counters_and_opened_at(self):
        storage = RedisCircuitBreakerStorage("music_provider:fal", client=DictRedis())
        storage.increment_counter()
        storage.increment_counter()
        storage.increment_success_counter()
        opened = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
        storage.opened_at = opened
        storage.state = pybreaker.STATE_OPEN

        assert storage.counter == 2
        assert storage.success_counter == 1
        assert storage.opened_at == opened
        assert storage.state == pybreaker.STATE_OPEN

        storage.reset_counter()
        storage.reset_success_counter()
        assert storage.counter == 0
        assert storage.success_counter == 0

    def test_breaker_opens_after_threshold(self):
        breaker = pybreaker.CircuitBreaker(
            fail_max=2,
            reset_timeout=60,
            state_storage=RedisCircuitBreakerStorage("music_provider:test", client=DictRedis()),
            exclude=[_is_caller_error],
        )

        def fail(status):
            raise ProviderError("x", detail={"http_status": status})

        for _ in range(3):
            with pytest.raises(ProviderError):
                breaker.call(fail, 400)
        assert breaker.current_state == pybreaker.STATE_CLOSED

        with pytest.raises(ProviderError):
            breaker.call(fail, 503)
        with pytest.raises((pybreaker.CircuitBreakerError, ProviderError)):
            breaker.call(fail, 503)
        assert breaker.current_state == pybreaker.STATE_OPEN
