"""Shared fakes for generation tests: ledger, scripted provider, persister, notifier, quota store."""
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.services.credits.ledger import CreditLedger, DeductResult, RefundResult
from app.services.generation.base import (
    MusicGenerationProvider,
    ProviderJobHandle,
    ProviderJobStatus,
    ProviderStatus,
)
from app.services.generation.controller import JobContext
from app.services.generation.errors import ProviderError
from app.services.generation.validation import validate_generation_request
from app.services.lyrics.resolver import ResolvedContent
from app.services.notifications.service import Notifier
from app.storage.base import ArtifactPersister, StoreResult


def make_config(**overrides):
    values = dict(
        music_generation_cost=2,
        cover_art_cost=1,
        poll_interval_seconds=0,
        poll_max_attempts=5,
        poll_max_consecutive_errors=3,
        heartbeat_every_polls=2,
        refund_retry_attempts=3,
        refund_retry_backoff_seconds=0,
        submit_retry_max_attempts=3,
        submit_retry_backoff_seconds=0,
        submit_retry_max_delay_seconds=0,
        submit_retry_respect_retry_after=True,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class FakeLedger(CreditLedger):
    def __init__(self, balances=None, refund_failures=0):
        self.balances = dict(balances or {})
        self.deducts = []
        self.refunds = []
        self.refused = []
        self.refund_failures = refund_failures
        self._deducted = {}

    def deduct(self, user_id, amount, job_id, description="", metadata=None):
        if job_id in self._deducted:
            return self._deducted[job_id]
        balance = self.balances.get(user_id, 0)
        if balance < amount:
            self.refused.append((user_id, amount, job_id))
            return DeductResult(False, balance, "Insufficient credits", None)
        self.balances[user_id] = balance - amount
        result = DeductResult(True, self.balances[user_id], None, f"tx-{uuid4().hex[:8]}")
        self._deducted[job_id] = result
        self.deducts.append((user_id, amount, job_id))
        return result

    def refund(self, user_id, amount, reason, metadata=None, job_id=None):
        if self.refund_failures > 0:
            self.refund_failures -= 1
            raise RuntimeError("ledger unavailable")
        if any(r["job_id"] == job_id for r in self.refunds):
            return RefundResult(True, self.balances[user_id], "tx-dup")
        self.balances[user_id] = self.balances.get(user_id, 0) + amount
        self.refunds.append({"user_id": user_id, "amount": amount, "reason": reason, "metadata": metadata, "job_id": job_id})
        return RefundResult(True, self.balances[user_id], f"tx-{uuid4().hex[:8]}")

    def balance(self, user_id):
        return self.balances.get(user_id)


class ScriptedProvider(MusicGenerationProvider):
    """Returns scripted statuses in order; the last one repeats."""

    name = "replicate"

    def __init__(self, statuses=None, submit_errors=None, name=None):
        super().__init__({})
        if name:
            self.name = name
        self.statuses = list(statuses or [ProviderStatus(ProviderJobStatus.SUCCEEDED, output="https://cdn.example/song.mp3")])
        self.submit_errors = list(submit_errors or [])
        self.submitted = []
        self.cancelled = []
        self.polls = 0

    def is_available(self):
        return True

    def submit(self, provider_input):
        self.submitted.append(provider_input)
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        return ProviderJobHandle(job_id=f"pred-{len(self.submitted)}", provider=self.name)

    def get_status(self, handle):
        self.polls += 1
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return item

    def cancel(self, handle):
        self.cancelled.append(handle.job_id)


class FakePersister(ArtifactPersister):
    def __init__(self, fail_store=False, fail_catalog=False):
        self.fail_store = fail_store
        self.fail_catalog = fail_catalog
        self.stored = []
        self.records = []

    def store(self, source_url, user_id, category, filename):
        if self.fail_store:
            return StoreResult(success=False, error="disk full")
        self.stored.append((source_url, user_id, category, filename))
        return StoreResult(success=True, public_url=f"https://media.example/{user_id}/{category}/{filename}")

    def write_catalog_record(self, fields):
        if self.fail_catalog:
            raise RuntimeError("catalog unavailable")
        self.records.append(fields)
        return f"lib-{len(self.records)}"


class RecordingNotifier(Notifier):
    def __init__(self, raise_errors=False):
        self.calls = []
        self.raise_errors = raise_errors

    def _record(self, *call):
        self.calls.append(call)
        if self.raise_errors:
            raise RuntimeError("broker down")

    def notify_complete(self, user_id, library_id, media_type, title):
        self._record("complete", user_id, library_id)

    def notify_failed(self, user_id, media_type, title, reason):
        self._record("failed", user_id, reason)

    def notify_credit_change(self, user_id, amount, description):
        self._record("credit", user_id, amount)

    def track_activity(self, user_id, event, data):
        self._record("activity", user_id, event)


class FakeQuotaStore:
    def __init__(self):
        self.used = set()
        self.released = []

    def try_consume(self, user_id):
        if user_id in self.used:
            return None
        self.used.add(user_id)
        return "2026-10-18"

    def release(self, user_id, day):
        self.used.discard(user_id)
        self.released.append((user_id, day))


def make_request(user_id="user-1", **overrides):
    raw = {
        "title": "Night Drive",
        "prompt": "lofi beats for a rainy night drive",
        "creative_input": "City lights are passing by\nRain is falling from the sky",
    }
    raw.update(overrides)
    return validate_generation_request(raw, user_id)


def make_context(provider_name="replicate", user_id="user-1", **overrides):
    request = make_request(user_id=user_id, **overrides)
    content = ResolvedContent(text=request.creative_input or "x" * 200, source="user")
    return JobContext(request=request, content=content, provider_name=provider_name)


@pytest.fixture
def db():
    import app.models.credit_transaction  # noqa: F401
    import app.models.generation_job  # noqa: F401
    import app.models.library_item  # noqa: F401
    import app.models.notification  # noqa: F401
    import app.models.user  # noqa: F401
    import app.models.user_activity  # noqa: F401

    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def provider_error():
    def _make(status=500, **detail):
        return ProviderError(f"HTTP {status}", detail={"http_status": status, **detail})
    return _make
