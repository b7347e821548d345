"""Tests for submission retry and failure classification."""
import pytest

from app.services.generation.errors import ProviderError
from app.services.generation.failure_types import FailureType, classify_failure
from app.services.generation.retry import compute_delay, submit_with_retry
from tests.conftest import ScriptedProvider, make_config


class TestClassify:
    @pytest.mark.parametrize("status", [429, 500, 502, 503])
    def test_transient_statuses(self, status):
        assert classify_failure(status, {}) == (FailureType.TRANSPORT_TRANSIENT, True)

    @pytest.mark.parametrize("status", [400, 401, 404, 422])
    def test_client_errors(self, status):
        assert classify_failure(status, {}) == (FailureType.CLIENT_NON_RETRIABLE, False)

    def test_circuit_open(self):
        assert classify_failure(None, {"circuit_open": True}) == (FailureType.CIRCUIT_OPEN, False)

    def test_rejection_code(self):
        assert classify_failure(None, {"error_code": "content_policy"})[0] == FailureType.PROVIDER_REJECTED

    def test_transport(self):
        assert classify_failure(None, {"transport": "timeout"}) == (FailureType.TRANSPORT_TRANSIENT, True)

    def test_bare_error(self):
        assert classify_failure(None, {})[1] is True


class TestComputeDelay:
    def test_exponential_with_cap(self):
        no_jitter = lambda lo, hi: 0
        assert compute_delay(1, 1.0, 30.0, jitter=no_jitter) == 1.0
        assert compute_delay(3, 1.0, 30.0, jitter=no_jitter) == 4.0
        assert compute_delay(10, 1.0, 30.0, jitter=no_jitter) == 30.0

    def test_retry_after_wins(self):
        assert compute_delay(1, 1.0, 30.0, retry_after="7") == 7.0

    def test_retry_after_capped(self):
        assert compute_delay(1, 1.0, 30.0, retry_after="120") == 30.0

    def test_garbage_retry_after_ignored(self):
        assert compute_delay(1, 1.0, 30.0, retry_after="soon", jitter=lambda lo, hi: 0) == 1.0


class TestSubmitWithRetry:
    def test_recovers_after_transient(self, provider_error):
        provider = ScriptedProvider(submit_errors=[provider_error(502), provider_error(503)])
        sleeps = []
        handle = submit_with_retry(provider, object(), make_config(), sleep=sleeps.append)
        assert handle.job_id == "pred-3"
        assert len(sleeps) == 2

    def test_client_error_not_retried(self, provider_error):
        provider = ScriptedProvider(submit_errors=[provider_error(400)])
        with pytest.raises(ProviderError) as exc:
            submit_with_retry(provider, object(), make_config(), sleep=lambda s: None)
        assert len(provider.submitted) == 1
        assert exc.value.detail["failure_type"] == "client_non_retriable"

    def test_budget_exhausted(self, provider_error):
        provider = ScriptedProvider(submit_errors=[provider_error(500)] * 5)
        with pytest.raises(ProviderError):
            submit_with_retry(provider, object(), make_config(submit_retry_max_attempts=3), sleep=lambda s: None)
        assert len(provider.submitted) == 3

    def test_honours_retry_after_on_429(self, provider_error):
        provider = ScriptedProvider(submit_errors=[provider_error(429, retry_after="5")])
        sleeps = []
        submit_with_retry(provider, object(), make_config(submit_retry_max_delay_seconds=30), sleep=sleeps.append)
        assert sleeps == [5.0]
