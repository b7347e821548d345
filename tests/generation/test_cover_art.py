"""Tests for CoverArtGenerator: separate billing, own refund, never raises into the song."""
from unittest.mock import MagicMock

from app.services.generation.base import ProviderJobHandle, ProviderJobStatus, ProviderStatus
from app.services.generation.cover_art import CoverArtGenerator, cover_prompt
from app.services.generation.errors import ProviderError
from tests.conftest import FakeLedger, FakePersister


def _client(statuses):
    client = MagicMock()
    client.model = "prunaai/z-image-turbo"
    client.submit_prediction.return_value = ProviderJobHandle("img-1", "replicate")
    client.get_status.side_effect = statuses
    return client


def _generator(client, ledger=None, persister=None):
    return CoverArtGenerator(
        client=client,
        ledger=ledger or FakeLedger({"user-1": 8}),
        persister=persister or FakePersister(),
        price=1,
        poll_interval=0,
        max_attempts=3,
        sleep=lambda s: None,
    )


def test_prompt_mentions_genre():
    assert "jazz style" in cover_prompt("smoky bar", "jazz")
    assert "modern style" in cover_prompt("smoky bar", None)


class TestGenerate:
    def test_success_bills_own_job_id(self):
        ledger = FakeLedger({"user-1": 8})
        persister = FakePersister()
        client = _client([
            ProviderStatus(ProviderJobStatus.RUNNING),
            ProviderStatus(ProviderJobStatus.SUCCEEDED, output=["https://img.example/c.jpg"]),
        ])

        result = _generator(client, ledger, persister).generate("job-1", "user-1", "Night Drive", "lofi", "lofi", 8)

        assert result.image_url.startswith("https://media.example/user-1/images/")
        assert result.balance_after == 7
        assert ledger.deducts == [("user-1", 1, "job-1:cover")]
        assert persister.records[0]["media_type"] == "image"
        model_input = client.submit_prediction.call_args.args[1]
        assert model_input["width"] == 1024 and model_input["output_format"] == "jpg"

    def test_skipped_when_balance_too_low(self):
        ledger = FakeLedger({"user-1": 0})
        client = _client([])
        assert _generator(client, ledger).generate("job-1", "user-1", "T", "p", None, 0) is None
        client.submit_prediction.assert_not_called()
        assert ledger.deducts == []

    def test_refused_deduction_returns_none(self):
        ledger = FakeLedger({"user-1": 0})
        assert _generator(_client([]), ledger).generate("job-1", "user-1", "T", "p", None, 5) is None

    def test_failure_refunds_only_cover_price(self):
        ledger = FakeLedger({"user-1": 8})
        client = _client([ProviderStatus(ProviderJobStatus.FAILED, error="nsfw")])

        result = _generator(client, ledger).generate("job-1", "user-1", "T", "p", None, 8)

        assert result.image_url is None
        assert result.balance_after == 8
        assert ledger.refunds[0]["amount"] == 1
        assert ledger.refunds[0]["job_id"] == "job-1:cover"

    def test_timeout_refunds(self):
        ledger = FakeLedger({"user-1": 8})
        client = _client([ProviderStatus(ProviderJobStatus.RUNNING)] * 3)
        result = _generator(client, ledger).generate("job-1", "user-1", "T", "p", None, 8)
        assert result.image_url is None
        assert ledger.refunds[0]["reason"] == "generation_timed_out"

    def test_submit_error_refunds(self):
        ledger = FakeLedger({"user-1": 8})
        client = _client([])
        client.submit_prediction.side_effect = ProviderError("HTTP 500")
        result = _generator(client, ledger).generate("job-1", "user-1", "T", "p", None, 8)
        assert result.balance_after == 8

    def test_store_failure_refunds(self):
        ledger = FakeLedger({"user-1": 8})
        client = _client([ProviderStatus(ProviderJobStatus.SUCCEEDED, output="https://img.example/c.jpg")])
        result = _generator(client, ledger, FakePersister(fail_store=True)).generate("job-1", "user-1", "T", "p", None, 8)
        assert result.image_url is None
        assert ledger.refunds[0]["reason"] == "persistence_failed"

    def test_refund_error_is_contained(self):
        ledger = FakeLedger({"user-1": 8}, refund_failures=1)
        client = _client([ProviderStatus(ProviderJobStatus.FAILED)])
        result = _generator(client, ledger).generate("job-1", "user-1", "T", "p", None, 8)
        assert result == result.__class__(image_url=None, balance_after=7)

    def test_current_ledger_balance_wins_over_known(self):
        ledger = FakeLedger({"user-1": 5})
        client = _client([ProviderStatus(ProviderJobStatus.SUCCEEDED, output="https://img.example/c.jpg")])

        result = _generator(client, ledger).generate("job-1", "user-1", "T", "p", None, 0)

        assert result.image_url is not None
        assert ledger.deducts == [("user-1", 1, "job-1:cover")]

    def test_known_balance_used_when_ledger_has_none(self):
        ledger = FakeLedger({})
        client = _client([])
        assert _generator(client, ledger).generate("job-1", "user-1", "T", "p", None, 0) is None
        client.submit_prediction.assert_not_called()
