"""Tests for the job lifecycle state machine."""
import pytest

from app.services.generation.errors import IllegalTransition
from app.services.generation.lifecycle import (
    ALLOWED_TRANSITIONS,
    FINAL_STATES,
    JobState,
    Lifecycle,
    check_transition,
)


class TestTransitions:
    def test_happy_path(self):
        lc = Lifecycle()
        for state in (JobState.CREDIT_HELD, JobState.SUBMITTED, JobState.POLLING, JobState.SUCCEEDED, JobState.PERSISTED):
            lc.advance(state)
        assert lc.state.is_final
        assert lc.history[0] == JobState.CREATED
        assert len(lc.history) == 6

    @pytest.mark.parametrize("terminal", [JobState.FAILED, JobState.CANCELED, JobState.TIMED_OUT])
    def test_provider_terminal_then_refund(self, terminal):
        lc = Lifecycle(JobState.POLLING)
        lc.advance(terminal)
        assert lc.state.holds_credit
        lc.advance(JobState.REFUNDED)
        assert not lc.state.holds_credit

    def test_submission_failure_refunds_from_credit_held(self):
        assert check_transition(JobState.CREDIT_HELD, JobState.REFUNDED) == JobState.REFUNDED

    def test_refund_failed_can_be_retried(self):
        assert check_transition(JobState.REFUND_FAILED, JobState.REFUNDED) == JobState.REFUNDED

    @pytest.mark.parametrize(
        "current, target",
        [
            (JobState.CREATED, JobState.SUBMITTED),
            (JobState.CREATED, JobState.REFUNDED),
            (JobState.PERSISTED, JobState.REFUNDED),
            (JobState.REFUNDED, JobState.PERSISTED),
            (JobState.FAILED, JobState.PERSISTED),
            (JobState.SUBMITTED, JobState.SUCCEEDED),
        ],
    )
    def test_illegal(self, current, target):
        with pytest.raises(IllegalTransition):
            check_transition(current, target)

    def test_illegal_advance_keeps_state(self):
        lc = Lifecycle()
        with pytest.raises(IllegalTransition):
            lc.advance(JobState.PERSISTED)
        assert lc.state == JobState.CREATED
        assert lc.history == [JobState.CREATED]


def test_persisted_and_refunded_have_no_exits():
    assert ALLOWED_TRANSITIONS[JobState.PERSISTED] == frozenset()
    assert ALLOWED_TRANSITIONS[JobState.REFUNDED] == frozenset()


def test_every_state_has_an_entry():
    assert set(ALLOWED_TRANSITIONS) == set(JobState)
    assert FINAL_STATES <= set(JobState)
