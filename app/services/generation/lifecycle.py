"""
Job lifecycle state machine.

    created -> credit_held -> submitted -> polling
        -> {succeeded | failed | canceled | timed_out}
    succeeded -> persisted | refunded
    failed | canceled | timed_out -> refunded

credit_held and submitted may also jump straight to refunded (submission or
setup failure). refund_failed is reachable from any held state and is the only
exit that needs an operator.
"""
from enum import Enum

from app.services.generation.errors import IllegalTransition


class JobState(str, Enum):
    CREATED = "created"
    CREDIT_HELD = "credit_held"
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMED_OUT = "timed_out"
    PERSISTED = "persisted"
    REFUNDED = "refunded"
    REFUND_FAILED = "refund_failed"

    @property
    def is_final(self) -> bool:
        return self in FINAL_STATES

    @property
    def holds_credit(self) -> bool:
        """True while a deduction exists that has not yet been discharged."""
        return self in HELD_STATES


FINAL_STATES = frozenset({JobState.PERSISTED, JobState.REFUNDED, JobState.REFUND_FAILED})

HELD_STATES = frozenset({
    JobState.CREDIT_HELD,
    JobState.SUBMITTED,
    JobState.POLLING,
    JobState.SUCCEEDED,
    JobState.FAILED,
    JobState.CANCELED,
    JobState.TIMED_OUT,
})

ALLOWED_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.CREATED: frozenset({JobState.CREDIT_HELD}),
    JobState.CREDIT_HELD: frozenset({JobState.SUBMITTED, JobState.REFUNDED, JobState.REFUND_FAILED}),
    JobState.SUBMITTED: frozenset({JobState.POLLING, JobState.REFUNDED, JobState.REFUND_FAILED}),
    JobState.POLLING: frozenset({
        JobState.SUCCEEDED,
        JobState.FAILED,
        JobState.CANCELED,
        JobState.TIMED_OUT,
        JobState.REFUNDED,
        JobState.REFUND_FAILED,
    }),
    JobState.SUCCEEDED: frozenset({JobState.PERSISTED, JobState.REFUNDED, JobState.REFUND_FAILED}),
    JobState.FAILED: frozenset({JobState.REFUNDED, JobState.REFUND_FAILED}),
    JobState.CANCELED: frozenset({JobState.REFUNDED, JobState.REFUND_FAILED}),
    JobState.TIMED_OUT: frozenset({JobState.REFUNDED, JobState.REFUND_FAILED}),
    JobState.PERSISTED: frozenset(),
    JobState.REFUNDED: frozenset(),
    JobState.REFUND_FAILED: frozenset({JobState.REFUNDED}),
}


def check_transition(current: JobState, target: JobState) -> JobState:
    """Return target if current -> target is allowed, else raise IllegalTransition."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise IllegalTransition(f"{current.value} -> {target.value}")
    return target


class Lifecycle:
    """Current state of one job; every change goes through advance()."""

    def __init__(self, state: JobState = JobState.CREATED) -> None:
        self.state = state
        self.history: list[JobState] = [state]

    def advance(self, target: JobState) -> JobState:
        self.state = check_transition(self.state, target)
        self.history.append(target)
        return self.state
