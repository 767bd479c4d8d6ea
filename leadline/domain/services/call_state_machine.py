"""
Call State Machine
Allowed call_state transitions and hangup outcome mapping.

    (none) -> initiated -> ringing -> answered -> {gather loop} -> terminal

Terminal states are sticky: once a call reaches one, later state writes
are dropped. Non-terminal writes are last-write-wins.
"""
from datetime import datetime
from typing import Optional

from leadline.domain.models.call import Call, CallState
from leadline.domain.models.call_attempt import AttemptStatus


TERMINAL_STATES = frozenset({
    CallState.COMPLETED,
    CallState.HANGUP,
    CallState.NO_ANSWER,
    CallState.FAILED,
    CallState.BUSY,
})

# Hangup causes reported by Telnyx, lower-cased
NO_ANSWER_CAUSES = frozenset({"no_answer", "timeout"})
BUSY_CAUSES = frozenset({"user_busy", "busy"})


def is_terminal(state: Optional[CallState]) -> bool:
    return state in TERMINAL_STATES


def can_transition(current: Optional[CallState], target: CallState) -> bool:
    """A write is allowed unless the call is already terminal."""
    if current is None:
        return True
    return not is_terminal(current)


def state_from_hangup_cause(hangup_cause: Optional[str]) -> CallState:
    """
    Map a Telnyx hangup cause for a call that was never answered.

    NO_ANSWER / timeout -> no_answer, USER_BUSY / busy -> busy, else failed.
    """
    cause = (hangup_cause or "").lower()
    if cause in NO_ANSWER_CAUSES:
        return CallState.NO_ANSWER
    if cause in BUSY_CAUSES:
        return CallState.BUSY
    return CallState.FAILED


def hangup_state(call: Call, hangup_cause: Optional[str]) -> CallState:
    """
    Terminal state to store when a call hangs up.

    An already-terminal state (e.g. no_answer set by machine detection) is kept.
    """
    if is_terminal(call.call_state):
        return call.call_state
    if call.answered_at is not None or call.call_state == CallState.ANSWERED:
        return CallState.COMPLETED
    return state_from_hangup_cause(hangup_cause)


def attempt_status(state: CallState) -> AttemptStatus:
    """CallAttempt status for a terminal call state."""
    if state == CallState.COMPLETED:
        return AttemptStatus.COMPLETED
    if state == CallState.BUSY:
        return AttemptStatus.BUSY
    if state == CallState.NO_ANSWER:
        return AttemptStatus.NO_ANSWER
    return AttemptStatus.FAILED


def compute_duration_seconds(call: Call, ended_at: datetime) -> int:
    """
    Whole seconds from answer (or creation, if never answered) to end.

    Clamped at zero.
    """
    started_at = call.answered_at or call.created_at
    if started_at is None:
        return 0
    if started_at.tzinfo is None and ended_at.tzinfo is not None:
        started_at = started_at.replace(tzinfo=ended_at.tzinfo)
    elapsed = (ended_at - started_at).total_seconds()
    return max(0, int(elapsed))
