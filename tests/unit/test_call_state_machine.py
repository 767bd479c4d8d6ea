"""
Unit Tests for the Call State Machine
"""
from datetime import datetime, timedelta, timezone

from leadline.domain.models.call import Call, CallState
from leadline.domain.models.call_attempt import AttemptStatus
from leadline.domain.services.call_state_machine import (
    attempt_status,
    can_transition,
    compute_duration_seconds,
    hangup_state,
    is_terminal,
    state_from_hangup_cause,
)


T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestTransitions:

    def test_terminal_states(self):
        for state in (CallState.COMPLETED, CallState.HANGUP, CallState.NO_ANSWER, CallState.FAILED, CallState.BUSY):
            assert is_terminal(state)
        for state in (CallState.INITIATED, CallState.RINGING, CallState.ANSWERED):
            assert not is_terminal(state)

    def test_non_terminal_writes_are_last_write_wins(self):
        assert can_transition(CallState.ANSWERED, CallState.RINGING)
        assert can_transition(CallState.INITIATED, CallState.ANSWERED)
        assert can_transition(None, CallState.INITIATED)

    def test_terminal_state_is_sticky(self):
        assert not can_transition(CallState.COMPLETED, CallState.ANSWERED)
        assert not can_transition(CallState.NO_ANSWER, CallState.COMPLETED)


class TestHangupMapping:

    def test_cause_mapping(self):
        assert state_from_hangup_cause("NO_ANSWER") == CallState.NO_ANSWER
        assert state_from_hangup_cause("timeout") == CallState.NO_ANSWER
        assert state_from_hangup_cause("USER_BUSY") == CallState.BUSY
        assert state_from_hangup_cause("busy") == CallState.BUSY
        assert state_from_hangup_cause("normal_clearing") == CallState.FAILED
        assert state_from_hangup_cause(None) == CallState.FAILED

    def test_answered_call_completes(self):
        call = Call(call_control_id="c", call_state=CallState.ANSWERED, answered_at=T0)
        assert hangup_state(call, "USER_BUSY") == CallState.COMPLETED

    def test_existing_terminal_state_kept(self):
        call = Call(call_control_id="c", call_state=CallState.NO_ANSWER)
        assert hangup_state(call, "normal_clearing") == CallState.NO_ANSWER

    def test_attempt_status(self):
        assert attempt_status(CallState.COMPLETED) == AttemptStatus.COMPLETED
        assert attempt_status(CallState.BUSY) == AttemptStatus.BUSY
        assert attempt_status(CallState.NO_ANSWER) == AttemptStatus.NO_ANSWER
        assert attempt_status(CallState.HANGUP) == AttemptStatus.FAILED


class TestDuration:

    def test_from_answer(self):
        call = Call(call_control_id="c", answered_at=T0, created_at=T0 - timedelta(seconds=10))
        assert compute_duration_seconds(call, T0 + timedelta(seconds=42)) == 42

    def test_from_creation(self):
        call = Call(call_control_id="c", created_at=T0)
        assert compute_duration_seconds(call, T0 + timedelta(seconds=7)) == 7

    def test_clamped_at_zero(self):
        call = Call(call_control_id="c", created_at=T0)
        assert compute_duration_seconds(call, T0 - timedelta(seconds=3)) == 0

    def test_naive_start_treated_as_utc(self):
        call = Call(call_control_id="c", created_at=T0.replace(tzinfo=None))
        assert compute_duration_seconds(call, T0 + timedelta(seconds=5)) == 5
