"""Domain models"""

from .call import (
    Call,
    CallDirection,
    CallRecording,
    CallState,
)
from .call_attempt import (
    AttemptStatus,
    CallAttempt,
    MAX_ATTEMPTS,
    ATTEMPT_WINDOW,
    RETRY_EXHAUSTED_DEFERRAL,
    FOLLOW_UP_INTERVAL,
)
from .call_event import (
    CallEvent,
    CallEventType,
    parse_envelope,
)
from .client import Client

__all__ = [
    "Call",
    "CallDirection",
    "CallRecording",
    "CallState",
    "AttemptStatus",
    "CallAttempt",
    "MAX_ATTEMPTS",
    "ATTEMPT_WINDOW",
    "RETRY_EXHAUSTED_DEFERRAL",
    "FOLLOW_UP_INTERVAL",
    "CallEvent",
    "CallEventType",
    "parse_envelope",
    "Client",
]
