"""
Call Domain Models
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime, timezone
from enum import Enum


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CallState(str, Enum):
    """Call state (calls.call_state)"""
    INITIATED = "initiated"
    RINGING = "ringing"
    ANSWERED = "answered"
    COMPLETED = "completed"
    HANGUP = "hangup"
    NO_ANSWER = "no_answer"
    FAILED = "failed"
    BUSY = "busy"


class CallDirection(str, Enum):
    """Call direction"""
    INBOUND = "inbound"
    OUTBOUND = "outbound"

    @classmethod
    def from_provider(cls, value: Optional[str]) -> Optional["CallDirection"]:
        """Telnyx reports incoming/outgoing; the dashboard sends inbound/outbound."""
        if not isinstance(value, str):
            return None
        normalized = value.lower()
        if normalized in ("incoming", "inbound"):
            return cls.INBOUND
        if normalized in ("outgoing", "outbound"):
            return cls.OUTBOUND
        return None


class Call(BaseModel):
    """
    One telephony session, keyed by the Telnyx call_control_id.

    `id` is the internal row id assigned by the database and is never used
    to address updates coming from webhooks.
    """
    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    id: Optional[str] = None
    call_control_id: str
    call_session_id: Optional[str] = None
    direction: CallDirection = CallDirection.INBOUND
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    call_state: CallState = CallState.INITIATED
    client_id: Optional[str] = None
    answered_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    summary: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    def to_row(self) -> dict:
        """Serialize for a Supabase insert (database assigns id when absent)."""
        return self.model_dump(mode="json", exclude_none=True)


class CallRecording(BaseModel):
    """Saved recording for a call; at most one row per call."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    call_id: str
    recording_url: str
    channels: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    def to_row(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
