"""
Call Event Models
Telnyx Call Control webhook envelope and its parser.

Telnyx has shipped the envelope in a few shapes over time:
    {"data": {"event_type": ..., "payload": {...}}}
    {"event_type": ..., "payload": {...}}
    {"event_type": ..., "call_control_id": ..., ...}
parse_envelope accepts all three.
"""
import json
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing import Any, Dict, Optional, Union
from datetime import datetime, timezone
from enum import Enum

from leadline.domain.errors import EnvelopeParseError
from leadline.domain.models.call import CallDirection


class CallEventType(str, Enum):
    """Closed set of call events the dispatcher handles"""
    INITIATED = "call.initiated"
    RINGING = "call.ringing"
    ANSWERED = "call.answered"
    GATHER_ENDED = "call.gather.ended"
    MACHINE_DETECTION_ENDED = "call.machine.detection.ended"
    RECORDING_SAVED = "call.recording.saved"
    HANGUP = "call.hangup"


# Machine detection results that mean nobody is on the line
MACHINE_RESULTS = {"machine", "fax"}


class CallEvent(BaseModel):
    """Normalized call event"""
    model_config = ConfigDict(extra="ignore")

    event_type: Optional[str] = None
    call_control_id: Optional[str] = None
    call_session_id: Optional[str] = None
    direction: Optional[CallDirection] = None
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    digits: Optional[str] = None
    hangup_cause: Optional[str] = None
    result: Optional[str] = None
    recording_urls: Dict[str, Any] = Field(default_factory=dict)
    public_recording_urls: Dict[str, Any] = Field(default_factory=dict)
    channels: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    occurred_at: Optional[datetime] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> Optional[CallEventType]:
        """Known event type, or None for anything outside the handled set."""
        try:
            return CallEventType(self.event_type)
        except ValueError:
            return None

    @property
    def is_inbound(self) -> bool:
        return self.direction == CallDirection.INBOUND

    @property
    def is_machine(self) -> bool:
        return (self.result or "").lower() in MACHINE_RESULTS

    @property
    def recording_url(self) -> Optional[str]:
        """First usable recording link (mp3 preferred)."""
        for urls in (self.recording_urls, self.public_recording_urls):
            for fmt in ("mp3", "wav"):
                if urls.get(fmt):
                    return urls[fmt]
        return None


def _as_dict(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def _parse_time(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_envelope(raw: Union[bytes, str]) -> CallEvent:
    """
    Parse a raw webhook body into a CallEvent.

    Raises:
        EnvelopeParseError: body is not JSON, or not a JSON object
    """
    try:
        body = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise EnvelopeParseError("invalid_json", str(e)) from e

    if not isinstance(body, dict):
        raise EnvelopeParseError("invalid_envelope", f"expected object, got {type(body).__name__}")

    data = _as_dict(body.get("data")) or {}
    payload = (
        _as_dict(data.get("payload"))
        or _as_dict(body.get("payload"))
        or body
    )
    event_type = data.get("event_type") or body.get("event_type")

    try:
        return CallEvent(
            event_type=event_type if isinstance(event_type, str) else None,
            call_control_id=payload.get("call_control_id"),
            call_session_id=payload.get("call_session_id"),
            direction=CallDirection.from_provider(payload.get("direction")),
            from_number=payload.get("from"),
            to_number=payload.get("to"),
            digits=payload.get("digits") or None,
            hangup_cause=payload.get("hangup_cause"),
            result=payload.get("result"),
            recording_urls=_as_dict(payload.get("recording_urls")) or {},
            public_recording_urls=_as_dict(payload.get("public_recording_urls")) or {},
            channels=payload.get("channels"),
            start_time=_parse_time(payload.get("start_time")),
            end_time=_parse_time(payload.get("end_time")),
            occurred_at=_parse_time(data.get("occurred_at") or body.get("occurred_at")),
            payload=payload,
        )
    except ValidationError as e:
        raise EnvelopeParseError("invalid_envelope", str(e)) from e
