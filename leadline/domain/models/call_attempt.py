"""
Call Attempt Model
One logged outcome of a contact attempt toward a client, used for retry accounting
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime, timedelta
from enum import Enum

from leadline.domain.models.call import utc_now


class AttemptStatus(str, Enum):
    """Outcome of a contact attempt"""
    COMPLETED = "completed"
    BUSY = "busy"
    NO_ANSWER = "no_answer"
    FAILED = "failed"


# Module-level constants for retry accounting
MAX_ATTEMPTS = 3
ATTEMPT_WINDOW = timedelta(hours=24)
RETRY_EXHAUSTED_DEFERRAL = timedelta(days=7)
FOLLOW_UP_INTERVAL = timedelta(days=3)


class CallAttempt(BaseModel):
    """
    Logged contact attempt.

    attempt_number is sequential per client within ATTEMPT_WINDOW.
    """
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    client_id: str
    call_id: Optional[str] = None
    attempt_number: int = Field(default=1, ge=1)
    status: AttemptStatus
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    def to_row(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
