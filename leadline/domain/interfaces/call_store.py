"""
Call Record Store Interface
Abstraction over the calls / call_attempts / call_recordings / clients tables
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from leadline.domain.models.call import Call, CallRecording
from leadline.domain.models.call_attempt import CallAttempt
from leadline.domain.models.client import Client


class CallStore(ABC):
    """
    Port for call session persistence.

    Every call-level read and write is keyed by the provider call_control_id.
    Implementations must make create_call_if_absent safe under concurrent
    writers (insert-or-ignore on the unique call_control_id).
    """

    @abstractmethod
    async def get_call(self, call_control_id: str) -> Optional[Call]:
        """Get a call by provider call identifier."""
        pass

    @abstractmethod
    async def create_call_if_absent(self, call: Call) -> Call:
        """
        Insert the call unless a row with the same call_control_id exists.

        Returns:
            The stored row (the pre-existing one when the insert was skipped)
        """
        pass

    @abstractmethod
    async def update_call(self, call_control_id: str, fields: Dict[str, Any]) -> Optional[Call]:
        """Overwrite fields on a call (last-write-wins). Returns None if absent."""
        pass

    @abstractmethod
    async def upsert_recording(self, recording: CallRecording) -> CallRecording:
        """Insert or update the single recording row for a call."""
        pass

    @abstractmethod
    async def get_recording(self, call_id: str) -> Optional[CallRecording]:
        """Get the recording for an internal call id."""
        pass

    @abstractmethod
    async def latest_attempt_number(self, client_id: str, since: datetime) -> int:
        """Highest attempt_number for the client since `since` (0 if none)."""
        pass

    @abstractmethod
    async def record_attempt(self, attempt: CallAttempt) -> CallAttempt:
        """Append a contact attempt."""
        pass


class ClientRepository(ABC):
    """Port for the CRM-owned clients table (read plus follow-up bookkeeping)."""

    @abstractmethod
    async def get_client(self, client_id: str) -> Optional[Client]:
        pass

    @abstractmethod
    async def find_by_phone(self, phone_number: str) -> Optional[Client]:
        """Exact match on phone_number, at most one row."""
        pass

    @abstractmethod
    async def list_due_for_follow_up(self, now: datetime, limit: int) -> List[Client]:
        """Paid clients with a phone number whose next_follow_up <= now, oldest first."""
        pass

    @abstractmethod
    async def update_follow_up(
        self,
        client_id: str,
        next_follow_up: Optional[datetime] = None,
        last_call_at: Optional[datetime] = None
    ) -> None:
        """Set next_follow_up and/or last_call_at; the only client fields the call core writes."""
        pass
