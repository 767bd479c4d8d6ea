"""
Supabase Call Store
CallStore / ClientRepository implementations on top of supabase-py.

supabase-py is synchronous; every query runs in a worker thread so the
event loop stays free and asyncio timeouts apply to lookups.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from supabase import Client as SupabaseClient

from leadline.domain.errors import StoreError
from leadline.domain.interfaces.call_store import CallStore, ClientRepository
from leadline.domain.models.call import Call, CallRecording
from leadline.domain.models.call_attempt import CallAttempt
from leadline.domain.models.client import Client

logger = logging.getLogger(__name__)


CLIENT_COLUMNS = "id, name, email, company, phone_number, payment_status, call_preferences, next_follow_up, last_call_at"


async def _execute(description: str, query: Callable[[], Any]) -> Any:
    """Run a PostgREST query in a thread, translating failures to StoreError."""
    try:
        return await asyncio.to_thread(query)
    except Exception as e:
        logger.error(f"Supabase {description} failed: {e}")
        raise StoreError(f"{description} failed: {e}") from e


class SupabaseCallStore(CallStore):
    """calls, call_attempts and call_recordings tables."""

    def __init__(self, supabase: SupabaseClient):
        self._supabase = supabase

    async def get_call(self, call_control_id: str) -> Optional[Call]:
        response = await _execute(
            "get_call",
            lambda: self._supabase.table("calls")
            .select("*")
            .eq("call_control_id", call_control_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return Call.model_validate(rows[0]) if rows else None

    async def create_call_if_absent(self, call: Call) -> Call:
        await _execute(
            "create_call",
            lambda: self._supabase.table("calls")
            .upsert(call.to_row(), on_conflict="call_control_id", ignore_duplicates=True)
            .execute()
        )
        stored = await self.get_call(call.call_control_id)
        if stored is None:
            raise StoreError(f"call {call.call_control_id} missing after insert")
        return stored

    async def update_call(self, call_control_id: str, fields: Dict[str, Any]) -> Optional[Call]:
        response = await _execute(
            "update_call",
            lambda: self._supabase.table("calls")
            .update(fields)
            .eq("call_control_id", call_control_id)
            .execute()
        )
        rows = response.data or []
        if not rows:
            logger.warning(f"No call row updated for {call_control_id}")
            return None
        return Call.model_validate(rows[0])

    async def upsert_recording(self, recording: CallRecording) -> CallRecording:
        response = await _execute(
            "upsert_recording",
            lambda: self._supabase.table("call_recordings")
            .upsert(recording.to_row(), on_conflict="call_id")
            .execute()
        )
        rows = response.data or []
        return CallRecording.model_validate(rows[0]) if rows else recording

    async def get_recording(self, call_id: str) -> Optional[CallRecording]:
        response = await _execute(
            "get_recording",
            lambda: self._supabase.table("call_recordings")
            .select("*")
            .eq("call_id", call_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return CallRecording.model_validate(rows[0]) if rows else None

    async def latest_attempt_number(self, client_id: str, since: datetime) -> int:
        response = await _execute(
            "latest_attempt_number",
            lambda: self._supabase.table("call_attempts")
            .select("attempt_number")
            .eq("client_id", client_id)
            .gte("created_at", since.isoformat())
            .order("attempt_number", desc=True)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return int(rows[0]["attempt_number"]) if rows else 0

    async def record_attempt(self, attempt: CallAttempt) -> CallAttempt:
        response = await _execute(
            "record_attempt",
            lambda: self._supabase.table("call_attempts")
            .insert(attempt.to_row())
            .execute()
        )
        rows = response.data or []
        return CallAttempt.model_validate(rows[0]) if rows else attempt


class SupabaseClientRepository(ClientRepository):
    """clients table (CRM-owned)."""

    def __init__(self, supabase: SupabaseClient):
        self._supabase = supabase

    async def get_client(self, client_id: str) -> Optional[Client]:
        response = await _execute(
            "get_client",
            lambda: self._supabase.table("clients")
            .select(CLIENT_COLUMNS)
            .eq("id", client_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return Client.model_validate(rows[0]) if rows else None

    async def find_by_phone(self, phone_number: str) -> Optional[Client]:
        response = await _execute(
            "find_by_phone",
            lambda: self._supabase.table("clients")
            .select(CLIENT_COLUMNS)
            .eq("phone_number", phone_number)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return Client.model_validate(rows[0]) if rows else None

    async def list_due_for_follow_up(self, now: datetime, limit: int) -> List[Client]:
        response = await _execute(
            "list_due_for_follow_up",
            lambda: self._supabase.table("clients")
            .select(CLIENT_COLUMNS)
            .eq("payment_status", "paid")
            .not_.is_("phone_number", "null")
            .lte("next_follow_up", now.isoformat())
            .order("next_follow_up")
            .limit(limit)
            .execute()
        )
        return [Client.model_validate(row) for row in (response.data or [])]

    async def update_follow_up(
        self,
        client_id: str,
        next_follow_up: Optional[datetime] = None,
        last_call_at: Optional[datetime] = None
    ) -> None:
        fields: Dict[str, str] = {}
        if next_follow_up is not None:
            fields["next_follow_up"] = next_follow_up.isoformat()
        if last_call_at is not None:
            fields["last_call_at"] = last_call_at.isoformat()
        if not fields:
            return

        await _execute(
            "update_follow_up",
            lambda: self._supabase.table("clients")
            .update(fields)
            .eq("id", client_id)
            .execute()
        )
