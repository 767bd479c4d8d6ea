"""
Unit Tests for the Supabase store adapters
Supabase query chains are mocked with MagicMock
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from leadline.domain.errors import StoreError
from leadline.domain.models.call import Call, CallRecording, CallState
from leadline.domain.models.call_attempt import AttemptStatus, CallAttempt
from leadline.infrastructure.storage.supabase_store import SupabaseCallStore, SupabaseClientRepository


CALL_ROW = {
    "id": "2b7c3f0e-0000-4000-8000-000000000001",
    "call_control_id": "v3:abc",
    "call_session_id": "sess-1",
    "direction": "inbound",
    "from_number": "+15551234567",
    "to_number": "+15559876543",
    "call_state": "answered",
    "client_id": None,
    "answered_at": "2026-03-01T12:00:05+00:00",
    "ended_at": None,
    "duration_seconds": None,
    "summary": None,
    "created_at": "2026-03-01T12:00:00+00:00",
    "updated_at": "2026-03-01T12:00:05+00:00",
}


def response(data, count=None):
    result = MagicMock()
    result.data = data
    result.count = count
    return result


class TestSupabaseCallStore:

    @pytest.mark.asyncio
    async def test_get_call(self):
        supabase = MagicMock()
        supabase.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = \
            response([CALL_ROW])

        call = await SupabaseCallStore(supabase).get_call("v3:abc")

        supabase.table.assert_called_with("calls")
        supabase.table.return_value.select.return_value.eq.assert_called_with("call_control_id", "v3:abc")
        assert call.call_state == CallState.ANSWERED
        assert call.answered_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_call_missing(self):
        supabase = MagicMock()
        supabase.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = \
            response([])

        assert await SupabaseCallStore(supabase).get_call("v3:none") is None

    @pytest.mark.asyncio
    async def test_create_call_ignores_duplicates(self):
        supabase = MagicMock()
        supabase.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = \
            response([CALL_ROW])

        stored = await SupabaseCallStore(supabase).create_call_if_absent(Call(call_control_id="v3:abc"))

        upsert = supabase.table.return_value.upsert
        args, kwargs = upsert.call_args
        assert args[0]["call_control_id"] == "v3:abc"
        assert "id" not in args[0]
        assert kwargs == {"on_conflict": "call_control_id", "ignore_duplicates": True}
        assert stored.id == CALL_ROW["id"]

    @pytest.mark.asyncio
    async def test_update_call(self):
        supabase = MagicMock()
        supabase.table.return_value.update.return_value.eq.return_value.execute.return_value = \
            response([{**CALL_ROW, "call_state": "completed"}])

        call = await SupabaseCallStore(supabase).update_call("v3:abc", {"call_state": "completed"})

        supabase.table.return_value.update.assert_called_with({"call_state": "completed"})
        assert call.call_state == CallState.COMPLETED

    @pytest.mark.asyncio
    async def test_upsert_recording_on_call_id(self):
        supabase = MagicMock()
        supabase.table.return_value.upsert.return_value.execute.return_value = response([])

        recording = CallRecording(call_id="call-1", recording_url="https://rec/x.mp3", channels="dual")
        await SupabaseCallStore(supabase).upsert_recording(recording)

        supabase.table.assert_called_with("call_recordings")
        _, kwargs = supabase.table.return_value.upsert.call_args
        assert kwargs == {"on_conflict": "call_id"}

    @pytest.mark.asyncio
    async def test_latest_attempt_number(self):
        supabase = MagicMock()
        chain = supabase.table.return_value.select.return_value.eq.return_value.gte.return_value
        chain.order.return_value.limit.return_value.execute.return_value = response([{"attempt_number": 2}])

        since = datetime(2026, 3, 1, tzinfo=timezone.utc)
        number = await SupabaseCallStore(supabase).latest_attempt_number("client-1", since)

        assert number == 2
        chain.order.assert_called_with("attempt_number", desc=True)

    @pytest.mark.asyncio
    async def test_latest_attempt_number_none(self):
        supabase = MagicMock()
        chain = supabase.table.return_value.select.return_value.eq.return_value.gte.return_value
        chain.order.return_value.limit.return_value.execute.return_value = response([])

        assert await SupabaseCallStore(supabase).latest_attempt_number("client-1", datetime.now(timezone.utc)) == 0

    @pytest.mark.asyncio
    async def test_record_attempt(self):
        supabase = MagicMock()
        supabase.table.return_value.insert.return_value.execute.return_value = response([])

        attempt = CallAttempt(client_id="client-1", attempt_number=1, status=AttemptStatus.COMPLETED)
        await SupabaseCallStore(supabase).record_attempt(attempt)

        row = supabase.table.return_value.insert.call_args[0][0]
        assert row["status"] == "completed"
        assert row["attempt_number"] == 1

    @pytest.mark.asyncio
    async def test_query_failure_raises_store_error(self):
        supabase = MagicMock()
        supabase.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.side_effect = \
            RuntimeError("connection reset")

        with pytest.raises(StoreError):
            await SupabaseCallStore(supabase).get_call("v3:abc")


class TestSupabaseClientRepository:

    @pytest.mark.asyncio
    async def test_find_by_phone(self):
        supabase = MagicMock()
        supabase.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = \
            response([{"id": "c1", "name": "Dana", "phone_number": "+15551234567", "call_preferences": None}])

        client = await SupabaseClientRepository(supabase).find_by_phone("+15551234567")

        supabase.table.return_value.select.return_value.eq.assert_called_with("phone_number", "+15551234567")
        supabase.table.return_value.select.return_value.eq.return_value.limit.assert_called_with(1)
        assert client.name == "Dana"
        assert client.do_not_call is False

    @pytest.mark.asyncio
    async def test_list_due_for_follow_up(self):
        supabase = MagicMock()
        paid = supabase.table.return_value.select.return_value.eq.return_value
        due = paid.not_.is_.return_value.lte.return_value
        due.order.return_value.limit.return_value.execute.return_value = response([
            {"id": "c1", "name": "Dana", "phone_number": "+1", "payment_status": "paid"},
        ])

        now = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
        clients = await SupabaseClientRepository(supabase).list_due_for_follow_up(now, 10)

        supabase.table.return_value.select.return_value.eq.assert_called_with("payment_status", "paid")
        paid.not_.is_.assert_called_with("phone_number", "null")
        paid.not_.is_.return_value.lte.assert_called_with("next_follow_up", now.isoformat())
        due.order.assert_called_with("next_follow_up")
        due.order.return_value.limit.assert_called_with(10)
        assert [c.id for c in clients] == ["c1"]

    @pytest.mark.asyncio
    async def test_update_follow_up(self):
        supabase = MagicMock()
        next_at = datetime(2026, 3, 4, 12, tzinfo=timezone.utc)

        await SupabaseClientRepository(supabase).update_follow_up("c1", next_follow_up=next_at)

        supabase.table.return_value.update.assert_called_with({"next_follow_up": next_at.isoformat()})
        supabase.table.return_value.update.return_value.eq.assert_called_with("id", "c1")

    @pytest.mark.asyncio
    async def test_update_follow_up_noop(self):
        supabase = MagicMock()

        await SupabaseClientRepository(supabase).update_follow_up("c1")

        supabase.table.assert_not_called()
