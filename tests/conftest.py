"""
Shared test fixtures
In-memory fakes of the call store, client repository, telephony provider and
error log, plus ready-wired services built on top of them.
"""
import asyncio
import itertools
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

import pytest

from leadline.domain.errors import ProviderAPIError, StoreError
from leadline.domain.interfaces.call_store import CallStore, ClientRepository
from leadline.domain.interfaces.telephony_provider import (
    ActionResult,
    DialResult,
    TelephonyProvider,
)
from leadline.domain.models.call import Call, CallRecording
from leadline.domain.models.call_attempt import CallAttempt
from leadline.domain.models.client import Client
from leadline.domain.services.call_event_dispatcher import CallEventDispatcher
from leadline.domain.services.client_lookup import CallScript, ClientLookupService
from leadline.domain.services.error_log_service import ErrorLogService
from leadline.domain.services.outbound_call_service import OutboundCallService
from leadline.utils.background import BackgroundTaskRunner


HUMAN_NUMBER = "+15550000001"
TELNYX_NUMBER = "+15550009999"
WEBHOOK_URL = "https://calls.example.com/api/v1/webhooks/telnyx"


class FakeCallStore(CallStore):
    """Dict-backed CallStore with the same uniqueness rules as the real tables."""

    def __init__(self):
        self.calls: Dict[str, Call] = {}
        self.recordings: Dict[str, CallRecording] = {}
        self.attempts: List[CallAttempt] = []
        self.insert_count = 0
        self.fail_writes = False
        self._ids = itertools.count(1)

    def _check_writable(self):
        if self.fail_writes:
            raise StoreError("database unavailable")

    async def get_call(self, call_control_id: str) -> Optional[Call]:
        return self.calls.get(call_control_id)

    async def create_call_if_absent(self, call: Call) -> Call:
        self._check_writable()
        existing = self.calls.get(call.call_control_id)
        if existing:
            return existing
        stored = call.model_copy(update={"id": call.id or f"call-{next(self._ids)}"})
        self.calls[call.call_control_id] = stored
        self.insert_count += 1
        return stored

    async def update_call(self, call_control_id: str, fields: Dict[str, Any]) -> Optional[Call]:
        self._check_writable()
        existing = self.calls.get(call_control_id)
        if existing is None:
            return None
        updated = Call.model_validate({**existing.model_dump(), **fields})
        self.calls[call_control_id] = updated
        return updated

    async def upsert_recording(self, recording: CallRecording) -> CallRecording:
        self._check_writable()
        previous = self.recordings.get(recording.call_id)
        if previous:
            recording = recording.model_copy(update={"id": previous.id, "created_at": previous.created_at})
        else:
            recording = recording.model_copy(update={"id": f"rec-{next(self._ids)}"})
        self.recordings[recording.call_id] = recording
        return recording

    async def get_recording(self, call_id: str) -> Optional[CallRecording]:
        return self.recordings.get(call_id)

    async def latest_attempt_number(self, client_id: str, since: datetime) -> int:
        numbers = [
            a.attempt_number for a in self.attempts
            if a.client_id == client_id and a.created_at >= since
        ]
        return max(numbers, default=0)

    async def record_attempt(self, attempt: CallAttempt) -> CallAttempt:
        self._check_writable()
        stored = attempt.model_copy(update={"id": f"attempt-{next(self._ids)}"})
        self.attempts.append(stored)
        return stored


class FakeClientRepository(ClientRepository):
    def __init__(self):
        self.clients: Dict[str, Client] = {}
        self.follow_up_updates: List[Dict[str, Any]] = []
        self.lookup_delay: float = 0.0
        self.fail_lookups = False

    def add(self, client: Client) -> Client:
        self.clients[client.id] = client
        return client

    async def get_client(self, client_id: str) -> Optional[Client]:
        return self.clients.get(client_id)

    async def find_by_phone(self, phone_number: str) -> Optional[Client]:
        if self.lookup_delay:
            await asyncio.sleep(self.lookup_delay)
        if self.fail_lookups:
            raise StoreError("lookup failed")
        for client in self.clients.values():
            if client.phone_number == phone_number:
                return client
        return None

    async def list_due_for_follow_up(self, now: datetime, limit: int) -> List[Client]:
        due = [
            c for c in self.clients.values()
            if c.payment_status == "paid"
            and c.phone_number
            and c.next_follow_up is not None
            and c.next_follow_up <= now
        ]
        due.sort(key=lambda c: c.next_follow_up)
        return due[:limit]

    async def update_follow_up(
        self,
        client_id: str,
        next_follow_up: Optional[datetime] = None,
        last_call_at: Optional[datetime] = None
    ) -> None:
        self.follow_up_updates.append({
            "client_id": client_id,
            "next_follow_up": next_follow_up,
            "last_call_at": last_call_at,
        })
        client = self.clients.get(client_id)
        if client is None:
            return
        update = {}
        if next_follow_up is not None:
            update["next_follow_up"] = next_follow_up
        if last_call_at is not None:
            update["last_call_at"] = last_call_at
        self.clients[client_id] = client.model_copy(update=update)


class FakeTelephony(TelephonyProvider):
    """Records every action in call order; selected actions can be made to fail."""

    def __init__(self):
        self.actions: List[Dict[str, Any]] = []
        self.fail_actions: Set[str] = set()
        self.dial_error: Optional[ProviderAPIError] = None
        self._dials = itertools.count(1)

    @property
    def name(self) -> str:
        return "fake"

    def names(self) -> List[str]:
        return [a["action"] for a in self.actions]

    async def _record(self, action: str, call_control_id: str, **kwargs) -> ActionResult:
        self.actions.append({"action": action, "call_control_id": call_control_id, **kwargs})
        if action in self.fail_actions:
            raise ProviderAPIError(action, 422, '{"errors":[{"title":"Call has already ended"}]}')
        return ActionResult(action=action, status_code=200)

    async def answer(self, call_control_id):
        return await self._record("answer", call_control_id)

    async def speak(self, call_control_id, text, voice="female", language="en-US"):
        return await self._record("speak", call_control_id, text=text, voice=voice, language=language)

    async def gather_using_speak(
        self, call_control_id, prompt, voice="female", language="en-US",
        minimum_digits=1, maximum_digits=1, timeout_millis=10000
    ):
        return await self._record(
            "gather_using_speak", call_control_id,
            prompt=prompt, minimum_digits=minimum_digits,
            maximum_digits=maximum_digits, timeout_millis=timeout_millis,
        )

    async def transfer(self, call_control_id, to_number):
        return await self._record("transfer", call_control_id, to=to_number)

    async def record_start(self, call_control_id, channels="dual", audio_format="mp3"):
        return await self._record("record_start", call_control_id, channels=channels, format=audio_format)

    async def record_stop(self, call_control_id):
        return await self._record("record_stop", call_control_id)

    async def hangup(self, call_control_id):
        return await self._record("hangup", call_control_id)

    async def dial(self, to_number, from_number, connection_id, webhook_url):
        self.actions.append({
            "action": "dial", "to": to_number, "from": from_number,
            "connection_id": connection_id, "webhook_url": webhook_url,
        })
        if self.dial_error:
            raise self.dial_error
        n = next(self._dials)
        return DialResult(call_control_id=f"v3:dialed-{n}", call_session_id=f"session-{n}")

    async def get_balance(self):
        return {"balance": "10.00", "currency": "USD"}


class RecordingErrorLog(ErrorLogService):
    """ErrorLogService that keeps entries in memory."""

    def __init__(self, source: str = "test"):
        super().__init__(None, source)
        self.entries: List[Dict[str, Any]] = []

    async def log(self, error_type, message, severity="error", context=None):
        self.entries.append({
            "error_type": error_type,
            "message": message,
            "severity": getattr(severity, "value", severity),
            "context": context or {},
        })

    def types(self) -> List[str]:
        return [e["error_type"] for e in self.entries]


@pytest.fixture
def store():
    return FakeCallStore()


@pytest.fixture
def clients():
    return FakeClientRepository()


@pytest.fixture
def telephony():
    return FakeTelephony()


@pytest.fixture
def error_log():
    return RecordingErrorLog()


@pytest.fixture
def runner():
    return BackgroundTaskRunner()


@pytest.fixture
def script():
    return CallScript()


@pytest.fixture
def dispatcher(store, clients, telephony, runner, error_log, script):
    return CallEventDispatcher(
        store=store,
        clients=clients,
        telephony=telephony,
        lookup=ClientLookupService(clients, timeout_seconds=0.2),
        runner=runner,
        error_log=error_log,
        script=script,
        human_transfer_number=HUMAN_NUMBER,
    )


@pytest.fixture
def outbound_service(store, clients, telephony, error_log):
    return OutboundCallService(
        store=store,
        clients=clients,
        telephony=telephony,
        from_number=TELNYX_NUMBER,
        connection_id="conn-123",
        webhook_url=WEBHOOK_URL,
        error_log=error_log,
    )
