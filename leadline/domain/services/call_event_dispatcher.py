"""
Call Event Dispatcher
Drives the per-call state machine from Telnyx Call Control webhooks.

Each event is handled independently: state lives only in the call store,
provider actions are issued as detached background tasks, and nothing that
goes wrong here changes the webhook acknowledgement.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from leadline.domain.errors import ProviderAPIError, StoreError
from leadline.domain.interfaces.call_store import CallStore, ClientRepository
from leadline.domain.interfaces.telephony_provider import TelephonyProvider
from leadline.domain.models.call import Call, CallDirection, CallRecording, CallState, utc_now
from leadline.domain.models.call_attempt import ATTEMPT_WINDOW, CallAttempt
from leadline.domain.models.call_event import CallEvent, CallEventType
from leadline.domain.services.call_state_machine import (
    attempt_status,
    can_transition,
    compute_duration_seconds,
    hangup_state,
)
from leadline.domain.services.client_lookup import CallScript, ClientLookupService
from leadline.domain.services.error_log_service import ErrorLogService
from leadline.utils.background import BackgroundTaskRunner

logger = logging.getLogger(__name__)


VOICEMAIL_SUMMARY = "voicemail detected"


@dataclass
class DispatchResult:
    """What the dispatcher decided to do with one event."""
    action: str
    handled: bool = True


class CallEventDispatcher:
    """
    Routes call events to handlers.

    Handlers:
    - call.initiated: ensure the Call row, answer inbound calls
    - call.ringing: state -> ringing
    - call.answered: state -> answered, greet inbound callers with a gather
    - call.gather.ended: 1 -> transfer, 2 -> voicemail, else fallback transfer
    - call.machine.detection.ended: machine/fax -> no_answer + hangup
    - call.recording.saved: upsert the CallRecording
    - call.hangup: terminal state, duration, attempt bookkeeping
    """

    def __init__(
        self,
        store: CallStore,
        clients: ClientRepository,
        telephony: TelephonyProvider,
        lookup: ClientLookupService,
        runner: BackgroundTaskRunner,
        error_log: ErrorLogService,
        script: Optional[CallScript] = None,
        human_transfer_number: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self._store = store
        self._clients = clients
        self._telephony = telephony
        self._lookup = lookup
        self._runner = runner
        self._error_log = error_log
        self._script = script or CallScript()
        self._human_transfer_number = human_transfer_number
        self._clock = clock

        self._handlers: Dict[CallEventType, Callable[[CallEvent], Awaitable[DispatchResult]]] = {
            CallEventType.INITIATED: self._on_initiated,
            CallEventType.RINGING: self._on_ringing,
            CallEventType.ANSWERED: self._on_answered,
            CallEventType.GATHER_ENDED: self._on_gather_ended,
            CallEventType.MACHINE_DETECTION_ENDED: self._on_machine_detection_ended,
            CallEventType.RECORDING_SAVED: self._on_recording_saved,
            CallEventType.HANGUP: self._on_hangup,
        }

    async def dispatch(self, event: CallEvent) -> DispatchResult:
        """
        Handle one parsed webhook event.

        Returns:
            DispatchResult naming the action taken; handled=False for unknown
            event types and events without a call_control_id
        """
        kind = event.kind
        if kind is None:
            logger.info(f"Ignoring unhandled event type: {event.event_type}")
            return DispatchResult(action="ignored", handled=False)

        if not event.call_control_id:
            logger.warning(f"Event {event.event_type} has no call_control_id")
            return DispatchResult(action="missing_call_control_id", handled=False)

        logger.info(
            f"Telnyx event: type={event.event_type}, "
            f"call_control_id={event.call_control_id}, direction={event.direction}"
        )

        try:
            return await self._handlers[kind](event)
        except StoreError as e:
            logger.error(f"Store error handling {event.event_type}: {e}", exc_info=True)
            await self._error_log.log(
                "database_error",
                str(e),
                context={"event_type": event.event_type, "call_control_id": event.call_control_id},
            )
            return DispatchResult(action="store_error", handled=False)

    # =========================================================================
    # Event handlers
    # =========================================================================

    async def _on_initiated(self, event: CallEvent) -> DispatchResult:
        if event.is_inbound:
            self._spawn_action(event.call_control_id, "answer", self._telephony.answer)

        await self._ensure_call(event)

        if event.is_inbound:
            return DispatchResult(action="answering")
        return DispatchResult(action="tracking")

    async def _on_ringing(self, event: CallEvent) -> DispatchResult:
        await self._set_state(event.call_control_id, CallState.RINGING)
        return DispatchResult(action="ringing")

    async def _on_answered(self, event: CallEvent) -> DispatchResult:
        await self._ensure_call(event)
        await self._set_state(
            event.call_control_id,
            CallState.ANSWERED,
            {"answered_at": (event.occurred_at or self._clock()).isoformat()},
        )

        if not event.is_inbound:
            return DispatchResult(action="answered")

        self._runner.spawn(
            self._greet(event.call_control_id, event.from_number),
            f"greeting {event.call_control_id}"
        )
        return DispatchResult(action="greeting")

    async def _on_gather_ended(self, event: CallEvent) -> DispatchResult:
        digits = (event.digits or "").strip()
        call_control_id = event.call_control_id
        logger.info(f"Gather ended for {call_control_id}: digits={digits!r}")

        if digits == "2":
            self._runner.spawn(
                self._speak_then_record(call_control_id),
                f"voicemail {call_control_id}"
            )
            return DispatchResult(action="recording")

        message = self._script.transfer if digits == "1" else self._script.fallback
        self._runner.spawn(
            self._speak_then_transfer(call_control_id, message),
            f"transfer {call_control_id}"
        )
        return DispatchResult(action="transferring" if digits == "1" else "fallback_transfer")

    async def _on_machine_detection_ended(self, event: CallEvent) -> DispatchResult:
        if not event.is_machine:
            logger.info(f"Human detected on {event.call_control_id} (result={event.result})")
            return DispatchResult(action="human_detected")

        logger.info(f"Machine detected on {event.call_control_id} (result={event.result}), hanging up")
        await self._set_state(
            event.call_control_id,
            CallState.NO_ANSWER,
            {"summary": VOICEMAIL_SUMMARY},
        )
        self._spawn_action(event.call_control_id, "hangup", self._telephony.hangup)
        return DispatchResult(action="hangup_machine")

    async def _on_recording_saved(self, event: CallEvent) -> DispatchResult:
        call = await self._store.get_call(event.call_control_id)
        if call is None or call.id is None:
            logger.warning(f"Recording saved for unknown call {event.call_control_id}")
            return DispatchResult(action="call_not_found", handled=False)

        if not await self._save_recording(call, event):
            return DispatchResult(action="no_recording_url", handled=False)
        return DispatchResult(action="recording_saved")

    async def _on_hangup(self, event: CallEvent) -> DispatchResult:
        call = await self._ensure_call(event)

        # Redelivered hangup: the first delivery already closed the call
        if call.ended_at is not None:
            logger.info(f"Duplicate hangup for {event.call_control_id}, already ended at {call.ended_at}")
            return DispatchResult(action="duplicate_hangup")

        ended_at = event.end_time or self._clock()
        state = hangup_state(call, event.hangup_cause)

        fields: Dict[str, Any] = {
            "ended_at": ended_at.isoformat(),
            "duration_seconds": compute_duration_seconds(call, ended_at),
            "updated_at": self._clock().isoformat(),
        }
        if state != call.call_state:
            fields["call_state"] = state.value

        await self._store.update_call(event.call_control_id, fields)
        logger.info(
            f"Call {event.call_control_id} ended: state={state.value}, "
            f"duration={fields['duration_seconds']}s, cause={event.hangup_cause}"
        )

        if event.recording_url and call.id:
            await self._save_recording(call, event)

        if call.client_id:
            await self._record_attempt(call, state, event.hangup_cause, ended_at)

        return DispatchResult(action="call_ended")

    # =========================================================================
    # Store helpers
    # =========================================================================

    async def _ensure_call(self, event: CallEvent) -> Call:
        """Existing row for the call id, or a freshly inserted one."""
        existing = await self._store.get_call(event.call_control_id)
        if existing:
            return existing

        call = Call(
            call_control_id=event.call_control_id,
            call_session_id=event.call_session_id,
            direction=event.direction or CallDirection.INBOUND,
            from_number=event.from_number,
            to_number=event.to_number,
            call_state=CallState.INITIATED,
            created_at=event.start_time or self._clock(),
        )
        if event.kind != CallEventType.INITIATED:
            logger.info(f"Synthesising call row for {event.call_control_id} from {event.event_type}")
        return await self._store.create_call_if_absent(call)

    async def _set_state(
        self,
        call_control_id: str,
        state: CallState,
        extra: Optional[Dict[str, Any]] = None
    ) -> Optional[Call]:
        """Write a new call_state unless the call is already terminal."""
        current = await self._store.get_call(call_control_id)
        if current is None:
            logger.warning(f"State {state.value} for unknown call {call_control_id}")
            return None

        if not can_transition(current.call_state, state):
            logger.info(
                f"Dropping {state.value} for {call_control_id}: "
                f"already terminal ({current.call_state.value})"
            )
            return current

        fields = {"call_state": state.value, "updated_at": self._clock().isoformat()}
        fields.update(extra or {})
        return await self._store.update_call(call_control_id, fields)

    async def _save_recording(self, call: Call, event: CallEvent) -> bool:
        url = event.recording_url
        if not url:
            logger.warning(f"No recording URL on {event.event_type} for {call.call_control_id}")
            return False

        await self._store.upsert_recording(CallRecording(
            call_id=call.id,
            recording_url=url,
            channels=event.channels,
            updated_at=self._clock(),
        ))
        logger.info(f"Recording stored for call {call.id}")
        return True

    async def _record_attempt(
        self,
        call: Call,
        state: CallState,
        hangup_cause: Optional[str],
        ended_at: datetime
    ) -> None:
        since = self._clock() - ATTEMPT_WINDOW
        previous = await self._store.latest_attempt_number(call.client_id, since)

        attempt = CallAttempt(
            client_id=call.client_id,
            call_id=call.id,
            attempt_number=previous + 1,
            status=attempt_status(state),
            notes=f"hangup_cause={hangup_cause}" if hangup_cause else None,
        )
        await self._store.record_attempt(attempt)
        await self._clients.update_follow_up(call.client_id, last_call_at=ended_at)
        logger.info(
            f"Attempt {attempt.attempt_number} for client {call.client_id}: {attempt.status.value}"
        )

    # =========================================================================
    # Provider actions (run detached)
    # =========================================================================

    def _spawn_action(
        self,
        call_control_id: str,
        action: str,
        method: Callable[[str], Awaitable[Any]]
    ) -> None:
        self._runner.spawn(
            self._run_action(call_control_id, action, lambda: method(call_control_id)),
            f"{action} {call_control_id}"
        )

    async def _run_action(
        self,
        call_control_id: str,
        action: str,
        call: Callable[[], Awaitable[Any]]
    ) -> bool:
        """Issue one provider action; failures are logged, never raised."""
        try:
            await call()
            return True
        except ProviderAPIError as e:
            logger.error(f"{action} failed for {call_control_id}: {e}")
            await self._error_log.log(
                "provider_api_error",
                str(e),
                context={
                    "action": action,
                    "status_code": e.status_code,
                    "body": e.body[:1000],
                    "call_control_id": call_control_id,
                },
            )
            return False

    async def _speak(self, call_control_id: str, text: str) -> bool:
        return await self._run_action(
            call_control_id,
            "speak",
            lambda: self._telephony.speak(
                call_control_id, text,
                voice=self._script.voice,
                language=self._script.language,
            ),
        )

    async def _greet(self, call_control_id: str, caller: Optional[str]) -> None:
        client = await self._lookup.lookup(caller)
        if client:
            try:
                await self._store.update_call(call_control_id, {"client_id": client.id})
            except StoreError as e:
                logger.error(f"Failed to attach client {client.id} to {call_control_id}: {e}")

        greeting = self._script.build_greeting(client)
        await self._run_action(
            call_control_id,
            "gather_using_speak",
            lambda: self._telephony.gather_using_speak(
                call_control_id,
                greeting,
                voice=self._script.voice,
                language=self._script.language,
                minimum_digits=self._script.minimum_digits,
                maximum_digits=self._script.maximum_digits,
                timeout_millis=self._script.timeout_millis,
            ),
        )

    async def _speak_then_transfer(self, call_control_id: str, message: str) -> None:
        await self._speak(call_control_id, message)

        if not self._human_transfer_number:
            logger.warning(f"HUMAN_TRANSFER_NUMBER not configured; not transferring {call_control_id}")
            return

        await self._run_action(
            call_control_id,
            "transfer",
            lambda: self._telephony.transfer(call_control_id, self._human_transfer_number),
        )

    async def _speak_then_record(self, call_control_id: str) -> None:
        await self._speak(call_control_id, self._script.voicemail)
        await self._run_action(
            call_control_id,
            "record_start",
            lambda: self._telephony.record_start(
                call_control_id,
                channels=self._script.recording_channels,
                audio_format=self._script.recording_format,
            ),
        )
