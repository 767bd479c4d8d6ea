"""
Outbound Call Service
Places an outbound call for the dashboard and the follow-up scheduler
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel

from leadline.domain.errors import OutboundCallError, ProviderAPIError, StoreError
from leadline.domain.interfaces.call_store import CallStore, ClientRepository
from leadline.domain.interfaces.telephony_provider import TelephonyProvider
from leadline.domain.models.call import Call, CallDirection, CallState, utc_now
from leadline.domain.models.client import Client
from leadline.domain.services.error_log_service import ErrorLogService

logger = logging.getLogger(__name__)


class OutboundCallRequest(BaseModel):
    """Body of POST /calls/outbound"""
    client_id: Optional[str] = None
    phone_number: Optional[str] = None
    direction: CallDirection = CallDirection.OUTBOUND
    summary: Optional[str] = None


class OutboundCallResult(BaseModel):
    success: bool = True
    call_control_id: str
    call_session_id: Optional[str] = None
    call_id: Optional[str] = None
    client_name: Optional[str] = None


class OutboundCallService:
    """
    Outbound-call trigger.

    Refusals (bad request, unknown client, do-not-call, missing provider
    configuration, provider rejection) raise OutboundCallError carrying the
    HTTP status to surface. A failed Call insert after a successful dial is
    logged only; the call is already ringing.
    """

    def __init__(
        self,
        store: CallStore,
        clients: ClientRepository,
        telephony: Optional[TelephonyProvider],
        from_number: Optional[str],
        connection_id: Optional[str],
        webhook_url: str,
        error_log: ErrorLogService,
        clock: Callable[[], datetime] = utc_now
    ):
        self._store = store
        self._clients = clients
        self._telephony = telephony
        self._from_number = from_number
        self._connection_id = connection_id
        self._webhook_url = webhook_url
        self._error_log = error_log
        self._clock = clock

    @property
    def configured(self) -> bool:
        return bool(self._telephony and self._from_number and self._connection_id)

    async def place_call(self, request: OutboundCallRequest) -> OutboundCallResult:
        """
        Dial a client (by id) or a raw phone number.

        Raises:
            OutboundCallError: 400 / 403 / 404 / 500 or the provider's status
        """
        if not self.configured:
            raise OutboundCallError(500, "Telnyx configuration missing")

        if not request.client_id and not request.phone_number:
            raise OutboundCallError(400, "Either client_id or phone_number is required")

        client: Optional[Client] = None
        target_phone = request.phone_number

        if request.client_id:
            client = await self._load_client(request.client_id)
            target_phone = client.phone_number

            if not target_phone:
                raise OutboundCallError(400, "Client has no phone number")

            if client.do_not_call:
                logger.info(f"Refusing outbound call to do-not-call client {client.id}")
                raise OutboundCallError(403, "Client is on do-not-call list")
        else:
            await self._check_number_not_vetoed(target_phone)

        try:
            dialed = await self._telephony.dial(
                to_number=target_phone,
                from_number=self._from_number,
                connection_id=self._connection_id,
                webhook_url=self._webhook_url,
            )
        except ProviderAPIError as e:
            await self._error_log.log(
                "provider_api_error",
                str(e),
                context={"action": "dial", "status_code": e.status_code, "to": target_phone},
            )
            status_code = e.status_code if e.status_code and e.status_code >= 400 else 502
            raise OutboundCallError(status_code, "Failed to initiate call", details=e.body) from e

        call_id = await self._persist_call(request, client, target_phone, dialed.call_control_id, dialed.call_session_id)

        if client:
            try:
                await self._clients.update_follow_up(client.id, last_call_at=self._clock())
            except StoreError as e:
                logger.error(f"Failed to update last_call_at for client {client.id}: {e}")

        return OutboundCallResult(
            call_control_id=dialed.call_control_id,
            call_session_id=dialed.call_session_id,
            call_id=call_id,
            client_name=client.name if client else None,
        )

    async def _load_client(self, client_id: str) -> Client:
        try:
            client = await self._clients.get_client(client_id)
        except StoreError as e:
            logger.error(f"Client lookup failed for {client_id}: {e}")
            client = None

        if client is None:
            raise OutboundCallError(404, "Client not found")
        return client

    async def _check_number_not_vetoed(self, phone_number: str) -> None:
        """Raw numbers still honour the do-not-call flag of the client that owns them."""
        try:
            owner = await self._clients.find_by_phone(phone_number)
        except StoreError as e:
            logger.warning(f"Do-not-call lookup failed for {phone_number}: {e}")
            return

        if owner and owner.do_not_call:
            logger.info(f"Refusing outbound call to {phone_number}: client {owner.id} is do-not-call")
            raise OutboundCallError(403, "Client is on do-not-call list")

    async def _persist_call(
        self,
        request: OutboundCallRequest,
        client: Optional[Client],
        target_phone: str,
        call_control_id: str,
        call_session_id: Optional[str]
    ) -> Optional[str]:
        call = Call(
            call_control_id=call_control_id,
            call_session_id=call_session_id,
            direction=request.direction,
            from_number=self._from_number,
            to_number=target_phone,
            call_state=CallState.INITIATED,
            client_id=client.id if client else None,
            summary=request.summary,
            created_at=self._clock(),
        )
        try:
            stored = await self._store.create_call_if_absent(call)
        except StoreError as e:
            logger.error(f"Database error storing call {call_control_id}: {e}")
            await self._error_log.log(
                "database_error",
                str(e),
                context={"call_control_id": call_control_id},
            )
            return None

        # The call.initiated webhook can land before this insert
        if client and stored.client_id != client.id:
            try:
                await self._store.update_call(call_control_id, {"client_id": client.id})
            except StoreError as e:
                logger.error(f"Failed to attach client {client.id} to {call_control_id}: {e}")

        logger.info(f"Outbound call {call_control_id} stored as {stored.id}")
        return stored.id
