"""
Telnyx Call Control Client
Issues call-control actions and call origination via the Telnyx v2 REST API
"""
import logging
from typing import Any, Dict, Optional

import httpx

from leadline.domain.errors import ConfigurationError, ProviderAPIError
from leadline.domain.interfaces.telephony_provider import (
    ActionResult,
    DialResult,
    TelephonyProvider,
)

logger = logging.getLogger(__name__)


class TelnyxClient(TelephonyProvider):
    """
    Telnyx Call Control API client.

    Responsibilities:
    - POST /calls/{call_control_id}/actions/{action} for in-call commands
    - POST /calls to originate outbound calls
    - GET /balance as a connectivity probe

    A fresh httpx.AsyncClient is opened per request so the client can be
    used from detached tasks that outlive the webhook request.
    """

    DEFAULT_BASE_URL = "https://api.telnyx.com/v2"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not api_key:
            raise ConfigurationError("TELNYX_API_KEY not configured")

        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "telnyx"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        json: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.error(f"Telnyx {action} transport error: {e}")
            raise ProviderAPIError(action, None, str(e)) from e

        logger.info(f"Telnyx {action} API response: {response.status_code}")

        if not response.is_success:
            logger.error(
                f"Telnyx {action} failed: status={response.status_code} body={response.text[:500]}"
            )
            raise ProviderAPIError(action, response.status_code, response.text)

        return response

    def _data(self, response: httpx.Response, action: str) -> Dict[str, Any]:
        """The `data` object of a 2xx body; anything else is a provider error."""
        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Telnyx {action} returned a non-JSON body: {response.text[:200]}")
            raise ProviderAPIError(action, response.status_code, response.text) from e

        if not isinstance(body, dict):
            raise ProviderAPIError(action, response.status_code, response.text)
        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise ProviderAPIError(action, response.status_code, response.text)
        return data

    async def _action(
        self,
        call_control_id: str,
        action: str,
        body: Optional[Dict[str, Any]] = None
    ) -> ActionResult:
        """Run one call-control command against a live call leg."""
        response = await self._request(
            "POST",
            f"/calls/{call_control_id}/actions/{action}",
            action=action,
            json=body or {},
        )
        return ActionResult(action=action, status_code=response.status_code, body=response.text)

    async def answer(self, call_control_id: str) -> ActionResult:
        return await self._action(call_control_id, "answer")

    async def speak(
        self,
        call_control_id: str,
        text: str,
        voice: str = "female",
        language: str = "en-US"
    ) -> ActionResult:
        return await self._action(call_control_id, "speak", {
            "payload": text,
            "voice": voice,
            "language": language,
        })

    async def gather_using_speak(
        self,
        call_control_id: str,
        prompt: str,
        voice: str = "female",
        language: str = "en-US",
        minimum_digits: int = 1,
        maximum_digits: int = 1,
        timeout_millis: int = 10000
    ) -> ActionResult:
        return await self._action(call_control_id, "gather_using_speak", {
            "payload": prompt,
            "voice": voice,
            "language": language,
            "minimum_digits": minimum_digits,
            "maximum_digits": maximum_digits,
            "timeout_millis": timeout_millis,
        })

    async def transfer(self, call_control_id: str, to_number: str) -> ActionResult:
        return await self._action(call_control_id, "transfer", {"to": to_number})

    async def record_start(
        self,
        call_control_id: str,
        channels: str = "dual",
        audio_format: str = "mp3"
    ) -> ActionResult:
        return await self._action(call_control_id, "record_start", {
            "format": audio_format,
            "channels": channels,
        })

    async def record_stop(self, call_control_id: str) -> ActionResult:
        return await self._action(call_control_id, "record_stop")

    async def hangup(self, call_control_id: str) -> ActionResult:
        return await self._action(call_control_id, "hangup")

    async def dial(
        self,
        to_number: str,
        from_number: str,
        connection_id: str,
        webhook_url: str
    ) -> DialResult:
        """
        Originate an outbound call.

        Returns:
            DialResult with the provider call_control_id / call_session_id
        """
        logger.info(f"Initiating call: {from_number} -> {to_number}")

        response = await self._request("POST", "/calls", action="dial", json={
            "connection_id": connection_id,
            "to": to_number,
            "from": from_number,
            "webhook_url": webhook_url,
            "record": "record-from-answer",
            "record_channels": "dual",
        })

        data = self._data(response, "dial")
        call_control_id = data.get("call_control_id")
        if not call_control_id:
            raise ProviderAPIError("dial", response.status_code, "No call_control_id returned from Telnyx")

        logger.info(f"Call initiated: call_control_id={call_control_id}")
        return DialResult(
            call_control_id=call_control_id,
            call_session_id=data.get("call_session_id"),
            raw=data,
        )

    async def get_balance(self) -> Dict[str, Any]:
        response = await self._request("GET", "/balance", action="balance")
        return self._data(response, "balance")
