"""
Task Context Client
Best-effort lookup of recent deliverables for a client before a follow-up call
"""
import logging
from typing import Optional

import httpx

from leadline.domain.models.client import Client

logger = logging.getLogger(__name__)


class TaskContextClient:
    """
    Queries the task-knowledge endpoint with {query, client_id} and returns
    its `context` string. Any failure yields an empty string.
    """

    QUERY_TEMPLATE = "What recent deliverables and tasks have been completed for {name}?"

    def __init__(
        self,
        url: str,
        auth_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._url = url
        self._auth_token = auth_token
        self._timeout = timeout
        self._transport = transport

    async def fetch_context(self, client: Client) -> str:
        headers = {"Content-Type": "application/json"}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"

        body = {
            "query": self.QUERY_TEMPLATE.format(name=client.display_name),
            "client_id": client.id,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as http:
                response = await http.post(self._url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"Task context lookup failed for client {client.id}: {e}")
            return ""

        if not response.is_success:
            logger.warning(f"Task context lookup returned {response.status_code} for client {client.id}")
            return ""

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"Task context lookup returned non-JSON for client {client.id}")
            return ""

        context = data.get("context") if isinstance(data, dict) else None
        return context if isinstance(context, str) else ""
