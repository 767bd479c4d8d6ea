"""
Follow-up Scheduler
Dials paid clients whose next_follow_up is due, with a rolling retry cap.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

from pydantic import BaseModel, Field

from leadline.domain.errors import OutboundCallError, StoreError
from leadline.domain.interfaces.call_store import CallStore, ClientRepository
from leadline.domain.models.call_attempt import (
    ATTEMPT_WINDOW,
    FOLLOW_UP_INTERVAL,
    MAX_ATTEMPTS,
    RETRY_EXHAUSTED_DEFERRAL,
)
from leadline.domain.models.call import utc_now
from leadline.domain.models.client import Client
from leadline.domain.services.outbound_call_service import OutboundCallRequest, OutboundCallService
from leadline.infrastructure.knowledge.task_context import TaskContextClient

logger = logging.getLogger(__name__)


class FollowUpResult(BaseModel):
    """Outcome for one dialed client"""
    client_id: str
    client_name: Optional[str] = None
    success: bool
    call_id: Optional[str] = None
    attempt: Optional[int] = None
    error: Optional[str] = None
    details: Optional[Any] = None


class FollowUpRunResult(BaseModel):
    success: bool = True
    message: str
    calls_made: int = 0
    results: List[FollowUpResult] = Field(default_factory=list)


class FollowUpScheduler:
    """
    One sequential pass over the clients due for follow-up.

    For each candidate:
    1. do-not-call clients are skipped
    2. attempt number = highest attempt in the last 24h + 1; past the cap
       the client is pushed out RETRY_EXHAUSTED_DEFERRAL and skipped
    3. task context is fetched (best effort) and the call is placed through
       the same OutboundCallService the dashboard uses
    4. on success next_follow_up moves FOLLOW_UP_INTERVAL ahead

    Dials are spaced by throttle_seconds. Overlapping runs are not locked
    against each other.
    """

    def __init__(
        self,
        clients: ClientRepository,
        store: CallStore,
        outbound: OutboundCallService,
        knowledge: Optional[TaskContextClient] = None,
        batch_size: int = 10,
        throttle_seconds: float = 2.0,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self._clients = clients
        self._store = store
        self._outbound = outbound
        self._knowledge = knowledge
        self._batch_size = batch_size
        self._throttle_seconds = throttle_seconds
        self._clock = clock
        self._sleep = sleep

    async def run(self) -> FollowUpRunResult:
        """
        Process one batch.

        Raises:
            StoreError: the due-client query failed
        """
        now = self._clock()
        due = await self._clients.list_due_for_follow_up(now, self._batch_size)

        if not due:
            logger.info("No clients due for follow-up")
            return FollowUpRunResult(message="No clients due for follow-up")

        logger.info(f"Processing {len(due)} clients due for follow-up")

        results: List[FollowUpResult] = []
        dialed = 0
        for client in due:
            if client.do_not_call:
                logger.info(f"Skipping {client.display_name} ({client.id}) - on do-not-call list")
                continue

            attempt_number = await self._next_attempt_number(client, now)
            if attempt_number > MAX_ATTEMPTS:
                logger.info(
                    f"Skipping {client.display_name} ({client.id}) - exceeded maximum retry attempts"
                )
                await self._defer(client, now + RETRY_EXHAUSTED_DEFERRAL)
                continue

            if dialed:
                await self._sleep(self._throttle_seconds)
            dialed += 1

            results.append(await self._call_client(client, attempt_number))

        calls_made = sum(1 for r in results if r.success)
        logger.info(f"Follow-up run finished: {calls_made}/{len(due)} calls placed")
        return FollowUpRunResult(
            message=f"Processed {len(due)} clients",
            calls_made=calls_made,
            results=results,
        )

    async def _next_attempt_number(self, client: Client, now: datetime) -> int:
        latest = await self._store.latest_attempt_number(client.id, now - ATTEMPT_WINDOW)
        return latest + 1

    async def _defer(self, client: Client, next_follow_up: datetime) -> None:
        try:
            await self._clients.update_follow_up(client.id, next_follow_up=next_follow_up)
        except StoreError as e:
            logger.error(f"Failed to reschedule client {client.id}: {e}")

    async def _call_client(self, client: Client, attempt_number: int) -> FollowUpResult:
        context = ""
        if self._knowledge:
            context = await self._knowledge.fetch_context(client)

        try:
            placed = await self._outbound.place_call(OutboundCallRequest(
                client_id=client.id,
                summary=context or None,
            ))
        except OutboundCallError as e:
            logger.error(f"Failed to call {client.display_name} ({client.id}): {e.message}")
            return FollowUpResult(
                client_id=client.id,
                client_name=client.name,
                success=False,
                attempt=attempt_number,
                error=e.message,
                details=e.details,
            )

        await self._defer(client, self._clock() + FOLLOW_UP_INTERVAL)
        logger.info(f"Called {client.display_name} (attempt {attempt_number})")
        return FollowUpResult(
            client_id=client.id,
            client_name=client.name,
            success=True,
            call_id=placed.call_id,
            attempt=attempt_number,
        )
