"""
Follow-up Worker
Long-running alternative to the cron-triggered scheduler endpoint

Run as separate process:
    python -m leadline.workers.follow_up_worker
"""
import asyncio
import logging
import signal
from typing import Callable, Optional

from dotenv import load_dotenv
from supabase import create_client, Client

from leadline.core.config import Settings, get_settings
from leadline.domain.services.error_log_service import ErrorLogService
from leadline.domain.services.follow_up_scheduler import FollowUpScheduler
from leadline.domain.services.outbound_call_service import OutboundCallService
from leadline.infrastructure.knowledge.task_context import TaskContextClient
from leadline.infrastructure.storage.supabase_store import SupabaseCallStore, SupabaseClientRepository
from leadline.infrastructure.telephony.telnyx_client import TelnyxClient

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class FollowUpWorker:
    """
    Runs a follow-up pass every FOLLOW_UP_INTERVAL_SECONDS.

    Responsibilities:
    - Build the scheduler from settings (Supabase, Telnyx, knowledge lookup)
    - Run one batch per interval
    - Stop on SIGTERM/SIGINT or after too many consecutive failures
    """

    MAX_CONSECUTIVE_ERRORS = 10

    def __init__(
        self,
        settings: Optional[Settings] = None,
        scheduler_factory: Optional[Callable[[], FollowUpScheduler]] = None
    ):
        self.settings = settings or get_settings()
        self._scheduler_factory = scheduler_factory
        self._scheduler: Optional[FollowUpScheduler] = None
        self._supabase: Optional[Client] = None
        self._stop_event = asyncio.Event()

        self.running = False

        # Stats
        self._runs_completed = 0
        self._calls_made = 0
        self._runs_failed = 0

    def initialize(self) -> None:
        """Build the scheduler and its collaborators."""
        logger.info("Initializing Follow-up Worker...")

        if self._scheduler_factory:
            self._scheduler = self._scheduler_factory()
            logger.info("Follow-up Worker initialized successfully")
            return

        if not self.settings.supabase_configured:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")

        self._supabase = create_client(self.settings.supabase_url, self.settings.supabase_service_key)

        telephony = None
        if self.settings.telnyx_configured:
            telephony = TelnyxClient(
                self.settings.telnyx_api_key,
                base_url=self.settings.telnyx_api_base_url,
                timeout=self.settings.telnyx_timeout_seconds,
            )

        store = SupabaseCallStore(self._supabase)
        clients = SupabaseClientRepository(self._supabase)
        outbound = OutboundCallService(
            store=store,
            clients=clients,
            telephony=telephony,
            from_number=self.settings.telnyx_phone_number,
            connection_id=self.settings.telnyx_connection_id,
            webhook_url=self.settings.webhook_url,
            error_log=ErrorLogService(self._supabase, "scheduled-calls"),
        )

        knowledge = None
        if self.settings.knowledge_query_url:
            knowledge = TaskContextClient(
                self.settings.knowledge_query_url,
                auth_token=self.settings.supabase_service_key,
            )

        self._scheduler = FollowUpScheduler(
            clients=clients,
            store=store,
            outbound=outbound,
            knowledge=knowledge,
            batch_size=self.settings.follow_up_batch_size,
            throttle_seconds=self.settings.follow_up_throttle_seconds,
        )
        logger.info("Follow-up Worker initialized successfully")

    async def run(self) -> None:
        """
        Main worker loop.

        Each iteration runs one batch, then waits for the interval or a stop
        request, whichever comes first.
        """
        self.initialize()

        self.running = True
        consecutive_errors = 0

        logger.info(
            f"Follow-up Worker started - running every {self.settings.follow_up_interval_seconds}s"
        )

        while self.running:
            try:
                result = await self._scheduler.run()
                self._runs_completed += 1
                self._calls_made += result.calls_made
                consecutive_errors = 0
                logger.info(f"Follow-up pass: {result.message}, calls made: {result.calls_made}")

            except asyncio.CancelledError:
                logger.info("Worker received cancellation signal")
                break
            except Exception as e:
                consecutive_errors += 1
                self._runs_failed += 1
                logger.error(f"Worker error ({consecutive_errors}): {e}", exc_info=True)

                if consecutive_errors >= self.MAX_CONSECUTIVE_ERRORS:
                    logger.critical("Too many consecutive errors, stopping worker")
                    break

            await self._wait(self.settings.follow_up_interval_seconds)

        self.shutdown()

    async def _wait(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def stop(self) -> None:
        self.running = False
        self._stop_event.set()

    def shutdown(self) -> None:
        """Graceful shutdown."""
        self.running = False
        logger.info(
            f"Follow-up Worker shutdown complete. "
            f"Runs: {self._runs_completed}, Failed: {self._runs_failed}, Calls: {self._calls_made}"
        )

    def get_stats(self) -> dict:
        """Get worker statistics."""
        return {
            "running": self.running,
            "runs_completed": self._runs_completed,
            "runs_failed": self._runs_failed,
            "calls_made": self._calls_made,
        }


async def run_worker() -> None:
    """Run the worker until a shutdown signal arrives."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    worker = FollowUpWorker(settings)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        worker.stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await worker.run()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")


def main() -> None:
    """Console entry point."""
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
