"""
System Health Service
Probes the database and Telnyx, records health_checks rows and error statistics
"""
import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field
from supabase import Client

from leadline.domain.errors import ProviderAPIError
from leadline.domain.interfaces.telephony_provider import TelephonyProvider
from leadline.domain.models.call import utc_now
from leadline.domain.services.error_log_service import ErrorLogService, ErrorSeverity

logger = logging.getLogger(__name__)


# Response time above which a reachable service is reported as degraded
DATABASE_DEGRADED_MS = 1000
TELNYX_DEGRADED_MS = 2000


class ServiceHealth(BaseModel):
    service: str
    status: str  # healthy / degraded / down
    response_time_ms: int = 0
    details: Dict[str, Any] = Field(default_factory=dict)


class HealthReport(BaseModel):
    status: str  # healthy / degraded / unhealthy
    timestamp: datetime
    services: List[ServiceHealth]
    error_stats: Dict[str, int]


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class HealthService:
    """
    Runs the system health check.

    Every probe result is written to health_checks; a service that is down
    also produces a critical service_unavailable error log.
    """

    def __init__(
        self,
        supabase: Optional[Client],
        telephony: Optional[TelephonyProvider],
        error_log: ErrorLogService,
        clock: Callable[[], datetime] = utc_now
    ):
        self._supabase = supabase
        self._telephony = telephony
        self._error_log = error_log
        self._clock = clock

    async def check_database(self) -> ServiceHealth:
        if self._supabase is None:
            return ServiceHealth(
                service="database",
                status="down",
                details={"error": "Supabase not configured"},
            )

        started = time.perf_counter()
        try:
            await asyncio.to_thread(
                lambda: self._supabase.table("clients").select("id").limit(1).execute()
            )
        except Exception as e:
            return ServiceHealth(
                service="database",
                status="down",
                response_time_ms=_elapsed_ms(started),
                details={"error": str(e)},
            )

        elapsed = _elapsed_ms(started)
        return ServiceHealth(
            service="database",
            status="degraded" if elapsed > DATABASE_DEGRADED_MS else "healthy",
            response_time_ms=elapsed,
            details={"query": "select_clients"},
        )

    async def check_telnyx(self) -> ServiceHealth:
        if self._telephony is None:
            return ServiceHealth(
                service="telnyx",
                status="down",
                details={"error": "Telnyx API key not configured"},
            )

        started = time.perf_counter()
        try:
            await self._telephony.get_balance()
        except ProviderAPIError as e:
            return ServiceHealth(
                service="telnyx",
                status="down",
                response_time_ms=_elapsed_ms(started),
                details={"status": e.status_code, "error": "API request failed"},
            )

        elapsed = _elapsed_ms(started)
        return ServiceHealth(
            service="telnyx",
            status="degraded" if elapsed > TELNYX_DEGRADED_MS else "healthy",
            response_time_ms=elapsed,
            details={"endpoint": "balance"},
        )

    async def error_stats(self) -> Dict[str, int]:
        now = self._clock()
        last_hour, last_day, unresolved = await asyncio.gather(
            self._error_log.count_since(now - timedelta(hours=1)),
            self._error_log.count_since(now - timedelta(hours=24)),
            self._error_log.count_unresolved(),
        )
        return {
            "errors_last_hour": last_hour,
            "errors_last_24_hours": last_day,
            "unresolved_errors": unresolved,
        }

    async def run_check(self) -> HealthReport:
        database, telnyx, stats = await asyncio.gather(
            self.check_database(),
            self.check_telnyx(),
            self.error_stats(),
        )
        services = [database, telnyx]

        for result in services:
            await self._record(result)
            if result.status == "down":
                await self._error_log.log(
                    "service_unavailable",
                    f"{result.service} service is down",
                    severity=ErrorSeverity.CRITICAL,
                    context=result.details,
                )

        if any(s.status == "down" for s in services):
            overall = "unhealthy"
        elif any(s.status == "degraded" for s in services):
            overall = "degraded"
        else:
            overall = "healthy"

        logger.info(f"Health check: {overall} ({', '.join(f'{s.service}={s.status}' for s in services)})")
        return HealthReport(
            status=overall,
            timestamp=self._clock(),
            services=services,
            error_stats=stats,
        )

    async def _record(self, result: ServiceHealth) -> None:
        if self._supabase is None:
            return
        row = {
            "service": result.service,
            "status": result.status,
            "response_time_ms": result.response_time_ms,
            "details": result.details,
            "checked_at": self._clock().isoformat(),
        }
        try:
            await asyncio.to_thread(
                lambda: self._supabase.table("health_checks").insert(row).execute()
            )
        except Exception as e:
            logger.error(f"Failed to record health check for {result.service}: {e}")
