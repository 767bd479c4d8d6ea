"""
Error Log Service
Durable error sink backed by the Supabase error_logs table
"""
import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from supabase import Client

logger = logging.getLogger(__name__)


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorLogService:
    """
    Writes error_logs rows.

    Logging an error must never turn into a second failure, so every write
    is wrapped and only reported to the process log when it fails. With no
    Supabase client the service degrades to process logging alone.
    """

    TABLE = "error_logs"

    def __init__(self, supabase: Optional[Client], source: str):
        self._supabase = supabase
        self.source = source

    async def log(
        self,
        error_type: str,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Record an error.

        Args:
            error_type: Short machine-readable category (e.g. provider_api_error)
            message: Human-readable description
            severity: info / warning / error / critical
            context: Extra JSON-serializable details
        """
        severity_value = ErrorSeverity(severity).value
        logger.log(
            logging.CRITICAL if severity_value == "critical" else logging.WARNING,
            f"[{self.source}] {error_type}: {message}"
        )

        if self._supabase is None:
            return

        row = {
            "source": self.source,
            "error_type": error_type,
            "severity": severity_value,
            "message": message,
            "context": context or {},
        }
        try:
            await asyncio.to_thread(
                lambda: self._supabase.table(self.TABLE).insert(row).execute()
            )
        except Exception as e:
            logger.error(f"Failed to write error log ({error_type}): {e}")

    async def count_since(self, since: datetime) -> int:
        """Number of error_logs rows created at or after `since` (0 on failure)."""
        if self._supabase is None:
            return 0
        try:
            response = await asyncio.to_thread(
                lambda: self._supabase.table(self.TABLE)
                .select("id", count="exact")
                .gte("created_at", since.isoformat())
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to count error logs: {e}")
            return 0
        return response.count or 0

    async def count_unresolved(self) -> int:
        if self._supabase is None:
            return 0
        try:
            response = await asyncio.to_thread(
                lambda: self._supabase.table(self.TABLE)
                .select("id", count="exact")
                .eq("resolved", False)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to count unresolved error logs: {e}")
            return 0
        return response.count or 0
