"""
Scheduler Endpoints
Cron target for the follow-up calling pass
"""
import logging

from fastapi import APIRouter, Depends

from leadline.api.v1.dependencies import (
    get_follow_up_scheduler,
    get_scheduler_error_log,
    verify_scheduler_token,
)
from leadline.domain.errors import StoreError
from leadline.domain.services.error_log_service import ErrorLogService
from leadline.domain.services.follow_up_scheduler import FollowUpRunResult, FollowUpScheduler

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/scheduler",
    tags=["scheduler"],
    dependencies=[Depends(verify_scheduler_token)],
)


@router.post("/follow-ups/run", response_model=FollowUpRunResult, response_model_exclude_none=True)
async def run_follow_ups(
    scheduler: FollowUpScheduler = Depends(get_follow_up_scheduler),
    error_log: ErrorLogService = Depends(get_scheduler_error_log)
):
    """Run one follow-up batch and report per-client outcomes."""
    try:
        return await scheduler.run()
    except StoreError as e:
        await error_log.log("database_error", f"Failed to query clients: {e}")
        raise
