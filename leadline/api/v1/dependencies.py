"""
API Dependencies
Process-wide settings and call script; per-request Supabase client, stores and services
"""
import logging
from typing import Callable, Optional

import yaml
from dotenv import load_dotenv
from fastapi import Depends, Header, HTTPException, Request, status
from supabase import Client, create_client

from leadline.core.config import ConfigManager, Settings, get_settings
from leadline.domain.errors import ConfigurationError
from leadline.domain.interfaces.telephony_provider import TelephonyProvider
from leadline.domain.services.call_event_dispatcher import CallEventDispatcher
from leadline.domain.services.client_lookup import CallScript, ClientLookupService
from leadline.domain.services.error_log_service import ErrorLogService
from leadline.domain.services.follow_up_scheduler import FollowUpScheduler
from leadline.domain.services.health_service import HealthService
from leadline.domain.services.outbound_call_service import OutboundCallService
from leadline.infrastructure.knowledge.task_context import TaskContextClient
from leadline.infrastructure.storage.supabase_store import SupabaseCallStore, SupabaseClientRepository
from leadline.infrastructure.telephony.telnyx_client import TelnyxClient
from leadline.utils.background import BackgroundTaskRunner

load_dotenv()

logger = logging.getLogger(__name__)


def get_optional_supabase(settings: Settings = Depends(get_settings)) -> Optional[Client]:
    """Supabase client, or None when SUPABASE_URL / SUPABASE_SERVICE_KEY are unset."""
    if not settings.supabase_configured:
        return None
    try:
        return create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        return None


def get_supabase(supabase: Optional[Client] = Depends(get_optional_supabase)) -> Client:
    """
    Get Supabase client with validation.

    Raises:
        ConfigurationError: If Supabase URL or SERVICE_KEY is not configured
    """
    if supabase is None:
        raise ConfigurationError("Supabase configuration missing")
    return supabase


def get_task_runner(request: Request) -> BackgroundTaskRunner:
    """The process-wide runner created in the app lifespan."""
    runner = getattr(request.app.state, "task_runner", None)
    if runner is None:
        runner = BackgroundTaskRunner()
        request.app.state.task_runner = runner
    return runner


def get_telephony(settings: Settings = Depends(get_settings)) -> Optional[TelephonyProvider]:
    if not settings.telnyx_configured:
        return None
    return TelnyxClient(
        settings.telnyx_api_key,
        base_url=settings.telnyx_api_base_url,
        timeout=settings.telnyx_timeout_seconds,
    )


def load_call_script(settings: Settings) -> CallScript:
    """
    Read the IVR sentences from YAML.

    A missing or malformed file falls back to the built-in script so that
    webhooks keep being acknowledged.
    """
    try:
        return CallScript.from_config(ConfigManager(env=settings.environment, config_dir=settings.config_dir))
    except (yaml.YAMLError, OSError, ValueError, TypeError) as e:
        logger.error(f"Failed to load call script, using defaults: {e}")
        return CallScript()


def get_call_script(request: Request, settings: Settings = Depends(get_settings)) -> CallScript:
    """The call script loaded at startup (loaded here on first use otherwise)."""
    script = getattr(request.app.state, "call_script", None)
    if script is None:
        script = load_call_script(settings)
        request.app.state.call_script = script
    return script


def error_log_provider(source: str) -> Callable[..., ErrorLogService]:
    """Dependency factory for an ErrorLogService tagged with `source`."""
    def _provider(supabase: Optional[Client] = Depends(get_optional_supabase)) -> ErrorLogService:
        return ErrorLogService(supabase, source)
    return _provider


get_webhook_error_log = error_log_provider("telnyx-webhook")
get_outbound_error_log = error_log_provider("telnyx-call")
get_scheduler_error_log = error_log_provider("scheduled-calls")
get_health_error_log = error_log_provider("system-health-check")


def get_call_event_dispatcher(
    settings: Settings = Depends(get_settings),
    supabase: Optional[Client] = Depends(get_optional_supabase),
    telephony: Optional[TelephonyProvider] = Depends(get_telephony),
    script: CallScript = Depends(get_call_script),
    runner: BackgroundTaskRunner = Depends(get_task_runner),
    error_log: ErrorLogService = Depends(get_webhook_error_log)
) -> Optional[CallEventDispatcher]:
    """Dispatcher for webhook events, or None when Telnyx or Supabase is not configured."""
    if telephony is None or supabase is None:
        return None

    clients = SupabaseClientRepository(supabase)
    return CallEventDispatcher(
        store=SupabaseCallStore(supabase),
        clients=clients,
        telephony=telephony,
        lookup=ClientLookupService(clients, timeout_seconds=settings.client_lookup_timeout_seconds),
        runner=runner,
        error_log=error_log,
        script=script,
        human_transfer_number=settings.human_transfer_number,
    )


def get_outbound_call_service(
    settings: Settings = Depends(get_settings),
    supabase: Client = Depends(get_supabase),
    telephony: Optional[TelephonyProvider] = Depends(get_telephony),
    error_log: ErrorLogService = Depends(get_outbound_error_log)
) -> OutboundCallService:
    return OutboundCallService(
        store=SupabaseCallStore(supabase),
        clients=SupabaseClientRepository(supabase),
        telephony=telephony,
        from_number=settings.telnyx_phone_number,
        connection_id=settings.telnyx_connection_id,
        webhook_url=settings.webhook_url,
        error_log=error_log,
    )


def get_follow_up_scheduler(
    settings: Settings = Depends(get_settings),
    supabase: Client = Depends(get_supabase),
    outbound: OutboundCallService = Depends(get_outbound_call_service)
) -> FollowUpScheduler:
    knowledge = None
    if settings.knowledge_query_url:
        knowledge = TaskContextClient(
            settings.knowledge_query_url,
            auth_token=settings.supabase_service_key,
        )

    return FollowUpScheduler(
        clients=SupabaseClientRepository(supabase),
        store=SupabaseCallStore(supabase),
        outbound=outbound,
        knowledge=knowledge,
        batch_size=settings.follow_up_batch_size,
        throttle_seconds=settings.follow_up_throttle_seconds,
    )


def get_health_service(
    supabase: Optional[Client] = Depends(get_optional_supabase),
    telephony: Optional[TelephonyProvider] = Depends(get_telephony),
    error_log: ErrorLogService = Depends(get_health_error_log)
) -> HealthService:
    return HealthService(supabase, telephony, error_log)


async def verify_scheduler_token(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    settings: Settings = Depends(get_settings)
) -> None:
    """
    Bearer check for the cron-triggered scheduler endpoint.

    Open when SCHEDULER_TOKEN is not configured.
    """
    if not settings.scheduler_token:
        return

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or parts[1] != settings.scheduler_token:
        logger.warning("Rejected scheduler trigger with invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid scheduler token",
            headers={"WWW-Authenticate": "Bearer"},
        )
