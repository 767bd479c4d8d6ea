"""Domain services"""

from .call_event_dispatcher import CallEventDispatcher, DispatchResult
from .client_lookup import CallScript, ClientLookupService
from .error_log_service import ErrorLogService, ErrorSeverity
from .follow_up_scheduler import FollowUpResult, FollowUpRunResult, FollowUpScheduler
from .health_service import HealthReport, HealthService, ServiceHealth
from .outbound_call_service import OutboundCallRequest, OutboundCallResult, OutboundCallService

__all__ = [
    "CallEventDispatcher",
    "DispatchResult",
    "CallScript",
    "ClientLookupService",
    "ErrorLogService",
    "ErrorSeverity",
    "FollowUpResult",
    "FollowUpRunResult",
    "FollowUpScheduler",
    "HealthReport",
    "HealthService",
    "ServiceHealth",
    "OutboundCallRequest",
    "OutboundCallResult",
    "OutboundCallService",
]
