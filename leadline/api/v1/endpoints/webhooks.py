"""
Webhooks API Endpoints
Handles incoming Telnyx Call Control webhooks.

Telnyx retries any non-2xx, so every request is acknowledged with 200;
failures are reported in the body as {"received": false, "error": ...}.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from leadline.api.v1.dependencies import get_call_event_dispatcher, get_webhook_error_log
from leadline.core.config import Settings, get_settings
from leadline.core.webhook_signature import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    TelnyxSignatureVerifier,
    WebhookSignatureError,
)
from leadline.domain.errors import EnvelopeParseError
from leadline.domain.models.call_event import parse_envelope
from leadline.domain.services.call_event_dispatcher import CallEventDispatcher
from leadline.domain.services.error_log_service import ErrorLogService, ErrorSeverity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/telnyx")
async def telnyx_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    dispatcher: Optional[CallEventDispatcher] = Depends(get_call_event_dispatcher),
    error_log: ErrorLogService = Depends(get_webhook_error_log)
):
    """
    Telnyx Call Control event webhook.

    Response body:
        {"received": true, "event_type", "call_control_id", "action", "handled"}
        or {"received": false, "error": "invalid_json" | "invalid_envelope"
            | "invalid_signature" | "configuration_error"}
    """
    try:
        raw_body = await request.body()
    except Exception as e:
        logger.error(f"Failed to read webhook body: {e}")
        await error_log.log("invalid_json", f"Failed to read body: {e}", severity=ErrorSeverity.WARNING)
        return {"received": False, "error": "invalid_json"}

    logger.debug(f"Telnyx webhook body: {raw_body[:500]!r}")

    if settings.telnyx_public_key:
        try:
            verifier = TelnyxSignatureVerifier(
                settings.telnyx_public_key,
                tolerance_seconds=settings.telnyx_signature_tolerance_seconds,
            )
            verifier.verify(
                raw_body,
                request.headers.get(SIGNATURE_HEADER),
                request.headers.get(TIMESTAMP_HEADER),
            )
        except WebhookSignatureError as e:
            logger.warning(f"Rejected Telnyx webhook: {e}")
            await error_log.log("invalid_signature", str(e), severity=ErrorSeverity.WARNING)
            return {"received": False, "error": "invalid_signature"}

    try:
        event = parse_envelope(raw_body)
    except EnvelopeParseError as e:
        logger.error(f"Invalid webhook envelope: {e}")
        await error_log.log(
            e.reason,
            str(e),
            severity=ErrorSeverity.WARNING,
            context={"body": raw_body[:1000].decode("utf-8", errors="replace")},
        )
        return {"received": False, "error": e.reason}

    if dispatcher is None:
        logger.error("TELNYX_API_KEY or Supabase not configured; webhook not processed")
        await error_log.log(
            "configuration_error",
            "Telnyx or Supabase configuration missing",
            severity=ErrorSeverity.CRITICAL,
            context={"event_type": event.event_type, "call_control_id": event.call_control_id},
        )
        return {"received": False, "error": "configuration_error"}

    try:
        result = await dispatcher.dispatch(event)
        action, handled = result.action, result.handled
    except Exception as e:
        logger.error(f"Error handling Telnyx event {event.event_type}: {e}", exc_info=True)
        await error_log.log(
            "webhook_processing_error",
            str(e),
            context={"event_type": event.event_type, "call_control_id": event.call_control_id},
        )
        action, handled = "error", False

    return {
        "received": True,
        "event_type": event.event_type,
        "call_control_id": event.call_control_id,
        "action": action,
        "handled": handled,
    }
