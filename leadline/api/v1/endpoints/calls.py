"""
Call Endpoints
Outbound-call trigger and call detail lookup
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from supabase import Client

from leadline.api.v1.dependencies import get_outbound_call_service, get_supabase
from leadline.domain.models.call import Call, CallRecording
from leadline.domain.services.outbound_call_service import (
    OutboundCallRequest,
    OutboundCallResult,
    OutboundCallService,
)
from leadline.infrastructure.storage.supabase_store import SupabaseCallStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calls", tags=["calls"])


class CallDetail(BaseModel):
    """Call row plus its recording, if any"""
    call: Call
    recording: Optional[CallRecording] = None


@router.post("/outbound", response_model=OutboundCallResult)
async def trigger_outbound_call(
    request: OutboundCallRequest,
    service: OutboundCallService = Depends(get_outbound_call_service)
):
    """
    Place an outbound call to a client or raw number.

    Used by: dashboard "call now" and the follow-up scheduler.

    Errors surface as {"error": ..., "details": ...} with status
    400 (bad request / no phone), 403 (do-not-call), 404 (unknown client),
    500 (missing Telnyx configuration) or the provider's own status.
    """
    logger.info(f"Outbound call requested: client_id={request.client_id}, phone={request.phone_number}")
    return await service.place_call(request)


@router.get("/{call_control_id}", response_model=CallDetail)
async def get_call(
    call_control_id: str,
    supabase: Client = Depends(get_supabase)
):
    """Get a call by its Telnyx call_control_id."""
    store = SupabaseCallStore(supabase)
    call = await store.get_call(call_control_id)
    if call is None:
        raise HTTPException(status_code=404, detail="Call not found")

    recording = await store.get_recording(call.id) if call.id else None
    return CallDetail(call=call, recording=recording)
