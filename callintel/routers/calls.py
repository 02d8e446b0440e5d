from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_analytics_service, get_integration_service
from ..schemas.calls import CallSearchFilters
from ..services.analytics_service import CallAnalyticsService
from ..services.integration_service import CallIntegrationService

router = APIRouter(prefix="/api/calls")


@router.get("/search")
async def search_calls(
    q: str = Query(..., min_length=1, description="Text to find in transcripts"),
    contact_id: str | None = None,
    deal_id: str | None = None,
    sentiment: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    service: CallAnalyticsService = Depends(get_analytics_service),
):
    """Case-insensitive transcript search, newest first."""
    filters = CallSearchFilters(
        contact_id=contact_id,
        deal_id=deal_id,
        sentiment=sentiment,
        date_from=date_from,
        date_to=date_to,
    )
    calls = await service.search(q, filters)
    return {"calls": calls, "count": len(calls)}


@router.get("/{call_id}")
async def get_call(
    call_id: str,
    service: CallIntegrationService = Depends(get_integration_service),
):
    """Call record with its participants, action items and keywords."""
    details = await service.get_call_details(call_id)
    if not details:
        raise HTTPException(status_code=404, detail="Call not found")
    return details


@router.delete("/{call_id}")
async def delete_call(
    call_id: str,
    service: CallIntegrationService = Depends(get_integration_service),
):
    deleted = await service.delete_call(call_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Call not found")
    return {"ok": True}
