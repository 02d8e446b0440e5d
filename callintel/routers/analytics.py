from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends

from ..dependencies import get_analytics_service
from ..schemas.analytics import CallAnalytics, CallInsightsSummary
from ..schemas.calls import CallSearchFilters
from ..services.analytics_service import CallAnalyticsService

router = APIRouter(prefix="/api/analytics")


@router.get("", response_model=CallAnalytics)
async def call_analytics(
    range: Literal["week", "month", "quarter"] = "month",
    service: CallAnalyticsService = Depends(get_analytics_service),
):
    """Totals and breakdowns over completed calls in the lookback window."""
    return await service.get_call_analytics(range)


@router.get("/insights", response_model=CallInsightsSummary)
async def call_insights(
    contact_id: str | None = None,
    deal_id: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    service: CallAnalyticsService = Depends(get_analytics_service),
):
    filters = CallSearchFilters(
        contact_id=contact_id, deal_id=deal_id, date_from=date_from, date_to=date_to
    )
    return await service.get_call_insights(filters)
