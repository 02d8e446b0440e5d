from datetime import datetime

from pydantic import BaseModel

from ..models import CallType


class CallDetails(BaseModel):
    """Links and labels known when a call starts."""

    title: str = "Untitled Call"
    contact_id: str | None = None
    deal_id: str | None = None
    organization_id: str | None = None
    call_type: CallType = CallType.SALES
    scheduled_at: datetime | None = None


class CallSearchFilters(BaseModel):
    contact_id: str | None = None
    deal_id: str | None = None
    sentiment: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
