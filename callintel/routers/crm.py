from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_integration_service
from ..services.integration_service import CallIntegrationService

router = APIRouter(prefix="/api")


@router.get("/contacts/{contact_id}/calls")
async def contact_call_history(
    contact_id: str,
    service: CallIntegrationService = Depends(get_integration_service),
):
    calls = await service.get_contact_call_history(contact_id)
    return {"calls": calls, "count": len(calls)}


@router.get("/deals/{deal_id}/calls")
async def deal_call_history(
    deal_id: str,
    service: CallIntegrationService = Depends(get_integration_service),
):
    calls = await service.get_deal_call_history(deal_id)
    return {"calls": calls, "count": len(calls)}


@router.get("/action-items")
async def open_action_items(
    assignee: str = Query(..., min_length=1),
    service: CallIntegrationService = Depends(get_integration_service),
):
    """Open action items for one assignee, soonest due first."""
    items = await service.get_user_action_items(assignee)
    return {"action_items": items, "count": len(items)}


@router.post("/action-items/{item_id}/complete")
async def complete_action_item(
    item_id: str,
    service: CallIntegrationService = Depends(get_integration_service),
):
    item = await service.complete_action_item(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Action item not found")
    return item
