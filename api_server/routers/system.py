# api_server/routers/system.py
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from ledger_core.ledger import ConferenceLedger

from ..core.dependencies import get_ledger
from ..core.security import verify_api_key
from ..models import AvailabilityResponse, EventResponse

router = APIRouter(
    tags=["System"],
    dependencies=[Depends(verify_api_key)]
)

@router.get("/system/availability", response_model=AvailabilityResponse,
            summary="Whether the FHE collaborator is reachable")
async def api_availability(ledger: ConferenceLedger = Depends(get_ledger)):
    return AvailabilityResponse(available=ledger.is_available())

@router.get("/events", response_model=List[EventResponse],
            summary="Committed ledger events, oldest first")
async def api_events(conference_id: Optional[str] = Query(default=None),
                     ledger: ConferenceLedger = Depends(get_ledger)):
    return [EventResponse.from_event(e) for e in ledger.events.history(conference_id)]
