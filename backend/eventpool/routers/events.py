"""Event API routes — delegates to the EventPool event registry."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from eventpool.schemas.event import EventCreate, EventUpdate, EventOut
from eventpool.services.pool import EventPool, get_pool

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=EventOut, status_code=status.HTTP_201_CREATED)
async def create_event(payload: EventCreate, pool: EventPool = Depends(get_pool)):
    """Create an event; banned organizers are refused."""
    return EventOut.from_event(await pool.create_event(payload))


@router.get("/", response_model=list[EventOut])
async def list_events(
    organizer_id: Optional[str] = Query(None),
    pool: EventPool = Depends(get_pool),
):
    return [EventOut.from_event(e) for e in await pool.list_events(organizer_id)]


@router.get("/{event_id}", response_model=EventOut)
async def get_event(event_id: str, pool: EventPool = Depends(get_pool)):
    return EventOut.from_event(await pool.get_event(event_id))


@router.put("/{event_id}", response_model=EventOut)
async def update_event(event_id: str, payload: EventUpdate, pool: EventPool = Depends(get_pool)):
    """Organizer edit; only the fields sent are changed."""
    return EventOut.from_event(await pool.update_event(event_id, payload))
