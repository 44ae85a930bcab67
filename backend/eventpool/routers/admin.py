"""Admin routes — event holds, deletion and organizer bans."""
import logging
from fastapi import APIRouter, Depends

from eventpool.schemas.event import EventOut
from eventpool.schemas.notification import BanRequest
from eventpool.services.pool import EventPool, get_pool

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/events/{event_id}/hold", response_model=EventOut)
async def hold_event(event_id: str, pool: EventPool = Depends(get_pool)):
    return EventOut.from_event(await pool.hold_event(event_id))


@router.post("/events/{event_id}/release", response_model=EventOut)
async def release_event(event_id: str, pool: EventPool = Depends(get_pool)):
    return EventOut.from_event(await pool.release_event(event_id))


@router.delete("/events/{event_id}")
async def delete_event(event_id: str, pool: EventPool = Depends(get_pool)):
    """Cancel the event for every entrant and remove all of its data."""
    notified = await pool.delete_event(event_id)
    return {"event_id": event_id, "notified": notified}


@router.post("/organizers/{user_id}/ban")
async def ban_organizer(user_id: str, payload: BanRequest, pool: EventPool = Depends(get_pool)):
    held = await pool.ban_organizer(user_id, payload.reason)
    return {"user_id": user_id, "held_event_ids": held}


@router.post("/organizers/{user_id}/unban")
async def unban_organizer(user_id: str, pool: EventPool = Depends(get_pool)):
    released = await pool.unban_organizer(user_id)
    return {"user_id": user_id, "released_event_ids": released}
