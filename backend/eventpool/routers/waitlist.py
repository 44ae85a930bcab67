"""Waiting-list API routes — entrant actions, organizer actions and the lottery."""
import logging
from fastapi import APIRouter, Depends, Response, status

from eventpool.models.entrant import EntrantStatus
from eventpool.schemas.waitlist import (
    BroadcastRequest,
    BroadcastResult,
    BucketCounts,
    Entrant,
    EntrantAction,
    JoinRequest,
    LotteryResult,
    RepairAction,
    StatusOut,
)
from eventpool.services.pool import EventPool, get_pool

logger = logging.getLogger(__name__)
router = APIRouter()


# --- entrant actions ---

@router.post("/join", response_model=Entrant, status_code=status.HTTP_201_CREATED)
async def join(event_id: str, payload: JoinRequest, pool: EventPool = Depends(get_pool)):
    return await pool.join(event_id, payload.user_id, payload.latitude, payload.longitude)


@router.post("/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave(event_id: str, payload: EntrantAction, pool: EventPool = Depends(get_pool)):
    await pool.leave(event_id, payload.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/accept", response_model=Entrant)
async def accept(event_id: str, payload: EntrantAction, pool: EventPool = Depends(get_pool)):
    return await pool.accept(event_id, payload.user_id)


@router.post("/decline", response_model=Entrant)
async def decline(event_id: str, payload: EntrantAction, pool: EventPool = Depends(get_pool)):
    return await pool.decline(event_id, payload.user_id)


@router.post("/rejoin", response_model=Entrant)
async def rejoin(event_id: str, payload: EntrantAction, pool: EventPool = Depends(get_pool)):
    return await pool.rejoin(event_id, payload.user_id)


# --- organizer actions ---

@router.post("/cancel", response_model=Entrant)
async def cancel_entrant(event_id: str, payload: EntrantAction, pool: EventPool = Depends(get_pool)):
    return await pool.cancel_entrant(event_id, payload.user_id)


@router.post("/uninvite", response_model=Entrant)
async def uninvite(event_id: str, payload: EntrantAction, pool: EventPool = Depends(get_pool)):
    return await pool.uninvite(event_id, payload.user_id)


@router.post("/lottery", response_model=LotteryResult)
async def run_lottery(event_id: str, pool: EventPool = Depends(get_pool)):
    """Top INVITED up to the entrant limit with a uniform draw from WAITING."""
    return await pool.run_lottery(event_id)


@router.post("/broadcast", response_model=BroadcastResult)
async def broadcast(event_id: str, payload: BroadcastRequest, pool: EventPool = Depends(get_pool)):
    recipients = await pool.broadcast(event_id, payload.status, payload.message, payload.notification_type)
    return BroadcastResult(recipients=recipients)


@router.post("/repair", response_model=list[RepairAction])
async def repair(event_id: str, pool: EventPool = Depends(get_pool)):
    return await pool.repair(event_id)


# --- reads ---

@router.get("/counts", response_model=BucketCounts)
async def bucket_counts(event_id: str, pool: EventPool = Depends(get_pool)):
    return await pool.get_bucket_counts(event_id)


@router.get("/status/{user_id}", response_model=StatusOut)
async def entrant_status(event_id: str, user_id: str, pool: EventPool = Depends(get_pool)):
    return StatusOut(user_id=user_id, status=await pool.get_entrant_status(event_id, user_id))


@router.get("/{bucket}", response_model=list[Entrant])
async def list_bucket(event_id: str, bucket: EntrantStatus, pool: EventPool = Depends(get_pool)):
    return await pool.list_bucket(event_id, bucket)
