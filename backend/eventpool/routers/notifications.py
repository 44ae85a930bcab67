"""Notification inbox routes."""
from fastapi import APIRouter, Depends, Response, status

from eventpool.models.entrant import NotificationType
from eventpool.schemas.notification import Notification
from eventpool.services.pool import EventPool, get_pool

router = APIRouter()


@router.get("/{user_id}", response_model=list[Notification])
async def list_notifications(user_id: str, pool: EventPool = Depends(get_pool)):
    return await pool.list_notifications(user_id)


@router.delete("/{user_id}/{event_id}/{notification_type}", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_notification(
    user_id: str,
    event_id: str,
    notification_type: NotificationType,
    pool: EventPool = Depends(get_pool),
):
    """Remove every notification of this type the user has for the event."""
    await pool.dismiss_notification(user_id, event_id, notification_type)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
