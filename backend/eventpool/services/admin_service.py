"""Admin operations — holds, event deletion cleanup, organizer bans.

Responsibilities:
- Hold / release an event and tell every entrant about it
- Delete an event: notify every entrant, then drop its waiting list,
  its notification subtrees and the event record
- Ban an organizer: flag the user and hold every event that has not started
- Unban: clear the flag and release the organizer's held events
"""
import logging
from datetime import date
from typing import Optional

from eventpool.schemas.event import Event
from eventpool.services.event_service import EventService
from eventpool.services.notification_service import NotificationFanout, NotificationInbox
from eventpool.services.user_service import UserDirectory
from eventpool.services.waitlist_repository import WaitlistRepository

logger = logging.getLogger(__name__)

HOLD_MESSAGE = 'The event "{name}" has been put on hold. You cannot join or leave the waiting list until it is restored.'
RELEASE_MESSAGE = 'The event "{name}" has been restored. You can now join or leave the waiting list.'
CANCELLED_MESSAGE = 'The event "{name}" has been cancelled.'
BAN_MESSAGE = "You have been banned from creating events.\n\nReason: {reason}"
BAN_WITH_HOLDS_MESSAGE = "You have been banned from creating events. Your events have been put on hold.\n\nReason: {reason}"
UNBAN_MESSAGE = "You have been unbanned from organizing events. You can now create events again."
UNBAN_WITH_RELEASES_MESSAGE = (
    "You have been unbanned from organizing events. "
    "Your events have been restored and you can now create events again."
)


def has_started(event: Event, today: date) -> bool:
    """True when the event starts today or started earlier; undated events have not started."""
    return event.start_date is not None and event.start_date <= today


class AdminService:
    def __init__(
        self,
        events: EventService,
        waitlist: WaitlistRepository,
        fanout: NotificationFanout,
        inbox: NotificationInbox,
        users: UserDirectory,
    ):
        self.events = events
        self.waitlist = waitlist
        self.fanout = fanout
        self.inbox = inbox
        self.users = users

    async def hold_event(self, event_id: str) -> Event:
        event = await self.events.set_on_hold(event_id, True)
        notified = await self.fanout.notify_everyone(event_id, HOLD_MESSAGE.format(name=event.name))
        logger.info("Held event %s; notified %d entrant(s)", event_id, notified)
        return event

    async def release_event(self, event_id: str) -> Event:
        event = await self.events.set_on_hold(event_id, False)
        notified = await self.fanout.notify_everyone(event_id, RELEASE_MESSAGE.format(name=event.name))
        logger.info("Released event %s; notified %d entrant(s)", event_id, notified)
        return event

    async def delete_event(self, event_id: str) -> int:
        """Cancel and remove an event; returns the number of entrants notified."""
        event = await self.events.require_event(event_id)
        notified = await self.fanout.notify_everyone(event_id, CANCELLED_MESSAGE.format(name=event.name))
        await self.waitlist.clear(event_id)
        purged = await self.inbox.purge_event(event_id)
        await self.events.delete_event(event_id)
        logger.info(
            "Deleted event %s: notified %d entrant(s), purged %d notification inbox(es)",
            event_id, notified, purged,
        )
        return notified

    async def ban_organizer(self, user_id: str, reason: str, today: Optional[date] = None) -> list[str]:
        """Returns the ids of the events put on hold."""
        today = today or date.today()
        held = []
        for event in await self.events.list_events(organizer_id=user_id):
            if has_started(event, today) or event.on_hold:
                continue
            await self.hold_event(event.event_id)
            held.append(event.event_id)

        await self.users.set_banned_from_organizing(user_id, True)
        template = BAN_WITH_HOLDS_MESSAGE if held else BAN_MESSAGE
        await self.fanout.notify_account(user_id, template.format(reason=reason))
        logger.info("Banned organizer %s; held %d event(s)", user_id, len(held))
        return held

    async def unban_organizer(self, user_id: str) -> list[str]:
        """Returns the ids of the events released from hold."""
        released = []
        for event in await self.events.list_events(organizer_id=user_id):
            if not event.on_hold:
                continue
            await self.release_event(event.event_id)
            released.append(event.event_id)

        await self.users.set_banned_from_organizing(user_id, False)
        await self.fanout.notify_account(user_id, UNBAN_WITH_RELEASES_MESSAGE if released else UNBAN_MESSAGE)
        logger.info("Unbanned organizer %s; released %d event(s)", user_id, len(released))
        return released
