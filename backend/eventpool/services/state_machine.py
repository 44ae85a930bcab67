"""Entrant state machine — legal bucket transitions and their notifications.

    (none)    --join-->      WAITING
    WAITING   --leave-->     (none)
    WAITING   --draw-->      INVITED
    WAITING   --cancel-->    CANCELLED
    INVITED   --accept-->    ACCEPTED
    INVITED   --decline-->   DECLINED
    INVITED   --uninvite-->  UNINVITED
    UNINVITED --rejoin-->    WAITING

ACCEPTED, DECLINED and CANCELLED are terminal. Every transition sends
exactly one notification carrying the new status; leave only sends a
transient confirmation.

The membership check and the write it guards run under the entrant's lock;
notifications are sent after it is released.
"""
import logging
from typing import NamedTuple, Optional

from eventpool.errors import DuplicateEntrantError, InvalidTransitionError, NotFoundError
from eventpool.models.entrant import EntrantStatus
from eventpool.schemas.event import Event
from eventpool.schemas.waitlist import Entrant
from eventpool.services.notification_service import NotificationFanout
from eventpool.services.waitlist_repository import WaitlistRepository

logger = logging.getLogger(__name__)


class Transition(NamedTuple):
    source: EntrantStatus
    target: EntrantStatus
    message: str


TRANSITIONS: dict[str, Transition] = {
    "draw": Transition(
        EntrantStatus.waiting, EntrantStatus.invited,
        'You have been chosen for "{name}"! Please accept or decline your invitation.',
    ),
    "cancel": Transition(
        EntrantStatus.waiting, EntrantStatus.cancelled,
        'Your entry for "{name}" has been cancelled by the organizer.',
    ),
    "accept": Transition(
        EntrantStatus.invited, EntrantStatus.accepted,
        'You accepted your invitation to "{name}".',
    ),
    "decline": Transition(
        EntrantStatus.invited, EntrantStatus.declined,
        'You declined your invitation to "{name}".',
    ),
    "uninvite": Transition(
        EntrantStatus.invited, EntrantStatus.uninvited,
        'You were not chosen for "{name}". You may rejoin the waiting list.',
    ),
    "rejoin": Transition(
        EntrantStatus.uninvited, EntrantStatus.waiting,
        'You rejoined the waiting list for "{name}".',
    ),
}

JOIN_MESSAGE = 'You joined the waiting list for "{name}".'
LEAVE_MESSAGE = 'You left the waiting list for "{name}".'


class EntrantStateMachine:
    def __init__(self, waitlist: WaitlistRepository, fanout: NotificationFanout):
        self.waitlist = waitlist
        self.fanout = fanout

    async def join(
        self,
        event: Event,
        user_id: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Entrant:
        async with self.waitlist.lock(event.event_id, user_id):
            existing = await self.waitlist.current(event.event_id, user_id)
            if existing is not None:
                raise DuplicateEntrantError(
                    f"User {user_id} is already {existing.status.value} for event {event.event_id}"
                )
            entrant = await self.waitlist.insert(Entrant(
                user_id=user_id,
                event_id=event.event_id,
                status=EntrantStatus.waiting,
                latitude=latitude,
                longitude=longitude,
            ))
        await self.fanout.transition(event.event_id, user_id, EntrantStatus.waiting, JOIN_MESSAGE.format(name=event.name))
        return entrant

    async def leave(self, event: Event, user_id: str) -> None:
        async with self.waitlist.lock(event.event_id, user_id):
            await self._expect(event, user_id, EntrantStatus.waiting, action="leave")
            await self.waitlist.remove(event.event_id, user_id, EntrantStatus.waiting)
        await self.fanout.confirm(event.event_id, user_id, LEAVE_MESSAGE.format(name=event.name))

    async def apply(self, event: Event, user_id: str, action: str) -> Entrant:
        """Validate the entrant's current bucket, then perform ``action``."""
        transition = TRANSITIONS[action]
        async with self.waitlist.lock(event.event_id, user_id):
            await self._expect(event, user_id, transition.source, action=action)
            moved = await self.waitlist.move(event.event_id, user_id, transition.source, transition.target)
        await self._announce(event, user_id, transition)
        return moved

    async def draw(self, event: Event, user_id: str) -> Entrant:
        """WAITING -> INVITED without a full-bucket pre-read; NotFoundError if already gone."""
        transition = TRANSITIONS["draw"]
        async with self.waitlist.lock(event.event_id, user_id):
            moved = await self.waitlist.move(event.event_id, user_id, transition.source, transition.target)
        await self._announce(event, user_id, transition)
        return moved

    async def _expect(self, event: Event, user_id: str, source: EntrantStatus, action: str) -> Entrant:
        current = await self.waitlist.current(event.event_id, user_id)
        if current is None:
            if action == "rejoin":
                raise InvalidTransitionError(f"User {user_id} cannot rejoin: not on any list for event {event.event_id}")
            raise NotFoundError(f"User {user_id} is not in {source.value} for event {event.event_id}")
        if current.status != source:
            raise InvalidTransitionError(
                f"Cannot {action} from {current.status.value}; user {user_id} must be {source.value}"
            )
        return current

    async def _announce(self, event: Event, user_id: str, transition: Transition) -> None:
        await self.fanout.transition(
            event.event_id, user_id, transition.target, transition.message.format(name=event.name),
        )
