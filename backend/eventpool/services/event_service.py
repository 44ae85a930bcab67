"""Event registry — organizer-owned event records under Event/<event_id>.

Responsibilities:
- Create / edit / read events, normalising "no limit" to the unlimited sentinel
- Refuse event creation for organizers banned from organizing
- Gate entrant-facing operations: a missing or on-hold event is unavailable

``entrant_limit`` and ``on_hold`` are re-read from the store on every gate
check; nothing caches them.
"""
import logging
from typing import Any, Optional

from eventpool.config import settings
from eventpool.errors import EventUnavailableError, InvalidEventError, OrganizerBannedError
from eventpool.schemas.event import Event, EventCreate, EventUpdate
from eventpool.services.user_service import UserDirectory
from eventpool.store.base import Store, join_path
from eventpool.store.retry import RetryPolicy

logger = logging.getLogger(__name__)

EVENT_ROOT = "Event"


def _normalise_limit(limit: Optional[int]) -> int:
    if limit is None or limit <= 0:
        return settings.UNLIMITED_ENTRANTS
    return limit


class EventService:
    def __init__(self, store: Store, users: UserDirectory, retry: Optional[RetryPolicy] = None):
        self.store = store
        self.users = users
        self.retry = retry or RetryPolicy.from_settings()

    @staticmethod
    def event_path(event_id: str) -> str:
        return join_path(EVENT_ROOT, event_id)

    async def get_event(self, event_id: str) -> Optional[Event]:
        snapshot = await self.retry.call(self.store.get, self.event_path(event_id))
        if not snapshot.exists or not isinstance(snapshot.value, dict):
            return None
        return Event.model_validate({**snapshot.value, "event_id": event_id})

    async def require_event(self, event_id: str) -> Event:
        event = await self.get_event(event_id)
        if event is None:
            raise EventUnavailableError(f"Event {event_id} not found")
        return event

    async def require_available(self, event_id: str) -> Event:
        """Fresh read of the event, refusing missing and on-hold events."""
        event = await self.require_event(event_id)
        if event.on_hold:
            raise EventUnavailableError(f"Event '{event.name}' is on hold")
        return event

    async def list_events(self, organizer_id: Optional[str] = None) -> list[Event]:
        snapshot = await self.retry.call(self.store.get, EVENT_ROOT)
        events = []
        for child in snapshot.children():
            if not isinstance(child.value, dict):
                continue
            event = Event.model_validate({**child.value, "event_id": child.key})
            if organizer_id is None or event.organizer_id == organizer_id:
                events.append(event)
        return events

    async def create_event(self, payload: EventCreate) -> Event:
        if await self.users.is_banned_from_organizing(payload.organizer_id):
            raise OrganizerBannedError(f"User {payload.organizer_id} is banned from creating events")

        event_id = await self.store.push_key(EVENT_ROOT)
        event = Event(
            event_id=event_id,
            **payload.model_dump(exclude={"entrant_limit"}),
            entrant_limit=_normalise_limit(payload.entrant_limit),
        )
        await self._save(event)
        logger.info("Created event '%s' (%s) by organizer %s", event.name, event_id, event.organizer_id)
        return event

    async def update_event(self, event_id: str, payload: EventUpdate) -> Event:
        event = await self.require_event(event_id)
        updates: dict[str, Any] = {
            field: value for field, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or field == "entrant_limit"
        }
        if "entrant_limit" in updates:
            updates["entrant_limit"] = _normalise_limit(updates["entrant_limit"])
        updated = Event.model_validate({**event.model_dump(), **updates})
        if updated.start_date and updated.end_date and updated.end_date < updated.start_date:
            raise InvalidEventError("end_date must not precede start_date")
        if (updated.registration_start and updated.registration_end
                and updated.registration_end < updated.registration_start):
            raise InvalidEventError("registration_end must not precede registration_start")
        await self._save(updated)
        logger.info("Updated event %s fields %s", event_id, sorted(updates))
        return updated

    async def set_on_hold(self, event_id: str, on_hold: bool) -> Event:
        event = await self.require_event(event_id)
        await self.retry.call(self.store.update, self.event_path(event_id), {"on_hold": on_hold})
        logger.info("Event %s on_hold=%s", event_id, on_hold)
        return event.model_copy(update={"on_hold": on_hold})

    async def delete_event(self, event_id: str) -> None:
        await self.retry.call(self.store.remove, self.event_path(event_id))
        logger.info("Deleted event record %s", event_id)

    async def _save(self, event: Event) -> None:
        record = event.model_dump(mode="json", exclude={"event_id"}, exclude_none=True)
        await self.retry.call(self.store.set, self.event_path(event.event_id), record)
