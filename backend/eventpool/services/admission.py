"""Admission gateway — event-level checks before any entrant transition.

Every call re-reads the event: a missing or on-hold event is refused with
EventUnavailableError before any bucket is touched.
"""
import logging
from typing import Optional

from eventpool.errors import GeolocationRequiredError, InvalidGeolocationError
from eventpool.schemas.waitlist import Entrant
from eventpool.services.event_service import EventService
from eventpool.services.state_machine import EntrantStateMachine

logger = logging.getLogger(__name__)


def validate_geolocation(latitude: Optional[float], longitude: Optional[float]) -> None:
    """Reject coordinates out of range and the (0, 0) placeholder devices report."""
    if latitude is None or longitude is None:
        raise GeolocationRequiredError("This event requires your location to join")
    if latitude == 0.0 and longitude == 0.0:
        raise InvalidGeolocationError("Location (0, 0) is not a valid fix")
    if not (-90.0 <= latitude <= 90.0) or not (-180.0 <= longitude <= 180.0):
        raise InvalidGeolocationError(f"Location ({latitude}, {longitude}) is out of range")


class AdmissionGateway:
    def __init__(self, events: EventService, machine: EntrantStateMachine):
        self.events = events
        self.machine = machine

    async def join(
        self,
        event_id: str,
        user_id: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Entrant:
        event = await self.events.require_available(event_id)
        if event.geolocation_required or (latitude is not None and longitude is not None):
            validate_geolocation(latitude, longitude)
        else:
            latitude = longitude = None
        return await self.machine.join(event, user_id, latitude, longitude)

    async def leave(self, event_id: str, user_id: str) -> None:
        event = await self.events.require_available(event_id)
        await self.machine.leave(event, user_id)

    async def accept(self, event_id: str, user_id: str) -> Entrant:
        event = await self.events.require_available(event_id)
        return await self.machine.apply(event, user_id, "accept")

    async def decline(self, event_id: str, user_id: str) -> Entrant:
        event = await self.events.require_available(event_id)
        return await self.machine.apply(event, user_id, "decline")

    async def rejoin(self, event_id: str, user_id: str) -> Entrant:
        event = await self.events.require_available(event_id)
        return await self.machine.apply(event, user_id, "rejoin")
