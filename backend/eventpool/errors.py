"""Error taxonomy for admission, pooling and store access.

Validation errors signal a stale client view and are never retried.
StoreUnavailableError is transient and retried by whoever issued the store
call; PartialBatchFailureError reports a lottery batch that was only partly
applied.
"""
from typing import Any, Optional


class EventPoolError(Exception):
    """Base class for every error raised by the core."""

    code = "EVENTPOOL_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details}


class EventUnavailableError(EventPoolError):
    """Event is missing or on hold."""

    code = "EVENT_UNAVAILABLE"


class DuplicateEntrantError(EventPoolError):
    """User already occupies a bucket for this event."""

    code = "DUPLICATE_ENTRANT"


class NotFoundError(EventPoolError):
    """Entrant is absent from the bucket the operation expects."""

    code = "NOT_FOUND"


class GeolocationRequiredError(EventPoolError):
    code = "GEOLOCATION_REQUIRED"


class InvalidGeolocationError(EventPoolError):
    code = "INVALID_GEOLOCATION"


class InvalidTransitionError(EventPoolError):
    """Requested status change is not an edge of the entrant state machine."""

    code = "INVALID_TRANSITION"


class InvalidEventError(EventPoolError):
    code = "INVALID_EVENT"


class OrganizerBannedError(EventPoolError):
    code = "ORGANIZER_BANNED"


class StoreUnavailableError(EventPoolError):
    """Transient store I/O failure."""

    code = "STORE_UNAVAILABLE"


class PartialBatchFailureError(EventPoolError):
    """A lottery batch moved only some of the drawn entrants."""

    code = "PARTIAL_BATCH_FAILURE"

    def __init__(self, drawn: int, failed: list[str], target_remaining: int):
        super().__init__(
            f"Lottery moved {drawn} entrant(s); {len(failed)} move(s) failed after retries",
            details={"drawn": drawn, "failed": failed, "target_remaining": target_remaining},
        )
        self.drawn = drawn
        self.failed = failed
        self.target_remaining = target_remaining

