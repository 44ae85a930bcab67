"""Entrant status and notification type enums."""
import enum


class EntrantStatus(str, enum.Enum):
    waiting = "WAITING"
    invited = "INVITED"
    uninvited = "UNINVITED"
    accepted = "ACCEPTED"
    declined = "DECLINED"
    cancelled = "CANCELLED"


class NotificationType(str, enum.Enum):
    waiting = "WAITING"
    invited = "INVITED"
    uninvited = "UNINVITED"
    accepted = "ACCEPTED"
    declined = "DECLINED"
    cancelled = "CANCELLED"
    system = "SYSTEM"

    @classmethod
    def for_status(cls, status: EntrantStatus) -> "NotificationType":
        return cls(status.value)


# Bucket precedence used when reconciling an entrant found in several buckets.
BUCKET_ORDER = (
    EntrantStatus.waiting,
    EntrantStatus.invited,
    EntrantStatus.uninvited,
    EntrantStatus.declined,
    EntrantStatus.accepted,
    EntrantStatus.cancelled,
)

TERMINAL_STATUSES = frozenset({
    EntrantStatus.accepted,
    EntrantStatus.declined,
    EntrantStatus.cancelled,
})
