"""Notification fanout, the Notifier contract and the recipient inbox.

Records live under Notification/<user>/<event>/<TYPE>/<push_key> = {"message": ...}.
Delivery is at-least-once: a duplicate simply becomes a second record in the
same (user, event, type) group, and dismissing the group removes them all.
"""
import abc
import logging
from typing import Optional

from eventpool.errors import StoreUnavailableError
from eventpool.models.entrant import EntrantStatus, NotificationType
from eventpool.schemas.notification import Notification
from eventpool.services.waitlist_repository import WaitlistRepository
from eventpool.store.base import Store, join_path
from eventpool.store.retry import RetryPolicy

logger = logging.getLogger(__name__)

NOTIFICATION_ROOT = "Notification"
SYSTEM_CHANNEL = "SYSTEM"  # event id used for account-level notices


class Notifier(abc.ABC):
    """Fire-and-forget delivery of one message to one user."""

    @abc.abstractmethod
    async def send(self, recipient_id: str, event_id: str, type: NotificationType, message: str) -> None:
        """Deliver and persist a notification."""

    async def acknowledge(self, recipient_id: str, event_id: str, message: str) -> None:
        """Transient confirmation that leaves no notification record."""
        logger.info("Confirmation to %s for event %s: %s", recipient_id, event_id, message)


class StoreNotifier(Notifier):
    """Notifier that writes each notification into the store."""

    def __init__(self, store: Store, retry: Optional[RetryPolicy] = None):
        self.store = store
        self.retry = retry or RetryPolicy.from_settings()

    async def send(self, recipient_id: str, event_id: str, type: NotificationType, message: str) -> None:
        group = join_path(NOTIFICATION_ROOT, recipient_id, event_id, type.value)
        key = await self.store.push_key(group)
        await self.retry.call(self.store.set, join_path(group, key), {"message": message})
        logger.debug("Stored %s notification %s for %s", type.value, key, recipient_id)


class NotificationInbox:
    """Recipient-side reads and dismissals of stored notifications."""

    def __init__(self, store: Store, retry: Optional[RetryPolicy] = None):
        self.store = store
        self.retry = retry or RetryPolicy.from_settings()

    async def for_user(self, user_id: str) -> list[Notification]:
        snapshot = await self.retry.call(self.store.get, join_path(NOTIFICATION_ROOT, user_id))
        notifications = []
        for event_node in snapshot.children():
            for type_node in event_node.children():
                try:
                    ntype = NotificationType(type_node.key)
                except ValueError:
                    logger.warning("Skipping unknown notification type %s for %s", type_node.key, user_id)
                    continue
                for record in type_node.children():
                    value = record.value if isinstance(record.value, dict) else {}
                    notifications.append(Notification(
                        recipient_id=user_id,
                        event_id=event_node.key,
                        type=ntype,
                        message=str(value.get("message", "")),
                        key=record.key,
                    ))
        return notifications

    async def dismiss(self, user_id: str, event_id: str, type: NotificationType) -> None:
        """Delete every notification in the (user, event, type) group."""
        await self.retry.call(self.store.remove, join_path(NOTIFICATION_ROOT, user_id, event_id, type.value))
        logger.info("Dismissed %s notifications for %s on event %s", type.value, user_id, event_id)

    async def purge_event(self, event_id: str) -> int:
        """Remove the event's notification subtree from every user's inbox."""
        root = await self.retry.call(self.store.get, NOTIFICATION_ROOT)
        purged = 0
        for user_node in root.children():
            if user_node.has_child(event_id):
                await self.retry.call(self.store.remove, join_path(NOTIFICATION_ROOT, user_node.key, event_id))
                purged += 1
        return purged


class NotificationFanout:
    """Turns transitions and organizer broadcasts into one notification per recipient."""

    def __init__(self, notifier: Notifier, waitlist: WaitlistRepository):
        self.notifier = notifier
        self.waitlist = waitlist

    async def notify(self, recipient_id: str, event_id: str, type: NotificationType, message: str) -> bool:
        """Send one notification; a failed delivery is logged, never raised."""
        try:
            await self.notifier.send(recipient_id, event_id, type, message)
        except StoreUnavailableError as exc:
            logger.error("Notification %s to %s for event %s not delivered: %s", type.value, recipient_id, event_id, exc)
            return False
        except Exception:
            logger.exception("Notifier failed sending %s to %s for event %s", type.value, recipient_id, event_id)
            return False
        return True

    async def transition(self, event_id: str, user_id: str, status: EntrantStatus, message: str) -> bool:
        return await self.notify(user_id, event_id, NotificationType.for_status(status), message)

    async def confirm(self, event_id: str, user_id: str, message: str) -> None:
        try:
            await self.notifier.acknowledge(user_id, event_id, message)
        except Exception:
            logger.exception("Notifier failed confirming to %s for event %s", user_id, event_id)

    async def broadcast(
        self,
        event_id: str,
        status: EntrantStatus,
        message: str,
        type: Optional[NotificationType] = None,
    ) -> int:
        """Message every current member of one bucket; membership is not touched."""
        type = type or NotificationType.for_status(status)
        members = await self.waitlist.members(event_id, status)
        for entrant in members:
            await self.notify(entrant.user_id, event_id, type, message)
        logger.info("Broadcast %s to %d member(s) of %s for event %s", type.value, len(members), status.value, event_id)
        return len(members)

    async def notify_everyone(self, event_id: str, message: str) -> int:
        """SYSTEM notice to every entrant in any bucket of the event."""
        user_ids = await self.waitlist.all_user_ids(event_id)
        for user_id in user_ids:
            await self.notify(user_id, event_id, NotificationType.system, message)
        return len(user_ids)

    async def notify_account(self, user_id: str, message: str) -> bool:
        return await self.notify(user_id, SYSTEM_CHANNEL, NotificationType.system, message)
