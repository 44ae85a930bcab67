"""EventPool — the core's public surface, wiring store, notifier and services.

The HTTP routers call into one shared instance obtained from ``get_pool``;
library users build their own with ``EventPool(store)``.
"""
import logging
import random
from datetime import date
from typing import Any, Callable, Optional

from eventpool.config import settings
from eventpool.database import SessionLocal
from eventpool.models.entrant import EntrantStatus, NotificationType
from eventpool.schemas.event import Event, EventCreate, EventUpdate
from eventpool.schemas.notification import Notification
from eventpool.schemas.waitlist import BucketCounts, Entrant, LotteryResult, RepairAction
from eventpool.services.admin_service import AdminService
from eventpool.services.admission import AdmissionGateway
from eventpool.services.event_service import EventService
from eventpool.services.lottery import LotteryEngine
from eventpool.services.notification_service import (
    NotificationFanout,
    NotificationInbox,
    Notifier,
    StoreNotifier,
)
from eventpool.services.state_machine import EntrantStateMachine
from eventpool.services.user_service import UserDirectory
from eventpool.services.waitlist_repository import WaitlistRepository
from eventpool.store.base import Store, Subscription
from eventpool.store.memory import MemoryStore
from eventpool.store.retry import RetryPolicy
from eventpool.store.sql import SqlStore

logger = logging.getLogger(__name__)


class EventPool:
    def __init__(
        self,
        store: Store,
        notifier: Optional[Notifier] = None,
        rng: Optional[random.Random] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        retry = retry or RetryPolicy.from_settings()
        if rng is None and settings.LOTTERY_SEED is not None:
            rng = random.Random(settings.LOTTERY_SEED)

        self.store = store
        self.notifier = notifier or StoreNotifier(store, retry)
        self.users = UserDirectory(store, retry)
        self.events = EventService(store, self.users, retry)
        self.waitlist = WaitlistRepository(store, retry)
        self.inbox = NotificationInbox(store, retry)
        self.fanout = NotificationFanout(self.notifier, self.waitlist)
        self.machine = EntrantStateMachine(self.waitlist, self.fanout)
        self.gateway = AdmissionGateway(self.events, self.machine)
        self.lottery = LotteryEngine(self.waitlist, self.machine, rng)
        self.admin = AdminService(self.events, self.waitlist, self.fanout, self.inbox, self.users)

    # --- entrant operations ---

    async def join(
        self,
        event_id: str,
        user_id: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Entrant:
        return await self.gateway.join(event_id, user_id, latitude, longitude)

    async def leave(self, event_id: str, user_id: str) -> None:
        await self.gateway.leave(event_id, user_id)

    async def accept(self, event_id: str, user_id: str) -> Entrant:
        return await self.gateway.accept(event_id, user_id)

    async def decline(self, event_id: str, user_id: str) -> Entrant:
        return await self.gateway.decline(event_id, user_id)

    async def rejoin(self, event_id: str, user_id: str) -> Entrant:
        return await self.gateway.rejoin(event_id, user_id)

    # --- organizer operations ---

    async def run_lottery(self, event_id: str) -> LotteryResult:
        event = await self.events.require_available(event_id)
        return await self.lottery.run(event)

    async def cancel_entrant(self, event_id: str, user_id: str) -> Entrant:
        event = await self.events.require_available(event_id)
        return await self.machine.apply(event, user_id, "cancel")

    async def uninvite(self, event_id: str, user_id: str) -> Entrant:
        event = await self.events.require_available(event_id)
        return await self.machine.apply(event, user_id, "uninvite")

    async def broadcast(
        self,
        event_id: str,
        status: EntrantStatus,
        message: str,
        type: Optional[NotificationType] = None,
    ) -> int:
        await self.events.require_event(event_id)
        return await self.fanout.broadcast(event_id, status, message, type)

    async def get_bucket_counts(self, event_id: str) -> BucketCounts:
        return await self.waitlist.counts(event_id)

    async def waiting_count(self, event_id: str) -> int:
        return (await self.waitlist.counts(event_id)).waiting

    async def list_bucket(self, event_id: str, status: EntrantStatus) -> list[Entrant]:
        return await self.waitlist.members(event_id, status)

    async def get_entrant_status(self, event_id: str, user_id: str) -> Optional[EntrantStatus]:
        current = await self.waitlist.current(event_id, user_id)
        return current.status if current else None

    async def watch_bucket(
        self,
        event_id: str,
        status: EntrantStatus,
        on_change: Callable[[list[str]], Any],
    ) -> Subscription:
        return await self.waitlist.watch(event_id, status, on_change)

    async def unwatch(self, subscription: Subscription) -> None:
        await self.waitlist.unwatch(subscription)

    async def repair(self, event_id: str) -> list[RepairAction]:
        return await self.waitlist.repair(event_id)

    # --- events ---

    async def create_event(self, payload: EventCreate) -> Event:
        return await self.events.create_event(payload)

    async def update_event(self, event_id: str, payload: EventUpdate) -> Event:
        return await self.events.update_event(event_id, payload)

    async def get_event(self, event_id: str) -> Event:
        return await self.events.require_event(event_id)

    async def list_events(self, organizer_id: Optional[str] = None) -> list[Event]:
        return await self.events.list_events(organizer_id)

    # --- admin ---

    async def hold_event(self, event_id: str) -> Event:
        return await self.admin.hold_event(event_id)

    async def release_event(self, event_id: str) -> Event:
        return await self.admin.release_event(event_id)

    async def delete_event(self, event_id: str) -> int:
        return await self.admin.delete_event(event_id)

    async def ban_organizer(self, user_id: str, reason: str = "", today: Optional[date] = None) -> list[str]:
        return await self.admin.ban_organizer(user_id, reason, today)

    async def unban_organizer(self, user_id: str) -> list[str]:
        return await self.admin.unban_organizer(user_id)

    # --- notifications ---

    async def list_notifications(self, user_id: str) -> list[Notification]:
        return await self.inbox.for_user(user_id)

    async def dismiss_notification(self, user_id: str, event_id: str, type: NotificationType) -> None:
        await self.inbox.dismiss(user_id, event_id, type)


def build_store() -> Store:
    if settings.STORE_BACKEND == "sql":
        return SqlStore(SessionLocal)
    if settings.STORE_BACKEND != "memory":
        raise ValueError(f"Unknown STORE_BACKEND {settings.STORE_BACKEND!r}")
    return MemoryStore()


_pool: Optional[EventPool] = None


def get_pool() -> EventPool:
    """FastAPI dependency returning the process-wide EventPool."""
    global _pool
    if _pool is None:
        _pool = EventPool(build_store())
        logger.info("Initialised EventPool with %s store", settings.STORE_BACKEND)
    return _pool
