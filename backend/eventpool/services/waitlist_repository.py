"""Waitlist repository — six disjoint entrant buckets per event.

Layout: WaitingList/<event_id>/<STATUS>/<user_id> = {"since": ms, "latitude"?, "longitude"?}

The store has no cross-path transactions, so a move is two writes. The
destination is written first and the source removed second; a failure
between them is compensated by removing the destination again, so a failed
move leaves the entrant exactly where it was. If even the compensation
fails the entrant is left in two buckets, which ``repair`` resolves in
favour of the newest membership.

Check-then-write sequences for one entrant are serialised in-process by
``lock(event_id, user_id)``; entrants never wait on each other.
"""
import asyncio
import logging
import time
import weakref
from typing import Any, Callable, Optional

from eventpool.errors import NotFoundError, StoreUnavailableError
from eventpool.models.entrant import BUCKET_ORDER, EntrantStatus
from eventpool.schemas.waitlist import BucketCounts, Entrant, RepairAction
from eventpool.store.base import Snapshot, Store, Subscription, join_path
from eventpool.store.retry import RetryPolicy

logger = logging.getLogger(__name__)

WAITLIST_ROOT = "WaitingList"

_last_stamp = 0


def _stamp() -> int:
    """Strictly increasing epoch-millisecond stamp for this process."""
    global _last_stamp
    _last_stamp = max(int(time.time() * 1000), _last_stamp + 1)
    return _last_stamp


def _entrant(event_id: str, status: EntrantStatus, user_id: str, record: Any) -> Entrant:
    record = record if isinstance(record, dict) else {}
    return Entrant(
        user_id=user_id,
        event_id=event_id,
        status=status,
        since=int(record.get("since", 0)),
        latitude=record.get("latitude"),
        longitude=record.get("longitude"),
    )


class WaitlistRepository:
    """Bucket reads and single-entrant moves against the store."""

    def __init__(self, store: Store, retry: Optional[RetryPolicy] = None):
        self.store = store
        self.retry = retry or RetryPolicy.from_settings()
        self._locks: "weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]" = weakref.WeakValueDictionary()

    @staticmethod
    def event_path(event_id: str) -> str:
        return join_path(WAITLIST_ROOT, event_id)

    @classmethod
    def bucket_path(cls, event_id: str, status: EntrantStatus) -> str:
        return join_path(cls.event_path(event_id), status.value)

    @classmethod
    def entrant_path(cls, event_id: str, status: EntrantStatus, user_id: str) -> str:
        return join_path(cls.bucket_path(event_id, status), user_id)

    def lock(self, event_id: str, user_id: str) -> asyncio.Lock:
        """Lock guarding one entrant's bucket membership. Not reentrant."""
        key = (event_id, user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    # --- reads ---

    async def read_buckets(self, event_id: str) -> dict[EntrantStatus, list[Entrant]]:
        """Fresh read of all six buckets."""
        snapshot = await self.retry.call(self.store.get, self.event_path(event_id))
        return self._buckets_from(event_id, snapshot)

    def _buckets_from(self, event_id: str, snapshot: Snapshot) -> dict[EntrantStatus, list[Entrant]]:
        buckets: dict[EntrantStatus, list[Entrant]] = {status: [] for status in BUCKET_ORDER}
        for status in BUCKET_ORDER:
            for child in snapshot.child(status.value).children():
                buckets[status].append(_entrant(event_id, status, child.key, child.value))
        return buckets

    async def members(self, event_id: str, status: EntrantStatus) -> list[Entrant]:
        snapshot = await self.retry.call(self.store.get, self.bucket_path(event_id, status))
        return [_entrant(event_id, status, child.key, child.value) for child in snapshot.children()]

    async def counts(self, event_id: str) -> BucketCounts:
        buckets = await self.read_buckets(event_id)
        return BucketCounts(**{status.name: len(entrants) for status, entrants in buckets.items()})

    async def memberships(self, event_id: str, user_id: str) -> list[Entrant]:
        """Every bucket the user currently appears in, newest membership first."""
        buckets = await self.read_buckets(event_id)
        found = [e for entrants in buckets.values() for e in entrants if e.user_id == user_id]
        return sorted(found, key=lambda e: (e.since, BUCKET_ORDER.index(e.status)), reverse=True)

    async def current(self, event_id: str, user_id: str) -> Optional[Entrant]:
        found = await self.memberships(event_id, user_id)
        if len(found) > 1:
            logger.warning(
                "Entrant %s for event %s found in %d buckets; trusting %s",
                user_id, event_id, len(found), found[0].status.value,
            )
        return found[0] if found else None

    async def all_user_ids(self, event_id: str) -> list[str]:
        buckets = await self.read_buckets(event_id)
        seen: dict[str, None] = {}
        for status in BUCKET_ORDER:
            for entrant in buckets[status]:
                seen.setdefault(entrant.user_id, None)
        return list(seen)

    # --- writes ---

    async def insert(self, entrant: Entrant) -> Entrant:
        entrant = entrant.model_copy(update={"since": _stamp()})
        await self.retry.call(
            self.store.set,
            self.entrant_path(entrant.event_id, entrant.status, entrant.user_id),
            entrant.record(),
        )
        logger.info("Added entrant %s to %s for event %s", entrant.user_id, entrant.status.value, entrant.event_id)
        return entrant

    async def remove(self, event_id: str, user_id: str, status: EntrantStatus) -> None:
        await self.retry.call(self.store.remove, self.entrant_path(event_id, status, user_id))
        logger.info("Removed entrant %s from %s for event %s", user_id, status.value, event_id)

    async def move(self, event_id: str, user_id: str, source: EntrantStatus, target: EntrantStatus) -> Entrant:
        """Move one entrant between buckets.

        Raises NotFoundError if the entrant is not in ``source`` at call
        time, StoreUnavailableError if the move could not be applied; in the
        latter case the entrant is still in ``source`` only.
        """
        source_path = self.entrant_path(event_id, source, user_id)
        snapshot = await self.retry.call(self.store.get, source_path)
        if not snapshot.exists:
            raise NotFoundError(f"User {user_id} is not in {source.value} for event {event_id}")

        current = _entrant(event_id, source, user_id, snapshot.value)
        moved = current.model_copy(update={"status": target, "since": _stamp()})
        target_path = self.entrant_path(event_id, target, user_id)

        await self.retry.call(self.store.set, target_path, moved.record())
        try:
            await self.retry.call(self.store.remove, source_path)
        except StoreUnavailableError:
            logger.error(
                "Could not remove entrant %s from %s for event %s; rolling back %s",
                user_id, source.value, event_id, target.value,
            )
            try:
                await self.retry.call(self.store.remove, target_path)
            except StoreUnavailableError:
                logger.error(
                    "Rollback failed: entrant %s for event %s is in both %s and %s until repaired",
                    user_id, event_id, source.value, target.value,
                )
            raise

        logger.info("Moved entrant %s for event %s: %s -> %s", user_id, event_id, source.value, target.value)
        return moved

    async def clear(self, event_id: str) -> None:
        await self.retry.call(self.store.remove, self.event_path(event_id))
        logger.info("Cleared waiting list for event %s", event_id)

    async def repair(self, event_id: str) -> list[RepairAction]:
        """Remove stale memberships, keeping each entrant's most recent bucket."""
        buckets = await self.read_buckets(event_id)
        by_user: dict[str, list[Entrant]] = {}
        for entrants in buckets.values():
            for entrant in entrants:
                by_user.setdefault(entrant.user_id, []).append(entrant)

        actions = []
        for user_id, found in sorted(by_user.items()):
            if len(found) < 2:
                continue
            found.sort(key=lambda e: (e.since, BUCKET_ORDER.index(e.status)), reverse=True)
            keep, stale = found[0], found[1:]
            for entrant in stale:
                await self.remove(event_id, user_id, entrant.status)
            logger.warning(
                "Repaired entrant %s for event %s: kept %s, removed %s",
                user_id, event_id, keep.status.value, [e.status.value for e in stale],
            )
            actions.append(RepairAction(user_id=user_id, kept=keep.status, removed=[e.status for e in stale]))
        return actions

    # --- live updates ---

    async def watch(
        self,
        event_id: str,
        status: EntrantStatus,
        on_change: Callable[[list[str]], Any],
    ) -> Subscription:
        """Call ``on_change`` with the bucket's full member list now and on every change."""
        return await self.store.subscribe(
            self.bucket_path(event_id, status),
            lambda snapshot: on_change(snapshot.keys()),
        )

    async def unwatch(self, subscription: Subscription) -> None:
        await self.store.unsubscribe(subscription)
