"""Store contract — path-scoped key/value tree consumed by the core.

Paths are slash-separated ("WaitingList/<event>/WAITING/<user>"). A node
that holds a dict is a subtree; anything else is a leaf. Empty subtrees do
not exist: removing the last child of a node removes the node as well.

Every operation is a coroutine. Adapters raise StoreUnavailableError for
transient I/O failures and nothing else; retrying is the caller's job.
"""
import abc
import copy
import itertools
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

logger = logging.getLogger(__name__)

FORBIDDEN_KEY_CHARS = set(".#$[]")

_push_counter = itertools.count()


def split_path(path: str) -> list[str]:
    """Split a path into validated segments."""
    segments = [s for s in path.strip("/").split("/") if s]
    for segment in segments:
        if FORBIDDEN_KEY_CHARS & set(segment):
            raise ValueError(f"Invalid key {segment!r} in path {path!r}")
    return segments


def join_path(*parts: str) -> str:
    return "/".join(s for part in parts for s in split_path(str(part)))


def is_related(a: str, b: str) -> bool:
    """True when one path is equal to, an ancestor of, or a descendant of the other."""
    sa, sb = split_path(a), split_path(b)
    n = min(len(sa), len(sb))
    return sa[:n] == sb[:n]


def generate_push_key() -> str:
    """Chronologically sortable unique child key."""
    millis = int(time.time() * 1000)
    seq = next(_push_counter) % 0x10000
    return f"{millis:012x}{seq:04x}{secrets.token_hex(4)}"


@dataclass
class Snapshot:
    """Immutable view of one node and everything beneath it."""

    key: Optional[str]
    value: Any = None

    @property
    def exists(self) -> bool:
        return self.value is not None

    def child(self, key: str) -> "Snapshot":
        node = self.value
        for segment in split_path(key):
            if not isinstance(node, dict) or segment not in node:
                return Snapshot(key=segment, value=None)
            node = node[segment]
        return Snapshot(key=split_path(key)[-1], value=copy.deepcopy(node))

    def has_child(self, key: str) -> bool:
        return self.child(key).exists

    def children(self) -> Iterator["Snapshot"]:
        if not isinstance(self.value, dict):
            return
        for key in sorted(self.value):
            yield Snapshot(key=key, value=copy.deepcopy(self.value[key]))

    def keys(self) -> list[str]:
        return sorted(self.value) if isinstance(self.value, dict) else []

    def __len__(self) -> int:
        return len(self.value) if isinstance(self.value, dict) else 0


@dataclass
class Subscription:
    """Handle returned by Store.subscribe; pass it to Store.unsubscribe."""

    path: str
    on_change: Callable[[Snapshot], Any]
    handle_id: str = field(default_factory=generate_push_key)


class Store(abc.ABC):
    """Abstract path-scoped store with change subscriptions."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    @abc.abstractmethod
    async def get(self, path: str) -> Snapshot:
        """Return a snapshot of the node at ``path``."""

    @abc.abstractmethod
    async def _write(self, path: str, value: Any) -> None:
        """Replace the node at ``path`` (``None`` removes it)."""

    @abc.abstractmethod
    async def _write_many(self, path: str, fields: dict[str, Any]) -> None:
        """Replace several children of ``path`` in one call."""

    async def set(self, path: str, value: Any) -> None:
        await self._write(path, value)
        await self._publish(path)

    async def update(self, path: str, fields: dict[str, Any]) -> None:
        """Write each child in ``fields`` under ``path``; other children are kept."""
        if not fields:
            return
        await self._write_many(path, fields)
        await self._publish(path)

    async def remove(self, path: str) -> None:
        await self._write(path, None)
        await self._publish(path)

    async def push_key(self, path: str) -> str:
        split_path(path)
        return generate_push_key()

    async def subscribe(self, path: str, on_change: Callable[[Snapshot], Any]) -> Subscription:
        """Register ``on_change``; it receives the full subtree now and after every change."""
        subscription = Subscription(path=join_path(path), on_change=on_change)
        self._subscriptions[subscription.handle_id] = subscription
        self._deliver(subscription, await self.get(subscription.path))
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.pop(subscription.handle_id, None)

    async def _publish(self, path: str) -> None:
        for subscription in list(self._subscriptions.values()):
            if is_related(subscription.path, path):
                self._deliver(subscription, await self.get(subscription.path))

    def _deliver(self, subscription: Subscription, snapshot: Snapshot) -> None:
        try:
            subscription.on_change(snapshot)
        except Exception:
            logger.exception("Subscriber on %s failed", subscription.path)
