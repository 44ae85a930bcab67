"""Pytest fixtures — fresh stores and pools per test, API client over an in-memory store."""
import random
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from eventpool.database import Base
from eventpool.errors import StoreUnavailableError
from eventpool.main import app
from eventpool.models.entrant import NotificationType
from eventpool.schemas.event import Event, EventCreate
from eventpool.schemas.notification import Notification
from eventpool.services.notification_service import Notifier
from eventpool.services.pool import EventPool, get_pool
from eventpool.store.base import Snapshot, Store
from eventpool.store.memory import MemoryStore
from eventpool.store.retry import RetryPolicy
from eventpool.store.sql import SqlStore

# Import all models so they register with Base.metadata
from eventpool.models.store_node import StoreNode  # noqa: F401

# Retries without sleeping
NO_WAIT = RetryPolicy(attempts=3, backoff_seconds=0, max_backoff_seconds=0)


class RecordingNotifier(Notifier):
    """Keeps every notification in memory.

    Sending to a recipient in ``fail_for`` raises ``fail_with``.
    """

    def __init__(self):
        self.sent: list[Notification] = []
        self.acknowledged: list[tuple[str, str, str]] = []
        self.fail_for: set[str] = set()
        self.fail_with: type[Exception] = StoreUnavailableError

    async def send(self, recipient_id: str, event_id: str, type: NotificationType, message: str) -> None:
        if recipient_id in self.fail_for:
            raise self.fail_with(f"cannot reach {recipient_id}")
        self.sent.append(Notification(recipient_id=recipient_id, event_id=event_id, type=type, message=message))

    async def acknowledge(self, recipient_id: str, event_id: str, message: str) -> None:
        self.acknowledged.append((recipient_id, event_id, message))

    def to(self, recipient_id: str) -> list[Notification]:
        return [n for n in self.sent if n.recipient_id == recipient_id]


class FlakyStore(Store):
    """Wraps a store and fails chosen operations with StoreUnavailableError.

    ``fail("remove", "/WAITING/u1", times=-1)`` fails every removal whose path
    contains the fragment; a positive ``times`` fails that many calls only.
    """

    def __init__(self, inner: Store):
        super().__init__()
        self.inner = inner
        self.rules: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str]] = []

    def fail(self, op: str, fragment: str = "", times: int = 1) -> None:
        self.rules.append({"op": op, "fragment": fragment, "times": times})

    def _check(self, op: str, path: str) -> None:
        self.calls.append((op, path))
        for rule in self.rules:
            if rule["op"] == op and rule["fragment"] in path and rule["times"] != 0:
                rule["times"] -= 1
                raise StoreUnavailableError(f"injected {op} failure on {path}")

    async def get(self, path: str) -> Snapshot:
        self._check("get", path)
        return await self.inner.get(path)

    async def _write(self, path: str, value: Any) -> None:
        self._check("remove" if value is None else "set", path)
        await self.inner._write(path, value)

    async def _write_many(self, path: str, fields: dict[str, Any]) -> None:
        self._check("update", path)
        await self.inner._write_many(path, fields)


@pytest.fixture(scope="function")
def store():
    return MemoryStore()


@pytest.fixture(scope="function")
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def pool(store, notifier):
    """EventPool over a memory store with a recording notifier and a seeded draw."""
    return EventPool(store, notifier=notifier, rng=random.Random(1234), retry=NO_WAIT)


@pytest.fixture(scope="function")
def sql_store(tmp_path):
    """SqlStore on a throwaway SQLite file."""
    engine = create_engine(f"sqlite:///{tmp_path / 'store.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield SqlStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def any_pool(request, notifier):
    """EventPool over each store backend; SqlStore calls really interleave."""
    store = MemoryStore() if request.param == "memory" else request.getfixturevalue("sql_store")
    return EventPool(store, notifier=notifier, rng=random.Random(1234), retry=NO_WAIT)


@pytest.fixture(scope="function")
def api_pool():
    return EventPool(MemoryStore(), rng=random.Random(99), retry=NO_WAIT)


@pytest.fixture(scope="function")
def client(api_pool):
    """FastAPI TestClient with the pool dependency overridden to a fresh memory store."""
    app.dependency_overrides[get_pool] = lambda: api_pool
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
async def make_event(
    pool: EventPool,
    name: str = "Pottery Night",
    limit: Optional[int] = 2,
    organizer_id: str = "org-1",
    **fields: Any,
) -> Event:
    """Helper — create an event through the pool and return it."""
    return await pool.create_event(EventCreate(organizer_id=organizer_id, name=name, entrant_limit=limit, **fields))


async def join_all(pool: EventPool, event_id: str, user_ids: list[str]) -> None:
    for user_id in user_ids:
        await pool.join(event_id, user_id)


def create_test_event(client: TestClient, name: str = "Pottery Night", limit: Optional[int] = 2, **fields) -> dict:
    """Helper — POST /api/events and return response JSON."""
    resp = client.post("/api/events/", json={
        "organizer_id": fields.pop("organizer_id", "org-1"),
        "name": name,
        "entrant_limit": limit,
        **fields,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()
