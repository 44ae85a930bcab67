"""SQL Store adapter — the key/value tree flattened into one table of leaves.

Each leaf lives in ``store_nodes`` under its full path; a subtree read is a
path-prefix query that is folded back into nested dicts. Session work is
blocking, so it runs in a worker thread.
"""
import asyncio
import logging
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from eventpool.errors import StoreUnavailableError
from eventpool.models.store_node import StoreNode
from eventpool.store.base import Snapshot, Store, join_path, split_path

logger = logging.getLogger(__name__)


def _flatten(path: str, value: Any) -> dict[str, Any]:
    """Map a (possibly nested) value to {leaf_path: leaf_value}."""
    if not isinstance(value, dict):
        return {path: value}
    leaves: dict[str, Any] = {}
    for key, child in value.items():
        if child is None:
            continue
        leaves.update(_flatten(join_path(path, key), child))
    return leaves


def _unflatten(path: str, rows: list[tuple[str, Any]]) -> Any:
    if not rows:
        return None
    prefix = split_path(path)
    tree: dict[str, Any] = {}
    for leaf_path, value in rows:
        segments = split_path(leaf_path)[len(prefix):]
        if not segments:
            return value
        node = tree
        for segment in segments[:-1]:
            node = node.setdefault(segment, {})
        node[segments[-1]] = value
    return tree


class SqlStore(Store):
    """Store adapter persisting through SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker) -> None:
        super().__init__()
        self._session_factory = session_factory
        # Serialises writers so a set never interleaves with another's delete/insert
        self._write_lock = asyncio.Lock()

    async def get(self, path: str) -> Snapshot:
        segments = split_path(path)
        rows = await self._run(self._read_rows, "/".join(segments))
        return Snapshot(key=segments[-1] if segments else None, value=_unflatten(path, rows))

    async def _write(self, path: str, value: Any) -> None:
        async with self._write_lock:
            await self._run(self._replace, {join_path(path): value})

    async def _write_many(self, path: str, fields: dict[str, Any]) -> None:
        async with self._write_lock:
            await self._run(self._replace, {join_path(path, key): value for key, value in fields.items()})

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except SQLAlchemyError as exc:
            logger.warning("Store operation %s failed: %s", func.__name__, exc)
            raise StoreUnavailableError(f"Store operation failed: {exc}") from exc

    # --- blocking helpers, executed in a worker thread ---

    @staticmethod
    def _subtree_filter(path: str):
        if not path:
            return StoreNode.path.isnot(None)
        return or_(StoreNode.path == path, StoreNode.path.like(f"{path}/%"))

    def _read_rows(self, path: str) -> list[tuple[str, Any]]:
        with self._session_factory() as session:
            rows = session.query(StoreNode.path, StoreNode.value).filter(self._subtree_filter(path)).all()
        # LIKE treats "_" as a wildcard, so re-check the prefix exactly
        return sorted(
            (p, v) for p, v in rows
            if not path or p == path or p.startswith(path + "/")
        )

    def _replace(self, writes: dict[str, Any]) -> None:
        with self._session_factory() as session:
            for path, value in writes.items():
                self._clear(session, path)
                for leaf_path, leaf_value in _flatten(path, value).items():
                    if leaf_value is None or leaf_value == {}:
                        continue
                    session.add(StoreNode(path=leaf_path, value=leaf_value))
                session.flush()
            session.commit()

    def _clear(self, session: Session, path: str) -> None:
        """Drop the subtree at ``path`` and any leaf stored on one of its ancestors."""
        segments = split_path(path)
        ancestors = ["/".join(segments[:i]) for i in range(1, len(segments))]
        if ancestors:
            session.query(StoreNode).filter(StoreNode.path.in_(ancestors)).delete(synchronize_session=False)
        stale = [
            node for node in session.query(StoreNode).filter(self._subtree_filter(path)).all()
            if not path or node.path == path or node.path.startswith(path + "/")
        ]
        for node in stale:
            session.delete(node)
        session.flush()
