"""In-process Store adapter backed by a nested dict."""
import asyncio
import copy
from typing import Any, Optional

from eventpool.store.base import Snapshot, Store, join_path, split_path


class MemoryStore(Store):
    """Store adapter for tests, demos and single-process deployments."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        super().__init__()
        self._root: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = asyncio.Lock()

    async def get(self, path: str) -> Snapshot:
        segments = split_path(path)
        async with self._lock:
            node: Any = self._root
            for segment in segments:
                if not isinstance(node, dict) or segment not in node:
                    return Snapshot(key=segments[-1], value=None)
                node = node[segment]
            return Snapshot(key=segments[-1] if segments else None, value=copy.deepcopy(node))

    async def _write(self, path: str, value: Any) -> None:
        async with self._lock:
            self._put(split_path(path), value)

    async def _write_many(self, path: str, fields: dict[str, Any]) -> None:
        async with self._lock:
            for key, value in fields.items():
                self._put(split_path(join_path(path, key)), value)

    def _put(self, segments: list[str], value: Any) -> None:
        if not segments:
            self._root = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        if isinstance(value, dict) and not value:
            value = None

        parents = [self._root]
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[segment] = child
            node = child
            parents.append(node)

        if value is None:
            node.pop(segments[-1], None)
            # Prune parents left empty by the removal
            for depth in range(len(segments) - 1, 0, -1):
                if parents[depth]:
                    break
                parents[depth - 1].pop(segments[depth - 1], None)
        else:
            node[segments[-1]] = copy.deepcopy(value)
