"""In-memory key-value store with Firebase-like path semantics (MVP/tests).

Notes:
- Per-process only.
- Thread-safe: uses a lock around the tree.
- Documents are deep-copied on the way in and out, so callers never share
  mutable state with the store.
"""

from __future__ import annotations

import copy
import hashlib
import json
import threading
from typing import Any

from app.adapters.store.base import AbstractKeyValueStore, Document, split_path


def compute_etag(document: Document | None) -> str:
    """Version tag derived from the document content (stable across processes)."""
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Nested dict tree addressed by slash-separated paths.

    Writing a child path creates the intermediate nodes; deleting the last
    child of a node removes the node, mirroring how the Realtime Database
    never stores empty objects.
    """

    supports_conditional_writes = True

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._lock = threading.RLock()
        self._root: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def _read_locked(self, path: str) -> Document | None:
        node: Any = self._root
        for segment in split_path(path):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return copy.deepcopy(node)

    def _write_locked(self, path: str, document: Document | None) -> None:
        segments = split_path(path)
        if document is None or document == {}:
            self._delete_locked(segments)
            return

        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = copy.deepcopy(document)

    def _delete_locked(self, segments: list[str]) -> None:
        trail: list[tuple[dict[str, Any], str]] = []
        node: Any = self._root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return
            trail.append((node, segment))
            node = node[segment]

        parent, key = trail.pop()
        del parent[key]
        # Prune parents left empty
        while trail and not parent:
            parent, key = trail.pop()
            del parent[key]

    async def get(self, path: str) -> Document | None:
        with self._lock:
            return self._read_locked(path)

    async def put(self, path: str, document: Document | None) -> None:
        with self._lock:
            self._write_locked(path, document)

    async def get_with_etag(self, path: str) -> tuple[Document | None, str]:
        with self._lock:
            document = self._read_locked(path)
            return document, compute_etag(document)

    async def put_if_match(self, path: str, document: Document | None, etag: str) -> bool:
        with self._lock:
            if compute_etag(self._read_locked(path)) != etag:
                return False
            self._write_locked(path, document)
            return True

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of the whole tree (debugging and tests)."""
        with self._lock:
            return copy.deepcopy(self._root)
