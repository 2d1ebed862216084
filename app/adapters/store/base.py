"""Key-value store interface.

Documents are JSON-like values (dicts, lists, strings, numbers, booleans).
Paths are slash-separated, Firebase style: ``users/<id>``,
``userIDByUsername``, ``userIDByUsername/<username>``. Reading a parent path
returns the whole subtree; writing ``None`` deletes the path.

There is no multi-key transaction. Backends that can compare-and-set a single
path advertise it through ``supports_conditional_writes``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Document = Any

USERS_PATH = "users"
NAME_INDEX_PATH = "userIDByUsername"
CREDENTIALS_PATH = "credentials"
MESSAGES_PATH = "messages"


def user_path(user_id: str) -> str:
    return f"{USERS_PATH}/{user_id}"


def name_index_entry_path(user_name: str) -> str:
    return f"{NAME_INDEX_PATH}/{user_name}"


def credentials_path(user_id: str) -> str:
    return f"{CREDENTIALS_PATH}/{user_id}"


def split_path(path: str) -> list[str]:
    """Split a store path into its non-empty segments.

    Raises:
        ValueError: If the path has no segments.
    """
    segments = [segment for segment in path.strip("/").split("/") if segment]
    if not segments:
        raise ValueError("store path must contain at least one segment")
    return segments


class AbstractKeyValueStore(ABC):
    """Interface for document stores addressed by path."""

    supports_conditional_writes: bool = False

    @abstractmethod
    async def get(self, path: str) -> Document | None:
        """Read the document at ``path``; None when absent.

        Raises:
            StoreUnavailable: If the backend cannot be reached.
            StoreRejected: If the backend refuses the read.
        """
        raise NotImplementedError

    @abstractmethod
    async def put(self, path: str, document: Document | None) -> None:
        """Replace the document at ``path`` (delete when ``document`` is None).

        Raises:
            StoreUnavailable: If the backend cannot be reached.
            StoreRejected: If the backend refuses the write.
        """
        raise NotImplementedError

    async def get_with_etag(self, path: str) -> tuple[Document | None, str]:
        """Read a document together with a version tag for ``put_if_match``."""
        raise NotImplementedError(f"{type(self).__name__} does not support conditional writes")

    async def put_if_match(self, path: str, document: Document | None, etag: str) -> bool:
        """Write only if the stored version still matches ``etag``.

        Returns:
            True when written, False when the document changed since it was read.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support conditional writes")

    async def aclose(self) -> None:
        """Release network resources (no-op by default)."""
