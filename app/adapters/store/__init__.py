"""Key-value store adapters - abstract over the document database."""

from app.adapters.store.base import AbstractKeyValueStore
from app.adapters.store.factory import create_store
from app.adapters.store.firebase import FirebaseKeyValueStore
from app.adapters.store.in_memory import InMemoryKeyValueStore

__all__ = [
    "AbstractKeyValueStore",
    "FirebaseKeyValueStore",
    "InMemoryKeyValueStore",
    "create_store",
]
