"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any import that builds settings.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

# Set default env vars that all tests might need
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402

from app.adapters.credentials import hash_password  # noqa: E402
from app.adapters.notifier import CollectingNotifier  # noqa: E402
from app.adapters.store import InMemoryKeyValueStore  # noqa: E402
from app.core.errors import StoreError  # noqa: E402

USER_ID = "uid-alice"
OTHER_ID = "uid-bob"
PASSWORD = "correct horse"

# Lowest bcrypt cost keeps the credential tests fast
TEST_ROUNDS = 4


def seed_tree(**extra: Any) -> dict[str, Any]:
    """Two users, both indexed, with credentials for Alice."""
    tree: dict[str, Any] = {
        "users": {
            USER_ID: {"userName": "alice", "email": "alice@example.com"},
            OTHER_ID: {"userName": "bobby", "email": "bob@example.com"},
        },
        "userIDByUsername": {"alice": USER_ID, "bobby": OTHER_ID},
        "credentials": {
            USER_ID: hash_password(PASSWORD, rounds=TEST_ROUNDS),
        },
    }
    tree.update(extra)
    return tree


class FlakyStore(InMemoryKeyValueStore):
    """In-memory store that fails writes or reads on chosen paths.

    ``fail_puts`` / ``fail_gets`` map a path to the error raised when that
    exact path is written or read. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        initial: dict[str, Any] | None = None,
        *,
        fail_puts: dict[str, StoreError] | None = None,
        fail_gets: dict[str, StoreError] | None = None,
        conditional: bool = True,
    ) -> None:
        super().__init__(initial)
        self.fail_puts = dict(fail_puts or {})
        self.fail_gets = dict(fail_gets or {})
        self.supports_conditional_writes = conditional
        self.calls: list[tuple[str, str]] = []

    async def get(self, path: str):
        self.calls.append(("get", path))
        if path in self.fail_gets:
            raise self.fail_gets[path]
        return await super().get(path)

    async def put(self, path: str, document):
        self.calls.append(("put", path))
        if path in self.fail_puts:
            raise self.fail_puts[path]
        return await super().put(path, document)

    async def get_with_etag(self, path: str):
        self.calls.append(("get_with_etag", path))
        if path in self.fail_gets:
            raise self.fail_gets[path]
        return await super().get_with_etag(path)

    async def put_if_match(self, path: str, document, etag: str) -> bool:
        self.calls.append(("put_if_match", path))
        if path in self.fail_puts:
            raise self.fail_puts[path]
        return await super().put_if_match(path, document, etag)

    @property
    def writes(self) -> list[str]:
        return [path for op, path in self.calls if op in ("put", "put_if_match")]


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(seed_tree())


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def verifier() -> AsyncMock:
    """Password verifier accepting any password."""
    mock = AsyncMock()
    mock.verify.return_value = True
    return mock
