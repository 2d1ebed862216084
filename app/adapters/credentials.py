"""Password verification collaborator.

The rename saga only needs a yes/no answer to "is this the user's current
password?". Credentials live apart from user records at ``credentials/<id>``
as bcrypt documents::

    {"algorithm": "bcrypt", "hash": "$2b$12$..."}

bcrypt is deliberately slow, so checks run in the default executor and the
event loop keeps serving other requests meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import bcrypt

from app.adapters.store.base import AbstractKeyValueStore, credentials_path

logger = logging.getLogger(__name__)

ALGORITHM = "bcrypt"
DEFAULT_ROUNDS = 12
# bcrypt only reads the first 72 bytes; newer releases raise on longer input
MAX_PASSWORD_BYTES = 72


class AbstractPasswordVerifier(ABC):
    """Interface for password checks. Must not mutate any state of the caller."""

    @abstractmethod
    async def verify(self, user_id: str, candidate_password: str) -> bool:
        raise NotImplementedError


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:MAX_PASSWORD_BYTES]


def hash_password(password: str, *, rounds: int = DEFAULT_ROUNDS) -> dict[str, Any]:
    """Build a credential document for ``password``.

    Args:
        password: Plain-text password.
        rounds: bcrypt cost factor (log2 of the iteration count).

    Returns:
        Document suitable for ``credentials/<id>``.
    """
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds))
    return {"algorithm": ALGORITHM, "hash": hashed.decode("ascii")}


def _check(candidate_password: str, stored_hash: bytes) -> bool:
    return bcrypt.checkpw(_password_bytes(candidate_password), stored_hash)


class StoredHashPasswordVerifier(AbstractPasswordVerifier):
    """Checks passwords against credential documents in a key-value store."""

    def __init__(self, store: AbstractKeyValueStore) -> None:
        self.store = store

    async def verify(self, user_id: str, candidate_password: str) -> bool:
        if not candidate_password:
            return False

        document = await self.store.get(credentials_path(user_id))
        if not isinstance(document, dict) or document.get("algorithm") != ALGORITHM:
            logger.info(
                "credentials.unavailable",
                extra={"user_id": user_id, "has_document": document is not None},
            )
            return False

        stored_hash = document.get("hash")
        if not isinstance(stored_hash, str):
            logger.warning("credentials.malformed", extra={"user_id": user_id})
            return False

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, _check, candidate_password, stored_hash.encode("utf-8")
            )
        except ValueError:
            # Not a bcrypt hash ("Invalid salt")
            logger.warning("credentials.malformed", extra={"user_id": user_id})
            return False
