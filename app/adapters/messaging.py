"""Message-send collaborator.

The service only decides whether a message may go out; delivering it belongs
to the transport. The store-backed transport appends the message document
under ``messages/<chatroom>/<message_id>``, where chat clients subscribe.
"""

from __future__ import annotations

import time
import uuid
from abc import ABC, abstractmethod

from app.adapters.store.base import MESSAGES_PATH, AbstractKeyValueStore


class AbstractMessageTransport(ABC):
    """Interface for delivering sanitized chat messages."""

    @abstractmethod
    async def send(self, chatroom_name: str, sender_key: str, text: str) -> str:
        """Deliver ``text`` and return the id assigned to the message."""
        raise NotImplementedError


class StoreMessageTransport(AbstractMessageTransport):
    def __init__(self, store: AbstractKeyValueStore) -> None:
        self.store = store

    async def send(self, chatroom_name: str, sender_key: str, text: str) -> str:
        # Time-ordered ids keep the room listing sorted by key
        message_id = f"{time.time_ns():020d}-{uuid.uuid4().hex[:8]}"
        await self.store.put(
            f"{MESSAGES_PATH}/{chatroom_name}/{message_id}",
            {
                "senderID": sender_key,
                "text": text,
                "sentAt": int(time.time() * 1000),
            },
        )
        return message_id
