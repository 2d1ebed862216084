"""Tests for chat message admission."""

from unittest.mock import AsyncMock

import pytest

from app.adapters.messaging import StoreMessageTransport
from app.adapters.rate_limit import InMemoryCooldownRateLimiter
from app.adapters.store import InMemoryKeyValueStore
from app.core.errors import ChatroomNotSelectedError, InvalidFormatError, StoreUnavailable
from app.services.message_service import (
    NO_CHATROOM_MESSAGE,
    THROTTLED_MESSAGE,
    MessageService,
)


@pytest.fixture
def transport() -> AsyncMock:
    mock = AsyncMock()
    mock.send.return_value = "msg-1"
    return mock


@pytest.fixture
def service(transport, notifier) -> MessageService:
    return MessageService(
        InMemoryCooldownRateLimiter(cooldown_ms=2000),
        transport,
        notifier,
        placeholder_chatroom="Unanimity",
        max_message_chars=1999,
    )


@pytest.mark.asyncio
async def test_admits_and_sends_sanitized_text(service, transport, notifier) -> None:
    result = await service.send_message("u1", "general", "  <b>hello</b>  ", now_ms=0)

    assert result.admitted is True
    assert result.message_id == "msg-1"
    transport.send.assert_awaited_once_with("general", "u1", "hello")
    assert notifier.notifications == []


@pytest.mark.asyncio
async def test_second_message_within_cooldown_is_throttled(service, transport, notifier) -> None:
    await service.send_message("u1", "general", "one", now_ms=0)
    result = await service.send_message("u1", "general", "two", now_ms=1000)

    assert result.admitted is False
    assert result.retry_after_ms == 1000
    assert transport.send.await_count == 1
    assert [(n.message, n.success) for n in notifier.notifications] == [(THROTTLED_MESSAGE, False)]


@pytest.mark.asyncio
async def test_admitted_again_after_cooldown(service, transport) -> None:
    await service.send_message("u1", "general", "one", now_ms=0)
    await service.send_message("u1", "general", "two", now_ms=1000)
    result = await service.send_message("u1", "general", "three", now_ms=2000)

    assert result.admitted is True
    assert transport.send.await_count == 2


@pytest.mark.asyncio
async def test_other_sender_not_affected(service) -> None:
    await service.send_message("u1", "general", "one", now_ms=0)

    assert (await service.send_message("u2", "general", "hi", now_ms=1)).admitted is True


@pytest.mark.asyncio
@pytest.mark.parametrize("chatroom", ["Unanimity", "", None])
async def test_placeholder_chatroom_refused(service, transport, notifier, chatroom) -> None:
    with pytest.raises(ChatroomNotSelectedError):
        await service.send_message("u1", chatroom, "hello", now_ms=0)

    transport.send.assert_not_awaited()
    assert notifier.notifications[0].message == NO_CHATROOM_MESSAGE


@pytest.mark.asyncio
async def test_refused_chatroom_does_not_consume_cooldown(service) -> None:
    with pytest.raises(ChatroomNotSelectedError):
        await service.send_message("u1", "Unanimity", "hello", now_ms=0)

    assert (await service.send_message("u1", "general", "hello", now_ms=1)).admitted is True


@pytest.mark.asyncio
async def test_empty_after_sanitization_rejected_without_cooldown(service, transport) -> None:
    with pytest.raises(InvalidFormatError) as exc_info:
        await service.send_message("u1", "general", "<script>x</script>", now_ms=0)

    assert exc_info.value.code == "empty_message"
    assert (await service.send_message("u1", "general", "real", now_ms=1)).admitted is True


@pytest.mark.asyncio
async def test_long_message_truncated(service, transport) -> None:
    await service.send_message("u1", "general", "x" * 2500, now_ms=0)

    sent_text = transport.send.await_args.args[2]
    assert len(sent_text) == 1999


@pytest.mark.asyncio
async def test_invalid_chatroom_name(service) -> None:
    with pytest.raises(InvalidFormatError) as exc_info:
        await service.send_message("u1", "room/../x", "hello", now_ms=0)

    assert exc_info.value.code == "invalid_chatroom_name"


@pytest.mark.asyncio
async def test_transport_failure_is_notified(service, transport, notifier) -> None:
    transport.send.side_effect = StoreUnavailable(code="store_unavailable", message="down")

    with pytest.raises(StoreUnavailable):
        await service.send_message("u1", "general", "hello", now_ms=0)

    assert notifier.notifications[0].message == "down"


@pytest.mark.asyncio
async def test_uses_clock_when_no_timestamp(transport, notifier) -> None:
    ticks = iter([0, 500, 2500])
    service = MessageService(
        InMemoryCooldownRateLimiter(cooldown_ms=2000),
        transport,
        notifier,
        clock=lambda: next(ticks),
    )

    results = [await service.send_message("u1", "general", "hi") for _ in range(3)]

    assert [r.admitted for r in results] == [True, False, True]


@pytest.mark.asyncio
async def test_store_transport_writes_message_document() -> None:
    store = InMemoryKeyValueStore()
    transport = StoreMessageTransport(store)

    message_id = await transport.send("general", "u1", "hello")

    document = await store.get(f"messages/general/{message_id}")
    assert document["senderID"] == "u1"
    assert document["text"] == "hello"
    assert isinstance(document["sentAt"], int)
