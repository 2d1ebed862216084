"""Chat message admission.

A message goes out only after two independent gates pass, in this order:

1. chatroom gate: a real chatroom is selected (not the placeholder shown
   before the user picks one),
2. rate gate: the sender's cooldown has elapsed (RateLimiter).

Message text is sanitized before the rate gate so an empty or markup-only
message never consumes the sender's cooldown.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from app.adapters.messaging import AbstractMessageTransport
from app.adapters.notifier import AbstractNotifier
from app.adapters.rate_limit import AbstractRateLimiter
from app.core.auth import fingerprint
from app.core.config import settings
from app.core.errors import AppError, ChatroomNotSelectedError, InvalidFormatError
from app.schemas.messages import SendResult
from app.utils.sanitization import sanitize_message_text
from app.utils.validation import validate_path_segment

logger = logging.getLogger(__name__)

THROTTLED_MESSAGE = "Please wait two seconds before sending another message!"
NO_CHATROOM_MESSAGE = "Please select a chatroom before sending a message!"


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class MessageService:
    """Gatekeeper between the chat input and the message transport.

    Attributes:
        limiter: Per-sender admission control, owned by the sending session.
        transport: Delivers admitted messages.
        notifier: Receives throttling and precondition notices.
    """

    def __init__(
        self,
        limiter: AbstractRateLimiter,
        transport: AbstractMessageTransport,
        notifier: AbstractNotifier,
        *,
        placeholder_chatroom: str | None = None,
        max_message_chars: int | None = None,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self.limiter = limiter
        self.transport = transport
        self.notifier = notifier
        self.placeholder_chatroom = (
            placeholder_chatroom
            if placeholder_chatroom is not None
            else settings.app.placeholder_chatroom
        )
        self.max_message_chars = max_message_chars or settings.app.max_message_chars
        self._clock = clock

    def _check_chatroom(self, chatroom_name: str | None) -> str:
        if not chatroom_name or chatroom_name == self.placeholder_chatroom:
            raise ChatroomNotSelectedError(
                code="chatroom_not_selected",
                message=NO_CHATROOM_MESSAGE,
            )
        return validate_path_segment(chatroom_name, field="chatroom_name")

    async def send_message(
        self,
        sender_key: str,
        chatroom_name: str | None,
        raw_text: str | None,
        now_ms: int | None = None,
    ) -> SendResult:
        """Sanitize, admit and deliver one message.

        Args:
            sender_key: Id of the sending user (rate limit key).
            chatroom_name: Currently selected chatroom.
            raw_text: Text as typed.
            now_ms: Timestamp of the attempt; the service clock when omitted.

        Returns:
            SendResult; ``admitted=False`` with ``retry_after_ms`` when throttled.

        Raises:
            ChatroomNotSelectedError: No real chatroom selected.
            InvalidFormatError: Bad sender id or nothing left after sanitization.
            StoreUnavailable / StoreRejected: Transport failure.
        """
        try:
            validate_path_segment(sender_key, field="sender_id")
            chatroom = self._check_chatroom(chatroom_name)

            text = sanitize_message_text(raw_text, self.max_message_chars)
            if not text:
                raise InvalidFormatError(
                    code="empty_message",
                    message="Message is empty.",
                )

            now = now_ms if now_ms is not None else self._clock()
            decision = self.limiter.try_admit(sender_key, now)
            if not decision.admitted:
                logger.info(
                    "rate_limit.throttled",
                    extra={
                        "sender_hash": fingerprint(sender_key),
                        "retry_after_ms": decision.retry_after_ms,
                    },
                )
                self.notifier.notify(THROTTLED_MESSAGE, False)
                return SendResult(admitted=False, retry_after_ms=decision.retry_after_ms)

            message_id = await self.transport.send(chatroom, sender_key, text)
        except AppError as exc:
            logger.warning(
                "message.rejected",
                extra={"error_code": exc.code, "sender_hash": fingerprint(sender_key or "")},
            )
            self.notifier.notify(exc.message, False)
            raise

        logger.info(
            "message.sent",
            extra={
                "sender_hash": fingerprint(sender_key),
                "chatroom": chatroom,
                "message_id": message_id,
                "char_count": len(text),
            },
        )
        return SendResult(admitted=True, message_id=message_id)
