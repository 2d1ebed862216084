"""Notifier implementations."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.adapters.notifier.base import AbstractNotifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    message: str
    success: bool


class LoggingNotifier(AbstractNotifier):
    """Writes every outcome to the application log."""

    def notify(self, message: str, is_success: bool = False) -> None:
        logger.info(
            "notification",
            extra={"notification": message, "success": is_success},
        )


class CollectingNotifier(LoggingNotifier):
    """Logs outcomes and keeps them so the HTTP layer can return them.

    One instance is created per request; the browser renders the collected
    items as alert banners.
    """

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, message: str, is_success: bool = False) -> None:
        super().notify(message, is_success)
        self.notifications.append(Notification(message=message, success=is_success))
