from app.adapters.notifier.base import AbstractNotifier
from app.adapters.notifier.collecting import CollectingNotifier, LoggingNotifier, Notification

__all__ = [
    "AbstractNotifier",
    "CollectingNotifier",
    "LoggingNotifier",
    "Notification",
]
