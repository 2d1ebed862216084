from abc import ABC, abstractmethod


class AbstractNotifier(ABC):
    """Surfaces human-readable outcomes to the user (alert banners in the client)."""

    @abstractmethod
    def notify(self, message: str, is_success: bool = False) -> None:
        """Publish one outcome. Fire-and-forget: callers ignore the result.

        Args:
            message: Text shown to the user.
            is_success: True for confirmations, False for warnings/errors.
        """
        ...
