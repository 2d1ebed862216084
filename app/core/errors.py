"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Taxonomy for the identity core:
- Validation family (MismatchError, InvalidFormatError, ChatroomNotSelectedError):
  user-recoverable, raised before any store call.
- AuthenticationError: wrong password, re-prompt.
- ConflictError: username already indexed.
- NotFoundError: primary user record missing.
- StoreUnavailable / StoreRejected: backend failure on a read or write.
- PartialFailure: the user record was written but the username index was not.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what applies to it.
    """

    code: str
    message: str
    hint: str
    step: str
    min_value: int
    max_value: int
    actual_value: int
    http_status: int
    user_id: str
    old_user_name: str
    new_user_name: str
    cause: str
    compensation_attempted: bool
    compensation_succeeded: bool
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)

    def with_step(self, step: str) -> "AppError":
        """Record the saga step that produced this error and return self."""
        self.details = {**(self.details or {}), "step": step}
        return self


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class MismatchError(ValidationAppError):
    """New username and its confirmation differ."""


class InvalidFormatError(ValidationAppError):
    """Input is empty, has the wrong length, or contains unusable characters."""


class ChatroomNotSelectedError(ValidationAppError):
    """A message was sent without a real chatroom selected."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


AuthenticationError = AuthenticationAppError


class NotFoundError(AppError):
    """Raised when a required record does not exist."""


class ConflictError(AppError):
    """Raised when a username is already claimed."""


class StoreError(AppError):
    """Base for key-value store failures."""


class StoreUnavailable(StoreError):
    """The store could not be reached (network failure, timeout, 5xx)."""


class StoreRejected(StoreError):
    """The store answered but refused the request (rules, bad payload)."""


class PartialFailure(AppError):
    """The user record was updated but the username index was not.

    This is an existing consistency violation, not merely a failed attempt:
    the caller must retry the index write alone or run a reconciliation pass.
    """
