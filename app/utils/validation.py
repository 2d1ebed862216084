"""Local validation for username changes and store path segments.

Nothing here touches the network: every check runs before the first store
round trip of an operation.
"""

from __future__ import annotations

import re

from app.core.errors import InvalidFormatError, MismatchError

# Characters the Realtime Database refuses in keys, plus the path separator
_FORBIDDEN_KEY_CHARS_RE = re.compile(r"[/.#$\[\]]")


def validate_user_name_change(
    candidate: str | None,
    confirm: str | None,
    *,
    min_chars: int = 5,
    max_chars: int = 10,
) -> None:
    """Check the raw candidate before it is sanitized.

    Args:
        candidate: New username as typed.
        confirm: Confirmation field as typed.
        min_chars: Inclusive lower bound on length.
        max_chars: Inclusive upper bound on length.

    Raises:
        MismatchError: If candidate and confirmation differ.
        InvalidFormatError: If the candidate is empty or its length is out of bounds.
    """
    if candidate != confirm:
        raise MismatchError(
            code="user_names_do_not_match",
            message="User names do not match.",
        )

    if not candidate or len(candidate) < min_chars:
        raise InvalidFormatError(
            code="user_name_too_short",
            message=f"Username must be at least {min_chars} characters long.",
            details={"min_value": min_chars, "actual_value": len(candidate or "")},
        )

    if len(candidate) > max_chars:
        raise InvalidFormatError(
            code="user_name_too_long",
            message=f"Username must be at most {max_chars} characters long.",
            details={"max_value": max_chars, "actual_value": len(candidate)},
        )


def validate_sanitized_user_name(
    sanitized: str,
    *,
    min_chars: int = 5,
    max_chars: int = 10,
) -> None:
    """Re-check bounds after sanitization removed characters.

    Raises:
        InvalidFormatError: If the sanitized name no longer fits the bounds.
    """
    if not min_chars <= len(sanitized) <= max_chars:
        raise InvalidFormatError(
            code="user_name_invalid_after_sanitization",
            message=(
                f"Username must contain {min_chars} to {max_chars} letters, digits "
                "or underscores."
            ),
            details={
                "min_value": min_chars,
                "max_value": max_chars,
                "actual_value": len(sanitized),
            },
        )


def validate_path_segment(value: str | None, *, field: str) -> str:
    """Ensure ``value`` can be used as a single store path segment.

    Returns:
        The value unchanged.

    Raises:
        InvalidFormatError: If empty or containing separator/forbidden characters.
    """
    if not value or not value.strip() or _FORBIDDEN_KEY_CHARS_RE.search(value):
        raise InvalidFormatError(
            code=f"invalid_{field}",
            message=f"Invalid {field.replace('_', ' ')}.",
            details={"hint": "Must be non-empty and must not contain / . # $ [ ]"},
        )
    return value
