"""In-memory cooldown rate limiter.

Notes:
- Per-process only: each worker keeps its own sender history.
- Thread-safe: uses a lock around shared state.
- Bounded: senders whose cooldown has elapsed are dropped, at most one
  sweep per cooldown period. A dropped sender is indistinguishable from one
  never seen, so admission results do not change.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AdmissionDecision,
    RateLimitResult,
    SenderState,
)

DEFAULT_COOLDOWN_MS = 2000


@dataclass
class _CooldownState:
    last_accepted_at_ms: int | None = None


class InMemoryCooldownRateLimiter(AbstractRateLimiter):
    """Admit at most one message per sender per cooldown period.

    A sender with no history is treated as if its last send happened long
    enough ago, so the first attempt is always admitted whatever the
    timestamp. Timestamps are supplied by the caller, which keeps the
    limiter deterministic under test.
    """

    def __init__(self, *, cooldown_ms: int = DEFAULT_COOLDOWN_MS) -> None:
        """Initialize the limiter.

        Args:
            cooldown_ms: Minimum gap between two admitted sends of one sender.

        Raises:
            ValueError: If cooldown_ms is negative.
        """
        if cooldown_ms < 0:
            raise ValueError("cooldown_ms must be >= 0")

        self._cooldown_ms = cooldown_ms
        self._lock = threading.RLock()
        self._state_by_sender: dict[str, _CooldownState] = {}
        self._last_sweep_at_ms: int | None = None

    @property
    def cooldown_ms(self) -> int:
        return self._cooldown_ms

    @property
    def tracked_senders(self) -> int:
        """Number of senders currently held in memory."""
        with self._lock:
            return len(self._state_by_sender)

    def _remaining_ms(self, state: _CooldownState, now_ms: int) -> int:
        if state.last_accepted_at_ms is None:
            return 0
        return max(0, state.last_accepted_at_ms + self._cooldown_ms - now_ms)

    def _evict_expired(self, now_ms: int) -> None:
        if self._last_sweep_at_ms is not None and now_ms - self._last_sweep_at_ms < self._cooldown_ms:
            return
        self._last_sweep_at_ms = now_ms
        expired = [
            key for key, state in self._state_by_sender.items() if self._remaining_ms(state, now_ms) == 0
        ]
        for key in expired:
            del self._state_by_sender[key]

    def try_admit(self, sender_key: str, now_ms: int) -> RateLimitResult:
        """Admit or throttle one send attempt.

        Raises:
            ValueError: If sender_key is empty.
        """
        if not sender_key:
            raise ValueError("sender_key must be a non-empty string")

        with self._lock:
            self._evict_expired(now_ms)
            state = self._state_by_sender.setdefault(sender_key, _CooldownState())
            remaining = self._remaining_ms(state, now_ms)

            if remaining == 0:
                state.last_accepted_at_ms = now_ms
                return RateLimitResult(
                    decision=AdmissionDecision.ADMITTED,
                    sender_key=sender_key,
                    last_accepted_at_ms=now_ms,
                )

            return RateLimitResult(
                decision=AdmissionDecision.THROTTLED,
                sender_key=sender_key,
                last_accepted_at_ms=state.last_accepted_at_ms,  # type: ignore[arg-type]
                retry_after_ms=remaining,
            )

    def state_of(self, sender_key: str, now_ms: int) -> SenderState:
        with self._lock:
            state = self._state_by_sender.get(sender_key)
            if state is None or self._remaining_ms(state, now_ms) == 0:
                return SenderState.READY
            return SenderState.COOLING

    def reset(self, sender_key: str) -> None:
        with self._lock:
            self._state_by_sender.pop(sender_key, None)
