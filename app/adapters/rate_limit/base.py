"""Rate limiter interfaces.

Callers depend on this abstraction so the in-process limiter can later be
replaced by a shared one (e.g. Redis) without touching the message service.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class AdmissionDecision(str, Enum):
    ADMITTED = "admitted"
    THROTTLED = "throttled"


class SenderState(str, Enum):
    """Logical per-sender state: READY until an admit, COOLING until the cooldown elapses."""

    READY = "ready"
    COOLING = "cooling"


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one admission attempt.

    Attributes:
        decision: ADMITTED or THROTTLED.
        sender_key: Key the decision applies to.
        last_accepted_at_ms: Timestamp of the last admitted send after this call.
        retry_after_ms: Remaining cooldown when throttled, None when admitted.
    """

    decision: AdmissionDecision
    sender_key: str
    last_accepted_at_ms: int
    retry_after_ms: int | None = None

    @property
    def admitted(self) -> bool:
        return self.decision is AdmissionDecision.ADMITTED


class AbstractRateLimiter(ABC):
    """Interface for per-sender admission control."""

    @abstractmethod
    def try_admit(self, sender_key: str, now_ms: int) -> RateLimitResult:
        """Decide whether ``sender_key`` may send at ``now_ms`` and record admission.

        Deciding and recording happen as one step: no other caller may observe
        the previous timestamp once this call has admitted.
        """
        raise NotImplementedError

    @abstractmethod
    def state_of(self, sender_key: str, now_ms: int) -> SenderState:
        raise NotImplementedError

    @abstractmethod
    def reset(self, sender_key: str) -> None:
        """Forget a sender (end of its session)."""
        raise NotImplementedError
