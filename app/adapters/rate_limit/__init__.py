"""Rate limiting adapters.

The message service talks to AbstractRateLimiter only, so the in-process
cooldown limiter can later move to a shared store without changing callers.
"""

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AdmissionDecision,
    RateLimitResult,
    SenderState,
)
from app.adapters.rate_limit.in_memory import InMemoryCooldownRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "AdmissionDecision",
    "InMemoryCooldownRateLimiter",
    "RateLimitResult",
    "SenderState",
]
