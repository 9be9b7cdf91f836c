"""
Data models for storage layer.

Defines the call outcome records the monitor learns from.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


RATE_LIMIT_SIGNATURES = ("429", "rate limit")


@dataclass(frozen=True)
class CallOutcome:
    """Immutable record of a finished outbound call.

    Outcomes feed the sliding window used for frequency, error rate and
    rate-limit predictions. Once recorded they must never be modified.
    """
    timestamp: datetime
    success: bool
    provider: str
    error: Optional[str] = None
    cost: float = 0.0
    tokens: int = 0
    call_id: Optional[str] = None

    def __post_init__(self):
        """Validate cost and token counts are non-negative."""
        if self.cost < 0:
            raise ValueError("cost cannot be negative")
        if self.tokens < 0:
            raise ValueError("tokens cannot be negative")

    @property
    def is_rate_limited(self) -> bool:
        """Whether the recorded error looks like a provider rate limit."""
        if not self.error:
            return False
        error = self.error.lower()
        return any(signature in error for signature in RATE_LIMIT_SIGNATURES)
