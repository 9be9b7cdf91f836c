"""
Token counting and usage tracking.

Estimates prompt size before a call and carries exact counts after it.
"""

import math
from dataclasses import dataclass
from typing import Dict, List

# Rough heuristic shared by OpenAI-style tokenizers: one token per ~4 chars
CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.

    Contains exact token counts reported by the provider after a call.
    """
    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class TokenEstimate:
    """Pre-call token and cost estimate for a pending request."""
    tokens: int
    cost: float


def message_length(messages: List[Dict[str, str]]) -> int:
    """Total number of content characters across chat messages."""
    return sum(len(message.get("content") or "") for message in messages)


def estimate_tokens(messages: List[Dict[str, str]]) -> int:
    """Estimate prompt tokens for a list of chat messages.

    Each message is rounded up independently, so a non-empty message
    always counts as at least one token.

    Args:
        messages: Chat messages with a `content` field

    Returns:
        Estimated prompt token count
    """
    return sum(
        math.ceil(len(message.get("content") or "") / CHARS_PER_TOKEN)
        for message in messages
    )
