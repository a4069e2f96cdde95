"""Rate limiting data models.

This module contains the limiter configuration and decision types.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Dimension(str, Enum):
    """Identity dimension a request is counted against."""
    ADDRESS = "address"
    TOKEN = "token"


class RejectReason(str, Enum):
    """Why a request was rejected."""
    ADDRESS_LIMIT_EXCEEDED = "address_limit_exceeded"
    TOKEN_LIMIT_EXCEEDED = "token_limit_exceeded"
    ADDRESS_BLOCKED = "address_blocked"
    TOKEN_BLOCKED = "token_blocked"
    STORAGE_FAILURE = "storage_failure"


@dataclass(frozen=True)
class LimiterConfig:
    """Limits fixed at construction time.

    Attributes:
        ip_limit: Max requests per address per one-second window
        token_limit: Max requests per token per one-second window
        block_duration: Seconds a key stays blocked after exceeding its limit
    """
    ip_limit: int
    token_limit: int
    block_duration: float

    def __post_init__(self) -> None:
        if self.ip_limit < 1 or self.token_limit < 1:
            raise ValueError("Rate limit values must be at least 1")
        if self.block_duration <= 0:
            raise ValueError("block_duration must be positive")

    def limit_for(self, dimension: Dimension) -> int:
        if dimension is Dimension.TOKEN:
            return self.token_limit
        return self.ip_limit


@dataclass(frozen=True)
class Decision:
    """Outcome of a rate limit check."""
    allowed: bool
    reason: Optional[RejectReason] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def reject(cls, reason: RejectReason) -> "Decision":
        return cls(allowed=False, reason=reason)
