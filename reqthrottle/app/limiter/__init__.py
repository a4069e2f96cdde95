"""Rate limit decision engine.

Fixed-window counters per address or access token, with a hard block
applied once a window's limit is exceeded.
"""

# Re-export models
from reqthrottle.app.limiter.models import (
    Decision,
    Dimension,
    LimiterConfig,
    RejectReason,
)

# Re-export engine
from reqthrottle.app.limiter.engine import WINDOW_SECONDS, RateLimiter

__all__ = [
    # Models
    "Decision",
    "Dimension",
    "LimiterConfig",
    "RejectReason",
    # Engine
    "RateLimiter",
    "WINDOW_SECONDS",
]
