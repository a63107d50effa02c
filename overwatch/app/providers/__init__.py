"""PRC API access for the Overwatch core.

This package provides:
- The rate limited, serialized client (PrcClient)
- Per-credential rate limit state (RateLimitRegistry, RateState)
- The 429 retry budget (RetryBudget)
- Wire models (PrcServer, PrcPlayer, parse_prc_player)
- Rate limit alerting (RateLimitAlerter)
"""

from overwatch.app.providers.alerts import RateLimitAlerter
from overwatch.app.providers.prc import PrcClient
from overwatch.app.providers.prc_types import (
    PlayerRef,
    PrcPlayer,
    PrcServer,
    parse_prc_player,
)
from overwatch.app.providers.rate_limit import RateLimitRegistry, RateState
from overwatch.app.providers.retry import RetryBudget

__all__ = [
    "PrcClient",
    "RateLimitRegistry",
    "RateState",
    "RetryBudget",
    "RateLimitAlerter",
    "PlayerRef",
    "PrcPlayer",
    "PrcServer",
    "parse_prc_player",
]
