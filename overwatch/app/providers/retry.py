"""Retry budget for PRC API 429 responses.

The PRC API tells the caller how long to back off (``retry_after`` in the
429 body). The budget bounds how many physical attempts a single logical
call may make and decides how long to wait between them.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from overwatch.app.core.config import settings


@dataclass
class RetryBudget:
    """Configuration for 429 retry behavior.

    Attributes:
        max_attempts: Total physical attempts per logical call (default: 3)
        default_retry_after: Wait used when the 429 body has no usable
            ``retry_after`` (default: 5 seconds)

    Example:
        >>> budget = RetryBudget(max_attempts=3)
        >>> budget.should_retry(attempt=1)
        True
        >>> budget.should_retry(attempt=3)
        False
    """

    max_attempts: int = field(default_factory=lambda: settings.prc_max_attempts)
    default_retry_after: float = field(
        default_factory=lambda: settings.prc_default_retry_after
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def should_retry(self, attempt: int) -> bool:
        """Whether another attempt is allowed after ``attempt`` (1-indexed) failed."""
        return attempt < self.max_attempts

    def parse_retry_after(self, body: Optional[Any]) -> float:
        """Extract ``retry_after`` seconds from a decoded 429 body.

        Missing, non-numeric or non-positive values fall back to
        ``default_retry_after``.
        """
        if not isinstance(body, dict):
            return self.default_retry_after
        value = body.get("retry_after")
        try:
            retry_after = float(value)
        except (TypeError, ValueError):
            return self.default_retry_after
        if retry_after <= 0:
            return self.default_retry_after
        return retry_after
