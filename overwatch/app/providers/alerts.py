"""Operational alerts for PRC API rate limiting.

Alerts go to an optional webhook (Discord-compatible embed payload) and are
fire-and-forget: a failing webhook is logged and never delays the request
that triggered it.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from overwatch.app.core.best_effort import fire_and_forget
from overwatch.app.core.config import settings
from overwatch.app.core.http_client import create_http_client
from overwatch.app.core.logging import get_logger
from overwatch.app.core.utils import format_wait

logger = get_logger(__name__)

ALERT_COLOR_RED = 15548997


class RateLimitAlerter:
    """Posts rate limit incidents to a webhook."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.webhook_url = settings.prc_rate_limit_webhook if webhook_url is None else webhook_url
        self._http_client = http_client

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def build_payload(self, wait_seconds: float, key_suffix: str) -> Dict[str, Any]:
        wait_string = format_wait(wait_seconds)
        return {
            "embeds": [{
                "title": "PRC API Rate Limited",
                "description": (
                    "The moderation bridge has been rate limited by the PRC API.\n\n"
                    f"**Wait Time:** `{wait_string}` ({int(wait_seconds)}s)"
                ),
                "color": ALERT_COLOR_RED,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "fields": [
                    {"name": "Key Hash", "value": f"`{key_suffix}`", "inline": True}
                ],
            }]
        }

    def notify(self, wait_seconds: float, key_suffix: str) -> None:
        """Schedule an alert delivery without waiting for it."""
        logger.warning(
            f"PRC rate limit alert: wait {format_wait(wait_seconds)} for key {key_suffix}"
        )
        if not self.enabled:
            return
        fire_and_forget(
            self.send(wait_seconds, key_suffix),
            "rate limit webhook",
            logger,
        )

    async def send(self, wait_seconds: float, key_suffix: str) -> None:
        payload = self.build_payload(wait_seconds, key_suffix)
        if self._http_client is not None:
            resp = await self._http_client.post(self.webhook_url, json=payload)
            resp.raise_for_status()
            return
        async with create_http_client(timeout=5.0) as client:
            resp = await client.post(self.webhook_url, json=payload)
            resp.raise_for_status()
