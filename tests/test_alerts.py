"""Tests for rate limit alerts and best-effort side effects."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from overwatch.app.core.best_effort import (
    drain_background_tasks,
    fire_and_forget,
    pending_background_tasks,
    run_best_effort,
)
from overwatch.app.providers.alerts import RateLimitAlerter


class TestRunBestEffort:
    @pytest.mark.asyncio
    async def test_success(self):
        assert await run_best_effort(asyncio.sleep(0), "noop") is True

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_swallowed(self):
        log = MagicMock()

        ok = await run_best_effort(
            AsyncMock(side_effect=RuntimeError("down"))(),
            "webhook",
            log=log,
            server_id="srv-a",
        )

        assert ok is False
        log.warning.assert_called_once()
        message = log.warning.call_args.args[0]
        assert "webhook" in message and "down" in message
        assert log.warning.call_args.kwargs["extra"] == {"server_id": "srv-a"}

    @pytest.mark.asyncio
    async def test_fire_and_forget_runs_in_background(self):
        done = asyncio.Event()

        async def side_effect():
            done.set()

        fire_and_forget(side_effect(), "test")
        await drain_background_tasks(timeout=1)

        assert done.is_set()
        assert pending_background_tasks() == 0


class TestRateLimitAlerter:
    def test_disabled_without_webhook(self):
        assert not RateLimitAlerter(webhook_url="").enabled
        assert RateLimitAlerter(webhook_url="https://hooks.test/x").enabled

    def test_payload(self):
        payload = RateLimitAlerter(webhook_url="").build_payload(125, "...abcd1234")

        embed = payload["embeds"][0]
        assert embed["title"] == "PRC API Rate Limited"
        assert "2m 5s" in embed["description"]
        assert embed["fields"][0]["value"] == "`...abcd1234`"

    @pytest.mark.asyncio
    async def test_send_posts_payload(self):
        posted = []

        def handler(request: httpx.Request) -> httpx.Response:
            posted.append((str(request.url), json.loads(request.content)))
            return httpx.Response(204)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            alerter = RateLimitAlerter(webhook_url="https://hooks.test/x", http_client=http_client)
            await alerter.send(30, "...key")

        assert posted[0][0] == "https://hooks.test/x"
        assert posted[0][1]["embeds"][0]["title"] == "PRC API Rate Limited"

    @pytest.mark.asyncio
    async def test_notify_without_webhook_schedules_nothing(self):
        alerter = RateLimitAlerter(webhook_url="")

        with patch("overwatch.app.providers.alerts.fire_and_forget") as scheduled:
            alerter.notify(30, "...key")

        scheduled.assert_not_called()

    @pytest.mark.asyncio
    async def test_webhook_failure_does_not_raise(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            alerter = RateLimitAlerter(webhook_url="https://hooks.test/x", http_client=http_client)
            alerter.notify(30, "...key")
            await drain_background_tasks(timeout=1)

        assert pending_background_tasks() == 0
