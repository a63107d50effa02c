"""PRC private server API client.

Single point of contact with the upstream control API. Every request for a
given server key goes through the key's lock in the RateLimitRegistry, and
every response refreshes the registry's view of the key's bucket.
"""

import asyncio
import json
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from overwatch.app.core.config import settings
from overwatch.app.core.logging import get_log_context, get_logger
from overwatch.app.core.security import hash_server_key, mask_server_key
from overwatch.app.exceptions import (
    InvalidCredentialError,
    PrcApiError,
    RateLimitedError,
    UpstreamError,
    UpstreamTimeoutError,
)
from overwatch.app.providers.alerts import RateLimitAlerter
from overwatch.app.providers.prc_types import PrcPlayer, PrcServer
from overwatch.app.providers.rate_limit import RateLimitRegistry, RateState
from overwatch.app.providers.retry import RetryBudget

logger = get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


class PrcClient:
    """Rate limited, serialized client for one PRC server key.

    If http_client is provided, it will be used for all requests (connection
    reuse). If not, a new client is created per request.

    Example:
        >>> registry = RateLimitRegistry()
        >>> client = PrcClient("server-key", registry, http_client=shared)
        >>> players = await client.get_players()
    """

    def __init__(
        self,
        server_key: str,
        registry: RateLimitRegistry,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_budget: Optional[RetryBudget] = None,
        alerter: Optional[RateLimitAlerter] = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ):
        self._server_key = server_key
        self.key_hash = hash_server_key(server_key)
        self.key_suffix = mask_server_key(server_key)
        self.registry = registry
        self._http_client = http_client
        self.base_url = (base_url or settings.prc_base_url).rstrip("/")
        self.timeout = timeout or settings.prc_request_timeout
        self.retry_budget = retry_budget or RetryBudget()
        self.alerter = alerter or RateLimitAlerter()
        self._clock = clock
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_server(self) -> PrcServer:
        data = await self._request("GET", "/server")
        try:
            return PrcServer.model_validate(data if isinstance(data, dict) else {})
        except ValidationError as e:
            raise PrcApiError(f"Malformed PRC server payload: {e.error_count()} errors") from e

    async def get_players(self) -> List[PrcPlayer]:
        data = await self._request("GET", "/server/players")
        players = []
        for raw in _as_list(data):
            try:
                players.append(PrcPlayer.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    f"Skipping malformed roster entry: {e.error_count()} errors",
                    extra=get_log_context(key_hash=self.key_hash),
                )
        return players

    async def get_join_logs(self) -> List[Dict[str, Any]]:
        return _as_list(await self._request("GET", "/server/joinlogs"))

    async def get_kill_logs(self) -> List[Dict[str, Any]]:
        return _as_list(await self._request("GET", "/server/killlogs"))

    async def get_command_logs(self) -> List[Dict[str, Any]]:
        return _as_list(await self._request("GET", "/server/commandlogs"))

    async def execute_command(self, command: str) -> Any:
        """Run a command on the server (e.g. ``:pm Name message``)."""
        return await self._request("POST", "/server/command", json_body={"command": command})

    @property
    def rate_state(self) -> RateState:
        return self.registry.get_state(self.key_hash)

    # ------------------------------------------------------------------
    # Request pipeline
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        endpoint: str,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Run one logical call inside the credential's request lock."""
        async with self.registry.get_lock(self.key_hash):
            return await self._request_with_retry(method, endpoint, json_body)

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        json_body: Optional[Dict[str, Any]],
    ) -> Any:
        attempt = 0
        while True:
            attempt += 1
            await self._wait_if_needed()

            resp = await self._send(method, endpoint, json_body)
            state = self.registry.update_from_headers(self.key_hash, resp.headers)

            if resp.status_code == 429:
                retry_after = self.retry_budget.parse_retry_after(_decode_body(resp))
                now = self._clock()
                state.blocked_until = now + retry_after
                if state.alert_due(now, settings.prc_alert_cooldown_seconds):
                    state.last_alert_time = now
                    self.alerter.notify(retry_after, self.key_suffix)

                logger.warning(
                    f"PRC 429 on {method} {endpoint}: retry_after={retry_after}s "
                    f"(attempt {attempt}/{self.retry_budget.max_attempts})",
                    extra=get_log_context(key_hash=self.key_hash, status_code=429),
                )
                if not self.retry_budget.should_retry(attempt):
                    raise RateLimitedError(retry_after=retry_after, attempts=attempt)

                await self._sleep(retry_after)
                continue

            if resp.status_code == 403:
                raise InvalidCredentialError()

            if not resp.is_success:
                raise UpstreamError(resp.status_code, resp.reason_phrase)

            return _decode_body(resp)

    async def _wait_if_needed(self) -> None:
        """Honor a 429 cooldown, or wait out an exhausted bucket."""
        state = self.rate_state
        now = self._clock()

        cooldown = state.cooldown_remaining(now)
        if cooldown > 0:
            logger.info(
                f"PRC rate limited, waiting {cooldown:.2f}s before retry",
                extra=get_log_context(key_hash=self.key_hash),
            )
            await self._sleep(cooldown)
            return

        wait = state.proactive_wait(now, settings.prc_reset_buffer_seconds)
        if wait > 0:
            logger.info(
                f"PRC proactive rate limit wait: {wait:.2f}s",
                extra=get_log_context(key_hash=self.key_hash),
            )
            if wait > settings.prc_long_wait_alert_seconds and state.alert_due(
                now, settings.prc_long_wait_alert_cooldown_seconds
            ):
                state.last_alert_time = now
                self.alerter.notify(wait, self.key_suffix)

            await self._sleep(wait)
            self.registry.reset_budget(self.key_hash)

    async def _send(
        self,
        method: str,
        endpoint: str,
        json_body: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        """Issue one physical HTTP attempt."""
        url = f"{self.base_url}{endpoint}"
        headers = {"Server-Key": self._server_key}
        if json_body is not None:
            headers["Content-Type"] = "application/json"

        async def attempt() -> httpx.Response:
            async with self._client_context() as client:
                resp = await client.request(
                    method, url, headers=headers, json=json_body, timeout=self.timeout
                )
                # Read while the client is still open
                await resp.aread()
                return resp

        started = time.monotonic()
        try:
            # httpx timeouts are per phase; this bounds the whole attempt
            resp = await asyncio.wait_for(attempt(), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTimeoutError(self.timeout) from e
        except httpx.HTTPError as e:
            raise PrcApiError(f"PRC API request failed: {type(e).__name__}: {e}") from e

        logger.debug(
            f"PRC {method} {endpoint} -> {resp.status_code}",
            extra=get_log_context(
                key_hash=self.key_hash,
                status_code=resp.status_code,
                duration_ms=round((time.monotonic() - started) * 1000, 1),
            ),
        )
        return resp

    @asynccontextmanager
    async def _client_context(self) -> AsyncGenerator[httpx.AsyncClient, None]:
        """Yield the shared client, or a per-request client that is closed after use."""
        if self._http_client is not None:
            yield self._http_client
            return
        client = httpx.AsyncClient(timeout=self.timeout)
        try:
            yield client
        finally:
            await client.aclose()


def _decode_body(resp: httpx.Response) -> Any:
    """Decode a JSON body; an empty or unparseable body is an empty object."""
    text = resp.text
    if not text or not text.strip():
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {}


def _as_list(data: Any) -> List[Any]:
    return data if isinstance(data, list) else []
