"""Shared fixtures: simulated time, a fake PRC upstream and a SQLite store."""

import asyncio
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from overwatch.app.db.base import Base
from overwatch.app.db import models  # noqa: F401 - register models
from overwatch.app.providers.alerts import RateLimitAlerter
from overwatch.app.providers.prc import PrcClient
from overwatch.app.providers.rate_limit import RateLimitRegistry
from overwatch.app.providers.retry import RetryBudget

# Wednesday; the week starts Monday 2026-10-12 00:00
FIXED_NOW = datetime(2026, 10, 14, 12, 0, 0)


def _sqlite_url_from_absolute_path(path: str) -> str:
    return f"sqlite+aiosqlite:////{path.lstrip('/')}"


class FakeClock:
    """Epoch-seconds clock whose sleep advances simulated time instantly."""

    def __init__(self, start: float = 1_800_000_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)
        await asyncio.sleep(0)


class FakePrcServer:
    """In-process stand-in for the PRC API, served through httpx.MockTransport."""

    def __init__(self):
        self.info: Dict[str, Any] = {"Name": "Alpha RP", "CurrentPlayers": 0, "MaxPlayers": 40}
        self.players: List[Dict[str, Any]] = []
        self.join_logs: List[Dict[str, Any]] = []
        self.kill_logs: List[Dict[str, Any]] = []
        self.command_logs: List[Dict[str, Any]] = []
        self.failures: Dict[str, int] = {}
        self.commands: List[str] = []
        self.requests: List[httpx.Request] = []

    def set_roster(self, *players: str) -> None:
        self.players = [{"Player": p, "Team": "Civilian", "Permission": "Normal"} for p in players]

    def pms_to(self, name: str) -> List[str]:
        prefix = f":pm {name} "
        return [c[len(prefix):] for c in self.commands if c.startswith(prefix)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.split("/v1", 1)[-1]

        status = self.failures.get(path)
        if status is not None:
            return httpx.Response(status, json={"message": "failure"})

        if request.method == "POST" and path == "/server/command":
            self.commands.append(json.loads(request.content)["command"])
            return httpx.Response(200, text="")

        routes = {
            "/server": self.info,
            "/server/players": self.players,
            "/server/joinlogs": self.join_logs,
            "/server/killlogs": self.kill_logs,
            "/server/commandlogs": self.command_logs,
        }
        if path not in routes:
            return httpx.Response(404, json={"message": "not found"})
        return httpx.Response(200, json=routes[path])


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(fake_clock: FakeClock) -> RateLimitRegistry:
    return RateLimitRegistry(clock=fake_clock)


@pytest.fixture
def fake_prc() -> FakePrcServer:
    return FakePrcServer()


@pytest_asyncio.fixture
async def make_prc_client(registry: RateLimitRegistry, fake_clock: FakeClock):
    """Factory building PrcClients over a MockTransport handler."""
    http_clients: List[httpx.AsyncClient] = []

    def factory(
        handler,
        server_key: str = "test-server-key-0001",
        alerter: Optional[RateLimitAlerter] = None,
        retry_budget: Optional[RetryBudget] = None,
        timeout: Optional[float] = None,
    ) -> PrcClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        http_clients.append(http_client)
        return PrcClient(
            server_key,
            registry,
            http_client=http_client,
            base_url="https://prc.test/v1",
            alerter=alerter or RateLimitAlerter(webhook_url=""),
            retry_budget=retry_budget,
            timeout=timeout,
            clock=fake_clock,
            sleep=fake_clock.sleep,
        )

    yield factory

    for http_client in http_clients:
        await http_client.aclose()


@pytest.fixture
def prc_client(make_prc_client, fake_prc: FakePrcServer) -> PrcClient:
    return make_prc_client(fake_prc)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    db_path = tmp_path / "overwatch_test.db"
    engine = create_async_engine(_sqlite_url_from_absolute_path(str(db_path)))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Two servers; ModUser (Roblox id 100) is staff on server A with a 10h quota."""
    async with session_factory() as session:
        session.add_all([
            models.Server(
                id="srv-a",
                name="Alpha RP",
                api_key="key-a",
                raid_alert_channel_id="chan-1",
                staff_role_id="role-9",
                subscription_plan="pow-pro",
            ),
            models.Server(id="srv-b", name="Bravo RP", api_key="key-b"),
        ])
        role = models.Role(server_id="srv-a", name="Moderator", quota_minutes=600)
        session.add(role)
        await session.flush()
        session.add(models.Member(server_id="srv-a", user_id="100", role_id=role.id))
        await session.commit()
    return session_factory
