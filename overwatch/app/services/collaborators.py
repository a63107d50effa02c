"""Interfaces of the systems the ingestion pipeline hands work to.

The automation rule engine and the raid heuristic live outside this
package; only their call shapes are defined here, together with the small
defaults used when the application runs standalone.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from overwatch.app.core.config import settings
from overwatch.app.core.logging import get_log_context, get_logger
from overwatch.app.db.crud import get_server

logger = get_logger(__name__)

# Automation trigger names emitted by this package
PLAYER_JOIN = "PLAYER_JOIN"
PLAYER_LEAVE = "PLAYER_LEAVE"
PLAYER_KILL = "PLAYER_KILL"
COMMAND_USED = "COMMAND_USED"
PUNISHMENT_ISSUED = "PUNISHMENT_ISSUED"

# Type-specific follow-up triggers for punishments
PUNISHMENT_TYPE_EVENTS = {
    "Warn": "WARN_ISSUED",
    "Kick": "KICK_ISSUED",
    "Ban": "BAN_ISSUED",
    "Ban Bolo": "BOLO_CREATED",
}

RAID_DETECTION_FLAG = "RAID_DETECTION"


class AutomationEngine(ABC):
    """Receives domain events and runs the matching automations."""

    @abstractmethod
    async def trigger(self, event_name: str, context: Dict[str, Any]) -> None:
        pass


class LoggingAutomationEngine(AutomationEngine):
    """Stand-in engine that only records the events it receives."""

    def __init__(self) -> None:
        self.triggered: List[tuple[str, Dict[str, Any]]] = []

    async def trigger(self, event_name: str, context: Dict[str, Any]) -> None:
        self.triggered.append((event_name, context))
        logger.debug(
            f"Automation event {event_name}",
            extra=get_log_context(server_id=context.get("serverId"), event=event_name),
        )


@dataclass(frozen=True)
class Detection:
    """One finding reported by the raid detector."""
    type: str
    user_id: str
    user_name: str
    details: str
    pattern: Optional[str] = None


class RaidDetector(ABC):
    """Scans command logs from unregistered players for raid patterns."""

    @abstractmethod
    def scan(self, logs: Sequence[Any]) -> List[Detection]:
        pass


@dataclass(frozen=True)
class ServerPlan:
    plan: str
    has_raid_detection: bool


PLAN_RAID_DETECTION = {
    "free": False,
    "pow-pro": True,
    "pow-max": True,
}


class Entitlements(ABC):
    """Feature flags and subscription plan lookups."""

    @abstractmethod
    async def is_feature_enabled(self, flag: str) -> bool:
        pass

    @abstractmethod
    async def get_server_plan(self, server_id: str) -> ServerPlan:
        pass


class SettingsEntitlements(Entitlements):
    """Feature flags from settings, plans from the server row."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] | async_sessionmaker[AsyncSession],
        flags: Optional[Dict[str, bool]] = None,
    ):
        self._session_factory = session_factory
        self._flags = flags

    async def is_feature_enabled(self, flag: str) -> bool:
        flags = self._flags if self._flags is not None else {
            RAID_DETECTION_FLAG: settings.raid_detection_enabled,
        }
        return flags.get(flag, False)

    async def get_server_plan(self, server_id: str) -> ServerPlan:
        async with self._session_factory() as session:
            server = await get_server(session, server_id)
        plan = server.subscription_plan if server is not None else "free"
        return ServerPlan(plan=plan, has_raid_detection=PLAN_RAID_DETECTION.get(plan, False))
