"""Raid detection glue.

Filters freshly ingested command logs down to unregistered players, runs
the external detector over them, and queues a single alert for the bot
process. Nothing here raises into the ingestion pipeline.
"""

import json
from typing import Callable, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from overwatch.app.core.logging import get_log_context, get_logger
from overwatch.app.core.utils import utc_now
from overwatch.app.db.crud import enqueue_message, find_member_by_roblox_id, get_server
from overwatch.app.db.models import BotQueueMessage, Server
from overwatch.app.services.collaborators import (
    RAID_DETECTION_FLAG,
    Detection,
    Entitlements,
    RaidDetector,
)
from overwatch.app.services.log_entries import CommandLogEntry

logger = get_logger(__name__)

ALERT_COLOR = 0xFF0000
ALERT_FOOTER = "Project Overwatch Auto-Mod"


def build_raid_alert(server: Server, detections: Sequence[Detection]) -> dict:
    """Chat embed payload listing every detection."""
    staff_ping = f"<@&{server.staff_role_id}>" if server.staff_role_id else "@staff"
    embed = {
        "title": "⚠️ RAID DETECTION ALERT",
        "description": (
            f"Suspicious activity detected on **{server.name}**\n"
            f"{staff_ping} Please investigate immediately."
        ),
        "color": ALERT_COLOR,
        "fields": [
            {
                "name": d.type,
                "value": f"**Roblox User:** {d.user_name} (ID: `{d.user_id}`)\n**Details:** {d.details}",
                "inline": False,
            }
            for d in detections
        ],
        "footer": {"text": ALERT_FOOTER},
        "timestamp": utc_now().isoformat() + "Z",
    }
    return {"embeds": [embed]}


class RaidFilter:
    """Feeds unregistered players' commands to the raid detector."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        detector: Optional[RaidDetector],
        entitlements: Entitlements,
    ):
        self._session_factory = session_factory
        self.detector = detector
        self.entitlements = entitlements

    async def process(
        self,
        server_id: str,
        commands: Sequence[CommandLogEntry],
    ) -> Optional[BotQueueMessage]:
        """Scan newly ingested commands and queue an alert on detections.

        Returns:
            The queued alert message, or None
        """
        if not commands or self.detector is None:
            return None

        try:
            return await self._process(server_id, commands)
        except Exception as e:
            logger.error(
                f"Raid detection failed: {type(e).__name__}: {e}",
                extra=get_log_context(server_id=server_id),
                exc_info=True,
            )
            return None

    async def _process(
        self,
        server_id: str,
        commands: Sequence[CommandLogEntry],
    ) -> Optional[BotQueueMessage]:
        async with self._session_factory() as session:
            server = await get_server(session, server_id)

            if not await self.entitlements.is_feature_enabled(RAID_DETECTION_FLAG):
                return None
            plan = await self.entitlements.get_server_plan(server_id)
            if not plan.has_raid_detection or server is None or not server.raid_alert_channel_id:
                return None

            suspects = await self.unregistered_commands(session, server_id, commands)
            if not suspects:
                return None

            detections = self.detector.scan(suspects)
            if not detections:
                return None

            logger.warning(
                f"Found {len(detections)} potential threats from non-registered users",
                extra=get_log_context(server_id=server_id),
            )
            return await enqueue_message(
                session,
                server_id,
                target_id=server.raid_alert_channel_id,
                content=json.dumps(build_raid_alert(server, detections)),
                message_type="MESSAGE",
            )

    @staticmethod
    async def unregistered_commands(
        session: AsyncSession,
        server_id: str,
        commands: Sequence[CommandLogEntry],
    ) -> List[CommandLogEntry]:
        """Drop remote-console commands and those from registered staff."""
        suspects: List[CommandLogEntry] = []
        for entry in commands:
            if entry.is_remote:
                continue
            member = await find_member_by_roblox_id(session, server_id, entry.player_id)
            if member is None:
                suspects.append(entry)
        return suspects
