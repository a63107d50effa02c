"""In-game staff commands: ``:log`` shifts and punishments, ``:shutdown``.

Every outcome a staff member needs to know about (unregistered, ambiguous
target, empty server, ...) is reported back through an in-game private
message. Replies are best-effort; the state change they describe is never
rolled back when a reply fails.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from overwatch.app.core.best_effort import run_best_effort
from overwatch.app.core.config import settings
from overwatch.app.core.logging import get_log_context, get_logger
from overwatch.app.core.utils import (
    elapsed_seconds,
    format_hm,
    format_hms,
    get_week_start,
    utc_now,
)
from overwatch.app.db.crud import (
    create_punishment,
    end_shift,
    find_member_by_roblox_id,
    get_active_shift,
    get_active_shifts_for_server,
    get_shifts_started_since,
    start_shift,
    upsert_shutdown_event,
)
from overwatch.app.db.models import Member, Shift
from overwatch.app.exceptions import PrcApiError
from overwatch.app.providers.prc import PrcClient
from overwatch.app.services.collaborators import (
    PUNISHMENT_ISSUED,
    PUNISHMENT_TYPE_EVENTS,
    AutomationEngine,
)
from overwatch.app.services.command_parser import (
    GameCommand,
    PunishCommand,
    ShiftCommand,
    ShutdownCommand,
    UsageError,
    parse_game_command,
)
from overwatch.app.services.log_entries import CommandLogEntry
from overwatch.app.services.player_resolver import (
    Ambiguous,
    NoMatch,
    PlayerResolver,
    Resolved,
)

logger = get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]

NOT_REGISTERED = "You are not registered as staff. Please link your account on the dashboard."


def weekly_shift_seconds(shifts: Iterable[Shift], now: datetime) -> int:
    """Completed durations plus live elapsed time of any open shift."""
    total = 0
    for shift in shifts:
        if shift.duration:
            total += shift.duration
        elif shift.end_time is None:
            total += elapsed_seconds(shift.start_time, now)
    return total


def quota_percent(total_seconds: int, quota_minutes: int) -> int:
    """Share of the weekly quota completed. A zero quota counts as met."""
    quota_seconds = quota_minutes * 60
    if quota_seconds <= 0:
        return 100
    return round(total_seconds / quota_seconds * 100)


def format_quota(quota_minutes: int) -> str:
    hours, minutes = divmod(quota_minutes, 60)
    return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"


class GameCommandDispatcher:
    """Executes staff commands read from a server's command log.

    Args:
        session_factory: Opens a database session per command
        automation: Receives punishment events
        resolver: Target player lookup
        clock: Returns naive UTC "now"
        reply_prefix: Tag prepended to every in-game reply
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        automation: AutomationEngine,
        resolver: Optional[PlayerResolver] = None,
        clock: Callable[[], datetime] = utc_now,
        reply_prefix: Optional[str] = None,
    ):
        self._session_factory = session_factory
        self.automation = automation
        self.resolver = resolver or PlayerResolver(clock=clock)
        self._clock = clock
        self.reply_prefix = reply_prefix if reply_prefix is not None else settings.game_reply_prefix

    async def dispatch(self, client: PrcClient, entry: CommandLogEntry) -> bool:
        """Run the staff command in ``entry``, if it is one.

        Returns:
            True if the command text was a ``:log`` or ``:shutdown`` command
        """
        command = parse_game_command(entry.command)
        if command is None:
            return False
        if isinstance(command, ShutdownCommand):
            await self.handle_shutdown(entry)
        else:
            await self.handle_log_command(client, entry, command)
        return True

    async def handle_log_command(
        self,
        client: PrcClient,
        entry: CommandLogEntry,
        command: GameCommand,
    ) -> None:
        logger.info(
            f"Game command from {entry.player_name}: {entry.command}",
            extra=get_log_context(server_id=entry.server_id, player_id=entry.player_id),
        )

        if isinstance(command, UsageError):
            await self._reply(client, entry, command.hint)
        elif isinstance(command, ShiftCommand):
            await self._handle_shift(client, entry, command)
        elif isinstance(command, PunishCommand):
            await self.handle_punish(client, entry, command)

    # ------------------------------------------------------------------
    # Shifts
    # ------------------------------------------------------------------

    async def _handle_shift(
        self,
        client: PrcClient,
        entry: CommandLogEntry,
        command: ShiftCommand,
    ) -> None:
        async with self._session_factory() as session:
            member = await find_member_by_roblox_id(session, entry.server_id, entry.player_id)
            if member is None:
                await self._reply(client, entry, NOT_REGISTERED)
                return

            if command.action == "start":
                await self.handle_shift_start(session, client, entry, member)
            elif command.action == "end":
                await self.handle_shift_end(session, client, entry, member)
            else:
                await self.handle_shift_status(session, client, entry, member)

    async def handle_shift_start(
        self,
        session: AsyncSession,
        client: PrcClient,
        entry: CommandLogEntry,
        member: Member,
    ) -> Optional[Shift]:
        now = self._clock()
        active = await get_active_shift(session, entry.server_id, member.user_id)
        if active is not None:
            elapsed = elapsed_seconds(active.start_time, now)
            await self._reply(client, entry, f"You are already on shift! ({format_hm(elapsed)})")
            return None

        try:
            players = await client.get_players()
        except PrcApiError as e:
            logger.warning(
                f"Roster check failed for shift start: {e}",
                extra=get_log_context(server_id=entry.server_id, player_id=entry.player_id),
            )
            await self._reply(client, entry, "Cannot go on duty - server appears to be offline")
            return None

        if not players:
            await self._reply(client, entry, "Cannot go on duty - server has no players")
            return None

        shift = await start_shift(session, entry.server_id, member.user_id, now)
        logger.info(
            f"Shift started for {entry.player_name}",
            extra=get_log_context(server_id=entry.server_id, player_id=entry.player_id),
        )
        await self._reply(client, entry, f"Shift started on {member.server.display_name}. Stay safe!")
        return shift

    async def handle_shift_end(
        self,
        session: AsyncSession,
        client: PrcClient,
        entry: CommandLogEntry,
        member: Member,
    ) -> Optional[Shift]:
        active = await get_active_shift(session, entry.server_id, member.user_id)
        if active is None:
            await self._reply(client, entry, "You are not currently on shift.")
            return None

        shift = await end_shift(session, active, self._clock())
        await self._reply(client, entry, f"Shift ended. Duration: {format_hms(shift.duration)}")
        return shift

    async def handle_shift_status(
        self,
        session: AsyncSession,
        client: PrcClient,
        entry: CommandLogEntry,
        member: Member,
    ) -> str:
        now = self._clock()
        active = await get_active_shift(session, entry.server_id, member.user_id)
        shifts = await get_shifts_started_since(
            session, entry.server_id, member.user_id, get_week_start(now)
        )

        total = weekly_shift_seconds(shifts, now)
        quota_minutes = member.quota_minutes
        weekly = (
            f"Weekly: {format_hm(total)} "
            f"({quota_percent(total, quota_minutes)}% of {format_quota(quota_minutes)} quota)"
        )

        if active is not None:
            status = f"ON DUTY ({format_hm(elapsed_seconds(active.start_time, now))}) | {weekly}"
        else:
            status = f"OFF DUTY | {weekly}"

        await self._reply(client, entry, status)
        return status

    # ------------------------------------------------------------------
    # Punishments
    # ------------------------------------------------------------------

    async def handle_punish(
        self,
        client: PrcClient,
        entry: CommandLogEntry,
        command: PunishCommand,
    ) -> None:
        """Resolve the target and record a punishment issued in-game.

        The issuer is identified by their Roblox id only; no linked
        dashboard account is required.
        """
        try:
            async with self._session_factory() as session:
                resolution = await self.resolver.resolve(
                    session, client, entry.server_id, command.target_query
                )

                if isinstance(resolution, Ambiguous):
                    label = "Multiple recently left matches" if resolution.recently_left else "Multiple matches"
                    await self._reply(
                        client, entry, f"{label}: {', '.join(resolution.names)}. Be more specific."
                    )
                    return
                if isinstance(resolution, NoMatch):
                    await self._reply(
                        client,
                        entry,
                        f'No player matches "{resolution.query}" (checked online + recently left)',
                    )
                    return

                target = resolution.player
                await create_punishment(
                    session,
                    server_id=entry.server_id,
                    user_id=target.id,
                    moderator_id=entry.player_id,
                    punishment_type=command.punishment_type,
                    reason=f"[Game Command by {entry.player_name}] {command.reason}",
                )
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to log {command.punishment_type} from game command: {e}",
                extra=get_log_context(server_id=entry.server_id, player_id=entry.player_id),
                exc_info=True,
            )
            await self._reply(client, entry, "Error logging punishment. Check dashboard logs.")
            return

        note = " (recently left)" if isinstance(resolution, Resolved) and resolution.recently_left else ""
        logger.info(
            f"{entry.player_name} ({entry.player_id}) logged {command.punishment_type} "
            f"for {target.name}{note}: {command.reason}",
            extra=get_log_context(server_id=entry.server_id, player_id=entry.player_id),
        )
        await self._reply(client, entry, f"{command.punishment_type} logged for {target.name}{note}")

        context = {
            "serverId": entry.server_id,
            "player": {"name": target.name, "id": target.id},
            "punishment": {
                "type": command.punishment_type,
                "reason": command.reason,
                "issuer": entry.player_name,
                "target": target.name,
            },
        }
        await self._trigger(PUNISHMENT_ISSUED, context)
        await self._trigger(PUNISHMENT_TYPE_EVENTS[command.punishment_type], context)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def handle_shutdown(self, entry: CommandLogEntry) -> int:
        """End every active shift on the server.

        Returns:
            Number of shifts ended (0 leaves no shutdown event behind)
        """
        logger.info(
            f"Server shutdown initiated by {entry.player_name} ({entry.player_id})",
            extra=get_log_context(server_id=entry.server_id, player_id=entry.player_id),
        )
        async with self._session_factory() as session:
            active = await get_active_shifts_for_server(session, entry.server_id)
            if not active:
                logger.info(
                    "No active shifts to end",
                    extra=get_log_context(server_id=entry.server_id),
                )
                return 0

            now = self._clock()
            for shift in active:
                await end_shift(session, shift, now, auto_commit=False)
            await upsert_shutdown_event(
                session,
                entry.server_id,
                timestamp=now,
                initiated_by=entry.player_name,
                affected_user_ids=[s.user_id for s in active],
            )

        logger.info(
            f"Ended {len(active)} shifts on shutdown",
            extra=get_log_context(server_id=entry.server_id),
        )
        return len(active)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _reply(self, client: PrcClient, entry: CommandLogEntry, text: str) -> bool:
        message = f":pm {entry.player_name} {self.reply_prefix} {text}"
        return await run_best_effort(
            client.execute_command(message),
            "in-game reply",
            log=logger,
            **get_log_context(server_id=entry.server_id, player_id=entry.player_id),
        )

    async def _trigger(self, event_name: str, context: Dict[str, Any]) -> bool:
        return await run_best_effort(
            self.automation.trigger(event_name, context),
            f"automation trigger {event_name}",
            log=logger,
            **get_log_context(server_id=context.get("serverId"), event=event_name),
        )
