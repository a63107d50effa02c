"""Log ingestion pipeline.

One call polls a server's three log streams, persists the records not seen
before and fans each new record out to automations, the in-game command
dispatcher and raid detection. The PRC API has no log ids, so
``(server_id, type, prc_timestamp)`` identifies a record.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from overwatch.app.core.best_effort import run_best_effort
from overwatch.app.core.logging import get_log_context, get_logger
from overwatch.app.db.crud import (
    find_existing_log_keys,
    list_servers_with_api_key,
    save_log_entry,
)
from overwatch.app.exceptions import PrcApiError
from overwatch.app.providers.prc import PrcClient
from overwatch.app.providers.rate_limit import RateLimitRegistry
from overwatch.app.services.collaborators import (
    COMMAND_USED,
    PLAYER_JOIN,
    PLAYER_KILL,
    PLAYER_LEAVE,
    AutomationEngine,
)
from overwatch.app.services.command_parser import is_log_command, is_shutdown_command
from overwatch.app.services.game_commands import GameCommandDispatcher
from overwatch.app.services.log_entries import (
    CommandLogEntry,
    JoinLogEntry,
    KillLogEntry,
    ParsedLogEntry,
    normalize_batch,
)
from overwatch.app.services.raid_filter import RaidFilter

logger = get_logger(__name__)

ClientFactory = Callable[[str], PrcClient]


@dataclass
class SyncResult:
    new_logs_count: int = 0
    parsed_logs: List[ParsedLogEntry] = field(default_factory=list)


def event_for(entry: ParsedLogEntry) -> tuple[str, Dict[str, Any]]:
    """Automation trigger name and context for a newly ingested record."""
    context: Dict[str, Any] = {
        "serverId": entry.server_id,
        "player": {"name": entry.actor.name, "id": entry.actor.id},
    }
    if isinstance(entry, JoinLogEntry):
        return (PLAYER_JOIN if entry.is_join else PLAYER_LEAVE), context
    if isinstance(entry, KillLogEntry):
        context["target"] = {"name": entry.victim.name, "id": entry.victim.id}
        return PLAYER_KILL, context
    context["details"] = {"command": entry.command, "args": None}
    return COMMAND_USED, context


def _is_staff_command(text: Optional[str]) -> bool:
    return is_log_command(text) or is_shutdown_command(text)


class LogSyncService:
    """Polls and ingests PRC logs for one server at a time.

    Example:
        >>> service = LogSyncService(session_maker, registry, automation, dispatcher, raid_filter)
        >>> result = await service.fetch_and_save_logs(server.api_key, server.id)
        >>> result.new_logs_count
        12
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        registry: RateLimitRegistry,
        automation: AutomationEngine,
        dispatcher: GameCommandDispatcher,
        raid_filter: RaidFilter,
        http_client: Optional[httpx.AsyncClient] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self._session_factory = session_factory
        self.registry = registry
        self.automation = automation
        self.dispatcher = dispatcher
        self.raid_filter = raid_filter
        self._http_client = http_client
        self._client_factory = client_factory

    def client_for(self, server_key: str) -> PrcClient:
        if self._client_factory is not None:
            return self._client_factory(server_key)
        return PrcClient(server_key, self.registry, http_client=self._http_client)

    async def fetch_and_save_logs(self, server_key: str, server_id: str) -> SyncResult:
        """Poll, persist and dispatch one server's new logs.

        A failing stream counts as "nothing new" for that stream only.
        Never raises; an unexpected failure is logged and reported as zero
        new records.
        """
        try:
            return await self._sync(self.client_for(server_key), server_id)
        except Exception as e:
            logger.error(
                f"Log sync failed: {type(e).__name__}: {e}",
                extra=get_log_context(server_id=server_id),
                exc_info=True,
            )
            return SyncResult()

    async def sync_servers(self, server_ids: Optional[Sequence[str]] = None) -> Dict[str, int]:
        """Sync every server with a configured key (or only ``server_ids``).

        Returns:
            Mapping of server id to number of new records
        """
        async with self._session_factory() as session:
            servers = await list_servers_with_api_key(session)
        if server_ids is not None:
            wanted = set(server_ids)
            servers = [s for s in servers if s.id in wanted]

        results = await asyncio.gather(
            *(self.fetch_and_save_logs(s.api_key, s.id) for s in servers)
        )
        return {s.id: r.new_logs_count for s, r in zip(servers, results)}

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _sync(self, client: PrcClient, server_id: str) -> SyncResult:
        join, kill, command = await asyncio.gather(
            self._fetch_stream(client.get_join_logs(), "join", server_id),
            self._fetch_stream(client.get_kill_logs(), "kill", server_id),
            self._fetch_stream(client.get_command_logs(), "command", server_id),
        )

        parsed = normalize_batch(server_id, join, kill, command)
        if not parsed:
            return SyncResult()

        async with self._session_factory() as session:
            existing = await find_existing_log_keys(
                session, server_id, (entry.prc_timestamp for entry in parsed)
            )

        new_count = 0
        new_commands: List[CommandLogEntry] = []
        for entry in parsed:
            if entry.dedup_key in existing:
                continue
            # Same key twice in one batch keeps the first
            existing.add(entry.dedup_key)

            if not await self._persist(entry):
                continue
            new_count += 1

            if isinstance(entry, CommandLogEntry):
                new_commands.append(entry)
                if _is_staff_command(entry.command):
                    await run_best_effort(
                        self.dispatcher.dispatch(client, entry),
                        "game command dispatch",
                        log=logger,
                        **get_log_context(server_id=server_id, player_id=entry.player_id),
                    )

            event_name, context = event_for(entry)
            await run_best_effort(
                self.automation.trigger(event_name, context),
                f"automation trigger {event_name}",
                log=logger,
                **get_log_context(server_id=server_id, event=event_name),
            )

        if new_commands:
            await self.raid_filter.process(server_id, new_commands)

        if new_count:
            logger.info(
                f"Ingested {new_count} new logs ({len(parsed)} polled)",
                extra=get_log_context(server_id=server_id),
            )
        return SyncResult(new_logs_count=new_count, parsed_logs=parsed)

    async def _fetch_stream(
        self,
        request: Awaitable[List[Dict[str, Any]]],
        stream: str,
        server_id: str,
    ) -> List[Dict[str, Any]]:
        try:
            return await request
        except PrcApiError as e:
            logger.warning(
                f"Fetching {stream} logs failed: {e}",
                extra=get_log_context(server_id=server_id, log_type=stream),
            )
            return []

    async def _persist(self, entry: ParsedLogEntry) -> bool:
        """Insert one record in its own transaction. False if it was skipped."""
        try:
            async with self._session_factory() as session:
                await save_log_entry(session, entry.to_record())
            return True
        except IntegrityError:
            logger.info(
                f"Skipping already stored {entry.type} log {entry.prc_timestamp}",
                extra=get_log_context(server_id=entry.server_id, log_type=entry.type),
            )
        except Exception as e:
            logger.error(
                f"Failed to store {entry.type} log {entry.prc_timestamp}: {type(e).__name__}: {e}",
                extra=get_log_context(server_id=entry.server_id, log_type=entry.type),
                exc_info=True,
            )
        return False
