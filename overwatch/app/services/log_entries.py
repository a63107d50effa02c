"""Normalization of raw PRC log streams.

The three log endpoints return loosely-shaped dicts with combined
``"Name:Id"`` fields. Everything downstream works on the frozen records
defined here, distinguished by their ``type`` tag.
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple, Union

from overwatch.app.core.logging import get_logger
from overwatch.app.db.models import LogEntry
from overwatch.app.providers.prc_types import PlayerRef, parse_prc_player

logger = get_logger(__name__)

REMOTE_SERVER_NAME = "Remote Server"


@dataclass(frozen=True)
class JoinLogEntry:
    type: ClassVar[str] = "join"

    server_id: str
    prc_timestamp: int
    player_name: str
    player_id: str
    is_join: bool

    @property
    def dedup_key(self) -> Tuple[str, int]:
        return (self.type, self.prc_timestamp)

    @property
    def actor(self) -> PlayerRef:
        return PlayerRef(self.player_name, self.player_id)

    def to_record(self) -> LogEntry:
        return LogEntry(
            server_id=self.server_id,
            type=self.type,
            prc_timestamp=self.prc_timestamp,
            player_name=self.player_name,
            player_id=self.player_id,
            is_join=self.is_join,
        )


@dataclass(frozen=True)
class KillLogEntry:
    type: ClassVar[str] = "kill"

    server_id: str
    prc_timestamp: int
    killer_name: str
    killer_id: str
    victim_name: str
    victim_id: str

    @property
    def dedup_key(self) -> Tuple[str, int]:
        return (self.type, self.prc_timestamp)

    @property
    def actor(self) -> PlayerRef:
        return PlayerRef(self.killer_name, self.killer_id)

    @property
    def victim(self) -> PlayerRef:
        return PlayerRef(self.victim_name, self.victim_id)

    def to_record(self) -> LogEntry:
        return LogEntry(
            server_id=self.server_id,
            type=self.type,
            prc_timestamp=self.prc_timestamp,
            killer_name=self.killer_name,
            killer_id=self.killer_id,
            victim_name=self.victim_name,
            victim_id=self.victim_id,
        )


@dataclass(frozen=True)
class CommandLogEntry:
    type: ClassVar[str] = "command"

    server_id: str
    prc_timestamp: int
    player_name: str
    player_id: str
    command: str

    @property
    def dedup_key(self) -> Tuple[str, int]:
        return (self.type, self.prc_timestamp)

    @property
    def actor(self) -> PlayerRef:
        return PlayerRef(self.player_name, self.player_id)

    @property
    def is_remote(self) -> bool:
        """Commands issued through the API rather than by a player in-game."""
        return self.player_name == REMOTE_SERVER_NAME or self.player_id == "0"

    def to_record(self) -> LogEntry:
        # The PRC API has no separate arguments field; the full command is kept
        return LogEntry(
            server_id=self.server_id,
            type=self.type,
            prc_timestamp=self.prc_timestamp,
            player_name=self.player_name,
            player_id=self.player_id,
            command=self.command,
            arguments=None,
        )


ParsedLogEntry = Union[JoinLogEntry, KillLogEntry, CommandLogEntry]


def _timestamp(raw: Dict[str, Any]) -> Optional[int]:
    value = raw.get("Timestamp")
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_join_logs(server_id: str, raw_logs: Iterable[Any]) -> List[JoinLogEntry]:
    entries: List[JoinLogEntry] = []
    for raw in raw_logs:
        ts = _timestamp(raw) if isinstance(raw, dict) else None
        if ts is None:
            logger.debug(f"Skipping malformed join log: {raw!r}")
            continue
        player = parse_prc_player(raw.get("Player"))
        entries.append(
            JoinLogEntry(
                server_id=server_id,
                prc_timestamp=ts,
                player_name=player.name,
                player_id=player.id,
                is_join=raw.get("Join") is not False,
            )
        )
    return entries


def normalize_kill_logs(server_id: str, raw_logs: Iterable[Any]) -> List[KillLogEntry]:
    entries: List[KillLogEntry] = []
    for raw in raw_logs:
        ts = _timestamp(raw) if isinstance(raw, dict) else None
        if ts is None:
            logger.debug(f"Skipping malformed kill log: {raw!r}")
            continue
        killer = parse_prc_player(raw.get("Killer"))
        victim = parse_prc_player(raw.get("Killed"))
        entries.append(
            KillLogEntry(
                server_id=server_id,
                prc_timestamp=ts,
                killer_name=killer.name,
                killer_id=killer.id,
                victim_name=victim.name,
                victim_id=victim.id,
            )
        )
    return entries


def normalize_command_logs(server_id: str, raw_logs: Iterable[Any]) -> List[CommandLogEntry]:
    entries: List[CommandLogEntry] = []
    for raw in raw_logs:
        ts = _timestamp(raw) if isinstance(raw, dict) else None
        if ts is None:
            logger.debug(f"Skipping malformed command log: {raw!r}")
            continue
        player = parse_prc_player(raw.get("Player"))
        entries.append(
            CommandLogEntry(
                server_id=server_id,
                prc_timestamp=ts,
                player_name=player.name,
                player_id=player.id,
                command=str(raw.get("Command") or ""),
            )
        )
    return entries


def normalize_batch(
    server_id: str,
    join_logs: Iterable[Any],
    kill_logs: Iterable[Any],
    command_logs: Iterable[Any],
) -> List[ParsedLogEntry]:
    """Normalize one poll's three streams, joins first, then kills, then commands."""
    return [
        *normalize_join_logs(server_id, join_logs),
        *normalize_kill_logs(server_id, kill_logs),
        *normalize_command_logs(server_id, command_logs),
    ]
