"""Resolve a partial player name typed in-game to one concrete player."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from overwatch.app.core.config import settings
from overwatch.app.core.logging import get_log_context, get_logger
from overwatch.app.core.utils import utc_now
from overwatch.app.db.crud import get_recent_leave_logs
from overwatch.app.exceptions import PrcApiError
from overwatch.app.providers.prc import PrcClient
from overwatch.app.providers.prc_types import PlayerRef

logger = get_logger(__name__)

MAX_CANDIDATES_SHOWN = 3


@dataclass(frozen=True)
class Resolved:
    player: PlayerRef
    recently_left: bool = False


@dataclass(frozen=True)
class Ambiguous:
    names: List[str] = field(default_factory=list)
    recently_left: bool = False


@dataclass(frozen=True)
class NoMatch:
    query: str


Resolution = Union[Resolved, Ambiguous, NoMatch]


def match_players(query: str, players: Sequence[PlayerRef]) -> List[PlayerRef]:
    """Case-insensitive substring match on player name."""
    needle = query.lower()
    return [p for p in players if needle in p.name.lower()]


class PlayerResolver:
    """Online roster first, then players who left the server recently."""

    def __init__(
        self,
        window_minutes: Optional[int] = None,
        clock: Callable = utc_now,
    ):
        self.window_minutes = window_minutes or settings.recent_leave_window_minutes
        self._clock = clock

    async def resolve(
        self,
        session: AsyncSession,
        client: PrcClient,
        server_id: str,
        query: str,
    ) -> Resolution:
        online = await self._online_players(client, server_id)
        matches = match_players(query, online)
        if len(matches) == 1:
            return Resolved(matches[0])
        if len(matches) > 1:
            return Ambiguous([p.name for p in matches[:MAX_CANDIDATES_SHOWN]])

        left = await self.recently_left_players(session, server_id)
        matches = match_players(query, left)
        if len(matches) == 1:
            return Resolved(matches[0], recently_left=True)
        if len(matches) > 1:
            return Ambiguous(
                [p.name for p in matches[:MAX_CANDIDATES_SHOWN]],
                recently_left=True,
            )
        return NoMatch(query)

    async def recently_left_players(
        self,
        session: AsyncSession,
        server_id: str,
    ) -> List[PlayerRef]:
        """Players with a leave event inside the window, most recent leave per id."""
        since = self._clock() - timedelta(minutes=self.window_minutes)
        logs = await get_recent_leave_logs(session, server_id, since)

        unique: Dict[str, PlayerRef] = {}
        for log in logs:
            player_id = log.player_id or "0"
            if player_id not in unique:
                unique[player_id] = PlayerRef(log.player_name, player_id)
        return list(unique.values())

    async def _online_players(self, client: PrcClient, server_id: str) -> List[PlayerRef]:
        try:
            players = await client.get_players()
        except PrcApiError as e:
            logger.warning(
                f"Roster fetch failed during target lookup: {e}",
                extra=get_log_context(server_id=server_id),
            )
            return []
        return [p.ref for p in players]
