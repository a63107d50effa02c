"""Wire models for the PRC private server API."""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PrcServer(BaseModel):
    """``GET /server`` response."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(default="", alias="Name")
    owner_id: int = Field(default=0, alias="OwnerId")
    co_owner_ids: list[int] = Field(default_factory=list, alias="CoOwnerIds")
    current_players: int = Field(default=0, alias="CurrentPlayers")
    max_players: int = Field(default=0, alias="MaxPlayers")
    join_key: str = Field(default="", alias="JoinKey")
    acc_verified_req: str = Field(default="", alias="AccVerifiedReq")
    team_balance: bool = Field(default=False, alias="TeamBalance")


class PrcPlayer(BaseModel):
    """One entry of ``GET /server/players``. ``Player`` is ``"Name:UserId"``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    player: str = Field(default="", alias="Player")
    team: str | None = Field(default=None, alias="Team")
    permission: Any = Field(default=None, alias="Permission")
    vehicle: str | None = Field(default=None, alias="Vehicle")
    callsign: str | None = Field(default=None, alias="Callsign")

    @property
    def ref(self) -> "PlayerRef":
        return parse_prc_player(self.player)

    @property
    def is_staff(self) -> bool:
        """Players holding in-game moderation permissions."""
        if isinstance(self.permission, str):
            return self.permission in ("Server Moderator", "Server Administrator", "Server Owner")
        if isinstance(self.permission, (int, float)):
            return self.permission > 0
        return False


@dataclass(frozen=True)
class PlayerRef:
    name: str
    id: str


def parse_prc_player(raw: Any) -> PlayerRef:
    """Split a combined ``"Name:UserId"`` field.

    >>> parse_prc_player("JohnSmith123:4412")
    PlayerRef(name='JohnSmith123', id='4412')
    >>> parse_prc_player("Remote Server")
    PlayerRef(name='Remote Server', id='0')
    """
    parts = str(raw or "").split(":")
    name = parts[0] if parts[0] else "Unknown"
    player_id = parts[1] if len(parts) > 1 and parts[1] else "0"
    return PlayerRef(name=name, id=player_id)
