"""Parser for the in-game staff command language.

    command      := ':log' verb args | ':shutdown' rest
    verb         := 'shift' shiftVerb | punishVerb
    shiftVerb    := 'start' | 'end' | 'status'
    punishVerb   := 'warn' | 'kick' | 'ban' | 'bolo'
    args         := targetQuery reason*

Keywords are case-insensitive. Malformed input parses to a UsageError
carrying the hint to PM back; parsing never raises.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

DEFAULT_REASON = "No reason provided"

PUNISHMENT_VERBS = {
    "warn": "Warn",
    "kick": "Kick",
    "ban": "Ban",
    "bolo": "Ban Bolo",
}
SHIFT_ACTIONS = ("start", "end", "status")

LOG_USAGE = "Usage: :log ban/warn/kick/bolo/shift [args]"
PUNISH_USAGE = "Usage: :log ban/warn/kick/bolo [username] [reason]"
SHIFT_USAGE = "Usage: :log shift start/end/status"

_LOG_RE = re.compile(r"^:log(?:\s+(.*))?$", re.IGNORECASE | re.DOTALL)
_SHUTDOWN_RE = re.compile(r"^:shutdown(?:\s+(.*))?$", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class ShiftCommand:
    action: str  # start | end | status


@dataclass(frozen=True)
class PunishCommand:
    punishment_type: str
    target_query: str
    reason: str = DEFAULT_REASON


@dataclass(frozen=True)
class ShutdownCommand:
    rest: str = ""


@dataclass(frozen=True)
class UsageError:
    hint: str


GameCommand = Union[ShiftCommand, PunishCommand, ShutdownCommand, UsageError]


def is_log_command(text: Optional[str]) -> bool:
    """``:log`` alone or followed by whitespace, any case."""
    return bool(text) and _LOG_RE.match(text.strip()) is not None


def is_shutdown_command(text: Optional[str]) -> bool:
    return bool(text) and _SHUTDOWN_RE.match(text.strip()) is not None


def parse_game_command(text: str) -> Optional[GameCommand]:
    """Parse a command log line.

    Returns None when the text is not a staff command at all.

    Examples:
        >>> parse_game_command(":log ban John griefing spawn")
        PunishCommand(punishment_type='Ban', target_query='john', reason='griefing spawn')
        >>> parse_game_command(":LOG shift START")
        ShiftCommand(action='start')
    """
    text = (text or "").strip()

    match = _SHUTDOWN_RE.match(text)
    if match is not None:
        return ShutdownCommand(rest=(match.group(1) or "").strip())

    match = _LOG_RE.match(text)
    if match is None:
        return None

    parts = (match.group(1) or "").split()
    if not parts:
        return UsageError(LOG_USAGE)

    verb = parts[0].lower()

    if verb == "shift":
        action = parts[1].lower() if len(parts) > 1 else ""
        if action not in SHIFT_ACTIONS:
            return UsageError(SHIFT_USAGE)
        return ShiftCommand(action=action)

    punishment_type = PUNISHMENT_VERBS.get(verb)
    if punishment_type is None:
        return UsageError(f"Invalid type: {verb}. Use ban/warn/kick/bolo/shift")

    if len(parts) < 2:
        return UsageError(PUNISH_USAGE)

    reason = " ".join(parts[2:]) or DEFAULT_REASON
    return PunishCommand(
        punishment_type=punishment_type,
        target_query=parts[1].lower(),
        reason=reason,
    )
