"""Log CRUD operations."""

from datetime import datetime
from typing import Iterable, List, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overwatch.app.db.models import LogEntry


async def find_existing_log_keys(
    session: AsyncSession,
    server_id: str,
    prc_timestamps: Iterable[int],
) -> Set[Tuple[str, int]]:
    """Return the ``(type, prc_timestamp)`` pairs already stored for a server.

    One query covers a whole polled batch.

    Args:
        session: Database session
        server_id: The server the batch belongs to
        prc_timestamps: Every timestamp present in the batch

    Returns:
        Set of ``(type, prc_timestamp)`` keys already persisted
    """
    timestamps = sorted(set(prc_timestamps))
    if not timestamps:
        return set()

    result = await session.execute(
        select(LogEntry.type, LogEntry.prc_timestamp).where(
            LogEntry.server_id == server_id,
            LogEntry.prc_timestamp.in_(timestamps),
        )
    )
    return {(row.type, row.prc_timestamp) for row in result}


async def save_log_entry(
    session: AsyncSession,
    log: LogEntry,
    auto_commit: bool = True,
) -> LogEntry:
    """Persist one log record.

    Raises:
        sqlalchemy.exc.IntegrityError: If the ``(server_id, type,
            prc_timestamp)`` key is already stored.
    """
    session.add(log)
    if auto_commit:
        await session.commit()
    else:
        await session.flush()
    return log


async def get_recent_leave_logs(
    session: AsyncSession,
    server_id: str,
    since: datetime,
    limit: int = 100,
) -> List[LogEntry]:
    """Leave events ingested since ``since``, newest first."""
    result = await session.execute(
        select(LogEntry)
        .where(
            LogEntry.server_id == server_id,
            LogEntry.type == "join",
            LogEntry.is_join.is_(False),
            LogEntry.created_at >= since,
            LogEntry.player_name.is_not(None),
        )
        .order_by(LogEntry.created_at.desc(), LogEntry.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
