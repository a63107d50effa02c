"""Shift CRUD operations."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overwatch.app.core.utils import elapsed_seconds
from overwatch.app.db.models import Shift


async def get_active_shift(
    session: AsyncSession,
    server_id: str,
    user_id: str,
) -> Optional[Shift]:
    result = await session.execute(
        select(Shift)
        .where(
            Shift.server_id == server_id,
            Shift.user_id == user_id,
            Shift.end_time.is_(None),
        )
        .order_by(Shift.start_time.desc())
    )
    return result.scalars().first()


async def get_active_shifts_for_server(
    session: AsyncSession,
    server_id: str,
) -> List[Shift]:
    result = await session.execute(
        select(Shift).where(Shift.server_id == server_id, Shift.end_time.is_(None))
    )
    return list(result.scalars().all())


async def get_shifts_started_since(
    session: AsyncSession,
    server_id: str,
    user_id: str,
    since: datetime,
) -> List[Shift]:
    result = await session.execute(
        select(Shift).where(
            Shift.server_id == server_id,
            Shift.user_id == user_id,
            Shift.start_time >= since,
        )
    )
    return list(result.scalars().all())


async def start_shift(
    session: AsyncSession,
    server_id: str,
    user_id: str,
    start_time: datetime,
    auto_commit: bool = True,
) -> Shift:
    shift = Shift(server_id=server_id, user_id=user_id, start_time=start_time)
    session.add(shift)
    if auto_commit:
        await session.commit()
        await session.refresh(shift)
    return shift


async def end_shift(
    session: AsyncSession,
    shift: Shift,
    end_time: datetime,
    auto_commit: bool = True,
) -> Shift:
    """Close a shift, recording its duration in whole seconds."""
    shift.end_time = end_time
    shift.duration = elapsed_seconds(shift.start_time, end_time)
    if auto_commit:
        await session.commit()
    return shift
