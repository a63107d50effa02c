"""Member CRUD operations."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overwatch.app.db.models import Member


async def find_member_by_roblox_id(
    session: AsyncSession,
    server_id: str,
    roblox_id: str,
) -> Optional[Member]:
    """Look up a server's staff registration by Roblox id.

    Role and server are eagerly loaded.
    """
    result = await session.execute(
        select(Member).where(
            Member.server_id == server_id,
            Member.user_id == str(roblox_id),
        )
    )
    return result.scalars().first()
