"""Punishment CRUD operations."""

from sqlalchemy.ext.asyncio import AsyncSession

from overwatch.app.core.utils import utc_now
from overwatch.app.db.models import PUNISHMENT_TYPES, Punishment


async def create_punishment(
    session: AsyncSession,
    server_id: str,
    user_id: str,
    moderator_id: str,
    punishment_type: str,
    reason: str,
    auto_commit: bool = True,
) -> Punishment:
    """Create a punishment record.

    BOLOs stay unresolved until a moderator acts on them; every other type
    is resolved on creation.

    Args:
        session: Database session
        server_id: The server the punishment belongs to
        user_id: Roblox id of the punished player
        moderator_id: Roblox id of the issuing moderator
        punishment_type: One of Warn, Kick, Ban, Ban Bolo
        reason: Free-text reason
        auto_commit: Whether to commit the transaction

    Returns:
        The created Punishment object
    """
    if punishment_type not in PUNISHMENT_TYPES:
        raise ValueError(f"Unknown punishment type: {punishment_type}")

    punishment = Punishment(
        server_id=server_id,
        user_id=str(user_id),
        moderator_id=str(moderator_id),
        type=punishment_type,
        reason=reason,
        resolved=punishment_type != "Ban Bolo",
        created_at=utc_now(),
    )
    session.add(punishment)
    if auto_commit:
        await session.commit()
        await session.refresh(punishment)
    return punishment
