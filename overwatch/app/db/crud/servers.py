"""Server-level CRUD operations: servers, shutdown events, outbound queue."""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overwatch.app.db.models import BotQueueMessage, Server, ShutdownEvent


async def get_server(session: AsyncSession, server_id: str) -> Optional[Server]:
    return await session.get(Server, server_id)


async def list_servers_with_api_key(session: AsyncSession) -> List[Server]:
    """Servers that have a PRC server key configured."""
    result = await session.execute(
        select(Server).where(Server.api_key.is_not(None), Server.api_key != "")
    )
    return list(result.scalars().all())


async def upsert_shutdown_event(
    session: AsyncSession,
    server_id: str,
    timestamp: datetime,
    initiated_by: str,
    affected_user_ids: Sequence[str],
    auto_commit: bool = True,
) -> ShutdownEvent:
    """Record the latest shutdown for a server, replacing any previous one."""
    event = await session.get(ShutdownEvent, server_id)
    if event is None:
        event = ShutdownEvent(server_id=server_id)
        session.add(event)
    event.timestamp = timestamp
    event.initiated_by = initiated_by
    event.shifts_ended = len(affected_user_ids)
    event.affected_user_ids = list(affected_user_ids)
    if auto_commit:
        await session.commit()
    return event


async def enqueue_message(
    session: AsyncSession,
    server_id: str,
    target_id: str,
    content: str,
    message_type: str = "MESSAGE",
    auto_commit: bool = True,
) -> BotQueueMessage:
    """Queue a chat-platform message for the bot process to deliver."""
    message = BotQueueMessage(
        server_id=server_id,
        type=message_type,
        target_id=target_id,
        content=content,
        status="PENDING",
    )
    session.add(message)
    if auto_commit:
        await session.commit()
    return message
