"""Internal trigger endpoints, called by the scheduler and the dashboard.

Every route requires the ``x-internal-secret`` header.
"""

import asyncio
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from overwatch.app.core.logging import get_log_context, get_logger
from overwatch.app.core.security import verify_internal_secret
from overwatch.app.db.crud import get_server
from overwatch.app.exceptions import PrcApiError, UnauthorizedError
from overwatch.app.services.log_sync import LogSyncService

logger = get_logger(__name__)

INTERNAL_SECRET_HEADER = "x-internal-secret"


def require_internal_secret(request: Request) -> None:
    """Reject requests without the shared internal secret.

    Raises:
        UnauthorizedError: If the header is missing or does not match
    """
    if not verify_internal_secret(request.headers.get(INTERNAL_SECRET_HEADER)):
        raise UnauthorizedError()


router = APIRouter(prefix="/internal", dependencies=[Depends(require_internal_secret)])


class SyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    server_id: Optional[str] = Field(default=None, alias="serverId")


def get_log_sync_service(request: Request) -> LogSyncService:
    return request.app.state.log_sync


@router.post("/sync")
async def sync_logs(
    body: Optional[SyncRequest] = None,
    service: LogSyncService = Depends(get_log_sync_service),
) -> dict[str, Any]:
    """Ingest logs for one server, or for every server with a key."""
    server_ids = [body.server_id] if body is not None and body.server_id else None
    counts = await service.sync_servers(server_ids)
    logger.info(f"Internal sync finished for {len(counts)} servers")
    return {
        "success": True,
        "results": [{"serverId": sid, "newLogs": n} for sid, n in counts.items()],
    }


@router.get("/server-status")
async def server_status(
    request: Request,
    server_id: Optional[str] = Query(default=None, alias="serverId"),
    service: LogSyncService = Depends(get_log_sync_service),
) -> dict[str, Any]:
    """Live server info and number of in-game staff."""
    if not server_id:
        raise HTTPException(status_code=400, detail="Missing serverId")

    async with request.app.state.session_factory() as session:
        server = await get_server(session, server_id)
    if server is None:
        raise HTTPException(status_code=404, detail="Server not found")

    client = service.client_for(server.api_key)
    info, players = await asyncio.gather(
        client.get_server(), client.get_players(), return_exceptions=True
    )
    for result in (info, players):
        if isinstance(result, BaseException) and not isinstance(result, PrcApiError):
            raise result
        if isinstance(result, PrcApiError):
            logger.warning(
                f"Server status lookup failed: {result}",
                extra=get_log_context(server_id=server_id),
            )

    online = not isinstance(info, PrcApiError)
    if isinstance(players, PrcApiError):
        players = []

    return {
        "serverInfo": {
            "online": online,
            "players": info.current_players if online else 0,
            "maxPlayers": info.max_players if online else 0,
        },
        "staffInGame": sum(1 for p in players if p.is_staff),
    }
