"""CRUD operations package.

- logs.py: Ingested log lines
- members.py: Staff registrations
- punishments.py: Punishment records
- shifts.py: Shift lifecycle
- servers.py: Servers, shutdown events and the outbound message queue
"""

from overwatch.app.db.crud.logs import (
    find_existing_log_keys,
    get_recent_leave_logs,
    save_log_entry,
)
from overwatch.app.db.crud.members import find_member_by_roblox_id
from overwatch.app.db.crud.punishments import create_punishment
from overwatch.app.db.crud.servers import (
    enqueue_message,
    get_server,
    list_servers_with_api_key,
    upsert_shutdown_event,
)
from overwatch.app.db.crud.shifts import (
    end_shift,
    get_active_shift,
    get_active_shifts_for_server,
    get_shifts_started_since,
    start_shift,
)

__all__ = [
    # Log operations
    "find_existing_log_keys",
    "get_recent_leave_logs",
    "save_log_entry",
    # Member operations
    "find_member_by_roblox_id",
    # Punishment operations
    "create_punishment",
    # Server operations
    "enqueue_message",
    "get_server",
    "list_servers_with_api_key",
    "upsert_shutdown_event",
    # Shift operations
    "end_shift",
    "get_active_shift",
    "get_active_shifts_for_server",
    "get_shifts_started_since",
    "start_shift",
]
