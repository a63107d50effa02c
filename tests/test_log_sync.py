"""Tests for the log ingestion pipeline."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from overwatch.app.db.models import LogEntry
from overwatch.app.services import log_sync
from overwatch.app.services.collaborators import LoggingAutomationEngine
from overwatch.app.services.game_commands import GameCommandDispatcher
from overwatch.app.services.log_entries import CommandLogEntry
from overwatch.app.services.log_sync import LogSyncService, SyncResult, event_for
from overwatch.app.services.raid_filter import RaidFilter


@pytest.fixture
def upstream(fake_prc):
    fake_prc.join_logs = [
        {"Join": True, "Timestamp": 1000, "Player": "Alice:1"},
        {"Join": False, "Timestamp": 1001, "Player": "Bob:2"},
    ]
    fake_prc.kill_logs = [{"Killer": "Alice:1", "Killed": "Bob:2", "Timestamp": 1000}]
    fake_prc.command_logs = [{"Player": "Alice:1", "Timestamp": 1002, "Command": ":h hello"}]
    return fake_prc


@pytest_asyncio.fixture
async def service(seeded, registry, prc_client):
    automation = LoggingAutomationEngine()
    dispatcher = AsyncMock(spec=GameCommandDispatcher)
    raid_filter = AsyncMock(spec=RaidFilter)
    return LogSyncService(
        session_factory=seeded,
        registry=registry,
        automation=automation,
        dispatcher=dispatcher,
        raid_filter=raid_filter,
        client_factory=lambda key: prc_client,
    )


async def _count_logs(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(LogEntry))


@pytest.mark.asyncio
async def test_ingests_new_records(service, upstream, seeded):
    result = await service.fetch_and_save_logs("key-a", "srv-a")

    assert isinstance(result, SyncResult)
    assert result.new_logs_count == 4
    assert len(result.parsed_logs) == 4
    assert await _count_logs(seeded) == 4


@pytest.mark.asyncio
async def test_same_batch_twice_persists_once(service, upstream, seeded):
    first = await service.fetch_and_save_logs("key-a", "srv-a")
    second = await service.fetch_and_save_logs("key-a", "srv-a")

    assert first.new_logs_count == 4
    assert second.new_logs_count == 0
    assert await _count_logs(seeded) == 4


@pytest.mark.asyncio
async def test_duplicate_within_batch(service, fake_prc, seeded):
    fake_prc.join_logs = [
        {"Join": True, "Timestamp": 1000, "Player": "Alice:1"},
        {"Join": True, "Timestamp": 1000, "Player": "Alice:1"},
    ]

    result = await service.fetch_and_save_logs("key-a", "srv-a")

    assert result.new_logs_count == 1
    assert await _count_logs(seeded) == 1


@pytest.mark.asyncio
async def test_failed_stream_is_treated_as_empty(service, upstream, seeded):
    upstream.failures["/server/killlogs"] = 500

    result = await service.fetch_and_save_logs("key-a", "srv-a")

    assert result.new_logs_count == 3
    async with seeded() as session:
        types = set((await session.execute(select(LogEntry.type))).scalars())
    assert types == {"join", "command"}


@pytest.mark.asyncio
async def test_all_streams_failing_returns_zero(service, upstream):
    for path in ("/server/joinlogs", "/server/killlogs", "/server/commandlogs"):
        upstream.failures[path] = 503

    result = await service.fetch_and_save_logs("key-a", "srv-a")

    assert result.new_logs_count == 0
    assert result.parsed_logs == []


@pytest.mark.asyncio
async def test_events_for_new_records_only(service, upstream):
    await service.fetch_and_save_logs("key-a", "srv-a")
    await service.fetch_and_save_logs("key-a", "srv-a")

    events = [name for name, _ in service.automation.triggered]
    assert sorted(events) == ["COMMAND_USED", "PLAYER_JOIN", "PLAYER_KILL", "PLAYER_LEAVE"]

    kill_context = dict(service.automation.triggered)["PLAYER_KILL"]
    assert kill_context == {
        "serverId": "srv-a",
        "player": {"name": "Alice", "id": "1"},
        "target": {"name": "Bob", "id": "2"},
    }


@pytest.mark.asyncio
async def test_staff_commands_are_dispatched_and_all_commands_scanned(service, upstream, prc_client):
    upstream.command_logs.append({"Player": "Alice:1", "Timestamp": 1003, "Command": ":log shift status"})

    await service.fetch_and_save_logs("key-a", "srv-a")

    service.dispatcher.dispatch.assert_awaited_once()
    client, entry = service.dispatcher.dispatch.await_args.args
    assert client is prc_client
    assert entry.command == ":log shift status"

    service.raid_filter.process.assert_awaited_once()
    server_id, commands = service.raid_filter.process.await_args.args
    assert server_id == "srv-a"
    assert [c.command for c in commands] == [":h hello", ":log shift status"]


@pytest.mark.asyncio
async def test_failing_collaborators_do_not_abort_the_batch(service, upstream, seeded):
    upstream.command_logs = [{"Player": "Alice:1", "Timestamp": 1002, "Command": ":shutdown"}]
    service.dispatcher.dispatch.side_effect = RuntimeError("dispatch broke")
    service.automation = MagicMock()
    service.automation.trigger = AsyncMock(side_effect=RuntimeError("engine down"))

    result = await service.fetch_and_save_logs("key-a", "srv-a")

    assert result.new_logs_count == 4
    service.dispatcher.dispatch.assert_awaited_once()
    assert service.automation.trigger.await_count == 4


@pytest.mark.asyncio
async def test_store_failure_skips_only_that_record(service, upstream, seeded, monkeypatch):
    real_save = log_sync.save_log_entry

    async def flaky_save(session, log, auto_commit=True):
        if log.type == "join" and log.prc_timestamp == 1001:
            raise ValueError("store rejected record")
        return await real_save(session, log, auto_commit=auto_commit)

    monkeypatch.setattr(log_sync, "save_log_entry", flaky_save)

    result = await service.fetch_and_save_logs("key-a", "srv-a")

    assert result.new_logs_count == 3
    assert await _count_logs(seeded) == 3
    events = sorted(name for name, _ in service.automation.triggered)
    assert events == ["COMMAND_USED", "PLAYER_JOIN", "PLAYER_KILL"]
    service.raid_filter.process.assert_awaited_once()


@pytest.mark.asyncio
async def test_no_raid_scan_without_new_commands(service, fake_prc):
    fake_prc.join_logs = [{"Join": True, "Timestamp": 5, "Player": "Alice:1"}]

    await service.fetch_and_save_logs("key-a", "srv-a")

    service.raid_filter.process.assert_not_awaited()


@pytest.mark.asyncio
async def test_sync_servers(service, upstream):
    counts = await service.sync_servers()

    # Both seeded servers share the fake upstream
    assert counts == {"srv-a": 4, "srv-b": 4}

    only_a = await service.sync_servers(["srv-a"])
    assert only_a == {"srv-a": 0}


def test_command_event_context():
    entry = CommandLogEntry("srv-a", 1, "Alice", "1", ":m hi")

    name, context = event_for(entry)

    assert name == "COMMAND_USED"
    assert context["details"] == {"command": ":m hi", "args": None}
    assert context["player"] == {"name": "Alice", "id": "1"}
