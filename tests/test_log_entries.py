"""Tests for raw log normalization."""

from overwatch.app.providers.prc_types import PlayerRef, parse_prc_player
from overwatch.app.services.log_entries import (
    CommandLogEntry,
    JoinLogEntry,
    KillLogEntry,
    normalize_batch,
    normalize_command_logs,
    normalize_join_logs,
    normalize_kill_logs,
)


def test_parse_prc_player():
    assert parse_prc_player("JohnSmith123:4412") == PlayerRef("JohnSmith123", "4412")
    assert parse_prc_player("Remote Server") == PlayerRef("Remote Server", "0")
    assert parse_prc_player(None) == PlayerRef("Unknown", "0")
    assert parse_prc_player("") == PlayerRef("Unknown", "0")


def test_join_and_leave():
    entries = normalize_join_logs("srv-a", [
        {"Join": True, "Timestamp": 1000, "Player": "Alice:1"},
        {"Join": False, "Timestamp": 1001, "Player": "Bob:2"},
        {"Timestamp": 1002, "Player": "Carol:3"},
    ])

    assert [e.is_join for e in entries] == [True, False, True]
    assert entries[1].actor == PlayerRef("Bob", "2")
    assert entries[1].dedup_key == ("join", 1001)

    record = entries[1].to_record()
    assert record.type == "join"
    assert record.is_join is False
    assert record.player_name == "Bob"
    assert record.server_id == "srv-a"


def test_kill_entry():
    (entry,) = normalize_kill_logs("srv-a", [
        {"Killer": "Alice:1", "Killed": "Bob:2", "Timestamp": 2000},
    ])

    assert isinstance(entry, KillLogEntry)
    assert entry.actor == PlayerRef("Alice", "1")
    assert entry.victim == PlayerRef("Bob", "2")

    record = entry.to_record()
    assert (record.killer_id, record.victim_id) == ("1", "2")
    assert record.player_name is None


def test_command_entry_keeps_full_text():
    (entry,) = normalize_command_logs("srv-a", [
        {"Player": "Mod:100", "Timestamp": 3000, "Command": ":log ban john griefing"},
    ])

    assert isinstance(entry, CommandLogEntry)
    assert entry.command == ":log ban john griefing"
    assert not entry.is_remote

    record = entry.to_record()
    assert record.command == ":log ban john griefing"
    assert record.arguments is None


def test_remote_server_commands():
    entries = normalize_command_logs("srv-a", [
        {"Player": "Remote Server", "Timestamp": 1, "Command": ":m hi"},
        {"Player": "Someone:0", "Timestamp": 2, "Command": ":m hi"},
    ])

    assert all(e.is_remote for e in entries)


def test_malformed_records_are_skipped():
    entries = normalize_join_logs("srv-a", [
        {"Join": True, "Player": "NoTimestamp:1"},
        {"Join": True, "Timestamp": "not-a-number", "Player": "Bad:2"},
        "garbage",
        {"Join": True, "Timestamp": "1500", "Player": "Good:3"},
    ])

    assert len(entries) == 1
    assert entries[0].prc_timestamp == 1500


def test_same_timestamp_different_type_are_distinct():
    batch = normalize_batch(
        "srv-a",
        [{"Join": True, "Timestamp": 1000, "Player": "Alice:1"}],
        [{"Killer": "Alice:1", "Killed": "Bob:2", "Timestamp": 1000}],
        [{"Player": "Alice:1", "Timestamp": 1000, "Command": ":h hi"}],
    )

    assert [type(e) for e in batch] == [JoinLogEntry, KillLogEntry, CommandLogEntry]
    assert len({e.dedup_key for e in batch}) == 3
