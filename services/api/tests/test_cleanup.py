"""Test deactivation of stale rooms and players."""
from datetime import datetime, timedelta, timezone

import pytest

from shade.errors import RoomNotFound
from shade.models import RoomCreate
from shade.tasks import CleanupTask


def age_room(storage, room_id, hours):
    room = storage._rooms[room_id]
    storage._rooms[room_id] = room.model_copy(
        update={"updated_at": datetime.now(timezone.utc) - timedelta(hours=hours)}
    )


def age_player(storage, room_id, player_id, hours):
    player = storage._players[room_id][player_id]
    storage._players[room_id][player_id] = player.model_copy(
        update={"last_seen": datetime.now(timezone.utc) - timedelta(hours=hours)}
    )


async def test_cleanup_deactivates_only_stale_rooms(party, storage):
    stale = await party.create_room("alice", "Alice")
    fresh = await party.create_room("bob", "Bob")
    age_room(storage, stale.room_id, 25)
    age_room(storage, fresh.room_id, 23)

    result = await party.cleanup_inactive(room_age_hours=24)

    assert result.rooms == 1
    assert not result.dry_run
    with pytest.raises(RoomNotFound):
        await party.get_game_info(stale.room_id)
    assert (await party.get_game_info(fresh.room_id)).room_id == fresh.room_id


async def test_cleanup_deactivates_stale_players(party, storage):
    info = await party.create_room("alice", "Alice")
    await party.join_room(info.room_id, "bob", "Bob")
    age_player(storage, info.room_id, "bob", 3)

    result = await party.cleanup_inactive(player_age_hours=2)

    assert result.players == 1
    players = await storage.list_players(info.room_id)
    assert [p.player_id for p in players] == ["alice"]
    assert await storage.get_player(info.room_id, "bob", include_inactive=True) is not None


async def test_preview_cleanup_changes_nothing(party, storage):
    info = await party.create_room("alice", "Alice")
    age_room(storage, info.room_id, 30)
    age_player(storage, info.room_id, "alice", 30)

    preview = await party.preview_cleanup()

    assert preview.dry_run
    assert (preview.rooms, preview.players) == (1, 1)
    assert await storage.get_room(info.room_id) is not None

    result = await party.cleanup_inactive()
    assert (result.rooms, result.players) == (1, 1)
    assert (await party.preview_cleanup()).rooms == 0


async def test_cleanup_task_run_once(storage, settings, monkeypatch):
    monkeypatch.setattr("shade.tasks.get_storage", lambda: storage)
    monkeypatch.setattr("shade.tasks.get_settings", lambda: settings)
    info = await storage.create_room(RoomCreate(
        room_id="OLD123",
        host_id="alice",
        host_name="Alice",
        max_players=4,
        max_rounds=3,
        guess_time=30,
    ))
    age_room(storage, info.room_id, 48)

    result = await CleanupTask(interval_seconds=60).run_once()

    assert result.rooms == 1
    assert await storage.get_room("OLD123") is None
