"""Test the SQL storage backend against a SQLite database."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from shade.db.models import PlayerModel, RoomModel
from shade.errors import RoomCodeTaken, RoomFull, RoundConflict
from shade.models import RoomCreate, RoundCreate
from shade.services.party import PartyService


@pytest.fixture
def sql_party(sql_storage, settings):
    return PartyService(sql_storage, settings)


def room_data(room_id="SQL001", **overrides):
    return RoomCreate(**{
        "room_id": room_id,
        "host_id": "alice",
        "host_name": "Alice",
        "max_players": 2,
        "max_rounds": 2,
        "guess_time": 30,
        **overrides,
    })


async def test_create_and_get_room(sql_storage):
    room = await sql_storage.create_room(room_data())

    fetched = await sql_storage.get_room("SQL001")

    assert fetched == room
    assert fetched.denner_rotation == ["alice"]
    assert fetched.current_guess_time == 30
    assert fetched.created_at.tzinfo is not None
    assert await sql_storage.room_code_in_use("SQL001")


async def test_duplicate_room_code(sql_storage):
    await sql_storage.create_room(room_data())

    with pytest.raises(RoomCodeTaken):
        await sql_storage.create_room(room_data(host_id="bob", host_name="Bob"))


async def test_deactivated_room_is_hidden(sql_storage):
    await sql_storage.create_room(room_data())

    assert await sql_storage.deactivate_room("SQL001")
    assert await sql_storage.get_room("SQL001") is None
    assert not await sql_storage.room_code_in_use("SQL001")
    assert not await sql_storage.deactivate_room("SQL001")


async def test_capacity_and_rejoin(sql_storage):
    await sql_storage.create_room(room_data())
    await sql_storage.add_player("SQL001", "alice", "Alice")
    bob = await sql_storage.add_player("SQL001", "bob", "Bob")

    with pytest.raises(RoomFull):
        await sql_storage.add_player("SQL001", "carol", "Carol")

    # Already-active players refresh without a capacity check
    again = await sql_storage.add_player("SQL001", "bob", "Bob")
    assert again.joined_at == bob.joined_at

    assert await sql_storage.deactivate_player("SQL001", "bob")
    carol = await sql_storage.add_player("SQL001", "carol", "Carol")
    assert carol.is_active
    assert [p.player_id for p in await sql_storage.list_players("SQL001")] == ["alice", "carol"]


async def test_advance_round_checks_expected_round(sql_storage):
    await sql_storage.create_room(room_data())
    data = RoundCreate(
        room_id="SQL001",
        round_number=1,
        game_type="findColor",
        denner_id="alice",
        denner_name="Alice",
        target_color="#00ff00",
        guess_time=30,
    )

    room, round_obj = await sql_storage.advance_round("SQL001", 0, data, {"game_state": "playing"})
    assert room.current_round == 1
    assert room.game_state == "playing"
    assert round_obj.round_number == 1

    with pytest.raises(RoundConflict):
        await sql_storage.advance_round("SQL001", 0, data, {"game_state": "playing"})
    assert len(await sql_storage.list_rounds("SQL001")) == 1


async def test_full_session(sql_party, sql_storage):
    info = await sql_party.create_room("alice", "Alice", max_rounds=2, max_players=2)
    room_id = info.room_id
    await sql_party.join_room(room_id, "bob", "Bob")

    await sql_party.start_round(room_id)
    await sql_party.submit_score(room_id, "alice", "Alice", 90, 10.0)
    await sql_party.submit_score(room_id, "bob", "Bob", 40, 10.0)
    # Resubmission replaces the earlier score
    await sql_party.submit_score(room_id, "bob", "Bob", 70, 10.0)
    info = await sql_party.end_round(room_id)
    assert info.game_state == "roundFinished"
    assert len(await sql_storage.list_scores(room_id)) == 2

    await sql_party.continue_session(room_id)
    await sql_party.start_round(room_id)
    await sql_party.submit_score(room_id, "alice", "Alice", 70, 10.0)
    await sql_party.submit_score(room_id, "bob", "Bob", 95, 10.0)
    info = await sql_party.end_round(room_id)

    assert info.game_state == "sessionFinished"
    assert [(e.player_id, e.average_score) for e in info.session_leaderboard] == [
        ("bob", 82.5),
        ("alice", 80.0),
    ]
    bob = next(p for p in info.players if p.id == "bob")
    assert bob.round_scores == (70, 95)
    assert bob.score == 165
    assert bob.best_score == 95
    assert bob.session_score == 82.5
    assert [
        [(r.id, r.score) for r in result.players] for result in info.round_results
    ] == [
        [("alice", 90), ("bob", 70)],
        [("bob", 95), ("alice", 70)],
    ]


async def test_complete_round_keeps_first_results(sql_party, sql_storage):
    info = await sql_party.create_room("alice", "Alice")
    await sql_party.start_round(info.room_id)
    await sql_party.end_round(info.room_id)

    round_obj = await sql_storage.complete_round(info.room_id, 1, [])

    assert round_obj.is_completed
    assert round_obj.player_results == []
    assert await sql_storage.complete_round(info.room_id, 9, []) is None


async def test_cleanup(sql_party, sql_storage):
    stale = await sql_party.create_room("alice", "Alice")
    fresh = await sql_party.create_room("bob", "Bob")
    now = datetime.now(timezone.utc)
    async with sql_storage._session() as db:
        await db.execute(
            update(RoomModel)
            .where(RoomModel.room_id == stale.room_id)
            .values(updated_at=now - timedelta(hours=25))
        )
        await db.execute(
            update(RoomModel)
            .where(RoomModel.room_id == fresh.room_id)
            .values(updated_at=now - timedelta(hours=23))
        )
        await db.execute(
            update(PlayerModel)
            .where(PlayerModel.player_id == "bob")
            .values(last_seen=now - timedelta(hours=3))
        )

    preview = await sql_party.preview_cleanup(room_age_hours=24, player_age_hours=2)
    assert (preview.rooms, preview.players) == (1, 1)

    result = await sql_party.cleanup_inactive(room_age_hours=24, player_age_hours=2)
    assert (result.rooms, result.players) == (1, 1)
    assert await sql_storage.get_room(stale.room_id) is None
    assert await sql_storage.get_room(fresh.room_id) is not None
