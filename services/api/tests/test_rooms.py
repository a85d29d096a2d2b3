"""Test room creation, updates and host hand-off."""
import itertools

import pytest

from shade.errors import InvalidInputError, RoomCreationExhausted, RoomNotFound
from shade.services.party import PartyService
from shade.services.rooms import ROOM_CODE_ALPHABET, RoomManager, generate_room_code


def test_generate_room_code():
    code = generate_room_code()

    assert len(code) == 6
    assert all(c in ROOM_CODE_ALPHABET for c in code)


async def test_create_room_uses_defaults(party, settings):
    info = await party.create_room("alice", "Alice")

    assert len(info.room_id) == settings.room_code_length
    assert info.game_state == "lobby"
    assert info.current_round == 0
    assert info.max_players == settings.default_max_players
    assert info.max_rounds == settings.default_max_rounds
    assert info.guess_time == settings.default_guess_time
    assert info.current_guess_time == settings.default_guess_time
    assert info.target_color == settings.default_target_color
    assert info.denner_id == "alice"
    assert info.denner_rotation == ("alice",)
    assert info.player_count == 1
    assert info.players[0].id == "alice"
    assert info.min_players == settings.min_players


async def test_create_room_with_options(party):
    info = await party.create_room(
        "alice", "Alice", target_color="#00ff00", max_players=6, max_rounds=5, guess_time=45
    )

    assert info.target_color == "#00ff00"
    assert info.max_players == 6
    assert info.max_rounds == 5
    assert info.guess_time == 45


async def test_create_room_rejects_blank_host(party, storage):
    with pytest.raises(InvalidInputError):
        await party.create_room("  ", "Alice")

    assert storage._rooms == {}


async def test_create_room_retries_on_collision(storage, settings):
    existing = await RoomManager(storage, settings, code_factory=lambda: "TAKEN1").create(
        "bob", "Bob"
    )
    codes = iter(["TAKEN1", "TAKEN1", "FRESH1"])
    rooms = RoomManager(storage, settings, code_factory=lambda: next(codes))

    room = await rooms.create("alice", "Alice")

    assert existing.room_id == "TAKEN1"
    assert room.room_id == "FRESH1"


async def test_create_room_exhausts_after_max_attempts(storage, settings):
    await RoomManager(storage, settings, code_factory=lambda: "AAAAAA").create("bob", "Bob")
    calls = itertools.count(1)

    def always_taken():
        next(calls)
        return "AAAAAA"

    party = PartyService(storage, settings, code_factory=always_taken)

    with pytest.raises(RoomCreationExhausted) as exc_info:
        await party.create_room("alice", "Alice")

    assert exc_info.value.context["attempts"] == settings.room_code_max_attempts
    assert next(calls) == settings.room_code_max_attempts + 1


async def test_inactive_room_code_is_not_reused(storage, settings):
    rooms = RoomManager(storage, settings, code_factory=lambda: "CLOSED")
    await rooms.create("bob", "Bob")
    await rooms.deactivate("CLOSED")

    # The code no longer looks in use, but the stored row still claims it
    with pytest.raises(RoomCreationExhausted):
        await rooms.create("alice", "Alice")


async def test_get_game_info_missing_room(party):
    with pytest.raises(RoomNotFound):
        await party.get_game_info("NOPE00")


async def test_update_room(party):
    info = await party.create_room("alice", "Alice")

    room = await party.update_room(info.room_id, {"max_rounds": 7, "target_color": "#123456"})

    assert room.max_rounds == 7
    assert room.target_color == "#123456"


async def test_update_room_rejects_max_rounds_below_current_round(party, play_round):
    info = await party.create_room("alice", "Alice", max_rounds=3)
    await play_round(info.room_id, [("alice", "Alice", 80, 5.0)])
    await party.continue_session(info.room_id)
    await party.start_round(info.room_id)

    with pytest.raises(InvalidInputError) as exc_info:
        await party.update_room(info.room_id, {"max_rounds": 1})

    assert exc_info.value.context["round_number"] == 2
    room = await party.rooms.require(info.room_id)
    assert (room.current_round, room.max_rounds) == (2, 3)

    # Lowering to the current round is still allowed
    room = await party.update_room(info.room_id, {"max_rounds": 2})
    assert room.max_rounds == 2


async def test_update_room_keeps_host_in_rotation(party):
    info = await party.create_room("alice", "Alice")
    await party.join_room(info.room_id, "bob", "Bob")

    room = await party.update_room(info.room_id, {"host_id": "bob", "host_name": "Bob"})
    assert room.host_id == "bob"
    assert room.denner_rotation == ["bob", "alice"]

    room = await party.update_room(info.room_id, {"denner_rotation": ["carol"]})
    assert room.denner_rotation == ["bob", "carol"]


async def test_close_room_keeps_history(party, storage, play_round):
    info = await party.create_room("alice", "Alice")
    await play_round(info.room_id, [("alice", "Alice", 80, 5.0)])

    assert await party.close_room(info.room_id) is True
    assert await party.close_room(info.room_id) is False

    with pytest.raises(RoomNotFound):
        await party.get_game_info(info.room_id)
    assert len(await storage.list_rounds(info.room_id)) == 1
    assert len(await storage.list_scores(info.room_id)) == 1
    assert await storage.get_player(info.room_id, "alice") is not None


async def test_host_leave_hands_off_to_earliest_joined(party):
    info = await party.create_room("a", "A")
    await party.join_room(info.room_id, "b", "B")
    await party.join_room(info.room_id, "c", "C")

    after = await party.leave_room(info.room_id, "a")

    assert after.denner_id == "b"
    assert after.denner_name == "B"
    assert after.denner_rotation[0] == "b"
    assert "a" not in after.denner_rotation
    assert [p.id for p in after.players] == ["b", "c"]


async def test_non_host_leave_keeps_host(party):
    info = await party.create_room("a", "A")
    await party.join_room(info.room_id, "b", "B")

    after = await party.leave_room(info.room_id, "b")

    assert after.denner_id == "a"
    assert after.player_count == 1


async def test_last_player_leaving_closes_room(party):
    info = await party.create_room("a", "A")

    assert await party.leave_room(info.room_id, "a") is None
    with pytest.raises(RoomNotFound):
        await party.get_game_info(info.room_id)


async def test_leave_missing_room_returns_none(party):
    assert await party.leave_room("NOPE00", "a") is None
