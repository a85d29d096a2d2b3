"""
Party room, player, round and score API endpoints.

Every mutating endpoint answers with the room's refreshed GameInfo so
polling clients can render from a single response. Room codes in paths are
case-insensitive.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ..models import (
    CompleteRoundRequest,
    CreateRoomRequest,
    ErrorResponse,
    ExtendTimeRequest,
    GameInfo,
    JoinRoomRequest,
    LeaderboardEntry,
    LeaveRoomResponse,
    Player,
    PlayerUpdate,
    RoomUpdate,
    Round,
    Score,
    SelectGameTypeRequest,
    SubmitScoreRequest,
    TargetColorRequest,
)
from ..dependencies import get_party_service
from ..errors import PlayerNotFound, RoomNotFound
from ..services.party import PartyService

router = APIRouter(prefix="/party", tags=["party"])

Party = Annotated[PartyService, Depends(get_party_service)]


# ============================================================================
# Room Endpoints
# ============================================================================


@router.post(
    "/rooms",
    response_model=GameInfo,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_room(request: CreateRoomRequest, party: Party) -> GameInfo:
    """Create a new room. The creator becomes the host and first player."""
    return await party.create_room(
        request.host_id,
        request.host_name,
        target_color=request.target_color,
        max_players=request.max_players,
        max_rounds=request.max_rounds,
        guess_time=request.guess_time,
    )


@router.get(
    "/rooms/{room_id}",
    response_model=GameInfo,
    responses={404: {"model": ErrorResponse}},
)
async def get_room(room_id: str, party: Party) -> GameInfo:
    """Get the full current state of a room."""
    return await party.get_game_info(room_id.upper())


@router.patch(
    "/rooms/{room_id}",
    response_model=GameInfo,
    responses={404: {"model": ErrorResponse}},
)
async def update_room(room_id: str, request: RoomUpdate, party: Party) -> GameInfo:
    room_id = room_id.upper()
    await party.update_room(room_id, request.model_dump(exclude_unset=True, by_alias=False))
    return await party.get_game_info(room_id)


@router.delete(
    "/rooms/{room_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def close_room(room_id: str, party: Party) -> Response:
    """Deactivate a room. Its players, rounds and scores are kept."""
    room_id = room_id.upper()
    if not await party.close_room(room_id):
        raise RoomNotFound(room_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Player Endpoints
# ============================================================================


@router.post(
    "/rooms/{room_id}/players",
    response_model=GameInfo,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def join_room(room_id: str, request: JoinRoomRequest, party: Party) -> GameInfo:
    """Join a room, or rejoin it after leaving."""
    return await party.join_room(room_id.upper(), request.player_id, request.player_name)


@router.get("/rooms/{room_id}/players", response_model=list[Player])
async def list_players(room_id: str, party: Party) -> list[Player]:
    """Active players in join order."""
    return await party.players.list(room_id.upper())


@router.patch(
    "/rooms/{room_id}/players/{player_id}",
    response_model=Player,
    responses={404: {"model": ErrorResponse}},
)
async def update_player(
    room_id: str, player_id: str, request: PlayerUpdate, party: Party
) -> Player:
    return await party.players.update(
        room_id.upper(), player_id, request.model_dump(exclude_unset=True, by_alias=False)
    )


@router.delete(
    "/rooms/{room_id}/players/{player_id}",
    response_model=LeaveRoomResponse,
    responses={404: {"model": ErrorResponse}},
)
async def leave_room(room_id: str, player_id: str, party: Party) -> LeaveRoomResponse:
    """Leave a room. The room closes once its last player leaves."""
    room_id = room_id.upper()
    await party.rooms.require(room_id)
    if await party.storage.get_player(room_id, player_id) is None:
        raise PlayerNotFound(room_id, player_id)
    game_info = await party.leave_room(room_id, player_id)
    return LeaveRoomResponse(room_closed=game_info is None, game_info=game_info)


# ============================================================================
# Game Flow Endpoints
# ============================================================================


@router.post(
    "/rooms/{room_id}/game-type",
    response_model=GameInfo,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def select_game_type(
    room_id: str, request: SelectGameTypeRequest, party: Party
) -> GameInfo:
    return await party.select_game_type(room_id.upper(), request.game_type)


@router.post(
    "/rooms/{room_id}/rounds",
    response_model=GameInfo,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def start_round(room_id: str, party: Party) -> GameInfo:
    """Start the next round (host only, by convention)."""
    return await party.start_round(room_id.upper())


@router.post(
    "/rooms/{room_id}/rounds/current/end",
    response_model=GameInfo,
    responses={404: {"model": ErrorResponse}},
)
async def end_round(room_id: str, party: Party) -> GameInfo:
    """End the round in progress. Repeated calls are harmless."""
    return await party.end_round(room_id.upper())


@router.get("/rooms/{room_id}/rounds", response_model=list[Round])
async def list_rounds(room_id: str, party: Party) -> list[Round]:
    return await party.rounds.list_rounds(room_id.upper())


@router.get(
    "/rooms/{room_id}/rounds/{round_number}",
    response_model=Round,
    responses={404: {"model": ErrorResponse}},
)
async def get_round(room_id: str, round_number: int, party: Party) -> Round:
    return await party.rounds.get_round(room_id.upper(), round_number)


@router.put(
    "/rooms/{room_id}/rounds/{round_number}/complete",
    response_model=Round,
    responses={404: {"model": ErrorResponse}},
)
async def complete_round(
    room_id: str, round_number: int, request: CompleteRoundRequest, party: Party
) -> Round:
    """Record a round's results. Only the first completion is kept."""
    return await party.rounds.complete_round(
        room_id.upper(), round_number, request.player_results
    )


@router.post(
    "/rooms/{room_id}/continue",
    response_model=GameInfo,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def continue_session(room_id: str, party: Party) -> GameInfo:
    return await party.continue_session(room_id.upper())


@router.post(
    "/rooms/{room_id}/end",
    response_model=GameInfo,
    responses={404: {"model": ErrorResponse}},
)
async def end_session(room_id: str, party: Party) -> GameInfo:
    return await party.end_session(room_id.upper())


@router.post(
    "/rooms/{room_id}/extend-time",
    response_model=GameInfo,
    responses={404: {"model": ErrorResponse}},
)
async def extend_time(
    room_id: str, party: Party, request: Optional[ExtendTimeRequest] = None
) -> GameInfo:
    seconds = request.seconds if request is not None else None
    return await party.extend_time(room_id.upper(), seconds)


@router.put(
    "/rooms/{room_id}/target-color",
    response_model=GameInfo,
    responses={404: {"model": ErrorResponse}},
)
async def set_target_color(
    room_id: str, request: TargetColorRequest, party: Party
) -> GameInfo:
    return await party.set_target_color(room_id.upper(), request.target_color)


# ============================================================================
# Score Endpoints
# ============================================================================


@router.post(
    "/rooms/{room_id}/scores",
    response_model=GameInfo,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def submit_score(room_id: str, request: SubmitScoreRequest, party: Party) -> GameInfo:
    """Submit (or resubmit) a score for the current round."""
    return await party.submit_score(
        room_id.upper(),
        request.player_id,
        request.player_name,
        request.score,
        request.time_taken,
        captured_color=request.captured_color,
        similarity=request.similarity,
    )


@router.get("/rooms/{room_id}/scores", response_model=list[Score])
async def list_scores(
    room_id: str,
    party: Party,
    round_id: Annotated[Optional[int], Query(alias="roundId")] = None,
) -> list[Score]:
    return await party.scores.list_scores(room_id.upper(), round_id)


@router.get(
    "/rooms/{room_id}/leaderboard",
    response_model=list[LeaderboardEntry],
    responses={404: {"model": ErrorResponse}},
)
async def get_leaderboard(room_id: str, party: Party) -> list[LeaderboardEntry]:
    return await party.leaderboard(room_id.upper())
