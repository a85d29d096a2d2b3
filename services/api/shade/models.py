"""
Pydantic models for domain records and API request/response schemas.

All models use camelCase for JSON serialization to match the API contract
consumed by the Party Mode screens.
"""
from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


GameState = Literal["lobby", "gameSelection", "playing", "roundFinished", "sessionFinished"]
GameType = Literal["findColor", "colorMixing"]


class CamelCaseModel(BaseModel):
    """
    Base model that converts snake_case to camelCase for JSON serialization.

    Also accepts camelCase in request bodies for client convenience.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,  # Accept both snake_case and camelCase in requests
        serialize_by_alias=True,  # Always serialize using camelCase aliases
    )


# ============================================================================
# Core Domain Models
# ============================================================================

class Room(CamelCaseModel):
    """A party room and its session configuration and coarse state."""
    room_id: str
    host_id: str
    host_name: str
    max_players: int = 4
    max_rounds: int = 3
    guess_time: int = 30
    current_round: int = 0
    game_state: GameState = "lobby"
    game_type: Optional[GameType] = None
    target_color: Optional[str] = None
    current_guess_time: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_active: bool = True
    denner_rotation: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class Player(CamelCaseModel):
    """A participant bound to one room."""
    room_id: str
    player_id: str
    player_name: str
    score: int = 0
    attempts: int = 0
    best_score: int = 0
    session_score: float = 0
    round_scores: list[int] = Field(default_factory=list)
    joined_at: datetime
    is_active: bool = True
    last_seen: datetime


class RoundResult(CamelCaseModel):
    """One player's summary attached to a completed round."""
    id: str
    name: str
    score: int
    attempts: int = 1


class Round(CamelCaseModel):
    """One timed challenge within a room's session."""
    id: int
    room_id: str
    round_number: int
    game_type: GameType
    denner_id: str
    denner_name: str
    target_color: str
    guess_time: int
    start_time: datetime
    end_time: Optional[datetime] = None
    is_completed: bool = False
    player_results: list[RoundResult] = Field(default_factory=list)
    created_at: datetime


class Score(CamelCaseModel):
    """One player's submitted result for one round."""
    id: int
    room_id: str
    round_id: int
    round_number: int
    player_id: str
    player_name: str
    score: int
    time_taken: float
    target_color: str
    captured_color: Optional[str] = None
    similarity: Optional[float] = None
    game_type: GameType
    submitted_at: datetime


class PlayerAggregates(CamelCaseModel):
    """Per-player figures derived from the full score history."""
    score: int = 0
    attempts: int = 0
    best_score: int = 0
    session_score: float = 0
    round_scores: list[int] = Field(default_factory=list)


class LeaderboardEntry(CamelCaseModel):
    """Session leaderboard entry."""
    rank: int
    player_id: str
    player_name: str
    session_score: float
    round_scores: list[int]
    total_score: int
    average_score: float
    average_time_taken: float
    best_score: int


class CleanupResult(CamelCaseModel):
    """Counts of rooms and players deactivated (or that would be) by cleanup."""
    rooms: int
    players: int
    dry_run: bool = False


# ============================================================================
# Storage inputs
# ============================================================================

class RoomCreate(CamelCaseModel):
    room_id: str
    host_id: str
    host_name: str
    max_players: int
    max_rounds: int
    guess_time: int
    target_color: Optional[str] = None


class RoundCreate(CamelCaseModel):
    room_id: str
    round_number: int
    game_type: GameType
    denner_id: str
    denner_name: str
    target_color: str
    guess_time: int


class ScoreCreate(CamelCaseModel):
    room_id: str
    round_id: int
    round_number: int
    player_id: str
    player_name: str
    score: int
    time_taken: float
    target_color: str
    captured_color: Optional[str] = None
    similarity: Optional[float] = None
    game_type: GameType


class RoomUpdate(CamelCaseModel):
    """
    Partial room update; only fields that are set are written.

    Game state is not patchable; it moves only through the game flow
    endpoints.
    """
    model_config = ConfigDict(extra="forbid")

    host_id: Optional[str] = Field(default=None, min_length=1, max_length=50)
    host_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    max_players: Optional[int] = Field(default=None, ge=1, le=50)
    max_rounds: Optional[int] = Field(default=None, ge=1, le=50)
    guess_time: Optional[int] = Field(default=None, ge=1, le=3600)
    game_type: Optional[GameType] = None
    target_color: Optional[str] = Field(default=None, max_length=50)
    current_guess_time: Optional[int] = Field(default=None, ge=0)
    denner_rotation: Optional[list[str]] = None


class PlayerUpdate(CamelCaseModel):
    """Partial player update; only fields that are set are written."""
    player_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    score: Optional[int] = None
    attempts: Optional[int] = Field(default=None, ge=0)
    best_score: Optional[int] = None
    session_score: Optional[float] = None
    round_scores: Optional[list[int]] = None


# ============================================================================
# Read model
# ============================================================================

class GamePlayer(CamelCaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    score: int
    attempts: int
    best_score: int
    session_score: float
    round_scores: tuple[int, ...]
    joined_at: datetime


class GameRoundResult(CamelCaseModel):
    model_config = ConfigDict(frozen=True)

    round: int
    game_type: GameType
    denner: str
    players: tuple[RoundResult, ...]
    timestamp: datetime


class GameInfo(CamelCaseModel):
    """Read-only snapshot of a room's full current state."""
    model_config = ConfigDict(frozen=True)

    room_id: str
    denner_id: str
    denner_name: str
    target_color: str
    game_state: GameState
    game_type: Optional[GameType] = None
    current_round: int
    max_rounds: int
    guess_time: int
    current_guess_time: int
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    player_count: int
    max_players: int
    min_players: int
    players: tuple[GamePlayer, ...]
    round_results: tuple[GameRoundResult, ...]
    session_leaderboard: tuple[LeaderboardEntry, ...]
    denner_rotation: tuple[str, ...]


# ============================================================================
# API Request Models
# ============================================================================

class CreateRoomRequest(CamelCaseModel):
    """Request to create a new room. The creator becomes the host."""
    host_id: str = Field(min_length=1, max_length=50)
    host_name: str = Field(min_length=1, max_length=100)
    target_color: Optional[str] = Field(default=None, max_length=50)
    max_players: Optional[int] = Field(default=None, ge=1, le=50)
    max_rounds: Optional[int] = Field(default=None, ge=1, le=50)
    guess_time: Optional[int] = Field(default=None, ge=1, le=3600)


class JoinRoomRequest(CamelCaseModel):
    """Request to join a room."""
    player_id: str = Field(min_length=1, max_length=50)
    player_name: str = Field(min_length=1, max_length=100)


class SelectGameTypeRequest(CamelCaseModel):
    game_type: GameType


class TargetColorRequest(CamelCaseModel):
    target_color: str = Field(min_length=1, max_length=50)


class ExtendTimeRequest(CamelCaseModel):
    seconds: Optional[int] = Field(default=None, ge=1, le=600)


class SubmitScoreRequest(CamelCaseModel):
    """Request to submit a score for the room's current round."""
    player_id: str = Field(min_length=1, max_length=50)
    player_name: str = Field(min_length=1, max_length=100)
    score: int
    time_taken: float = Field(ge=0)
    captured_color: Optional[str] = Field(default=None, max_length=50)
    similarity: Optional[float] = Field(default=None, ge=0, le=100)


class CompleteRoundRequest(CamelCaseModel):
    player_results: list[RoundResult] = Field(default_factory=list)


class CleanupRequest(CamelCaseModel):
    room_hours: Optional[float] = Field(default=None, gt=0)
    player_hours: Optional[float] = Field(default=None, gt=0)


# ============================================================================
# API Response Models
# ============================================================================

class LeaveRoomResponse(CamelCaseModel):
    """Response when a player leaves; game_info is None once the room closed."""
    room_closed: bool
    game_info: Optional[GameInfo] = None


class HealthResponse(CamelCaseModel):
    """Health check response."""
    status: str = "ok"
    version: str = "1.0.0"
    storage: str = "memory"


class ErrorResponse(CamelCaseModel):
    """Standard error response."""
    code: str
    message: str
    context: dict = Field(default_factory=dict)
