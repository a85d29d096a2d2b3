"""
Error taxonomy for Party Mode.

Every error carries a machine-readable code, the HTTP status it maps to, and
the identifiers (room, player, round) needed by the caller to decide whether
to retry.
"""
from typing import Any


class PartyError(Exception):
    """Base exception for Party Mode errors."""
    code = "SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "context": self.context}


# ============================================================================
# Not found
# ============================================================================

class NotFoundError(PartyError):
    code = "NOT_FOUND"
    status_code = 404


class RoomNotFound(NotFoundError):
    """Raised when a room does not exist or is no longer active."""

    def __init__(self, room_id: str):
        super().__init__(f"Room '{room_id}' not found", room_id=room_id)


class PlayerNotFound(NotFoundError):
    """Raised when a player has never been in the room."""

    def __init__(self, room_id: str, player_id: str):
        super().__init__(
            f"Player '{player_id}' not found in room '{room_id}'",
            room_id=room_id,
            player_id=player_id,
        )


class RoundNotFound(NotFoundError):
    """Raised when a room has no round with the requested number."""

    def __init__(self, room_id: str, round_number: int):
        super().__init__(
            f"Round {round_number} not found in room '{room_id}'",
            room_id=room_id,
            round_number=round_number,
        )


# ============================================================================
# Capacity, generation, validation, state
# ============================================================================

class CapacityExceededError(PartyError):
    code = "CAPACITY_EXCEEDED"
    status_code = 400


class RoomFull(CapacityExceededError):
    """Raised when joining a room whose active players already fill it."""

    def __init__(self, room_id: str, max_players: int, player_id: str | None = None):
        super().__init__(
            f"Room '{room_id}' is full ({max_players} players)",
            room_id=room_id,
            player_id=player_id,
            max_players=max_players,
        )


class GenerationExhaustedError(PartyError):
    code = "GENERATION_EXHAUSTED"
    status_code = 500


class RoomCreationExhausted(GenerationExhaustedError):
    """Raised when every generated room code collided with an existing room."""

    def __init__(self, attempts: int, host_id: str | None = None):
        super().__init__(
            f"Failed to generate a unique room code after {attempts} attempts",
            attempts=attempts,
            host_id=host_id,
        )


class InvalidInputError(PartyError):
    """Raised when required fields are missing or blank."""
    code = "VALIDATION"
    status_code = 400


class InvalidStateTransition(PartyError):
    """Raised when an action is not allowed in the room's current game state."""
    code = "INVALID_STATE"
    status_code = 409


class ConflictError(PartyError):
    code = "CONFLICT"
    status_code = 409


class RoomCodeTaken(ConflictError):
    """Raised by storage when a room code is already stored."""

    def __init__(self, room_id: str):
        super().__init__(f"Room code '{room_id}' is already in use", room_id=room_id)


class RoundConflict(ConflictError):
    """Raised when a round number was already taken by a concurrent start."""

    def __init__(self, room_id: str, round_number: int):
        super().__init__(
            f"Round {round_number} of room '{room_id}' was already started",
            room_id=room_id,
            round_number=round_number,
        )
