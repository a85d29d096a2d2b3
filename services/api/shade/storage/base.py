"""
Abstract base class for storage implementations.

All storage backends must implement this interface. Uniqueness rules are
enforced here, at the storage boundary:

- room codes are unique (a taken code raises RoomCodeTaken)
- (room, player) is unique; adding an existing player reactivates it
- (room, round number) is unique (a taken number raises RoundConflict)
- (round, player) is unique; saving a score again overwrites it
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from ..models import (
    Room, RoomCreate, Player, Round, RoundCreate, RoundResult, Score, ScoreCreate
)


class Storage(ABC):
    """Abstract storage interface for Party Mode data."""

    # ========================================================================
    # Room Management
    # ========================================================================

    @abstractmethod
    async def create_room(self, data: RoomCreate) -> Room:
        """Create a room in the lobby state. Raises RoomCodeTaken on a duplicate code."""
        pass

    @abstractmethod
    async def get_room(self, room_id: str) -> Optional[Room]:
        """Get an active room by code. Inactive rooms are treated as missing."""
        pass

    @abstractmethod
    async def room_code_in_use(self, room_id: str) -> bool:
        """Check if an active room already uses this code."""
        pass

    @abstractmethod
    async def update_room(self, room_id: str, fields: dict[str, Any]) -> Optional[Room]:
        """Merge fields into an active room and refresh updated_at. Returns None if absent."""
        pass

    @abstractmethod
    async def deactivate_room(self, room_id: str) -> bool:
        """Soft-delete a room and stamp end_time. Returns False if it was already inactive."""
        pass

    @abstractmethod
    async def advance_round(
        self,
        room_id: str,
        expected_round: int,
        data: RoundCreate,
        room_fields: dict[str, Any],
    ) -> tuple[Room, Round]:
        """
        Create the next round and move the room onto it in one step.

        Fails with RoundConflict if the room's current_round no longer equals
        expected_round or the round number is already taken, and with
        RoomNotFound if the room is inactive.
        """
        pass

    # ========================================================================
    # Player Management
    # ========================================================================

    @abstractmethod
    async def add_player(self, room_id: str, player_id: str, player_name: str) -> Player:
        """
        Add or reactivate a player, atomically with the room capacity check.

        Raises RoomNotFound or RoomFull. A player already active in the room
        is refreshed without being counted against capacity again.
        """
        pass

    @abstractmethod
    async def get_player(
        self, room_id: str, player_id: str, include_inactive: bool = False
    ) -> Optional[Player]:
        """Get a specific player from a room."""
        pass

    @abstractmethod
    async def list_players(self, room_id: str) -> list[Player]:
        """Get active players of a room, earliest joined first."""
        pass

    @abstractmethod
    async def update_player(
        self, room_id: str, player_id: str, fields: dict[str, Any]
    ) -> Optional[Player]:
        """Merge fields into a player row (active or not) and refresh last_seen."""
        pass

    @abstractmethod
    async def deactivate_player(self, room_id: str, player_id: str) -> bool:
        """Soft-remove a player, keeping their score history."""
        pass

    # ========================================================================
    # Round Management
    # ========================================================================

    @abstractmethod
    async def create_round(self, data: RoundCreate) -> Round:
        """Create a round. Raises RoundConflict if the number is taken."""
        pass

    @abstractmethod
    async def get_round(self, room_id: str, round_number: int) -> Optional[Round]:
        """Get a round by its number within the room."""
        pass

    @abstractmethod
    async def complete_round(
        self, room_id: str, round_number: int, results: list[RoundResult]
    ) -> Optional[Round]:
        """
        Mark a round completed with its results.

        Only the first completion is written; later calls return the stored
        round unchanged.
        """
        pass

    @abstractmethod
    async def list_rounds(self, room_id: str) -> list[Round]:
        """Get all rounds of a room ordered by round number."""
        pass

    # ========================================================================
    # Score Management
    # ========================================================================

    @abstractmethod
    async def save_score(self, data: ScoreCreate) -> tuple[Score, Optional[Player]]:
        """
        Insert or overwrite the score for (round, player).

        In the same unit of work, re-reads the player's full score history in
        the room and stores the recomputed aggregates on the player row.
        Returns the score and the updated player (None if the player row does
        not exist).
        """
        pass

    @abstractmethod
    async def list_scores(self, room_id: str, round_id: Optional[int] = None) -> list[Score]:
        """Get scores for a room (optionally one round), best score then fastest first."""
        pass

    # ========================================================================
    # Cleanup
    # ========================================================================

    @abstractmethod
    async def deactivate_stale_rooms(self, cutoff: datetime) -> int:
        """Deactivate active rooms not updated since cutoff. Returns the count."""
        pass

    @abstractmethod
    async def deactivate_stale_players(self, cutoff: datetime) -> int:
        """Deactivate active players not seen since cutoff. Returns the count."""
        pass

    @abstractmethod
    async def count_stale_rooms(self, cutoff: datetime) -> int:
        pass

    @abstractmethod
    async def count_stale_players(self, cutoff: datetime) -> int:
        pass
