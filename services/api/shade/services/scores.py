"""
Score submission and the session leaderboard.
"""
import logging
from typing import Optional

from ..aggregates import build_leaderboard
from ..errors import InvalidStateTransition, RoundNotFound
from ..models import LeaderboardEntry, Score, ScoreCreate
from ..storage import Storage
from .rooms import RoomManager, require_text

logger = logging.getLogger(__name__)


class ScoreAggregator:
    """Records per-round scores and ranks players across the session."""

    def __init__(self, storage: Storage, rooms: RoomManager):
        self.storage = storage
        self.rooms = rooms

    async def submit(
        self,
        room_id: str,
        player_id: str,
        player_name: str,
        score: int,
        time_taken: float,
        captured_color: Optional[str] = None,
        similarity: Optional[float] = None,
    ) -> Score:
        """
        Record a score for the room's current round.

        Resubmitting for the same round overwrites the earlier score. The
        player's aggregates are recomputed from their full history as part
        of the same write.
        """
        player_id = require_text(player_id, "playerId")
        player_name = require_text(player_name, "playerName")

        room = await self.rooms.require(room_id)
        round_obj = await self.storage.get_round(room_id, room.current_round)
        if round_obj is None:
            raise RoundNotFound(room_id, room.current_round)
        if round_obj.is_completed:
            raise InvalidStateTransition(
                f"Round {round_obj.round_number} is already completed",
                room_id=room_id,
                player_id=player_id,
                round_number=round_obj.round_number,
            )

        saved, player = await self.storage.save_score(ScoreCreate(
            room_id=room_id,
            round_id=round_obj.id,
            round_number=round_obj.round_number,
            player_id=player_id,
            player_name=player_name,
            score=score,
            time_taken=time_taken,
            target_color=round_obj.target_color,
            captured_color=captured_color,
            similarity=similarity,
            game_type=round_obj.game_type,
        ))
        if player is None:
            logger.warning(
                "Score from %s in room %s has no player row to aggregate onto", player_id, room_id
            )
        logger.info(
            "Room %s round %d: %s scored %d", room_id, round_obj.round_number, player_id, score
        )
        return saved

    async def list_scores(self, room_id: str, round_id: Optional[int] = None) -> list[Score]:
        return await self.storage.list_scores(room_id, round_id)

    async def leaderboard(self, room_id: str) -> list[LeaderboardEntry]:
        return build_leaderboard(await self.storage.list_scores(room_id))
