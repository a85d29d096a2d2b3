"""
Round coordination: starting, ending and recording rounds.
"""
import logging
from datetime import datetime, timezone

from ..config import Settings
from ..errors import InvalidStateTransition, RoundNotFound
from ..models import Room, Round, RoundCreate, RoundResult
from ..storage import Storage

logger = logging.getLogger(__name__)


class RoundCoordinator:
    """Creates rounds, advances the round counter and completes rounds."""

    def __init__(self, storage: Storage, settings: Settings):
        self.storage = storage
        self.settings = settings

    async def start_round(self, room: Room) -> tuple[Room, Round]:
        """
        Create round current_round + 1 and put the room into "playing".

        The round and the room counter move together in storage, guarded by
        the current_round read here, so two hosts starting from the same
        stale read cannot both succeed (the loser gets RoundConflict).
        """
        if room.current_round >= room.max_rounds:
            raise InvalidStateTransition(
                f"All {room.max_rounds} rounds have been played",
                room_id=room.room_id,
                round_number=room.current_round,
            )

        next_round = room.current_round + 1
        data = RoundCreate(
            room_id=room.room_id,
            round_number=next_round,
            game_type=room.game_type or self.settings.default_game_type,
            denner_id=room.host_id,
            denner_name=room.host_name,
            target_color=room.target_color or self.settings.default_target_color,
            guess_time=room.guess_time,
        )
        room, round_obj = await self.storage.advance_round(
            room.room_id,
            room.current_round,
            data,
            {
                "game_state": "playing",
                "start_time": datetime.now(timezone.utc),
                "current_guess_time": room.guess_time,
            },
        )
        logger.info("Room %s started round %d/%d", room.room_id, next_round, room.max_rounds)
        return room, round_obj

    async def end_round(self, room: Room) -> Room:
        """
        Complete the current round and move to roundFinished or sessionFinished.

        A missing round row is logged and skipped; the room still advances.
        """
        round_obj = await self.storage.get_round(room.room_id, room.current_round)
        if round_obj is None:
            logger.warning(
                "Room %s has no row for round %d; ending without results",
                room.room_id,
                room.current_round,
            )
        else:
            scores = await self.storage.list_scores(room.room_id, round_obj.id)
            results = [
                RoundResult(id=s.player_id, name=s.player_name, score=s.score, attempts=1)
                for s in scores
            ]
            await self.storage.complete_round(room.room_id, room.current_round, results)

        fields = {}
        if room.current_round >= room.max_rounds:
            fields["game_state"] = "sessionFinished"
            fields["end_time"] = datetime.now(timezone.utc)
        else:
            fields["game_state"] = "roundFinished"

        updated = await self.storage.update_room(room.room_id, fields)
        logger.info("Room %s ended round %d -> %s", room.room_id, room.current_round, fields["game_state"])
        return updated or room

    async def create_round(self, data: RoundCreate) -> Round:
        return await self.storage.create_round(data)

    async def get_round(self, room_id: str, round_number: int) -> Round:
        round_obj = await self.storage.get_round(room_id, round_number)
        if round_obj is None:
            raise RoundNotFound(room_id, round_number)
        return round_obj

    async def complete_round(
        self, room_id: str, round_number: int, results: list[RoundResult]
    ) -> Round:
        round_obj = await self.storage.complete_round(room_id, round_number, results)
        if round_obj is None:
            raise RoundNotFound(room_id, round_number)
        return round_obj

    async def list_rounds(self, room_id: str) -> list[Round]:
        return await self.storage.list_rounds(room_id)
