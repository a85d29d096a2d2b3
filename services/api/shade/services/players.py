"""
Player membership within a room.
"""
import logging
from typing import Any

from ..errors import PlayerNotFound
from ..models import Player
from ..storage import Storage
from .rooms import require_text

logger = logging.getLogger(__name__)


class PlayerManager:
    """Adds, lists, updates and removes players of a room."""

    def __init__(self, storage: Storage):
        self.storage = storage

    async def join(self, room_id: str, player_id: str, player_name: str) -> Player:
        """
        Add a player, or reactivate one who left.

        Raises RoomNotFound for a missing room and RoomFull once the active
        players fill the room's capacity.
        """
        player_id = require_text(player_id, "playerId")
        player_name = require_text(player_name, "playerName")
        player = await self.storage.add_player(room_id, player_id, player_name)
        logger.info("Player %s joined room %s", player_id, room_id)
        return player

    async def list(self, room_id: str) -> list[Player]:
        return await self.storage.list_players(room_id)

    async def update(self, room_id: str, player_id: str, fields: dict[str, Any]) -> Player:
        player = await self.storage.update_player(room_id, player_id, fields)
        if player is None:
            raise PlayerNotFound(room_id, player_id)
        return player

    async def remove(self, room_id: str, player_id: str) -> bool:
        removed = await self.storage.deactivate_player(room_id, player_id)
        if removed:
            logger.info("Player %s left room %s", player_id, room_id)
        return removed
