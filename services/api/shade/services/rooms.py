"""
Room lifecycle: creation with unique codes, reads, updates, deactivation and
host hand-off.
"""
import logging
import random
import string
from typing import Any, Callable, Optional

from ..config import Settings
from ..errors import InvalidInputError, RoomCodeTaken, RoomCreationExhausted, RoomNotFound
from ..models import Room, RoomCreate
from ..storage import Storage

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(length: int = 6) -> str:
    """Generate a short alphanumeric room code."""
    return "".join(random.choices(ROOM_CODE_ALPHABET, k=length))


def require_text(value: Optional[str], field: str) -> str:
    """Reject missing or blank identifiers before anything is written."""
    if value is None or not value.strip():
        raise InvalidInputError(f"{field} is required", field=field)
    return value.strip()


class RoomManager:
    """Creates and maintains party rooms."""

    def __init__(
        self,
        storage: Storage,
        settings: Settings,
        code_factory: Optional[Callable[[], str]] = None,
    ):
        self.storage = storage
        self.settings = settings
        self._code_factory = code_factory or (
            lambda: generate_room_code(settings.room_code_length)
        )

    async def create(
        self,
        host_id: str,
        host_name: str,
        max_players: Optional[int] = None,
        max_rounds: Optional[int] = None,
        guess_time: Optional[int] = None,
        target_color: Optional[str] = None,
    ) -> Room:
        """
        Create a room hosted by host_id.

        Codes are drawn at random and retried on collision, at most
        room_code_max_attempts times. A collision is either an active room
        already using the code or a unique violation when inserting it.
        """
        host_id = require_text(host_id, "hostId")
        host_name = require_text(host_name, "hostName")

        attempts = self.settings.room_code_max_attempts
        for attempt in range(1, attempts + 1):
            room_id = self._code_factory()
            if await self.storage.room_code_in_use(room_id):
                logger.debug("Room code %s in use (attempt %d/%d)", room_id, attempt, attempts)
                continue
            try:
                room = await self.storage.create_room(RoomCreate(
                    room_id=room_id,
                    host_id=host_id,
                    host_name=host_name,
                    max_players=max_players or self.settings.default_max_players,
                    max_rounds=max_rounds or self.settings.default_max_rounds,
                    guess_time=guess_time or self.settings.default_guess_time,
                    target_color=target_color,
                ))
            except RoomCodeTaken:
                logger.debug("Room code %s taken on insert (attempt %d/%d)", room_id, attempt, attempts)
                continue
            logger.info("Created room %s for host %s", room.room_id, host_id)
            return room

        raise RoomCreationExhausted(attempts, host_id=host_id)

    async def get(self, room_id: str) -> Optional[Room]:
        return await self.storage.get_room(room_id)

    async def require(self, room_id: str) -> Room:
        room = await self.storage.get_room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    async def update(self, room_id: str, fields: dict[str, Any]) -> Room:
        """
        Merge fields into the room.

        The merged room must keep current_round within max_rounds, and the
        host is put at the front of the denner rotation if it is missing.
        """
        room = await self.require(room_id)

        current_round = fields.get("current_round", room.current_round)
        max_rounds = fields.get("max_rounds", room.max_rounds)
        if current_round > max_rounds:
            raise InvalidInputError(
                f"maxRounds ({max_rounds}) cannot be below the current round ({current_round})",
                field="maxRounds",
                room_id=room_id,
                round_number=current_round,
            )

        if "host_id" in fields or "denner_rotation" in fields:
            host_id = fields.get("host_id", room.host_id)
            rotation = fields.get("denner_rotation", room.denner_rotation)
            if host_id not in rotation:
                fields = {**fields, "denner_rotation": [host_id] + list(rotation)}

        updated = await self.storage.update_room(room_id, fields)
        if updated is None:
            raise RoomNotFound(room_id)
        return updated

    async def deactivate(self, room_id: str) -> bool:
        closed = await self.storage.deactivate_room(room_id)
        if closed:
            logger.info("Deactivated room %s", room_id)
        return closed

    async def hand_off(self, room: Room, departing_id: str) -> Optional[Room]:
        """
        Move the host role away from departing_id.

        The earliest-joined remaining player becomes host and is put first in
        the denner rotation; the departing host is dropped from it. Returns
        None when nobody is left to take over.
        """
        remaining = [
            p for p in await self.storage.list_players(room.room_id)
            if p.player_id != departing_id
        ]
        if not remaining:
            return None

        new_host = remaining[0]
        rotation = [new_host.player_id] + [
            pid for pid in room.denner_rotation
            if pid not in (departing_id, new_host.player_id)
        ]
        updated = await self.update(room.room_id, {
            "host_id": new_host.player_id,
            "host_name": new_host.player_name,
            "denner_rotation": rotation,
        })
        logger.info(
            "Room %s host handed from %s to %s", room.room_id, departing_id, new_host.player_id
        )
        return updated
