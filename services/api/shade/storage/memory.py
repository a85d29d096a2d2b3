"""
In-memory storage implementation for development and testing.

Data is lost when the server restarts. Writes that must be atomic per room
(capacity check + insert, round advance, score upsert + aggregates) run
under a per-room asyncio lock.
"""
import asyncio
import itertools
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Optional

from ..aggregates import compute_aggregates, ranking_key
from ..errors import RoomCodeTaken, RoomFull, RoomNotFound, RoundConflict
from ..models import (
    Room, RoomCreate, Player, Round, RoundCreate, RoundResult, Score, ScoreCreate
)
from .base import Storage


class InMemoryStorage(Storage):
    """In-memory storage using Python dictionaries."""

    def __init__(self):
        # Primary storage
        self._rooms: dict[str, Room] = {}  # room_id -> Room (active and inactive)
        self._players: dict[str, dict[str, Player]] = defaultdict(dict)  # room_id -> {player_id -> Player}
        self._rounds: dict[str, dict[int, Round]] = defaultdict(dict)  # room_id -> {round_number -> Round}
        self._scores: dict[int, dict[str, Score]] = defaultdict(dict)  # round_id -> {player_id -> Score}

        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._round_ids = itertools.count(1)
        self._score_ids = itertools.count(1)

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    # ========================================================================
    # Room Management
    # ========================================================================

    async def create_room(self, data: RoomCreate) -> Room:
        if data.room_id in self._rooms:
            raise RoomCodeTaken(data.room_id)

        now = self._now()
        room = Room(
            room_id=data.room_id,
            host_id=data.host_id,
            host_name=data.host_name,
            max_players=data.max_players,
            max_rounds=data.max_rounds,
            guess_time=data.guess_time,
            current_guess_time=data.guess_time,
            target_color=data.target_color,
            denner_rotation=[data.host_id],  # Host starts as denner
            created_at=now,
            updated_at=now,
        )
        self._rooms[data.room_id] = room
        return room

    async def get_room(self, room_id: str) -> Optional[Room]:
        room = self._rooms.get(room_id)
        if room and room.is_active:
            return room
        return None

    async def room_code_in_use(self, room_id: str) -> bool:
        return await self.get_room(room_id) is not None

    async def update_room(self, room_id: str, fields: dict[str, Any]) -> Optional[Room]:
        room = await self.get_room(room_id)
        if not room:
            return None
        updated = room.model_copy(update={**fields, "updated_at": self._now()})
        self._rooms[room_id] = updated
        return updated

    async def deactivate_room(self, room_id: str) -> bool:
        room = await self.get_room(room_id)
        if not room:
            return False
        now = self._now()
        self._rooms[room_id] = room.model_copy(
            update={"is_active": False, "end_time": now, "updated_at": now}
        )
        return True

    async def advance_round(
        self,
        room_id: str,
        expected_round: int,
        data: RoundCreate,
        room_fields: dict[str, Any],
    ) -> tuple[Room, Round]:
        async with self._locks[room_id]:
            room = await self.get_room(room_id)
            if not room:
                raise RoomNotFound(room_id)
            if room.current_round != expected_round:
                raise RoundConflict(room_id, expected_round + 1)

            round_obj = self._insert_round(data)
            updated = await self.update_room(
                room_id, {**room_fields, "current_round": data.round_number}
            )
            return updated, round_obj

    # ========================================================================
    # Player Management
    # ========================================================================

    async def add_player(self, room_id: str, player_id: str, player_name: str) -> Player:
        async with self._locks[room_id]:
            room = await self.get_room(room_id)
            if not room:
                raise RoomNotFound(room_id)

            now = self._now()
            existing = self._players[room_id].get(player_id)
            if existing and existing.is_active:
                refreshed = existing.model_copy(update={"last_seen": now})
                self._players[room_id][player_id] = refreshed
                return refreshed

            active = [p for p in self._players[room_id].values() if p.is_active]
            if len(active) >= room.max_players:
                raise RoomFull(room_id, room.max_players, player_id=player_id)

            if existing:
                # Rejoin keeps the original join time and score history
                player = existing.model_copy(update={"is_active": True, "last_seen": now})
            else:
                player = Player(
                    room_id=room_id,
                    player_id=player_id,
                    player_name=player_name,
                    joined_at=now,
                    last_seen=now,
                )
            self._players[room_id][player_id] = player
            return player

    async def get_player(
        self, room_id: str, player_id: str, include_inactive: bool = False
    ) -> Optional[Player]:
        player = self._players.get(room_id, {}).get(player_id)
        if player and (player.is_active or include_inactive):
            return player
        return None

    async def list_players(self, room_id: str) -> list[Player]:
        players = [p for p in self._players.get(room_id, {}).values() if p.is_active]
        # sorted() is stable, so equal join times keep insertion order
        return sorted(players, key=lambda p: p.joined_at)

    async def update_player(
        self, room_id: str, player_id: str, fields: dict[str, Any]
    ) -> Optional[Player]:
        player = self._players.get(room_id, {}).get(player_id)
        if not player:
            return None
        updated = player.model_copy(update={**fields, "last_seen": self._now()})
        self._players[room_id][player_id] = updated
        return updated

    async def deactivate_player(self, room_id: str, player_id: str) -> bool:
        player = await self.get_player(room_id, player_id)
        if not player:
            return False
        await self.update_player(room_id, player_id, {"is_active": False})
        return True

    # ========================================================================
    # Round Management
    # ========================================================================

    def _insert_round(self, data: RoundCreate) -> Round:
        if data.round_number in self._rounds[data.room_id]:
            raise RoundConflict(data.room_id, data.round_number)

        now = self._now()
        round_obj = Round(
            id=next(self._round_ids),
            **data.model_dump(by_alias=False),
            start_time=now,
            created_at=now,
        )
        self._rounds[data.room_id][data.round_number] = round_obj
        return round_obj

    async def create_round(self, data: RoundCreate) -> Round:
        async with self._locks[data.room_id]:
            return self._insert_round(data)

    async def get_round(self, room_id: str, round_number: int) -> Optional[Round]:
        return self._rounds.get(room_id, {}).get(round_number)

    async def complete_round(
        self, room_id: str, round_number: int, results: list[RoundResult]
    ) -> Optional[Round]:
        async with self._locks[room_id]:
            round_obj = self._rounds.get(room_id, {}).get(round_number)
            if not round_obj or round_obj.is_completed:
                return round_obj

            completed = round_obj.model_copy(update={
                "is_completed": True,
                "end_time": self._now(),
                "player_results": list(results),
            })
            self._rounds[room_id][round_number] = completed
            return completed

    async def list_rounds(self, room_id: str) -> list[Round]:
        rounds = self._rounds.get(room_id, {}).values()
        return sorted(rounds, key=lambda r: r.round_number)

    # ========================================================================
    # Score Management
    # ========================================================================

    async def save_score(self, data: ScoreCreate) -> tuple[Score, Optional[Player]]:
        async with self._locks[data.room_id]:
            now = self._now()
            existing = self._scores[data.round_id].get(data.player_id)
            if existing:
                score = existing.model_copy(update={
                    "score": data.score,
                    "time_taken": data.time_taken,
                    "captured_color": data.captured_color,
                    "similarity": data.similarity,
                    "submitted_at": now,
                })
            else:
                score = Score(id=next(self._score_ids), **data.model_dump(by_alias=False), submitted_at=now)
            self._scores[data.round_id][data.player_id] = score

            history = [
                s for s in self._room_scores(data.room_id) if s.player_id == data.player_id
            ]
            aggregates = compute_aggregates(history)
            player = await self.update_player(
                data.room_id, data.player_id, aggregates.model_dump(by_alias=False)
            )
            return score, player

    def _room_scores(self, room_id: str) -> list[Score]:
        scores = []
        for round_obj in self._rounds.get(room_id, {}).values():
            scores.extend(self._scores.get(round_obj.id, {}).values())
        return scores

    async def list_scores(self, room_id: str, round_id: Optional[int] = None) -> list[Score]:
        scores = self._room_scores(room_id)
        if round_id is not None:
            scores = [s for s in scores if s.round_id == round_id]
        return sorted(scores, key=lambda s: ranking_key(s.score, s.time_taken))

    # ========================================================================
    # Cleanup
    # ========================================================================

    def _stale_rooms(self, cutoff: datetime) -> list[Room]:
        return [r for r in self._rooms.values() if r.is_active and r.updated_at < cutoff]

    def _stale_players(self, cutoff: datetime) -> list[Player]:
        return [
            p for players in self._players.values() for p in players.values()
            if p.is_active and p.last_seen < cutoff
        ]

    async def deactivate_stale_rooms(self, cutoff: datetime) -> int:
        stale = self._stale_rooms(cutoff)
        for room in stale:
            # updated_at is left alone so the sweep does not look like activity
            self._rooms[room.room_id] = room.model_copy(update={"is_active": False})
        return len(stale)

    async def deactivate_stale_players(self, cutoff: datetime) -> int:
        stale = self._stale_players(cutoff)
        for player in stale:
            self._players[player.room_id][player.player_id] = player.model_copy(
                update={"is_active": False}
            )
        return len(stale)

    async def count_stale_rooms(self, cutoff: datetime) -> int:
        return len(self._stale_rooms(cutoff))

    async def count_stale_players(self, cutoff: datetime) -> int:
        return len(self._stale_players(cutoff))
