"""
Party Mode session orchestration.

PartyService drives the coarse game state machine

    lobby -> gameSelection -> playing -> roundFinished -> gameSelection ...
                                                       \\-> sessionFinished

on top of the room, player, round and score managers, and projects the
result into a single GameInfo snapshot for callers. It holds no state of its
own: every call re-reads storage, so any number of polling clients may call
it in any order.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from ..config import Settings
from ..errors import InvalidStateTransition
from ..models import (
    CleanupResult,
    GameInfo,
    GamePlayer,
    GameRoundResult,
    GameType,
    LeaderboardEntry,
    Room,
)
from ..storage import Storage
from .players import PlayerManager
from .rooms import RoomManager, require_text
from .rounds import RoundCoordinator
from .scores import ScoreAggregator

logger = logging.getLogger(__name__)


class PartyService:
    """Service for running party sessions."""

    def __init__(
        self,
        storage: Storage,
        settings: Settings,
        code_factory: Optional[Callable[[], str]] = None,
    ):
        self.storage = storage
        self.settings = settings
        self.rooms = RoomManager(storage, settings, code_factory=code_factory)
        self.players = PlayerManager(storage)
        self.rounds = RoundCoordinator(storage, settings)
        self.scores = ScoreAggregator(storage, self.rooms)

    @staticmethod
    def _require_state(room: Room, allowed: tuple[str, ...], action: str) -> None:
        if room.game_state not in allowed:
            raise InvalidStateTransition(
                f"Cannot {action} while room is in '{room.game_state}'",
                room_id=room.room_id,
                game_state=room.game_state,
            )

    # ========================================================================
    # Room Management
    # ========================================================================

    async def create_room(
        self,
        host_id: str,
        host_name: str,
        target_color: Optional[str] = None,
        max_players: Optional[int] = None,
        max_rounds: Optional[int] = None,
        guess_time: Optional[int] = None,
    ) -> GameInfo:
        """Create a room and seat the host as its first player."""
        room = await self.rooms.create(
            host_id,
            host_name,
            max_players=max_players,
            max_rounds=max_rounds,
            guess_time=guess_time,
            target_color=target_color,
        )
        await self.players.join(room.room_id, room.host_id, room.host_name)
        return await self.get_game_info(room.room_id)

    async def join_room(self, room_id: str, player_id: str, player_name: str) -> GameInfo:
        await self.players.join(room_id, player_id, player_name)
        return await self.get_game_info(room_id)

    async def leave_room(self, room_id: str, player_id: str) -> Optional[GameInfo]:
        """
        Remove a player. If the host leaves, hand the room to the
        earliest-joined remaining player, or close it when nobody is left.

        Returns None once the room is closed (or did not exist).
        """
        room = await self.rooms.get(room_id)
        if room is None:
            return None

        await self.players.remove(room_id, player_id)

        if room.host_id == player_id:
            if await self.rooms.hand_off(room, player_id) is None:
                await self.rooms.deactivate(room_id)
                return None

        return await self.get_game_info(room_id)

    async def update_room(self, room_id: str, fields: dict[str, Any]) -> Room:
        return await self.rooms.update(room_id, fields)

    async def close_room(self, room_id: str) -> bool:
        return await self.rooms.deactivate(room_id)

    # ========================================================================
    # Game Flow
    # ========================================================================

    async def select_game_type(self, room_id: str, game_type: GameType) -> GameInfo:
        room = await self.rooms.require(room_id)
        self._require_state(room, ("lobby", "gameSelection"), "select a game type")
        await self.rooms.update(room_id, {"game_type": game_type, "game_state": "gameSelection"})
        logger.info("Room %s selected game type %s", room_id, game_type)
        return await self.get_game_info(room_id)

    async def start_round(self, room_id: str) -> GameInfo:
        room = await self.rooms.require(room_id)
        self._require_state(room, ("lobby", "gameSelection"), "start a round")
        await self.rounds.start_round(room)
        return await self.get_game_info(room_id)

    async def end_round(self, room_id: str) -> GameInfo:
        """
        End the round in progress.

        Only acts while the room is playing. Clients enforce the guess timer
        by polling, so late or duplicate calls are expected and return the
        current snapshot unchanged.
        """
        room = await self.rooms.require(room_id)
        if room.game_state != "playing":
            logger.debug(
                "Ignoring end of round %d for room %s in state %s",
                room.current_round,
                room_id,
                room.game_state,
            )
        else:
            await self.rounds.end_round(room)
        return await self.get_game_info(room_id)

    async def continue_session(self, room_id: str) -> GameInfo:
        room = await self.rooms.require(room_id)
        if room.game_state != "gameSelection":
            self._require_state(room, ("roundFinished",), "continue the session")
            await self.rooms.update(room_id, {"game_state": "gameSelection"})
        return await self.get_game_info(room_id)

    async def end_session(self, room_id: str) -> GameInfo:
        room = await self.rooms.require(room_id)
        if room.game_state != "sessionFinished":
            await self.rooms.update(room_id, {
                "game_state": "sessionFinished",
                "end_time": datetime.now(timezone.utc),
            })
            logger.info("Room %s session ended after round %d", room_id, room.current_round)
        return await self.get_game_info(room_id)

    async def extend_time(self, room_id: str, extra_seconds: Optional[int] = None) -> GameInfo:
        """Grant extra guessing time to the round in progress."""
        if extra_seconds is None:
            extra_seconds = self.settings.default_time_extension
        room = await self.rooms.require(room_id)
        current = room.current_guess_time or room.guess_time
        await self.rooms.update(room_id, {"current_guess_time": current + extra_seconds})
        return await self.get_game_info(room_id)

    async def set_target_color(self, room_id: str, target_color: str) -> GameInfo:
        target_color = require_text(target_color, "targetColor")
        await self.rooms.update(room_id, {"target_color": target_color})
        return await self.get_game_info(room_id)

    # ========================================================================
    # Score Management
    # ========================================================================

    async def submit_score(
        self,
        room_id: str,
        player_id: str,
        player_name: str,
        score: int,
        time_taken: float,
        captured_color: Optional[str] = None,
        similarity: Optional[float] = None,
    ) -> GameInfo:
        await self.scores.submit(
            room_id,
            player_id,
            player_name,
            score,
            time_taken,
            captured_color=captured_color,
            similarity=similarity,
        )
        return await self.get_game_info(room_id)

    async def leaderboard(self, room_id: str) -> list[LeaderboardEntry]:
        await self.rooms.require(room_id)
        return await self.scores.leaderboard(room_id)

    # ========================================================================
    # Read Model
    # ========================================================================

    async def get_game_info(self, room_id: str) -> GameInfo:
        """Assemble the room's full current state. Performs no writes."""
        room = await self.rooms.require(room_id)
        players = await self.storage.list_players(room_id)
        rounds = await self.storage.list_rounds(room_id)
        leaderboard = await self.scores.leaderboard(room_id)

        return GameInfo(
            room_id=room.room_id,
            denner_id=room.host_id,
            denner_name=room.host_name,
            target_color=room.target_color or self.settings.default_target_color,
            game_state=room.game_state,
            game_type=room.game_type,
            current_round=room.current_round,
            max_rounds=room.max_rounds,
            guess_time=room.guess_time,
            current_guess_time=room.current_guess_time or room.guess_time,
            start_time=room.start_time,
            end_time=room.end_time,
            player_count=len(players),
            max_players=room.max_players,
            min_players=self.settings.min_players,
            players=tuple(
                GamePlayer(
                    id=p.player_id,
                    name=p.player_name,
                    score=p.score,
                    attempts=p.attempts,
                    best_score=p.best_score,
                    session_score=p.session_score,
                    round_scores=tuple(p.round_scores),
                    joined_at=p.joined_at,
                )
                for p in players
            ),
            round_results=tuple(
                GameRoundResult(
                    round=r.round_number,
                    game_type=r.game_type,
                    denner=r.denner_name,
                    players=tuple(r.player_results),
                    timestamp=r.created_at,
                )
                for r in rounds
                if r.is_completed
            ),
            session_leaderboard=tuple(leaderboard),
            denner_rotation=tuple(room.denner_rotation or [room.host_id]),
        )

    # ========================================================================
    # Cleanup
    # ========================================================================

    def _cutoffs(
        self, room_age_hours: Optional[float], player_age_hours: Optional[float]
    ) -> tuple[datetime, datetime]:
        now = datetime.now(timezone.utc)
        room_hours = room_age_hours if room_age_hours is not None else self.settings.room_inactive_hours
        player_hours = (
            player_age_hours if player_age_hours is not None else self.settings.player_inactive_hours
        )
        return now - timedelta(hours=room_hours), now - timedelta(hours=player_hours)

    async def cleanup_inactive(
        self,
        room_age_hours: Optional[float] = None,
        player_age_hours: Optional[float] = None,
    ) -> CleanupResult:
        """Deactivate rooms untouched and players unseen for longer than the given ages."""
        room_cutoff, player_cutoff = self._cutoffs(room_age_hours, player_age_hours)
        rooms = await self.storage.deactivate_stale_rooms(room_cutoff)
        players = await self.storage.deactivate_stale_players(player_cutoff)
        if rooms or players:
            logger.info("Cleaned up %d inactive room(s) and %d inactive player(s)", rooms, players)
        return CleanupResult(rooms=rooms, players=players)

    async def preview_cleanup(
        self,
        room_age_hours: Optional[float] = None,
        player_age_hours: Optional[float] = None,
    ) -> CleanupResult:
        """Count what cleanup_inactive would deactivate, without writing."""
        room_cutoff, player_cutoff = self._cutoffs(room_age_hours, player_age_hours)
        return CleanupResult(
            rooms=await self.storage.count_stale_rooms(room_cutoff),
            players=await self.storage.count_stale_players(player_cutoff),
            dry_run=True,
        )
