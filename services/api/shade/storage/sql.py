"""
SQL-based storage implementation using SQLAlchemy.

Works with both SQLite (dev) and PostgreSQL (production). Player and score
writes use INSERT ... ON CONFLICT DO UPDATE against the compound unique keys;
round advance uses a conditional UPDATE on current_round as an optimistic
version check.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..aggregates import compute_aggregates
from ..errors import RoomCodeTaken, RoomFull, RoomNotFound, RoundConflict
from ..models import (
    Room, RoomCreate, Player, Round, RoundCreate, RoundResult, Score, ScoreCreate
)
from ..db.models import RoomModel, PlayerModel, RoundModel, ScoreModel
from ..db.connection import get_db_session_context
from .base import Storage


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLStorage(Storage):
    """
    SQL-based storage using SQLAlchemy async sessions.

    This implementation works with any SQLAlchemy-supported database that
    offers ON CONFLICT upserts (SQLite and PostgreSQL).
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory

    def _session(self):
        return get_db_session_context(self._session_factory)

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _insert(db: AsyncSession):
        """Pick the dialect-specific insert that supports on_conflict_do_update."""
        if db.get_bind().dialect.name == "postgresql":
            return postgresql.insert
        return sqlite.insert

    # ========================================================================
    # Helper methods
    # ========================================================================

    def _room_model_to_pydantic(self, model: RoomModel) -> Room:
        """Convert SQLAlchemy RoomModel to Pydantic Room."""
        return Room(
            room_id=model.room_id,
            host_id=model.host_id,
            host_name=model.host_name,
            max_players=model.max_players,
            max_rounds=model.max_rounds,
            guess_time=model.guess_time,
            current_round=model.current_round,
            game_state=model.game_state,
            game_type=model.game_type,
            target_color=model.target_color,
            current_guess_time=model.current_guess_time,
            start_time=_utc(model.start_time),
            end_time=_utc(model.end_time),
            is_active=model.is_active,
            denner_rotation=list(model.denner_rotation or []),
            created_at=_utc(model.created_at),
            updated_at=_utc(model.updated_at),
        )

    def _player_model_to_pydantic(self, model: PlayerModel) -> Player:
        """Convert SQLAlchemy PlayerModel to Pydantic Player."""
        return Player(
            room_id=model.room_id,
            player_id=model.player_id,
            player_name=model.player_name,
            score=model.score,
            attempts=model.attempts,
            best_score=model.best_score,
            session_score=model.session_score,
            round_scores=list(model.round_scores or []),
            joined_at=_utc(model.joined_at),
            is_active=model.is_active,
            last_seen=_utc(model.last_seen),
        )

    def _round_model_to_pydantic(self, model: RoundModel) -> Round:
        """Convert SQLAlchemy RoundModel to Pydantic Round."""
        return Round(
            id=model.id,
            room_id=model.room_id,
            round_number=model.round_number,
            game_type=model.game_type,
            denner_id=model.denner_id,
            denner_name=model.denner_name,
            target_color=model.target_color,
            guess_time=model.guess_time,
            start_time=_utc(model.start_time),
            end_time=_utc(model.end_time),
            is_completed=model.is_completed,
            player_results=[RoundResult(**r) for r in (model.player_results or [])],
            created_at=_utc(model.created_at),
        )

    def _score_model_to_pydantic(self, model: ScoreModel) -> Score:
        """Convert SQLAlchemy ScoreModel to Pydantic Score."""
        return Score(
            id=model.id,
            room_id=model.room_id,
            round_id=model.round_id,
            round_number=model.round_number,
            player_id=model.player_id,
            player_name=model.player_name,
            score=model.score,
            time_taken=model.time_taken,
            target_color=model.target_color,
            captured_color=model.captured_color,
            similarity=model.similarity,
            game_type=model.game_type,
            submitted_at=_utc(model.submitted_at),
        )

    async def _active_room(
        self, db: AsyncSession, room_id: str, for_update: bool = False
    ) -> Optional[RoomModel]:
        query = select(RoomModel).where(
            RoomModel.room_id == room_id, RoomModel.is_active.is_(True)
        )
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def _player_row(
        self, db: AsyncSession, room_id: str, player_id: str, for_update: bool = False
    ) -> Optional[PlayerModel]:
        query = select(PlayerModel).where(
            PlayerModel.room_id == room_id, PlayerModel.player_id == player_id
        )
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    # ========================================================================
    # Room Management
    # ========================================================================

    async def create_room(self, data: RoomCreate) -> Room:
        now = self._now()
        try:
            async with self._session() as db:
                room_model = RoomModel(
                    room_id=data.room_id,
                    host_id=data.host_id,
                    host_name=data.host_name,
                    max_players=data.max_players,
                    max_rounds=data.max_rounds,
                    guess_time=data.guess_time,
                    current_round=0,
                    game_state="lobby",
                    target_color=data.target_color,
                    current_guess_time=data.guess_time,
                    is_active=True,
                    denner_rotation=[data.host_id],  # Host starts as denner
                    created_at=now,
                    updated_at=now,
                )
                db.add(room_model)
                await db.flush()
                return self._room_model_to_pydantic(room_model)
        except IntegrityError as exc:
            raise RoomCodeTaken(data.room_id) from exc

    async def get_room(self, room_id: str) -> Optional[Room]:
        async with self._session() as db:
            model = await self._active_room(db, room_id)
            if model:
                return self._room_model_to_pydantic(model)
            return None

    async def room_code_in_use(self, room_id: str) -> bool:
        async with self._session() as db:
            result = await db.execute(
                select(RoomModel.id).where(
                    RoomModel.room_id == room_id, RoomModel.is_active.is_(True)
                )
            )
            return result.scalar_one_or_none() is not None

    async def update_room(self, room_id: str, fields: dict[str, Any]) -> Optional[Room]:
        async with self._session() as db:
            model = await self._active_room(db, room_id)
            if not model:
                return None
            for key, value in fields.items():
                setattr(model, key, value)
            model.updated_at = self._now()
            await db.flush()
            return self._room_model_to_pydantic(model)

    async def deactivate_room(self, room_id: str) -> bool:
        now = self._now()
        async with self._session() as db:
            result = await db.execute(
                update(RoomModel)
                .where(RoomModel.room_id == room_id, RoomModel.is_active.is_(True))
                .values(is_active=False, end_time=now, updated_at=now)
            )
            return result.rowcount > 0

    async def advance_round(
        self,
        room_id: str,
        expected_round: int,
        data: RoundCreate,
        room_fields: dict[str, Any],
    ) -> tuple[Room, Round]:
        now = self._now()
        try:
            async with self._session() as db:
                result = await db.execute(
                    update(RoomModel)
                    .where(
                        RoomModel.room_id == room_id,
                        RoomModel.is_active.is_(True),
                        RoomModel.current_round == expected_round,
                    )
                    .values(**room_fields, current_round=data.round_number, updated_at=now)
                )
                if result.rowcount == 0:
                    if await self._active_room(db, room_id) is None:
                        raise RoomNotFound(room_id)
                    raise RoundConflict(room_id, data.round_number)

                round_model = RoundModel(
                    **data.model_dump(by_alias=False),
                    start_time=now,
                    is_completed=False,
                    player_results=[],
                    created_at=now,
                )
                db.add(round_model)
                await db.flush()

                room_model = await self._active_room(db, room_id)
                return (
                    self._room_model_to_pydantic(room_model),
                    self._round_model_to_pydantic(round_model),
                )
        except IntegrityError as exc:
            raise RoundConflict(room_id, data.round_number) from exc

    # ========================================================================
    # Player Management
    # ========================================================================

    async def add_player(self, room_id: str, player_id: str, player_name: str) -> Player:
        now = self._now()
        async with self._session() as db:
            # Row lock on the room serialises concurrent joins (PostgreSQL)
            room = await self._active_room(db, room_id, for_update=True)
            if room is None:
                raise RoomNotFound(room_id)

            existing = await self._player_row(db, room_id, player_id)
            if existing and existing.is_active:
                existing.last_seen = now
                await db.flush()
                return self._player_model_to_pydantic(existing)

            count_result = await db.execute(
                select(func.count(PlayerModel.id)).where(
                    PlayerModel.room_id == room_id, PlayerModel.is_active.is_(True)
                )
            )
            if count_result.scalar_one() >= room.max_players:
                raise RoomFull(room_id, room.max_players, player_id=player_id)

            insert = self._insert(db)
            stmt = insert(PlayerModel).values(
                room_id=room_id,
                player_id=player_id,
                player_name=player_name,
                score=0,
                attempts=0,
                best_score=0,
                session_score=0,
                round_scores=[],
                joined_at=now,
                is_active=True,
                last_seen=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[PlayerModel.room_id, PlayerModel.player_id],
                set_={"is_active": True, "last_seen": now},
            )
            await db.execute(stmt)

            player = await self._player_row(db, room_id, player_id)
            return self._player_model_to_pydantic(player)

    async def get_player(
        self, room_id: str, player_id: str, include_inactive: bool = False
    ) -> Optional[Player]:
        async with self._session() as db:
            model = await self._player_row(db, room_id, player_id)
            if model and (model.is_active or include_inactive):
                return self._player_model_to_pydantic(model)
            return None

    async def list_players(self, room_id: str) -> list[Player]:
        async with self._session() as db:
            result = await db.execute(
                select(PlayerModel)
                .where(PlayerModel.room_id == room_id, PlayerModel.is_active.is_(True))
                .order_by(PlayerModel.joined_at, PlayerModel.id)
            )
            models = result.scalars().all()
            return [self._player_model_to_pydantic(m) for m in models]

    async def update_player(
        self, room_id: str, player_id: str, fields: dict[str, Any]
    ) -> Optional[Player]:
        async with self._session() as db:
            model = await self._player_row(db, room_id, player_id)
            if not model:
                return None
            for key, value in fields.items():
                setattr(model, key, value)
            model.last_seen = self._now()
            await db.flush()
            return self._player_model_to_pydantic(model)

    async def deactivate_player(self, room_id: str, player_id: str) -> bool:
        async with self._session() as db:
            result = await db.execute(
                update(PlayerModel)
                .where(
                    PlayerModel.room_id == room_id,
                    PlayerModel.player_id == player_id,
                    PlayerModel.is_active.is_(True),
                )
                .values(is_active=False, last_seen=self._now())
            )
            return result.rowcount > 0

    # ========================================================================
    # Round Management
    # ========================================================================

    async def create_round(self, data: RoundCreate) -> Round:
        now = self._now()
        try:
            async with self._session() as db:
                round_model = RoundModel(
                    **data.model_dump(by_alias=False),
                    start_time=now,
                    is_completed=False,
                    player_results=[],
                    created_at=now,
                )
                db.add(round_model)
                await db.flush()
                return self._round_model_to_pydantic(round_model)
        except IntegrityError as exc:
            raise RoundConflict(data.room_id, data.round_number) from exc

    async def get_round(self, room_id: str, round_number: int) -> Optional[Round]:
        async with self._session() as db:
            result = await db.execute(
                select(RoundModel).where(
                    RoundModel.room_id == room_id,
                    RoundModel.round_number == round_number,
                )
            )
            model = result.scalar_one_or_none()
            if model:
                return self._round_model_to_pydantic(model)
            return None

    async def complete_round(
        self, room_id: str, round_number: int, results: list[RoundResult]
    ) -> Optional[Round]:
        async with self._session() as db:
            result = await db.execute(
                select(RoundModel)
                .where(
                    RoundModel.room_id == room_id,
                    RoundModel.round_number == round_number,
                )
                .with_for_update()
            )
            model = result.scalar_one_or_none()
            if model is None:
                return None
            if not model.is_completed:
                model.is_completed = True
                model.end_time = self._now()
                model.player_results = [r.model_dump(by_alias=False) for r in results]
                await db.flush()
            return self._round_model_to_pydantic(model)

    async def list_rounds(self, room_id: str) -> list[Round]:
        async with self._session() as db:
            result = await db.execute(
                select(RoundModel)
                .where(RoundModel.room_id == room_id)
                .order_by(RoundModel.round_number)
            )
            return [self._round_model_to_pydantic(m) for m in result.scalars().all()]

    # ========================================================================
    # Score Management
    # ========================================================================

    async def save_score(self, data: ScoreCreate) -> tuple[Score, Optional[Player]]:
        now = self._now()
        async with self._session() as db:
            # Lock the player row so aggregates see every committed score
            player = await self._player_row(db, data.room_id, data.player_id, for_update=True)

            insert = self._insert(db)
            stmt = insert(ScoreModel).values(**data.model_dump(by_alias=False), submitted_at=now)
            stmt = stmt.on_conflict_do_update(
                index_elements=[ScoreModel.round_id, ScoreModel.player_id],
                set_={
                    "score": stmt.excluded.score,
                    "time_taken": stmt.excluded.time_taken,
                    "captured_color": stmt.excluded.captured_color,
                    "similarity": stmt.excluded.similarity,
                    "submitted_at": stmt.excluded.submitted_at,
                },
            )
            await db.execute(stmt)

            history_result = await db.execute(
                select(ScoreModel)
                .where(
                    ScoreModel.room_id == data.room_id,
                    ScoreModel.player_id == data.player_id,
                )
                .execution_options(populate_existing=True)
            )
            history = [self._score_model_to_pydantic(m) for m in history_result.scalars().all()]
            score = next(s for s in history if s.round_id == data.round_id)

            if player is None:
                return score, None

            aggregates = compute_aggregates(history)
            for key, value in aggregates.model_dump(by_alias=False).items():
                setattr(player, key, value)
            player.last_seen = now
            await db.flush()
            return score, self._player_model_to_pydantic(player)

    async def list_scores(self, room_id: str, round_id: Optional[int] = None) -> list[Score]:
        async with self._session() as db:
            query = select(ScoreModel).where(ScoreModel.room_id == room_id)
            if round_id is not None:
                query = query.where(ScoreModel.round_id == round_id)
            result = await db.execute(
                query.order_by(
                    ScoreModel.score.desc(), ScoreModel.time_taken.asc(), ScoreModel.id
                )
            )
            return [self._score_model_to_pydantic(m) for m in result.scalars().all()]

    # ========================================================================
    # Cleanup
    # ========================================================================

    async def deactivate_stale_rooms(self, cutoff: datetime) -> int:
        async with self._session() as db:
            # updated_at is left alone so the sweep does not look like activity
            result = await db.execute(
                update(RoomModel)
                .where(RoomModel.is_active.is_(True), RoomModel.updated_at < cutoff)
                .values(is_active=False)
            )
            return result.rowcount

    async def deactivate_stale_players(self, cutoff: datetime) -> int:
        async with self._session() as db:
            result = await db.execute(
                update(PlayerModel)
                .where(PlayerModel.is_active.is_(True), PlayerModel.last_seen < cutoff)
                .values(is_active=False)
            )
            return result.rowcount

    async def count_stale_rooms(self, cutoff: datetime) -> int:
        async with self._session() as db:
            result = await db.execute(
                select(func.count(RoomModel.id)).where(
                    RoomModel.is_active.is_(True), RoomModel.updated_at < cutoff
                )
            )
            return result.scalar_one()

    async def count_stale_players(self, cutoff: datetime) -> int:
        async with self._session() as db:
            result = await db.execute(
                select(func.count(PlayerModel.id)).where(
                    PlayerModel.is_active.is_(True), PlayerModel.last_seen < cutoff
                )
            )
            return result.scalar_one()
