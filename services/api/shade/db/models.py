"""
SQLAlchemy ORM models for Party Mode.

These map to the database tables and mirror the Pydantic models in models.py.
Players, rounds and scores reference their room by code through plain foreign
keys with no cascades: deactivating or removing a room never deletes history.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class RoomModel(Base):
    """Party room table."""
    __tablename__ = "party_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    host_id: Mapped[str] = mapped_column(String(50), index=True)
    host_name: Mapped[str] = mapped_column(String(100))
    max_players: Mapped[int] = mapped_column(Integer, default=4)
    max_rounds: Mapped[int] = mapped_column(Integer, default=3)
    guess_time: Mapped[int] = mapped_column(Integer, default=30)
    current_round: Mapped[int] = mapped_column(Integer, default=0)
    game_state: Mapped[str] = mapped_column(String(20), default="lobby")
    game_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    target_color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    current_guess_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Ordered list of player ids
    denner_rotation: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class PlayerModel(Base):
    """Player in a room."""
    __tablename__ = "party_players"
    __table_args__ = (
        UniqueConstraint("room_id", "player_id", name="party_players_room_player_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("party_rooms.room_id"), index=True
    )
    player_id: Mapped[str] = mapped_column(String(50), index=True)
    player_name: Mapped[str] = mapped_column(String(100))
    score: Mapped[int] = mapped_column(Integer, default=0)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    best_score: Mapped[int] = mapped_column(Integer, default=0)
    session_score: Mapped[float] = mapped_column(Float, default=0, index=True)
    round_scores: Mapped[list] = mapped_column(JSON, default=list)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class RoundModel(Base):
    """A single round in a room."""
    __tablename__ = "party_rounds"
    __table_args__ = (
        UniqueConstraint("room_id", "round_number", name="party_rounds_room_round_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("party_rooms.room_id"), index=True
    )
    round_number: Mapped[int] = mapped_column(Integer)
    game_type: Mapped[str] = mapped_column(String(20))
    denner_id: Mapped[str] = mapped_column(String(50), index=True)
    denner_name: Mapped[str] = mapped_column(String(100))
    target_color: Mapped[str] = mapped_column(String(50))
    guess_time: Mapped[int] = mapped_column(Integer)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    # List of {id, name, score, attempts}
    player_results: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


class ScoreModel(Base):
    """A player's score submission for a round."""
    __tablename__ = "party_scores"
    __table_args__ = (
        UniqueConstraint("round_id", "player_id", name="party_scores_round_player_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("party_rooms.room_id"), index=True
    )
    round_id: Mapped[int] = mapped_column(Integer, ForeignKey("party_rounds.id"), index=True)
    round_number: Mapped[int] = mapped_column(Integer)
    player_id: Mapped[str] = mapped_column(String(50), index=True)
    player_name: Mapped[str] = mapped_column(String(100))
    score: Mapped[int] = mapped_column(Integer, index=True)
    time_taken: Mapped[float] = mapped_column(Float)
    target_color: Mapped[str] = mapped_column(String(50))
    captured_color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    similarity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    game_type: Mapped[str] = mapped_column(String(20))
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
