"""
Database module for Shade Party Mode.

Provides SQLAlchemy models and async database connection.
"""
from .models import Base, RoomModel, PlayerModel, RoundModel, ScoreModel
from .connection import get_db_engine, get_session_factory, init_db, close_db

__all__ = [
    "Base",
    "RoomModel",
    "PlayerModel",
    "RoundModel",
    "ScoreModel",
    "get_db_engine",
    "get_session_factory",
    "init_db",
    "close_db",
]
