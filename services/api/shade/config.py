"""
Application configuration via environment variables.
"""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App settings
    app_name: str = "Shade Party Mode API"
    debug: bool = False
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Storage backend: "memory" for in-memory, "sql" for database
    storage_type: Literal["memory", "sql"] = "memory"

    # Database (only used when storage_type="sql")
    database_url: str = "sqlite+aiosqlite:///./shade.db"  # Default for dev

    # Room defaults
    default_max_players: int = 4
    default_max_rounds: int = 3
    default_guess_time: int = 30
    default_time_extension: int = 30
    min_players: int = 2
    default_target_color: str = "#ff0000"
    default_game_type: Literal["findColor", "colorMixing"] = "colorMixing"

    # Room code generation
    room_code_length: int = 6
    room_code_max_attempts: int = 10

    # Cleanup of stale rooms and players
    room_inactive_hours: float = 24
    player_inactive_hours: float = 2
    cleanup_task_enabled: bool = False
    cleanup_interval_seconds: int = 3600

    # Shared secret for admin routes (empty disables them)
    admin_password: str = ""

    # Farcaster primary address lookup used by the leaderboard export
    address_lookup_url: str = "https://api.warpcast.com/fc/primary-addresses"
    address_lookup_timeout: float = 10.0
    address_lookup_batch_size: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
