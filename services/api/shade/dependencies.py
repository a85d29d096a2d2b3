"""
FastAPI dependencies for dependency injection.
"""
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

from .storage import Storage, InMemoryStorage, SQLStorage
from .config import get_settings, Settings
from .services.auth import verify_admin_password
from .services.export import LeaderboardExporter
from .services.party import PartyService


# Global storage instance (will be set on app startup)
_storage: Optional[Storage] = None


def get_storage() -> Storage:
    """Get the storage instance."""
    global _storage
    if _storage is None:
        settings = get_settings()
        if settings.storage_type == "sql":
            _storage = SQLStorage()
        else:
            _storage = InMemoryStorage()
    return _storage


def set_storage(storage: Optional[Storage]) -> None:
    """Set the storage instance (for testing or switching implementations)."""
    global _storage
    _storage = storage


def get_party_service(
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> PartyService:
    return PartyService(storage, settings)


def get_exporter(
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> LeaderboardExporter:
    return LeaderboardExporter(storage, settings)


async def require_admin(
    password: Annotated[Optional[str], Header()] = None,
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Verify the shared admin password sent in the `password` header.
    """
    if not verify_admin_password(password, settings.admin_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHORIZED", "message": "Invalid or missing admin password"},
        )
