"""
Health check endpoint.
"""
from typing import Annotated

from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..models import HealthResponse
from .. import __version__

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Annotated[Settings, Depends(get_settings)]) -> HealthResponse:
    """Report liveness and which storage backend is serving requests."""
    return HealthResponse(status="ok", version=__version__, storage=settings.storage_type)
