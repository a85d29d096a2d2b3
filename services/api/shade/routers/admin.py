"""
Admin endpoints: inactive-data cleanup and leaderboard export.

All routes require the shared admin password in the `password` header.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Response

from ..dependencies import get_exporter, get_party_service, require_admin
from ..models import CleanupRequest, CleanupResult, ErrorResponse
from ..services.export import LeaderboardExporter
from ..services.party import PartyService

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
    responses={401: {"model": ErrorResponse}},
)


@router.post("/cleanup", response_model=CleanupResult)
async def run_cleanup(
    party: Annotated[PartyService, Depends(get_party_service)],
    request: Optional[CleanupRequest] = None,
) -> CleanupResult:
    """Deactivate stale rooms and players."""
    request = request or CleanupRequest()
    return await party.cleanup_inactive(request.room_hours, request.player_hours)


@router.get("/cleanup", response_model=CleanupResult)
async def preview_cleanup(
    party: Annotated[PartyService, Depends(get_party_service)],
    room_hours: Annotated[Optional[float], Query(alias="roomHours", gt=0)] = None,
    player_hours: Annotated[Optional[float], Query(alias="playerHours", gt=0)] = None,
) -> CleanupResult:
    """Report what a cleanup would deactivate, without changing anything."""
    return await party.preview_cleanup(room_hours, player_hours)


@router.get(
    "/export-leaderboard",
    response_class=Response,
    responses={404: {"model": ErrorResponse}},
)
async def export_leaderboard(
    exporter: Annotated[LeaderboardExporter, Depends(get_exporter)],
    room_id: Annotated[str, Query(alias="roomId", min_length=1)],
    include_address: Annotated[bool, Query(alias="includeAddress")] = False,
) -> Response:
    """Download a room's session leaderboard as CSV."""
    room_id = room_id.upper()
    content = await exporter.export_csv(room_id, include_address=include_address)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="leaderboard-{room_id}.csv"'},
    )
