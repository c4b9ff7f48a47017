"""FastAPI router for favorite toggling and listing."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from userdex.schemas.favorites import FavoriteEntry, FavoriteToggleResponse
from userdex.services.dependencies import get_directory_service
from userdex.services.directory_service import DirectoryService
from userdex.services.errors import RecordNotFoundError

router = APIRouter()


@router.get("", response_model=list[FavoriteEntry])
async def list_favorites(
    service: DirectoryService = Depends(get_directory_service),
) -> list[FavoriteEntry]:
    """Return the persisted favorites with their denormalized display fields."""

    return await service.list_favorites()


@router.post("/{identifier}/toggle", response_model=FavoriteToggleResponse)
async def toggle_favorite(
    identifier: str,
    service: DirectoryService = Depends(get_directory_service),
) -> FavoriteToggleResponse:
    """Flip the favorite state of a record on the current page or in the detail cache.

    A persistence failure surfaces as ``ToggleError`` and is rendered by the
    application-level handler.
    """

    record = service.record_for(identifier)
    if record is None:
        raise RecordNotFoundError("User is not on the current page", identifier=identifier)
    is_favorite = await service.toggle_favorite(record)
    return FavoriteToggleResponse(identifier=identifier, is_favorite=is_favorite)
