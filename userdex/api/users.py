"""FastAPI router for the user detail view."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from userdex.schemas.directory import UserDetailResponse
from userdex.services.dependencies import get_directory_service
from userdex.services.directory_service import DirectoryService
from userdex.services.errors import RecordNotFoundError

router = APIRouter()


@router.put("/{identifier}/cache", response_model=UserDetailResponse)
async def select_user(
    identifier: str,
    service: DirectoryService = Depends(get_directory_service),
) -> UserDetailResponse:
    """Hand a record on the displayed page over to the detail view."""

    record = next((user for user in service.state.users if user.identifier == identifier), None)
    if record is None:
        raise RecordNotFoundError("User is not on the current page", identifier=identifier)
    service.cache_detail(record)
    return UserDetailResponse(user=record, is_favorite=service.state.is_favorite(identifier))


@router.get("/{identifier}", response_model=UserDetailResponse)
async def get_user_detail(
    identifier: str,
    service: DirectoryService = Depends(get_directory_service),
) -> UserDetailResponse:
    """Return a previously selected record; there is no remote single-record lookup."""

    detail = await service.get_detail(identifier)
    if detail is None:
        raise RecordNotFoundError("User detail not available", identifier=identifier)
    return detail
