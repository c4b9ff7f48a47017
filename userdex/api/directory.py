"""FastAPI router driving the paginated directory view."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from userdex.schemas.directory import DirectoryActionResponse, ViewState
from userdex.services.dependencies import get_directory_service
from userdex.services.directory_service import DirectoryService

router = APIRouter()


@router.get("", response_model=ViewState)
async def get_view_state(
    service: DirectoryService = Depends(get_directory_service),
) -> ViewState:
    """Return the current snapshot without triggering a fetch."""

    return service.state


@router.post("/refresh", response_model=DirectoryActionResponse)
async def refresh(
    nat: str | None = Query(
        default=None,
        max_length=16,
        description="Nationality code; omitted or blank means unfiltered.",
    ),
    service: DirectoryService = Depends(get_directory_service),
) -> DirectoryActionResponse:
    accepted = await service.refresh(nat)
    return DirectoryActionResponse(accepted=accepted, state=service.state)


@router.post("/search", response_model=DirectoryActionResponse)
async def search(
    q: str = Query("", max_length=16, description="Nationality code to filter by"),
    service: DirectoryService = Depends(get_directory_service),
) -> DirectoryActionResponse:
    """Run a new search from page 1, discarding the current position."""

    accepted = await service.search(q)
    return DirectoryActionResponse(accepted=accepted, state=service.state)


@router.post("/reload", response_model=DirectoryActionResponse)
async def reload(
    service: DirectoryService = Depends(get_directory_service),
) -> DirectoryActionResponse:
    accepted = await service.reload()
    return DirectoryActionResponse(accepted=accepted, state=service.state)


@router.post("/next", response_model=DirectoryActionResponse)
async def next_page(
    service: DirectoryService = Depends(get_directory_service),
) -> DirectoryActionResponse:
    accepted = await service.next_page()
    return DirectoryActionResponse(accepted=accepted, state=service.state)


@router.post("/previous", response_model=DirectoryActionResponse)
async def previous_page(
    service: DirectoryService = Depends(get_directory_service),
) -> DirectoryActionResponse:
    accepted = await service.previous_page()
    return DirectoryActionResponse(accepted=accepted, state=service.state)


@router.delete("/error", status_code=status.HTTP_204_NO_CONTENT)
async def clear_error(
    service: DirectoryService = Depends(get_directory_service),
) -> Response:
    service.clear_error()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
