"""FastAPI dependency wiring for the directory session.

The lifespan hook stores one :class:`DirectoryService` on ``app.state``; the
routers only ever reach it through :func:`get_directory_service` so tests can
swap in a session backed by fakes via ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from userdex.services.directory_service import DirectoryService


def get_directory_service(request: Request) -> DirectoryService:
    service: DirectoryService | None = getattr(request.app.state, "directory_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Directory session is not initialised",
        )
    return service


__all__ = ["get_directory_service"]
