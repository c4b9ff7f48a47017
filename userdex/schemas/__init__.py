from userdex.schemas.directory import (
    DirectoryActionResponse,
    DirectoryStatus,
    PageRequest,
    UserDetailResponse,
    ViewState,
    normalize_query,
)
from userdex.schemas.favorites import FavoriteEntry, FavoriteToggleResponse
from userdex.schemas.user import RandomUserResponse, UserRecord

__all__ = [
    "DirectoryActionResponse",
    "DirectoryStatus",
    "FavoriteEntry",
    "FavoriteToggleResponse",
    "PageRequest",
    "RandomUserResponse",
    "UserDetailResponse",
    "UserRecord",
    "ViewState",
    "normalize_query",
]
