"""Favorites components split by responsibility.

``persistence`` owns the durable keyed set and its live observation while
``toggle`` decides between add and remove from the store's own answer.
"""

from .persistence import FavoriteStore, SqlFavoriteStore
from .toggle import FavoriteToggleCoordinator

__all__ = [
    "FavoriteStore",
    "FavoriteToggleCoordinator",
    "SqlFavoriteStore",
]
