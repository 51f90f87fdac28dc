"""Library records and the in-memory repository."""

from .models import Album, Artist, FavoriteKind, Favorites, Track, User
from .repository import DbMessages, Repository

__all__ = [
    "Album",
    "Artist",
    "DbMessages",
    "FavoriteKind",
    "Favorites",
    "Repository",
    "Track",
    "User",
]
