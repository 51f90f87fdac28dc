"""In-memory repository for library records."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel

from music_library.utils.logging import get_logger

from .models import (
    Album,
    AlbumDTO,
    Artist,
    ArtistDTO,
    FavoriteKind,
    Favorites,
    FavoritesResponse,
    Record,
    Track,
    TrackDTO,
    UpdatePasswordDto,
    User,
    now_ms,
)

logger = get_logger(__name__)

R = TypeVar("R", bound=Record)


class DbMessages(Enum):
    """Sentinel results returned instead of raising."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class CascadeRule:
    """What to clean up when a record of one collection is deleted.

    nullify: (collection, field) pairs whose value is set to None when it
        equals the deleted id.
    favorites: name of the favorites list to purge the id from.
    """

    nullify: tuple[tuple[str, str], ...] = ()
    favorites: str | None = None


CASCADE_RULES: dict[str, CascadeRule] = {
    "users": CascadeRule(),
    "artists": CascadeRule(
        nullify=(("tracks", "artist_id"), ("albums", "artist_id")),
        favorites="artists",
    ),
    "albums": CascadeRule(
        nullify=(("tracks", "album_id"),),
        favorites="albums",
    ),
    "tracks": CascadeRule(favorites="tracks"),
}

# Favorite kind -> (entity collection, favorites list)
FAVORITE_TARGETS: dict[FavoriteKind, tuple[str, str]] = {
    FavoriteKind.ARTIST: ("artists", "artists"),
    FavoriteKind.ALBUM: ("albums", "albums"),
    FavoriteKind.TRACK: ("tracks", "tracks"),
}


class Repository:
    """Async repository holding the whole library in memory.

    Operations never await between looking a record up and mutating it,
    so every call completes atomically on a single event loop.
    """

    def __init__(self) -> None:
        self._collections: dict[str, list[Any]] = {name: [] for name in CASCADE_RULES}
        self.favorites = Favorites()

    # Generic helpers

    def _find(self, collection: str, record_id: str) -> Any | None:
        for record in self._collections[collection]:
            if record.id == record_id:
                return record
        return None

    def _create(self, collection: str, record: R) -> R:
        self._collections[collection].append(record)
        logger.debug("record_created", collection=collection, id=record.id)
        return record

    def _update(self, collection: str, record_id: str, dto: BaseModel) -> Any:
        record = self._find(collection, record_id)
        if record is None:
            return DbMessages.NOT_FOUND

        for name, value in dto.model_dump(exclude_unset=True).items():
            setattr(record, name, value)

        logger.debug("record_updated", collection=collection, id=record_id)
        return record

    def _delete(self, collection: str, record_id: str) -> DbMessages | None:
        record = self._find(collection, record_id)
        if record is None:
            return DbMessages.NOT_FOUND

        rule = CASCADE_RULES[collection]
        nullified = 0
        for dependent, attr in rule.nullify:
            for other in self._collections[dependent]:
                if getattr(other, attr) == record_id:
                    setattr(other, attr, None)
                    nullified += 1

        purged = 0
        if rule.favorites:
            ids = getattr(self.favorites, rule.favorites)
            kept = [fav_id for fav_id in ids if fav_id != record_id]
            purged = len(ids) - len(kept)
            setattr(self.favorites, rule.favorites, kept)

        self._collections[collection] = [
            r for r in self._collections[collection] if r.id != record_id
        ]

        logger.info(
            "record_deleted",
            collection=collection,
            id=record_id,
            references_cleared=nullified,
            favorites_purged=purged,
        )
        return None

    # User operations

    async def get_users(self) -> list[User]:
        """Get all users in insertion order."""
        return list(self._collections["users"])

    async def get_user(self, user_id: str) -> User | None:
        return self._find("users", user_id)

    async def create_user(self, user: User) -> User:
        return self._create("users", user)

    async def update_user_password(
        self, user_id: str, dto: UpdatePasswordDto
    ) -> User | DbMessages:
        """Change a user's password.

        Returns:
            The updated user, NOT_FOUND for an unknown id or FORBIDDEN
            when the old password does not match.
        """
        user = self._find("users", user_id)
        if user is None:
            return DbMessages.NOT_FOUND
        if user.password != dto.old_password:
            logger.info("password_mismatch", id=user_id)
            return DbMessages.FORBIDDEN

        user.password = dto.new_password
        user.version += 1
        # Strictly increasing even when two changes land in the same millisecond
        user.updated_at = max(now_ms(), user.updated_at + 1)

        logger.debug("password_updated", id=user_id, version=user.version)
        return user

    async def delete_user(self, user_id: str) -> DbMessages | None:
        return self._delete("users", user_id)

    # Track operations

    async def get_tracks(self) -> list[Track]:
        """Get all tracks in insertion order."""
        return list(self._collections["tracks"])

    async def get_track(self, track_id: str) -> Track | None:
        return self._find("tracks", track_id)

    async def create_track(self, track: Track) -> Track:
        """Store a track as given.

        artist_id and album_id are not checked; callers must pass ids of
        existing records or None.
        """
        return self._create("tracks", track)

    async def update_track_info(self, track_id: str, dto: TrackDTO) -> Track | DbMessages:
        """Overwrite the track fields present in the payload.

        New artist_id or album_id values must reference existing records.
        """
        return self._update("tracks", track_id, dto)

    async def delete_track(self, track_id: str) -> DbMessages | None:
        """Delete a track and drop it from favorites."""
        return self._delete("tracks", track_id)

    # Artist operations

    async def get_artists(self) -> list[Artist]:
        """Get all artists in insertion order."""
        return list(self._collections["artists"])

    async def get_artist(self, artist_id: str) -> Artist | None:
        return self._find("artists", artist_id)

    async def create_artist(self, artist: Artist) -> Artist:
        return self._create("artists", artist)

    async def update_artist_info(self, artist_id: str, dto: ArtistDTO) -> Artist | DbMessages:
        """Overwrite the artist fields present in the payload."""
        return self._update("artists", artist_id, dto)

    async def delete_artist(self, artist_id: str) -> DbMessages | None:
        """Delete an artist.

        Tracks and albums credited to the artist keep existing with
        artist_id set to None; the artist is dropped from favorites.
        """
        return self._delete("artists", artist_id)

    # Album operations

    async def get_albums(self) -> list[Album]:
        """Get all albums in insertion order."""
        return list(self._collections["albums"])

    async def get_album(self, album_id: str) -> Album | None:
        return self._find("albums", album_id)

    async def create_album(self, album: Album) -> Album:
        """Store an album as given.

        artist_id is not checked; callers must pass the id of an existing
        artist or None.
        """
        return self._create("albums", album)

    async def update_album_info(self, album_id: str, dto: AlbumDTO) -> Album | DbMessages:
        """Overwrite the album fields present in the payload.

        A new artist_id must reference an existing artist.
        """
        return self._update("albums", album_id, dto)

    async def delete_album(self, album_id: str) -> DbMessages | None:
        """Delete an album, unlinking its tracks and dropping it from favorites."""
        return self._delete("albums", album_id)

    # Favorites operations

    async def get_favorites(self) -> FavoritesResponse:
        """Resolve every favorite id to its current record.

        Ids whose record is gone are skipped.
        """
        resolved: dict[str, list[Any]] = {}
        for collection, fav_list in FAVORITE_TARGETS.values():
            records = []
            for fav_id in getattr(self.favorites, fav_list):
                record = self._find(collection, fav_id)
                if record is None:
                    logger.warning("dangling_favorite", collection=collection, id=fav_id)
                    continue
                records.append(record)
            resolved[fav_list] = records

        return FavoritesResponse(**resolved)

    async def add_favorite(self, kind: FavoriteKind, entity_id: str) -> Any:
        """Append an entity id to its favorites list.

        Repeated calls append the id again; the list is not deduplicated.

        Returns:
            The favorited record, or NOT_FOUND when it does not exist
        """
        collection, fav_list = FAVORITE_TARGETS[FavoriteKind(kind)]
        record = self._find(collection, entity_id)
        if record is None:
            return DbMessages.NOT_FOUND

        getattr(self.favorites, fav_list).append(record.id)
        logger.debug("favorite_added", kind=FavoriteKind(kind).value, id=entity_id)
        return record

    async def remove_favorite(self, kind: FavoriteKind, entity_id: str) -> DbMessages | None:
        """Remove every occurrence of an id from its favorites list."""
        _, fav_list = FAVORITE_TARGETS[FavoriteKind(kind)]
        ids = getattr(self.favorites, fav_list)
        if entity_id not in ids:
            return DbMessages.NOT_FOUND

        setattr(self.favorites, fav_list, [fav_id for fav_id in ids if fav_id != entity_id])
        logger.debug("favorite_removed", kind=FavoriteKind(kind).value, id=entity_id)
        return None

    # Utility methods

    async def get_stats(self) -> dict[str, Any]:
        """Get collection sizes."""
        return {
            "users": len(self._collections["users"]),
            "tracks": len(self._collections["tracks"]),
            "artists": len(self._collections["artists"]),
            "albums": len(self._collections["albums"]),
            "favorites": {
                "artists": len(self.favorites.artists),
                "albums": len(self.favorites.albums),
                "tracks": len(self.favorites.tracks),
            },
        }
