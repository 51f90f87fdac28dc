"""Pydantic models for library records and request payloads."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    model_validator,
)


def utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Get current UTC time as epoch milliseconds."""
    return int(utcnow().timestamp() * 1000)


def new_id() -> str:
    """Generate a new record identifier."""
    return str(uuid.uuid4())


class FavoriteKind(str, Enum):
    """Entity kinds that can be marked as favorite."""

    ARTIST = "artist"
    ALBUM = "album"
    TRACK = "track"


class Record(BaseModel):
    """Base class for stored records.

    Accepts both camelCase and snake_case keys and validates
    every in-place field assignment. The id cannot be reassigned.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str = Field(frozen=True)


class User(Record):
    """Registered user."""

    login: str
    password: str
    version: int = 1
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")

    @model_validator(mode="before")
    @classmethod
    def fill_timestamps(cls, data: Any) -> Any:
        """Stamp missing timestamps from a single clock reading."""
        if not isinstance(data, dict):
            return data

        missing = [
            name
            for name, alias in (("created_at", "createdAt"), ("updated_at", "updatedAt"))
            if name not in data and alias not in data
        ]
        if missing:
            now = now_ms()
            data = {**data, **{name: now for name in missing}}
        return data


class Artist(Record):
    """Performing artist."""

    name: str
    grammy: bool = False


class Album(Record):
    """Album, optionally credited to an artist."""

    name: str
    year: int
    artist_id: str | None = Field(None, alias="artistId")


class Track(Record):
    """Track, optionally linked to an artist and an album."""

    name: str
    artist_id: str | None = Field(None, alias="artistId")
    album_id: str | None = Field(None, alias="albumId")
    duration: int


class Favorites(BaseModel):
    """Favorite ids per entity kind, in insertion order."""

    artists: list[str] = Field(default_factory=list)
    albums: list[str] = Field(default_factory=list)
    tracks: list[str] = Field(default_factory=list)


class FavoritesResponse(BaseModel):
    """Favorites resolved to full records."""

    artists: list[Artist] = Field(default_factory=list)
    albums: list[Album] = Field(default_factory=list)
    tracks: list[Track] = Field(default_factory=list)


# Request payloads


class Dto(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateUserDto(Dto):
    """Payload for registering a user."""

    login: StrictStr = Field(min_length=1)
    password: StrictStr = Field(min_length=1)


class UpdatePasswordDto(Dto):
    """Payload for changing a user's password."""

    old_password: StrictStr = Field(min_length=1, alias="oldPassword")
    new_password: StrictStr = Field(min_length=1, alias="newPassword")


class TrackDTO(Dto):
    name: StrictStr = Field(min_length=1)
    artist_id: StrictStr | None = Field(None, alias="artistId")
    album_id: StrictStr | None = Field(None, alias="albumId")
    duration: StrictInt = Field(ge=0)


class ArtistDTO(Dto):
    name: StrictStr = Field(min_length=1)
    grammy: StrictBool


class AlbumDTO(Dto):
    name: StrictStr = Field(min_length=1)
    year: StrictInt
    artist_id: StrictStr | None = Field(None, alias="artistId")


class UserResponse(BaseModel):
    """Public view of a user, without the password."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    login: str
    version: int
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            login=user.login,
            version=user.version,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


def prepare_user_response(data: User | list[User]) -> UserResponse | list[UserResponse]:
    """Strip passwords from one user or a list of users."""
    if isinstance(data, list):
        return [UserResponse.from_user(item) for item in data]
    return UserResponse.from_user(data)
