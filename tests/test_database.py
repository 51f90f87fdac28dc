"""Tests for the in-memory repository."""

import pytest
from pydantic import ValidationError

from music_library.database.models import (
    Album,
    AlbumDTO,
    Artist,
    ArtistDTO,
    FavoriteKind,
    Track,
    TrackDTO,
    UpdatePasswordDto,
    User,
)
from music_library.database.repository import DbMessages, Repository


@pytest.fixture
def repository():
    """Create an empty repository for each test."""
    return Repository()


@pytest.fixture
async def library(repository):
    """Repository holding one artist, one album and two tracks."""
    await repository.create_artist(Artist(id="a1", name="Nina Simone", grammy=True))
    await repository.create_album(Album(id="al1", name="Pastel Blues", year=1965, artist_id="a1"))
    await repository.create_track(
        Track(id="t1", name="Sinnerman", artist_id="a1", album_id="al1", duration=620)
    )
    await repository.create_track(
        Track(id="t2", name="Be My Husband", artist_id="a1", album_id="al1", duration=137)
    )
    return repository


class TestUserOperations:
    """Tests for user CRUD and password changes."""

    @pytest.mark.asyncio
    async def test_create_and_get_user(self, repository):
        """Test that a created user is returned unchanged by id."""
        user = User(id="u1", login="nina", password="secret", created_at=1, updated_at=1)

        created = await repository.create_user(user)
        fetched = await repository.get_user("u1")

        assert created is user
        assert fetched == user
        assert fetched.version == 1

    @pytest.mark.asyncio
    async def test_get_user_missing(self, repository):
        """Test that an unknown id is simply absent."""
        assert await repository.get_user("nope") is None

    @pytest.mark.asyncio
    async def test_get_users_insertion_order(self, repository):
        """Test listing users in the order they were created."""
        assert await repository.get_users() == []

        for i in range(3):
            await repository.create_user(User(id=f"u{i}", login=f"user{i}", password="pw"))

        users = await repository.get_users()
        assert [u.id for u in users] == ["u0", "u1", "u2"]

    @pytest.mark.asyncio
    async def test_update_password(self, repository):
        """Test a successful password change bumps version and updated_at."""
        await repository.create_user(
            User(id="u1", login="nina", password="old", version=1, created_at=1000, updated_at=1000)
        )

        result = await repository.update_user_password(
            "u1", UpdatePasswordDto(old_password="old", new_password="new")
        )

        assert isinstance(result, User)
        assert result.password == "new"
        assert result.version == 2
        assert result.updated_at > 1000
        assert result.created_at == 1000

    @pytest.mark.asyncio
    async def test_update_password_twice_in_a_row(self, repository):
        """Test updated_at strictly increases on back-to-back changes."""
        await repository.create_user(User(id="u1", login="nina", password="a"))

        first = await repository.update_user_password(
            "u1", UpdatePasswordDto(old_password="a", new_password="b")
        )
        first_updated = first.updated_at
        second = await repository.update_user_password(
            "u1", UpdatePasswordDto(old_password="b", new_password="c")
        )

        assert second.version == 3
        assert second.updated_at > first_updated

    @pytest.mark.asyncio
    async def test_update_password_wrong_old_password(self, repository):
        """Test a wrong old password is forbidden and changes nothing."""
        await repository.create_user(
            User(id="u1", login="nina", password="old", created_at=1000, updated_at=1000)
        )

        result = await repository.update_user_password(
            "u1", UpdatePasswordDto(old_password="wrong", new_password="new")
        )

        assert result is DbMessages.FORBIDDEN
        user = await repository.get_user("u1")
        assert user.password == "old"
        assert user.version == 1
        assert user.updated_at == 1000

    @pytest.mark.asyncio
    async def test_update_password_missing_user(self, repository):
        """Test changing the password of an unknown user."""
        result = await repository.update_user_password(
            "nope", UpdatePasswordDto(old_password="a", new_password="b")
        )
        assert result is DbMessages.NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_user(self, repository):
        """Test deleting a user and deleting it again."""
        await repository.create_user(User(id="u1", login="nina", password="pw"))

        assert await repository.delete_user("u1") is None
        assert await repository.get_user("u1") is None
        assert await repository.delete_user("u1") is DbMessages.NOT_FOUND


class TestEntityUpdates:
    """Tests for track, artist and album updates."""

    @pytest.mark.asyncio
    async def test_update_track(self, library):
        """Test overwriting all track fields."""
        result = await library.update_track_info(
            "t1", TrackDTO(name="Sinnerman (Live)", artist_id=None, album_id=None, duration=600)
        )

        assert result.name == "Sinnerman (Live)"
        assert result.artist_id is None
        assert result.album_id is None
        assert result.duration == 600
        assert (await library.get_track("t1")) is result

    @pytest.mark.asyncio
    async def test_update_only_overwrites_given_fields(self, library):
        """Test fields left out of the payload keep their values."""
        result = await library.update_track_info("t1", TrackDTO(name="Renamed", duration=1))

        assert result.name == "Renamed"
        assert result.artist_id == "a1"
        assert result.album_id == "al1"

    @pytest.mark.asyncio
    async def test_update_artist(self, library):
        """Test renaming an artist and clearing the grammy flag."""
        result = await library.update_artist_info("a1", ArtistDTO(name="Eunice Waymon", grammy=False))

        assert result.id == "a1"
        assert result.name == "Eunice Waymon"
        assert result.grammy is False

    @pytest.mark.asyncio
    async def test_update_album(self, library):
        """Test updating an album."""
        result = await library.update_album_info(
            "al1", AlbumDTO(name="Pastel Blues (Remaster)", year=2006, artist_id="a1")
        )

        assert result.year == 2006
        assert result.name == "Pastel Blues (Remaster)"

    @pytest.mark.asyncio
    async def test_update_missing_returns_not_found(self, library):
        """Test every entity update reports unknown ids."""
        assert (
            await library.update_track_info("nope", TrackDTO(name="x", duration=1))
            is DbMessages.NOT_FOUND
        )
        assert (
            await library.update_artist_info("nope", ArtistDTO(name="x", grammy=False))
            is DbMessages.NOT_FOUND
        )
        assert (
            await library.update_album_info("nope", AlbumDTO(name="x", year=2000))
            is DbMessages.NOT_FOUND
        )

    @pytest.mark.asyncio
    async def test_delete_missing_returns_not_found(self, library):
        """Test every entity delete reports unknown ids."""
        assert await library.delete_user("nope") is DbMessages.NOT_FOUND
        assert await library.delete_track("nope") is DbMessages.NOT_FOUND
        assert await library.delete_artist("nope") is DbMessages.NOT_FOUND
        assert await library.delete_album("nope") is DbMessages.NOT_FOUND


class TestCascadeDelete:
    """Tests for reference cleanup on delete."""

    @pytest.mark.asyncio
    async def test_delete_artist_nulls_album_reference(self, repository):
        """Test the album of a deleted artist loses its artist_id."""
        await repository.create_artist(Artist(id="a1", name="X", grammy=False))
        await repository.create_album(Album(id="al1", name="Y", artist_id="a1", year=2000))

        assert await repository.delete_artist("a1") is None

        album = await repository.get_album("al1")
        assert album is not None
        assert album.artist_id is None

    @pytest.mark.asyncio
    async def test_delete_artist_cascades(self, library):
        """Test deleting an artist clears tracks, albums and favorites."""
        await library.create_artist(Artist(id="a2", name="Other"))
        await library.create_track(Track(id="t3", name="Other Song", artist_id="a2", duration=100))
        await library.add_favorite(FavoriteKind.ARTIST, "a1")
        await library.add_favorite(FavoriteKind.ARTIST, "a2")

        await library.delete_artist("a1")

        assert await library.get_artist("a1") is None
        assert all(t.artist_id != "a1" for t in await library.get_tracks())
        assert (await library.get_track("t1")).artist_id is None
        assert (await library.get_track("t2")).artist_id is None
        assert (await library.get_album("al1")).artist_id is None
        # Unrelated references survive
        assert (await library.get_track("t3")).artist_id == "a2"
        assert (await library.get_track("t1")).album_id == "al1"
        assert library.favorites.artists == ["a2"]

    @pytest.mark.asyncio
    async def test_delete_album_cascades(self, library):
        """Test deleting an album unlinks its tracks and leaves favorites."""
        await library.add_favorite(FavoriteKind.ALBUM, "al1")
        await library.add_favorite(FavoriteKind.TRACK, "t1")

        await library.delete_album("al1")

        assert await library.get_album("al1") is None
        tracks = await library.get_tracks()
        assert [t.album_id for t in tracks] == [None, None]
        assert [t.artist_id for t in tracks] == ["a1", "a1"]
        assert library.favorites.albums == []
        assert library.favorites.tracks == ["t1"]

    @pytest.mark.asyncio
    async def test_delete_track_purges_favorites(self, library):
        """Test deleting a track removes it from favorite tracks."""
        await library.add_favorite(FavoriteKind.TRACK, "t1")
        await library.add_favorite(FavoriteKind.TRACK, "t2")

        await library.delete_track("t1")

        favorites = await library.get_favorites()
        assert [t.id for t in favorites.tracks] == ["t2"]
        assert [t.id for t in await library.get_tracks()] == ["t2"]

    @pytest.mark.asyncio
    async def test_delete_artist_purges_duplicate_favorites(self, library):
        """Test every duplicate favorite entry is removed with the artist."""
        await library.add_favorite(FavoriteKind.ARTIST, "a1")
        await library.add_favorite(FavoriteKind.ARTIST, "a1")

        await library.delete_artist("a1")

        assert library.favorites.artists == []


class TestFavorites:
    """Tests for favorites management."""

    @pytest.mark.asyncio
    async def test_add_and_remove_track(self, library):
        """Test a favorite track resolves to its record until removed."""
        track = await library.add_favorite(FavoriteKind.TRACK, "t1")
        assert track.id == "t1"

        favorites = await library.get_favorites()
        assert favorites.tracks == [await library.get_track("t1")]

        assert await library.remove_favorite(FavoriteKind.TRACK, "t1") is None

        favorites = await library.get_favorites()
        assert favorites.tracks == []

    @pytest.mark.asyncio
    async def test_add_each_kind(self, library):
        """Test artists and albums resolve to full records."""
        await library.add_favorite(FavoriteKind.ARTIST, "a1")
        await library.add_favorite(FavoriteKind.ALBUM, "al1")

        favorites = await library.get_favorites()

        assert favorites.artists[0].name == "Nina Simone"
        assert favorites.albums[0].year == 1965
        assert favorites.tracks == []

    @pytest.mark.asyncio
    async def test_add_accepts_plain_kind_string(self, library):
        """Test the kind may be given as its string value."""
        album = await library.add_favorite("album", "al1")
        assert album.id == "al1"

    @pytest.mark.asyncio
    async def test_add_missing_entity(self, library):
        """Test favoriting an unknown entity."""
        assert await library.add_favorite(FavoriteKind.TRACK, "nope") is DbMessages.NOT_FOUND
        assert await library.add_favorite(FavoriteKind.ARTIST, "t1") is DbMessages.NOT_FOUND
        assert library.favorites.tracks == []

    @pytest.mark.asyncio
    async def test_add_twice_keeps_duplicates(self, library):
        """Test adding the same id twice stores two entries."""
        await library.add_favorite(FavoriteKind.TRACK, "t1")
        await library.add_favorite(FavoriteKind.TRACK, "t1")

        assert library.favorites.tracks == ["t1", "t1"]
        favorites = await library.get_favorites()
        assert [t.id for t in favorites.tracks] == ["t1", "t1"]

    @pytest.mark.asyncio
    async def test_remove_drops_every_duplicate(self, library):
        """Test one removal clears all copies of a duplicated favorite."""
        await library.add_favorite(FavoriteKind.TRACK, "t1")
        await library.add_favorite(FavoriteKind.TRACK, "t1")
        await library.add_favorite(FavoriteKind.TRACK, "t2")

        assert await library.remove_favorite(FavoriteKind.TRACK, "t1") is None

        assert library.favorites.tracks == ["t2"]
        assert await library.remove_favorite(FavoriteKind.TRACK, "t1") is DbMessages.NOT_FOUND

    @pytest.mark.asyncio
    async def test_remove_single_duplicated_favorite(self, library):
        """Test adding twice then removing once leaves no favorites."""
        await library.add_favorite(FavoriteKind.TRACK, "t1")
        await library.add_favorite(FavoriteKind.TRACK, "t1")

        await library.remove_favorite(FavoriteKind.TRACK, "t1")

        assert library.favorites.tracks == []
        assert (await library.get_favorites()).tracks == []

    @pytest.mark.asyncio
    async def test_remove_not_favorite(self, library):
        """Test removing an existing entity that is not a favorite."""
        result = await library.remove_favorite(FavoriteKind.ALBUM, "al1")
        assert result is DbMessages.NOT_FOUND

    @pytest.mark.asyncio
    async def test_get_favorites_skips_dangling_ids(self, library):
        """Test ids without a record are filtered out."""
        library.favorites.tracks.append("ghost")
        await library.add_favorite(FavoriteKind.TRACK, "t2")

        favorites = await library.get_favorites()

        assert [t.id for t in favorites.tracks] == ["t2"]


class TestStats:
    """Tests for repository statistics."""

    @pytest.mark.asyncio
    async def test_get_stats(self, library):
        """Test collection sizes."""
        await library.create_user(User(id="u1", login="nina", password="pw"))
        await library.add_favorite(FavoriteKind.TRACK, "t1")

        stats = await library.get_stats()

        assert stats["users"] == 1
        assert stats["artists"] == 1
        assert stats["albums"] == 1
        assert stats["tracks"] == 2
        assert stats["favorites"] == {"artists": 0, "albums": 0, "tracks": 1}


class TestIdentifiers:
    """Tests for identifier immutability."""

    @pytest.mark.asyncio
    async def test_record_ids_cannot_be_reassigned(self, library):
        """Test every stored record rejects a new id."""
        await library.create_user(User(id="u1", login="nina", password="pw"))
        records = [
            await library.get_user("u1"),
            await library.get_artist("a1"),
            await library.get_album("al1"),
            await library.get_track("t1"),
        ]

        for record in records:
            with pytest.raises(ValidationError):
                record.id = "zzz"

    @pytest.mark.asyncio
    async def test_cascade_still_works_after_rejected_reassignment(self, library):
        """Test a refused id change keeps the artist reachable for deletion."""
        artist = await library.get_artist("a1")
        with pytest.raises(ValidationError):
            artist.id = "zzz"

        assert artist.id == "a1"
        assert await library.get_artist("a1") is artist
        assert await library.delete_artist("a1") is None
        assert (await library.get_track("t1")).artist_id is None

    @pytest.mark.asyncio
    async def test_update_keeps_id(self, library):
        """Test updates overwrite fields but never the id."""
        result = await library.update_artist_info("a1", ArtistDTO(name="Renamed", grammy=False))

        assert result.id == "a1"
        assert await library.get_artist("a1") is result


class TestReferences:
    """Tests for the reference contract on create and update."""

    @pytest.mark.asyncio
    async def test_create_stores_references_unchecked(self, repository):
        """Test references are stored as given; the caller vouches for them."""
        track = await repository.create_track(
            Track(id="t1", name="Orphan", artist_id="ghost", album_id="ghost", duration=1)
        )
        album = await repository.create_album(Album(id="al1", name="Orphan", year=2000, artist_id="ghost"))

        assert track.artist_id == "ghost"
        assert album.artist_id == "ghost"

    @pytest.mark.asyncio
    async def test_reference_to_existing_record_is_cleared_on_delete(self, library):
        """Test a reference set through update is cascaded like one set on create."""
        await library.create_artist(Artist(id="a2", name="Other"))
        await library.update_album_info("al1", AlbumDTO(name="Pastel Blues", year=1965, artist_id="a2"))

        await library.delete_artist("a2")

        assert (await library.get_album("al1")).artist_id is None
