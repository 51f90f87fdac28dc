"""FastAPI application exposing the music library over HTTP."""

import time
from typing import Any
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from music_library import __version__
from music_library.database import DbMessages, FavoriteKind, Repository
from music_library.database.models import (
    Album,
    AlbumDTO,
    Artist,
    ArtistDTO,
    CreateUserDto,
    FavoritesResponse,
    Track,
    TrackDTO,
    UpdatePasswordDto,
    User,
    UserResponse,
    new_id,
    now_ms,
    prepare_user_response,
)
from music_library.utils.config import Settings
from music_library.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_BY_MESSAGE = {
    DbMessages.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    DbMessages.FORBIDDEN: status.HTTP_403_FORBIDDEN,
}


def get_repository(request: Request) -> Repository:
    """Repository owned by the running application."""
    return request.app.state.repository


def _unwrap(result: Any, entity: str) -> Any:
    """Turn a repository sentinel into an HTTP error."""
    if isinstance(result, DbMessages):
        code = STATUS_BY_MESSAGE[result]
        if result is DbMessages.FORBIDDEN:
            detail = "Old password is incorrect"
        else:
            detail = f"{entity} not found"
        raise HTTPException(status_code=code, detail=detail)
    return result


def _found(record: Any, entity: str) -> Any:
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")
    return record


def create_app(settings: Settings | None = None, repository: Repository | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Service settings, defaults when omitted
        repository: Store to serve, a fresh empty one when omitted

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Music Library",
        description="In-memory music library: users, artists, albums, tracks and favorites",
        version=__version__,
    )

    app.state.settings = settings or Settings()
    app.state.repository = repository or Repository()

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Any) -> Response:
        start = time.perf_counter()
        response = await call_next(request)

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            query=request.url.query,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Invalid ids and bodies are bad requests."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.get("/health")
    async def health(repo: Repository = Depends(get_repository)) -> dict[str, Any]:
        return {"status": "ok", "stats": await repo.get_stats()}

    # Users

    @app.get("/user", response_model=list[UserResponse])
    async def list_users(repo: Repository = Depends(get_repository)) -> Any:
        return prepare_user_response(await repo.get_users())

    @app.get("/user/{user_id}", response_model=UserResponse)
    async def get_user(user_id: UUID, repo: Repository = Depends(get_repository)) -> Any:
        user = _found(await repo.get_user(str(user_id)), "User")
        return prepare_user_response(user)

    @app.post("/user", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    async def create_user(dto: CreateUserDto, repo: Repository = Depends(get_repository)) -> Any:
        now = now_ms()
        user = await repo.create_user(
            User(
                id=new_id(),
                login=dto.login,
                password=dto.password,
                version=1,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("user_created", id=user.id, login=user.login)
        return prepare_user_response(user)

    @app.put("/user/{user_id}", response_model=UserResponse)
    async def update_password(
        user_id: UUID,
        dto: UpdatePasswordDto,
        repo: Repository = Depends(get_repository),
    ) -> Any:
        user = _unwrap(await repo.update_user_password(str(user_id), dto), "User")
        return prepare_user_response(user)

    @app.delete("/user/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_user(user_id: UUID, repo: Repository = Depends(get_repository)) -> Response:
        _unwrap(await repo.delete_user(str(user_id)), "User")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # Tracks

    @app.get("/track", response_model=list[Track])
    async def list_tracks(repo: Repository = Depends(get_repository)) -> Any:
        return await repo.get_tracks()

    @app.get("/track/{track_id}", response_model=Track)
    async def get_track(track_id: UUID, repo: Repository = Depends(get_repository)) -> Any:
        return _found(await repo.get_track(str(track_id)), "Track")

    @app.post("/track", response_model=Track, status_code=status.HTTP_201_CREATED)
    async def create_track(dto: TrackDTO, repo: Repository = Depends(get_repository)) -> Any:
        return await repo.create_track(Track(id=new_id(), **dto.model_dump()))

    @app.put("/track/{track_id}", response_model=Track)
    async def update_track(
        track_id: UUID,
        dto: TrackDTO,
        repo: Repository = Depends(get_repository),
    ) -> Any:
        return _unwrap(await repo.update_track_info(str(track_id), dto), "Track")

    @app.delete("/track/{track_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_track(track_id: UUID, repo: Repository = Depends(get_repository)) -> Response:
        _unwrap(await repo.delete_track(str(track_id)), "Track")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # Artists

    @app.get("/artist", response_model=list[Artist])
    async def list_artists(repo: Repository = Depends(get_repository)) -> Any:
        return await repo.get_artists()

    @app.get("/artist/{artist_id}", response_model=Artist)
    async def get_artist(artist_id: UUID, repo: Repository = Depends(get_repository)) -> Any:
        return _found(await repo.get_artist(str(artist_id)), "Artist")

    @app.post("/artist", response_model=Artist, status_code=status.HTTP_201_CREATED)
    async def create_artist(dto: ArtistDTO, repo: Repository = Depends(get_repository)) -> Any:
        return await repo.create_artist(Artist(id=new_id(), **dto.model_dump()))

    @app.put("/artist/{artist_id}", response_model=Artist)
    async def update_artist(
        artist_id: UUID,
        dto: ArtistDTO,
        repo: Repository = Depends(get_repository),
    ) -> Any:
        return _unwrap(await repo.update_artist_info(str(artist_id), dto), "Artist")

    @app.delete("/artist/{artist_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_artist(artist_id: UUID, repo: Repository = Depends(get_repository)) -> Response:
        _unwrap(await repo.delete_artist(str(artist_id)), "Artist")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # Albums

    @app.get("/album", response_model=list[Album])
    async def list_albums(repo: Repository = Depends(get_repository)) -> Any:
        return await repo.get_albums()

    @app.get("/album/{album_id}", response_model=Album)
    async def get_album(album_id: UUID, repo: Repository = Depends(get_repository)) -> Any:
        return _found(await repo.get_album(str(album_id)), "Album")

    @app.post("/album", response_model=Album, status_code=status.HTTP_201_CREATED)
    async def create_album(dto: AlbumDTO, repo: Repository = Depends(get_repository)) -> Any:
        return await repo.create_album(Album(id=new_id(), **dto.model_dump()))

    @app.put("/album/{album_id}", response_model=Album)
    async def update_album(
        album_id: UUID,
        dto: AlbumDTO,
        repo: Repository = Depends(get_repository),
    ) -> Any:
        return _unwrap(await repo.update_album_info(str(album_id), dto), "Album")

    @app.delete("/album/{album_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_album(album_id: UUID, repo: Repository = Depends(get_repository)) -> Response:
        _unwrap(await repo.delete_album(str(album_id)), "Album")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # Favorites

    @app.get("/favs", response_model=FavoritesResponse)
    async def list_favorites(repo: Repository = Depends(get_repository)) -> Any:
        return await repo.get_favorites()

    @app.post("/favs/{kind}/{entity_id}", status_code=status.HTTP_201_CREATED)
    async def add_favorite(
        kind: FavoriteKind,
        entity_id: UUID,
        repo: Repository = Depends(get_repository),
    ) -> Any:
        record = _unwrap(await repo.add_favorite(kind, str(entity_id)), kind.value.capitalize())
        return record.model_dump(by_alias=True)

    @app.delete("/favs/{kind}/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def remove_favorite(
        kind: FavoriteKind,
        entity_id: UUID,
        repo: Repository = Depends(get_repository),
    ) -> Response:
        _unwrap(
            await repo.remove_favorite(kind, str(entity_id)),
            f"Favorite {kind.value}",
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


def run_server(settings: Settings) -> None:
    """Run the web server.

    Args:
        settings: Service settings; the server section gives host and port
    """
    import uvicorn

    app = create_app(settings)
    logger.info("server_starting", host=settings.server.host, port=settings.server.port)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_config=None)
