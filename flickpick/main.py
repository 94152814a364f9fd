"""FastAPI surface exposing the FlickPick client views locally."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from .config import Settings, settings
from .database import Database
from .models import Credentials, Movie, Profile, ProfileUpdate, Registration
from .results import Failure, FailureKind
from .services.account import AccountService
from .services.catalog import CatalogViewModel
from .services.details import DetailResolver
from .services.favorites import FavoritesSynchronizer
from .services.gateway import FlickPickClient
from .services.session_store import Session, SessionStore
from .storage import KeyValueStorage

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

FAILURE_STATUS: dict[FailureKind, int] = {
    FailureKind.NETWORK_UNREACHABLE: 503,
    FailureKind.UNAUTHORIZED: 401,
    FailureKind.NOT_FOUND: 404,
    FailureKind.VALIDATION_REJECTED: 400,
    FailureKind.SERVER_FAULT: 502,
    FailureKind.FAVORITE_SYNC: 409,
    FailureKind.UNKNOWN_FACET: 400,
}


@dataclass(slots=True)
class ClientContext:
    """Everything the views need, wired around one Session Store."""

    session_store: SessionStore
    gateway: FlickPickClient
    account: AccountService
    favorites: FavoritesSynchronizer
    catalog: CatalogViewModel
    details: DetailResolver

    @classmethod
    def build(
        cls,
        app_settings: Settings,
        http_client: httpx.AsyncClient,
        storage: KeyValueStorage,
    ) -> "ClientContext":
        session_store = SessionStore(storage)
        gateway = FlickPickClient(
            app_settings, http_client, lambda: session_store.token
        )
        return cls(
            session_store=session_store,
            gateway=gateway,
            account=AccountService(gateway, session_store),
            favorites=FavoritesSynchronizer(gateway, session_store),
            catalog=CatalogViewModel(gateway, session_store),
            details=DetailResolver(gateway),
        )


def create_app(
    app_settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    resolved_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        exit_stack = AsyncExitStack()
        client_kwargs: dict[str, Any] = {
            "base_url": resolved_settings.api_base_url,
            "timeout": httpx.Timeout(resolved_settings.api_timeout_seconds, connect=10.0),
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(**client_kwargs)
        )
        database = Database(resolved_settings.database_url)
        await database.create_all()

        context = ClientContext.build(
            resolved_settings, http_client, KeyValueStorage(database.session_factory)
        )
        await context.session_store.initialize()

        fastapi_app.state.client = context
        fastapi_app.state.database = database
        try:
            yield
        finally:  # pragma: no cover - teardown path exercised at runtime
            await database.dispose()
            await exit_stack.aclose()

    fastapi_app = FastAPI(
        title=resolved_settings.app_name,
        description="Browse the FlickPick catalog and keep a list of favorites",
        version="1.0.0",
        lifespan=lifespan,
    )
    register_routes(fastapi_app)
    return fastapi_app


def get_client(fastapi_app: FastAPI) -> ClientContext:
    context = getattr(fastapi_app.state, "client", None)
    if not isinstance(context, ClientContext):
        raise RuntimeError("Client context not initialised")
    return context


def failure_response(error: Failure | None) -> JSONResponse:
    """Render a failure as a transient notification payload."""

    if error is None:
        error = Failure(FailureKind.SERVER_FAULT, "Unknown error")
    return JSONResponse(error.to_payload(), status_code=FAILURE_STATUS[error.kind])


def profile_payload(profile: Profile | None) -> dict[str, Any] | None:
    if profile is None:
        return None
    payload = profile.to_storage()
    payload.pop("Password", None)
    return payload


def session_payload(session: Session) -> dict[str, Any]:
    return {
        "authenticated": session.is_authenticated,
        "profile": profile_payload(session.profile),
    }


def movie_payload(movie: Movie, *, is_favorite: bool) -> dict[str, Any]:
    payload = movie.model_dump(mode="json", by_alias=True)
    payload["isFavorite"] = is_favorite
    return payload


async def _read_model(request: Request, model: type[ModelT]) -> ModelT:
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        payload = {}
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail=exc.errors(include_url=False, include_context=False)
        ) from exc


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/session")
    async def current_session() -> dict[str, Any]:
        client = get_client(fastapi_app)
        return session_payload(client.session_store.current())

    @fastapi_app.post("/api/login")
    async def login(request: Request) -> Any:
        client = get_client(fastapi_app)
        credentials = await _read_model(request, Credentials)
        outcome = await client.account.login(credentials)
        if not outcome.ok or outcome.value is None:
            return failure_response(outcome.error)
        return session_payload(outcome.value)

    @fastapi_app.post("/api/register")
    async def register(request: Request) -> Any:
        client = get_client(fastapi_app)
        registration = await _read_model(request, Registration)
        outcome = await client.account.register(registration)
        if not outcome.ok or outcome.value is None:
            return failure_response(outcome.error)
        return session_payload(outcome.value)

    @fastapi_app.post("/api/logout")
    async def logout() -> dict[str, Any]:
        client = get_client(fastapi_app)
        return session_payload(await client.account.logout())

    @fastapi_app.get("/api/movies")
    async def list_movies() -> Any:
        client = get_client(fastapi_app)
        outcome = await client.catalog.load()
        if not outcome.ok:
            return failure_response(outcome.error)
        catalog = client.catalog
        return [
            movie_payload(movie, is_favorite=catalog.is_favorite(movie))
            for movie in catalog.movies
        ]

    @fastapi_app.post("/api/movies/{movie_id}/favorite")
    async def toggle_favorite(movie_id: str) -> Any:
        client = get_client(fastapi_app)
        outcome = await client.favorites.toggle_favorite(movie_id)
        if not outcome.ok or outcome.value is None:
            return failure_response(outcome.error)
        toggle = outcome.value
        return {
            "movieId": toggle.movie_id,
            "isFavorite": toggle.is_favorite,
            "favoriteMovies": sorted(toggle.favorite_movie_ids),
        }

    @fastapi_app.get("/api/movies/{movie_id}/details/{facet}")
    async def movie_details(movie_id: str, facet: str) -> Any:
        client = get_client(fastapi_app)
        movie = client.catalog.find(movie_id)
        if movie is None:
            loaded = await client.catalog.load()
            if not loaded.ok:
                return failure_response(loaded.error)
            movie = client.catalog.find(movie_id)
        if movie is None:
            raise HTTPException(status_code=404, detail="Movie not found")

        outcome = await client.details.fetch(facet, movie)
        if not outcome.ok or outcome.value is None:
            return failure_response(outcome.error)
        return {
            "type": facet,
            "details": outcome.value.model_dump(mode="json", by_alias=True),
        }

    @fastapi_app.get("/api/profile")
    async def profile_view() -> Any:
        client = get_client(fastapi_app)
        profile = client.session_store.profile
        if profile is None:
            return failure_response(
                Failure(FailureKind.UNAUTHORIZED, "Sign in to view your profile")
            )
        outcome = await client.catalog.load()
        if not outcome.ok:
            return failure_response(outcome.error)
        return {
            "profile": profile_payload(client.session_store.profile),
            "favoriteMovies": [
                movie_payload(movie, is_favorite=True)
                for movie in client.catalog.favorites_only()
            ],
        }

    @fastapi_app.put("/api/profile")
    async def update_profile(request: Request) -> Any:
        client = get_client(fastapi_app)
        patch = await _read_model(request, ProfileUpdate)
        outcome = await client.account.update_profile(patch)
        if not outcome.ok:
            return failure_response(outcome.error)
        return {"profile": profile_payload(outcome.value)}

    @fastapi_app.post("/api/profile/refresh")
    async def refresh_profile() -> Any:
        client = get_client(fastapi_app)
        outcome = await client.account.refresh_profile()
        if not outcome.ok:
            return failure_response(outcome.error)
        return {"profile": profile_payload(outcome.value)}

    @fastapi_app.delete("/api/profile")
    async def delete_profile() -> Any:
        client = get_client(fastapi_app)
        outcome = await client.account.delete_account()
        if not outcome.ok:
            return failure_response(outcome.error)
        return session_payload(client.session_store.current())

    @fastapi_app.post("/api/profile/favorites/resync")
    async def resync_favorites() -> Any:
        client = get_client(fastapi_app)
        outcome = await client.favorites.resync()
        if not outcome.ok or outcome.value is None:
            return failure_response(outcome.error)
        return {"favoriteMovies": sorted(outcome.value)}


app = create_app()
