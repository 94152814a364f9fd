"""Utilities for communicating with the FlickPick REST API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import (
    Credentials,
    Director,
    Genre,
    Movie,
    Profile,
    ProfileUpdate,
    Registration,
)
from ..results import Failure, FailureKind, Outcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

TokenProvider = Callable[[], "str | None"]

_DEFAULT_MESSAGES: dict[FailureKind, str] = {
    FailureKind.NETWORK_UNREACHABLE: "Could not reach the FlickPick service",
    FailureKind.UNAUTHORIZED: "Please sign in again",
    FailureKind.NOT_FOUND: "Nothing was found",
    FailureKind.VALIDATION_REJECTED: "The request was rejected",
    FailureKind.SERVER_FAULT: "Something bad happened; please try again later.",
}


@dataclass(slots=True, frozen=True)
class LoginResult:
    """Token and profile handed back by ``POST /login``."""

    token: str
    profile: Profile


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _backoff_delay(attempt: int) -> float:
    return min(2 ** (attempt - 1), 5) + (0.1 * attempt)


class FlickPickClient:
    """Thin typed wrapper around the FlickPick HTTP API.

    Every method returns an :class:`Outcome`; transport exceptions never
    escape. Authenticated calls read the bearer token from
    ``token_provider`` at call time, so a session established after
    construction is picked up automatically.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        token_provider: TokenProvider,
    ):
        self._settings = settings
        self._client = http_client
        self._token_provider = token_provider
        self._max_retries = settings.api_retry_limit

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": f"{self._settings.app_name} (flickpick)",
        }

    async def register(self, registration: Registration) -> Outcome[Profile]:
        """Create a new account."""

        outcome = await self._request(
            "POST", "/users", json=registration.to_payload(), authenticated=False
        )
        return self._parse(outcome, Profile.model_validate, "registered user")

    async def login(self, credentials: Credentials) -> Outcome[LoginResult]:
        """Exchange credentials for a bearer token and the user's profile."""

        outcome = await self._request(
            "POST", "/login", json=credentials.to_payload(), authenticated=False
        )
        if not outcome.ok:
            error = outcome.error
            assert error is not None
            # Passport answers bad credentials with a plain 400.
            if error.status_code in (400, 401, 403):
                return Outcome.failure(
                    Failure(
                        FailureKind.UNAUTHORIZED,
                        error.message,
                        status_code=error.status_code,
                    )
                )
            return Outcome.failure(error)

        payload = outcome.value
        if not isinstance(payload, dict):
            return self._malformed("login response")
        token = payload.get("token")
        user = payload.get("user")
        if not user or not isinstance(token, str) or not token:
            return Outcome.failure(
                Failure(
                    FailureKind.UNAUTHORIZED,
                    str(payload.get("message") or "Incorrect username or password."),
                )
            )
        try:
            profile = Profile.model_validate(user)
        except ValidationError:
            return self._malformed("login profile")
        return Outcome.success(LoginResult(token=token, profile=profile))

    async def logout(self) -> Outcome[None]:
        outcome = await self._request("POST", "/logout", json={})
        return self._discard(outcome)

    async def list_movies(self) -> Outcome[list[Movie]]:
        """Fetch the full movie catalog."""

        outcome = await self._request("GET", "/movies", retry=True)
        if not outcome.ok:
            return Outcome.failure(outcome.error)  # type: ignore[arg-type]
        data = outcome.value
        if not isinstance(data, list):
            return self._malformed("movie list")

        movies: list[Movie] = []
        for entry in data:
            if not isinstance(entry, dict):
                continue
            try:
                movies.append(Movie.model_validate(entry))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed movie %s: %s",
                    entry.get("_id") or entry.get("Title"),
                    exc.error_count(),
                )
        return Outcome.success(movies)

    async def get_movie(self, title: str) -> Outcome[Movie]:
        outcome = await self._request("GET", f"/movies/{_segment(title)}", retry=True)
        return self._parse(outcome, _first_match(Movie), "movie")

    async def get_director(self, name: str) -> Outcome[Director]:
        outcome = await self._request(
            "GET", f"/directors/{_segment(name)}", retry=True
        )
        return self._parse(outcome, _first_match(Director), "director")

    async def get_genre(self, name: str) -> Outcome[Genre]:
        outcome = await self._request("GET", f"/genres/{_segment(name)}", retry=True)
        return self._parse(outcome, _first_match(Genre), "genre")

    async def get_user(self, name: str) -> Outcome[Profile]:
        outcome = await self._request("GET", f"/users/{_segment(name)}", retry=True)
        return self._parse(outcome, Profile.model_validate, "user")

    async def get_favorite_movies(self, name: str) -> Outcome[frozenset[str]]:
        """Return the ids of the user's favorites as the server sees them."""

        outcome = await self._request(
            "GET", f"/users/{_segment(name)}/movies", retry=True
        )
        if not outcome.ok:
            return Outcome.failure(outcome.error)  # type: ignore[arg-type]
        data = outcome.value
        if isinstance(data, dict):
            data = data.get("FavoriteMovies")
        if not isinstance(data, list):
            return self._malformed("favorite movies")

        ids: set[str] = set()
        for entry in data:
            if isinstance(entry, str):
                ids.add(entry)
            elif isinstance(entry, dict) and entry.get("_id"):
                ids.add(str(entry["_id"]))
        return Outcome.success(frozenset(ids))

    async def update_user(self, name: str, patch: ProfileUpdate) -> Outcome[Profile]:
        outcome = await self._request(
            "PUT", f"/users/{_segment(name)}", json=patch.to_payload()
        )
        return self._parse(outcome, Profile.model_validate, "updated user")

    async def delete_user(self, name: str) -> Outcome[None]:
        outcome = await self._request("DELETE", f"/users/{_segment(name)}")
        return self._discard(outcome)

    async def add_favorite(self, name: str, movie_id: str) -> Outcome[None]:
        outcome = await self._request(
            "POST", f"/users/{_segment(name)}/movies/{_segment(movie_id)}"
        )
        return self._discard(outcome)

    async def remove_favorite(self, name: str, movie_id: str) -> Outcome[None]:
        outcome = await self._request(
            "DELETE", f"/users/{_segment(name)}/movies/{_segment(movie_id)}"
        )
        return self._discard(outcome)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        authenticated: bool = True,
        retry: bool = False,
    ) -> Outcome[Any]:
        headers = self._headers()
        if authenticated:
            token = self._token_provider()
            if not token:
                return Outcome.failure(
                    Failure(
                        FailureKind.UNAUTHORIZED,
                        _DEFAULT_MESSAGES[FailureKind.UNAUTHORIZED],
                    )
                )
            headers["Authorization"] = f"Bearer {token}"

        max_attempts = self._max_retries if retry else 0
        attempt = 0
        while True:
            try:
                response = await self._client.request(
                    method, path, headers=headers, json=json
                )
            except httpx.HTTPError as exc:
                if attempt < max_attempts:
                    attempt += 1
                    backoff = _backoff_delay(attempt)
                    logger.info(
                        "Transient error talking to FlickPick (%s). Retrying %s in %.1fs",
                        exc.__class__.__name__,
                        path,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                logger.warning("FlickPick %s %s unreachable: %s", method, path, exc)
                return Outcome.failure(
                    Failure(
                        FailureKind.NETWORK_UNREACHABLE,
                        _DEFAULT_MESSAGES[FailureKind.NETWORK_UNREACHABLE],
                    )
                )

            if 500 <= response.status_code < 600 and attempt < max_attempts:
                attempt += 1
                backoff = _backoff_delay(attempt)
                logger.info(
                    "FlickPick 5xx for %s %s. Retrying in %.1fs", method, path, backoff
                )
                await asyncio.sleep(backoff)
                continue
            break

        if not response.is_success:
            kind = FailureKind.from_status(response.status_code)
            logger.warning(
                "FlickPick %s %s failed with %s", method, path, response.status_code
            )
            return Outcome.failure(
                Failure(
                    kind,
                    self._error_message(response, kind),
                    status_code=response.status_code,
                )
            )
        return Outcome.success(self._body(response))

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _error_message(response: httpx.Response, kind: FailureKind) -> str:
        try:
            data = response.json()
        except ValueError:
            text = response.text.strip()
            return text[:200] if text else _DEFAULT_MESSAGES[kind]

        if isinstance(data, dict):
            for key in ("message", "error"):
                value = data.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
            errors = data.get("errors")
            if isinstance(errors, list):
                messages = [
                    str(item.get("msg"))
                    for item in errors
                    if isinstance(item, dict) and item.get("msg")
                ]
                if messages:
                    return "; ".join(messages)
        elif isinstance(data, str) and data.strip():
            return data.strip()
        return _DEFAULT_MESSAGES[kind]

    @staticmethod
    def _parse(
        outcome: Outcome[Any], parser: Callable[[Any], T], label: str
    ) -> Outcome[T]:
        if not outcome.ok:
            return Outcome.failure(outcome.error)  # type: ignore[arg-type]
        try:
            return Outcome.success(parser(outcome.value))
        except LookupError as exc:
            return Outcome.failure(Failure(FailureKind.NOT_FOUND, str(exc)))
        except ValueError:
            logger.warning("Unexpected FlickPick response structure for %s", label)
            return FlickPickClient._malformed(label)

    @staticmethod
    def _discard(outcome: Outcome[Any]) -> Outcome[None]:
        if not outcome.ok:
            return Outcome.failure(outcome.error)  # type: ignore[arg-type]
        return Outcome.success(None)

    @staticmethod
    def _malformed(label: str) -> Outcome[Any]:
        return Outcome.failure(
            Failure(FailureKind.SERVER_FAULT, f"Unexpected {label} from FlickPick")
        )


def _first_match(model: Any) -> Callable[[Any], Any]:
    """Validate a payload that may be a single record or a list of matches.

    Names are assumed unique on the server; when several records come back
    the first one wins.
    """

    def parse(payload: Any) -> Any:
        if isinstance(payload, list):
            if not payload:
                raise LookupError(f"no {model.__name__.lower()} matched")
            payload = payload[0]
        return model.model_validate(payload)

    return parse
