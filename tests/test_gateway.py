"""Tests for the FlickPick API client."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from flickpick.config import Settings
from flickpick.models import Credentials, ProfileUpdate
from flickpick.results import FailureKind
from flickpick.services import gateway as gateway_module
from flickpick.services.gateway import FlickPickClient

pytestmark = pytest.mark.anyio

API = "https://api.example.com"


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object with defaults suitable for tests."""

    base: dict[str, Any] = {"API_URL": API, "API_RETRY_LIMIT": 0}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


def build_client(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    token: str | None = "secret-token",
    **overrides: Any,
) -> tuple[httpx.AsyncClient, FlickPickClient]:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=API
    )
    return http_client, FlickPickClient(
        build_settings(**overrides), http_client, lambda: token
    )


async def test_list_movies_sends_bearer_token_and_parses(movie_data) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=[movie_data("m1"), movie_data("m2")])

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.list_movies()

    assert outcome.ok
    assert [movie.id for movie in outcome.value] == ["m1", "m2"]
    assert requests[0].url.path == "/movies"
    assert requests[0].headers["Authorization"] == "Bearer secret-token"


async def test_list_movies_skips_malformed_entries(movie_data) -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json=[movie_data("m1"), {"Title": "No id"}, "garbage"]
        )

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.list_movies()

    assert outcome.ok
    assert [movie.id for movie in outcome.value] == ["m1"]


async def test_authenticated_call_without_token_is_not_sent() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=[])

    http_client, client = build_client(handler, token=None)
    async with http_client:
        outcome = await client.list_movies()

    assert outcome.error is not None
    assert outcome.error.kind is FailureKind.UNAUTHORIZED
    assert requests == []


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (401, FailureKind.UNAUTHORIZED),
        (403, FailureKind.UNAUTHORIZED),
        (404, FailureKind.NOT_FOUND),
        (422, FailureKind.VALIDATION_REJECTED),
        (500, FailureKind.SERVER_FAULT),
        (503, FailureKind.SERVER_FAULT),
    ],
)
async def test_error_statuses_are_classified(status: int, expected: FailureKind) -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="nope")

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.get_user("ana")

    assert outcome.error is not None
    assert outcome.error.kind is expected
    assert outcome.error.status_code == status
    assert outcome.error.message == "nope"


async def test_transport_errors_become_network_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.add_favorite("ana", "m1")

    assert outcome.error is not None
    assert outcome.error.kind is FailureKind.NETWORK_UNREACHABLE


async def test_redirect_on_mutation_is_a_server_fault() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": "/login"})

    http_client, client = build_client(handler)
    async with http_client:
        added = await client.add_favorite("ana", "m1")
        removed = await client.remove_favorite("ana", "m1")

    for outcome in (added, removed):
        assert outcome.error is not None
        assert outcome.error.kind is FailureKind.SERVER_FAULT
        assert outcome.error.status_code == 302


async def test_get_requests_retry_server_faults(monkeypatch) -> None:
    monkeypatch.setattr(gateway_module, "_backoff_delay", lambda attempt: 0)
    calls = 0

    def handler(_: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls < 3:
            return httpx.Response(502, text="bad gateway")
        return httpx.Response(200, json={"Name": "Drama", "Description": "Serious"})

    http_client, client = build_client(handler, API_RETRY_LIMIT=2)
    async with http_client:
        outcome = await client.get_genre("Drama")

    assert outcome.ok
    assert outcome.value.description == "Serious"
    assert calls == 3


async def test_mutations_are_never_retried(monkeypatch) -> None:
    monkeypatch.setattr(gateway_module, "_backoff_delay", lambda attempt: 0)
    calls = 0

    def handler(_: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(500, text="boom")

    http_client, client = build_client(handler, API_RETRY_LIMIT=3)
    async with http_client:
        outcome = await client.remove_favorite("ana", "m1")

    assert outcome.error is not None
    assert outcome.error.kind is FailureKind.SERVER_FAULT
    assert calls == 1


async def test_login_returns_token_and_profile_without_auth_header() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "token": "jwt",
                "user": {"_id": "u1", "Name": "ana", "FavoriteMovies": ["m1"]},
            },
        )

    http_client, client = build_client(handler, token=None)
    async with http_client:
        outcome = await client.login(Credentials(name="ana", password="pw"))

    assert outcome.ok
    assert outcome.value.token == "jwt"
    assert outcome.value.profile.favorite_movie_ids == frozenset({"m1"})
    assert "Authorization" not in requests[0].headers
    assert json.loads(requests[0].content) == {"Name": "ana", "Password": "pw"}


async def test_login_rejection_is_unauthorized() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400, json={"message": "Incorrect username or password.", "user": False}
        )

    http_client, client = build_client(handler, token=None)
    async with http_client:
        outcome = await client.login(Credentials(name="ana", password="wrong"))

    assert outcome.error is not None
    assert outcome.error.kind is FailureKind.UNAUTHORIZED
    assert outcome.error.message == "Incorrect username or password."


async def test_path_segments_are_encoded() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"Name": "Sofia Coppola"})

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.get_director("Sofia Coppola")

    assert outcome.ok
    assert requests[0].url.raw_path == b"/directors/Sofia%20Coppola"


async def test_get_movie_looks_up_encoded_title(movie_data) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=movie_data("m1", "Lost in Translation"))

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.get_movie("Lost in Translation")

    assert outcome.value.id == "m1"
    assert requests[0].url.raw_path == b"/movies/Lost%20in%20Translation"


async def test_director_list_payload_takes_first_match() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[{"Name": "John Smith", "Bio": "first"}, {"Name": "John Smith", "Bio": "second"}],
        )

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.get_director("John Smith")

    assert outcome.ok
    assert outcome.value.bio == "first"


async def test_empty_director_list_is_not_found() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.get_director("Nobody")

    assert outcome.error is not None
    assert outcome.error.kind is FailureKind.NOT_FOUND


async def test_update_user_sends_only_changed_fields() -> None:
    bodies: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"Name": "ana", "Email": "new@example.com"})

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.update_user("ana", ProfileUpdate(email="new@example.com"))

    assert outcome.ok
    assert outcome.value.email == "new@example.com"
    assert bodies == [{"Email": "new@example.com"}]


async def test_delete_user_accepts_plain_text_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        return httpx.Response(200, text="ana was deleted.")

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.delete_user("ana")

    assert outcome.ok


async def test_favorite_movies_accepts_ids_or_documents() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["m1", {"_id": "m2", "Title": "Two"}])

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.get_favorite_movies("ana")

    assert outcome.value == frozenset({"m1", "m2"})


async def test_unexpected_payload_is_a_server_fault() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"movies": []})

    http_client, client = build_client(handler)
    async with http_client:
        outcome = await client.list_movies()

    assert outcome.error is not None
    assert outcome.error.kind is FailureKind.SERVER_FAULT
