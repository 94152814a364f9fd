"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable

import pytest


# Ensure the application package is importable when running tests without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from flickpick.database import Database  # noqa: E402
from flickpick.services.session_store import SessionStore  # noqa: E402
from flickpick.storage import KeyValueStorage  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'session.db'}"


@pytest.fixture
def open_store(database_url: str) -> Callable[..., Any]:
    """Return an async context manager yielding a fresh ``SessionStore``.

    Stores opened from the same test share one sqlite file, which lets a
    test simulate a page reload by opening a second store.
    """

    @asynccontextmanager
    async def _open(*, initialize: bool = True) -> AsyncIterator[SessionStore]:
        database = Database(database_url)
        await database.create_all()
        store = SessionStore(KeyValueStorage(database.session_factory))
        if initialize:
            await store.initialize()
        try:
            yield store
        finally:
            await database.dispose()

    return _open


@pytest.fixture
def movie_data() -> Callable[..., dict[str, Any]]:
    """Build a movie payload shaped like ``GET /movies`` entries."""

    def _build(
        movie_id: str,
        title: str | None = None,
        *,
        director: str = "Greta Gerwig",
        genre: str = "Drama",
    ) -> dict[str, Any]:
        return {
            "_id": movie_id,
            "Title": title or f"Movie {movie_id}",
            "Description": f"About {movie_id}",
            "Year": 2019,
            "ImagePath": f"https://img.example.com/{movie_id}.jpg",
            "Featured": False,
            "Director": {
                "Name": director,
                "Bio": "Writer and director.",
                "BirthYear": 1983,
                "DeathYear": None,
                "Movies": [],
            },
            "Genre": {"Name": genre, "Description": f"{genre} films"},
        }

    return _build
