"""Read model for the movie catalog and its favorite-derived views."""

from __future__ import annotations

import logging
from typing import Iterator

from ..models import Movie
from ..results import Outcome
from .gateway import FlickPickClient
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class FavoriteMovies:
    """Restartable, lazily filtered view of the catalog's favorite movies.

    Every iteration reads the catalog's current collection and the
    session's current favorite ids, and keeps catalog order.
    """

    def __init__(self, catalog: "CatalogViewModel"):
        self._catalog = catalog

    def __iter__(self) -> Iterator[Movie]:
        for movie in self._catalog.movies:
            if self._catalog.is_favorite(movie):
                yield movie


class CatalogViewModel:
    """Holds the movie collection fetched for the catalog and profile views."""

    def __init__(self, gateway: FlickPickClient, session_store: SessionStore):
        self._gateway = gateway
        self._session_store = session_store
        self._movies: tuple[Movie, ...] = ()
        self._issued = 0
        self._applied = 0

    @property
    def movies(self) -> tuple[Movie, ...]:
        return self._movies

    async def load(self) -> Outcome[tuple[Movie, ...]]:
        """Fetch the whole catalog and replace the held collection.

        On failure the previous collection is kept. A response that arrives
        after a newer load has already been applied is dropped.
        """

        self._issued += 1
        ticket = self._issued
        outcome = await self._gateway.list_movies()
        if not outcome.ok:
            return Outcome.failure(outcome.error)  # type: ignore[arg-type]

        if ticket < self._applied:
            logger.debug("Dropping stale catalog load %s (applied %s)", ticket, self._applied)
            return Outcome.success(self._movies)

        self._movies = tuple(outcome.value or ())
        self._applied = ticket
        return Outcome.success(self._movies)

    def favorite_ids(self) -> frozenset[str]:
        profile = self._session_store.profile
        if profile is None:
            return frozenset()
        return profile.favorite_movie_ids

    def is_favorite(self, movie: Movie) -> bool:
        return movie.id in self.favorite_ids()

    def favorites_only(self) -> FavoriteMovies:
        return FavoriteMovies(self)

    def find(self, movie_id: str) -> Movie | None:
        for movie in self._movies:
            if movie.id == movie_id:
                return movie
        return None
