"""Resolves the director, genre, or synopsis shown in a movie detail dialog."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Union

from ..models import Director, Genre, Movie
from ..results import Failure, FailureKind, Outcome
from .gateway import FlickPickClient

logger = logging.getLogger(__name__)

DetailPayload = Union[Director, Genre, Movie]


class Facet(str, Enum):
    DIRECTOR = "director"
    GENRE = "genre"
    SYNOPSIS = "synopsis"


class DetailState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"
    DISMISSED = "dismissed"


class DetailRequest:
    """One open detail dialog and the payload it is waiting for."""

    def __init__(self, facet: str, movie: Movie):
        self.facet = facet
        self.movie = movie
        self.state = DetailState.IDLE
        self.payload: DetailPayload | None = None
        self.error: Failure | None = None
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def close(self) -> None:
        """Dismiss the dialog; results that arrive later are dropped."""

        self._open = False
        if self.state is DetailState.IDLE:
            self.state = DetailState.DISMISSED

    def outcome(self) -> Outcome[DetailPayload]:
        if self.state is DetailState.RESOLVED and self.payload is not None:
            return Outcome.success(self.payload)
        if self.state is DetailState.FAILED and self.error is not None:
            return Outcome.failure(self.error)
        if self.state is DetailState.DISMISSED:
            return Outcome.failure(
                Failure(FailureKind.NOT_FOUND, f"{self.facet} dialog was closed")
            )
        return Outcome.failure(
            Failure(FailureKind.NOT_FOUND, f"{self.facet} details are not available")
        )

    def _resolve(self, payload: DetailPayload) -> None:
        self.payload = payload
        self.error = None
        self.state = DetailState.RESOLVED

    def _fail(self, error: Failure) -> None:
        self.payload = None
        self.error = error
        self.state = DetailState.FAILED


class DetailResolver:
    """Turns a (facet, movie) pair into the record a detail dialog shows.

    Nothing is cached: reopening a dialog resolves it again. Director and
    genre names are assumed unique on the server, so the first match wins.
    """

    def __init__(self, gateway: FlickPickClient):
        self._gateway = gateway

    def open(self, facet: str, movie: Movie) -> DetailRequest:
        """Create a request; synopsis and unknown facets settle immediately."""

        request = DetailRequest(facet, movie)
        try:
            kind = Facet(facet)
        except ValueError:
            logger.warning("Unknown detail facet requested: %s", facet)
            request._fail(
                Failure(FailureKind.UNKNOWN_FACET, f"Unknown detail type: {facet}")
            )
            return request

        if kind is Facet.SYNOPSIS:
            request._resolve(movie)
        return request

    async def resolve(self, request: DetailRequest) -> Outcome[DetailPayload]:
        """Fetch the facet payload unless the request has already settled."""

        if request.state is not DetailState.IDLE:
            return request.outcome()

        try:
            kind = Facet(request.facet)
        except ValueError:
            logger.warning("Unknown detail facet requested: %s", request.facet)
            request._fail(
                Failure(FailureKind.UNKNOWN_FACET, f"Unknown detail type: {request.facet}")
            )
            return request.outcome()

        if kind is Facet.SYNOPSIS:
            request._resolve(request.movie)
            return request.outcome()

        request.state = DetailState.RESOLVING
        if kind is Facet.DIRECTOR:
            outcome: Outcome = await self._gateway.get_director(request.movie.director.name)
        else:
            outcome = await self._gateway.get_genre(request.movie.genre.name)

        if not request.is_open:
            logger.debug(
                "Discarding %s details for %s: dialog closed",
                request.facet,
                request.movie.title,
            )
            request.state = DetailState.DISMISSED
            return request.outcome()

        if outcome.ok and outcome.value is not None:
            request._resolve(outcome.value)
        else:
            request._fail(outcome.error)  # type: ignore[arg-type]
        return outcome

    async def fetch(self, facet: str, movie: Movie) -> Outcome[DetailPayload]:
        """Open and resolve in one step for callers without a dialog lifecycle."""

        return await self.resolve(self.open(facet, movie))
