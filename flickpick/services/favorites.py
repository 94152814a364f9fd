"""Keeps the cached favorite movie ids in step with the remote user."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass

from ..models import Profile
from ..results import Failure, FailureKind, Outcome
from .gateway import FlickPickClient
from .session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FavoriteToggle:
    """Result of a successful toggle."""

    movie_id: str
    is_favorite: bool
    favorite_movie_ids: frozenset[str]


class FavoritesSynchronizer:
    """Applies one add or remove at a time per movie and user.

    Toggles for the same movie id are queued: a second toggle waits for the
    first to finish and then reads the updated membership, so two quick
    toggles end where they started. Different movie ids run concurrently.
    """

    def __init__(self, gateway: FlickPickClient, session_store: SessionStore):
        self._gateway = gateway
        self._session_store = session_store
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._waiting: Counter[tuple[str, str]] = Counter()

    def in_flight(self, movie_id: str, *, user_name: str | None = None) -> bool:
        """Return whether a toggle for ``movie_id`` is running or queued."""

        profile = self._session_store.profile
        name = user_name or (profile.name if profile else None)
        if name is None:
            return False
        return self._waiting[(name, movie_id)] > 0

    async def toggle_favorite(
        self, movie_id: str, profile: Profile | None = None
    ) -> Outcome[FavoriteToggle]:
        """Add ``movie_id`` to the favorites if absent, remove it otherwise."""

        target = profile or self._session_store.profile
        if target is None:
            return Outcome.failure(
                Failure(
                    FailureKind.FAVORITE_SYNC,
                    "Sign in to manage favorites",
                    cause=Failure(FailureKind.UNAUTHORIZED, "No active session"),
                )
            )

        key = (target.name, movie_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiting[key] += 1
        try:
            async with lock:
                return await self._toggle(movie_id, target)
        finally:
            self._waiting[key] -= 1
            if self._waiting[key] <= 0:
                del self._waiting[key]
                self._locks.pop(key, None)

    async def resync(self) -> Outcome[frozenset[str]]:
        """Replace the cached favorites with the server's view of the user."""

        profile = self._session_store.profile
        if profile is None:
            return Outcome.failure(
                Failure(FailureKind.UNAUTHORIZED, "No active session")
            )

        outcome = await self._gateway.get_favorite_movies(profile.name)
        if not outcome.ok or outcome.value is None:
            return Outcome.failure(outcome.error)  # type: ignore[arg-type]

        favorites = outcome.value
        written = await self._session_store.replace_favorites(
            favorites, user_name=profile.name
        )
        if not written:
            logger.debug("Discarding favorites resync for %s: session changed", profile.name)
        return Outcome.success(favorites)

    def _membership_source(self, target: Profile) -> Profile:
        # The session copy is fresher than a caller-held snapshot of the same user.
        session_profile = self._session_store.profile
        if session_profile is not None and session_profile.name == target.name:
            return session_profile
        return target

    async def _toggle(self, movie_id: str, target: Profile) -> Outcome[FavoriteToggle]:
        before = self._membership_source(target).favorite_movie_ids
        adding = movie_id not in before

        if adding:
            outcome = await self._gateway.add_favorite(target.name, movie_id)
        else:
            outcome = await self._gateway.remove_favorite(target.name, movie_id)

        if not outcome.ok:
            cause = outcome.error
            assert cause is not None
            action = "add" if adding else "remove"
            logger.warning(
                "Could not %s favorite %s for %s: %s",
                action,
                movie_id,
                target.name,
                cause.kind.value,
            )
            return Outcome.failure(
                Failure(
                    FailureKind.FAVORITE_SYNC,
                    f"Could not {action} favorite: {cause.message}",
                    status_code=cause.status_code,
                    cause=cause,
                )
            )

        # Re-read after the await: other ids may have changed meanwhile.
        current = self._membership_source(target).favorite_movie_ids
        updated = current | {movie_id} if adding else current - {movie_id}
        written = await self._session_store.replace_favorites(
            updated, user_name=target.name
        )
        if not written:
            logger.debug(
                "Favorite %s for %s applied remotely after sign-out", movie_id, target.name
            )
        return Outcome.success(
            FavoriteToggle(
                movie_id=movie_id,
                is_favorite=adding,
                favorite_movie_ids=frozenset(updated),
            )
        )
