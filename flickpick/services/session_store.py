"""In-memory session state with a persisted key/value backing."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..models import Profile, ProfileUpdate
from ..storage import KeyValueStorage

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"

# Fields that profile edits may touch; the favorite set has its own writer.
_EDITABLE_FIELDS = ("name", "password", "email", "birthday")


@dataclass(slots=True, frozen=True)
class Session:
    """Read-only snapshot of who is signed in."""

    token: str | None = None
    profile: Profile | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.profile is not None


class SessionStore:
    """Holds the bearer token and profile for the running client.

    The in-memory snapshot is swapped in a single assignment before any
    await, so readers never see a half-applied write. Persistence is
    best-effort: storage failures are logged and the in-memory session
    stays authoritative for this process.
    """

    def __init__(self, storage: KeyValueStorage):
        self._storage = storage
        self._session = Session()
        self._write_lock = asyncio.Lock()

    def current(self) -> Session:
        return self._session

    @property
    def token(self) -> str | None:
        return self._session.token

    @property
    def profile(self) -> Profile | None:
        return self._session.profile

    async def initialize(self) -> Session:
        """Load the persisted session, falling back to an empty one."""

        try:
            entries = await self._storage.read_all()
        except SQLAlchemyError:
            logger.exception("Could not read the persisted session; starting signed out")
            self._session = Session()
            return self._session

        token = entries.get(TOKEN_KEY)
        raw_user = entries.get(USER_KEY)
        if not token or not raw_user:
            self._session = Session()
            return self._session

        try:
            profile = Profile.model_validate(json.loads(raw_user))
        except (ValueError, ValidationError):
            logger.warning("Ignoring malformed persisted user; starting signed out")
            self._session = Session()
            return self._session

        self._session = Session(token=token, profile=profile)
        logger.info("Restored session for %s", profile.name)
        return self._session

    async def establish(self, token: str, profile: Profile) -> Session:
        """Replace any prior session with a freshly authenticated one."""

        if not token:
            raise ValueError("A session requires a non-empty token")
        self._session = Session(token=token, profile=profile)
        logger.info("Session established for %s", profile.name)
        await self._persist()
        return self._session

    async def update_profile(self, patch: ProfileUpdate) -> Session:
        """Merge editable profile fields into the current session."""

        current = self._session
        if current.profile is None:
            logger.warning("Profile update ignored: no active session")
            return current

        changes = {
            field: getattr(patch, field)
            for field in _EDITABLE_FIELDS
            if getattr(patch, field) is not None
        }
        if not changes:
            return current

        self._session = Session(
            token=current.token,
            profile=current.profile.model_copy(update=changes),
        )
        await self._persist()
        return self._session

    async def replace_favorites(
        self, favorites: frozenset[str], *, user_name: str | None = None
    ) -> bool:
        """Swap the cached favorite set.

        When ``user_name`` is given the write only applies if that user is
        still signed in. Returns whether the set was written.
        """

        current = self._session
        if current.profile is None:
            return False
        if user_name is not None and current.profile.name != user_name:
            return False

        self._session = Session(
            token=current.token,
            profile=current.profile.model_copy(
                update={"favorite_movie_ids": frozenset(favorites)}
            ),
        )
        await self._persist()
        return True

    async def clear(self) -> Session:
        """Forget the session in memory and in storage. Safe to repeat."""

        if self._session.profile is not None:
            logger.info("Clearing session for %s", self._session.profile.name)
        self._session = Session()
        await self._persist()
        return self._session

    async def _persist(self) -> None:
        async with self._write_lock:
            # Always write the newest snapshot, even if queued behind another write.
            session = self._session
            try:
                if session.is_authenticated:
                    assert session.token is not None and session.profile is not None
                    await self._storage.replace(
                        {
                            TOKEN_KEY: session.token,
                            USER_KEY: json.dumps(session.profile.to_storage()),
                        }
                    )
                else:
                    await self._storage.clear()
            except SQLAlchemyError:
                logger.exception("Failed to persist the session")
