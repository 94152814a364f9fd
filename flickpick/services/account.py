"""Sign-in, registration, and profile flows that own the session lifecycle."""

from __future__ import annotations

import logging

from ..models import Credentials, Profile, ProfileUpdate, Registration
from ..results import Failure, FailureKind, Outcome
from .gateway import FlickPickClient
from .session_store import Session, SessionStore

logger = logging.getLogger(__name__)


class AccountService:
    """Coordinates gateway calls with Session Store writes.

    A session is only written after the remote call succeeds; any failure
    leaves the previous session exactly as it was.
    """

    def __init__(self, gateway: FlickPickClient, session_store: SessionStore):
        self._gateway = gateway
        self._session_store = session_store

    async def login(self, credentials: Credentials) -> Outcome[Session]:
        outcome = await self._gateway.login(credentials)
        if not outcome.ok or outcome.value is None:
            logger.info("Login failed for %s", credentials.name)
            return Outcome.failure(outcome.error)  # type: ignore[arg-type]

        result = outcome.value
        session = await self._session_store.establish(result.token, result.profile)
        return Outcome.success(session)

    async def register(
        self, registration: Registration, *, sign_in: bool = True
    ) -> Outcome[Session]:
        """Create the account and, by default, sign straight in with it."""

        created = await self._gateway.register(registration)
        if not created.ok:
            return Outcome.failure(created.error)  # type: ignore[arg-type]
        logger.info("Registered user %s", registration.name)
        if not sign_in:
            return Outcome.success(self._session_store.current())
        return await self.login(registration.credentials())

    async def logout(self) -> Session:
        """End the session locally even if the server call fails."""

        if self._session_store.token:
            outcome = await self._gateway.logout()
            if not outcome.ok and outcome.error is not None:
                logger.warning("Remote logout failed: %s", outcome.error.message)
        return await self._session_store.clear()

    async def refresh_profile(self) -> Outcome[Profile]:
        """Re-read the signed-in user and merge its editable fields."""

        profile = self._session_store.profile
        if profile is None:
            return _signed_out()
        outcome = await self._gateway.get_user(profile.name)
        if not outcome.ok or outcome.value is None:
            return Outcome.failure(outcome.error)  # type: ignore[arg-type]
        session = await self._session_store.update_profile(
            ProfileUpdate.from_profile(outcome.value)
        )
        assert session.profile is not None
        return Outcome.success(session.profile)

    async def update_profile(self, patch: ProfileUpdate) -> Outcome[Profile]:
        """Send a profile edit and merge the server's answer into the session."""

        profile = self._session_store.profile
        if profile is None:
            return _signed_out()
        if patch.is_empty():
            return Outcome.success(profile)

        outcome = await self._gateway.update_user(profile.name, patch)
        if not outcome.ok or outcome.value is None:
            return Outcome.failure(outcome.error)  # type: ignore[arg-type]

        session = await self._session_store.update_profile(
            ProfileUpdate.from_profile(outcome.value)
        )
        if session.profile is None:
            return _signed_out()
        return Outcome.success(session.profile)

    async def delete_account(self) -> Outcome[None]:
        profile = self._session_store.profile
        if profile is None:
            return _signed_out()
        outcome = await self._gateway.delete_user(profile.name)
        if not outcome.ok:
            return outcome
        logger.info("Deleted account %s", profile.name)
        await self._session_store.clear()
        return Outcome.success(None)


def _signed_out() -> Outcome:
    return Outcome.failure(Failure(FailureKind.UNAUTHORIZED, "No active session"))
