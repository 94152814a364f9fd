"""Key/value persistence for the signed-in session."""

from __future__ import annotations

from typing import Mapping

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import SessionEntry


class KeyValueStorage:
    """String keys mapped to string values, replaced and cleared wholesale."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def read_all(self) -> dict[str, str]:
        async with self._session_factory() as session:
            result = await session.execute(select(SessionEntry))
            return {entry.key: entry.value for entry in result.scalars()}

    async def replace(self, entries: Mapping[str, str]) -> None:
        """Swap every stored entry for ``entries`` in one transaction."""

        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(delete(SessionEntry))
                session.add_all(
                    [SessionEntry(key=key, value=value) for key, value in entries.items()]
                )

    async def clear(self) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(delete(SessionEntry))
