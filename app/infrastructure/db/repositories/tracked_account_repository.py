"""
Tracked Account Repository
Insert-if-missing + list for managed depositor accounts.
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.infrastructure.db.models import TrackedAccountModel


class TrackedAccountRepository:
    """Repository for tracked accounts"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_pubkeys(self) -> List[str]:
        result = await self.session.execute(
            select(TrackedAccountModel.pubkey).order_by(TrackedAccountModel.id)
        )
        return list(result.scalars().all())

    async def exists(self, pubkey: str) -> bool:
        result = await self.session.execute(
            select(TrackedAccountModel.id).where(TrackedAccountModel.pubkey == pubkey)
        )
        return result.scalar_one_or_none() is not None

    async def add(self, pubkey: str) -> bool:
        if await self.exists(pubkey):
            return False
        self.session.add(TrackedAccountModel(pubkey=pubkey))
        await self.session.flush()
        return True


class SqlTrackedAccountStore:
    """Session-per-call adapter used by the in-memory tracked set."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def list_accounts(self) -> List[str]:
        async with self._session_factory() as session:
            return await TrackedAccountRepository(session).list_pubkeys()

    async def add_account(self, account: str) -> None:
        async with self._session_factory() as session:
            await TrackedAccountRepository(session).add(account)
            await session.commit()
