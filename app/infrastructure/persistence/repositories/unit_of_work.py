"""SQLAlchemy unit of work over one request-scoped session."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.cache.cache_protocol import CacheProtocol
from app.infrastructure.persistence.repositories.membership_repo import (
    MembershipRepository,
    PreferencesRepository,
)
from app.infrastructure.persistence.repositories.tenant_repo import TenantRepository
from app.infrastructure.persistence.repositories.user_repo import UserRepository


class SqlAlchemyUnitOfWork:
    """Groups the identity repositories on one session; commit and rollback are explicit."""

    def __init__(
        self,
        session: AsyncSession,
        cache: CacheProtocol | None = None,
        *,
        cache_ttl: int = 900,
    ) -> None:
        self.session = session
        self.users = UserRepository(session)
        self.tenants = TenantRepository(session, cache, cache_ttl=cache_ttl)
        self.memberships = MembershipRepository(session)
        self.preferences = PreferencesRepository(session)

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        """Savepoint: writes inside are rolled back together if the block raises."""
        async with self.session.begin_nested():
            yield

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
