"""SQL cache store: one table per category, one row per (tenant, user).

Every operation opens its own short session from the factory, so the
store can be used from detached refresh tasks after the request session
has closed. Writes are single upsert statements; the database serializes
concurrent writes to the same row.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.dtos.cache import CachePayload, CacheRecord, CacheWrite
from app.domain.enums import CacheCategory
from app.domain.exceptions import MissingTenantContextException
from app.infrastructure.persistence.models.cache import CACHE_MODELS, CacheEntryModel
from app.shared.utils.datetime import ensure_utc, utc_now
from app.shared.utils.generators import generate_cuid

logger = logging.getLogger(__name__)


def _row_to_record(category: CacheCategory, row: CacheEntryModel) -> CacheRecord:
    return CacheRecord(
        tenant_id=row.tenant_id,
        user_id=row.user_id,
        category=category,
        payload=row.payload,
        updated_at=ensure_utc(row.updated_at) or row.updated_at,
    )


def _require_keys(operation: str, tenant_id: str, user_id: str) -> None:
    if not tenant_id or not user_id:
        raise MissingTenantContextException(operation)


class SqlCacheStore:
    """ICacheStore over PostgreSQL using INSERT ... ON CONFLICT."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def _read(
        self, session: AsyncSession, category: CacheCategory, tenant_id: str, user_id: str
    ) -> CacheRecord | None:
        model = CACHE_MODELS[category]
        result = await session.execute(
            select(model).where(model.tenant_id == tenant_id, model.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        return _row_to_record(category, row) if row else None

    async def read(self, category: CacheCategory, tenant_id: str, user_id: str) -> CacheRecord | None:
        _require_keys("cache.read", tenant_id, user_id)
        async with self.session_factory() as session:
            return await self._read(session, category, tenant_id, user_id)

    async def upsert(
        self,
        category: CacheCategory,
        tenant_id: str,
        user_id: str,
        payload: CachePayload,
        *,
        updated_at: datetime | None = None,
        only_if_newer: bool = False,
    ) -> CacheWrite:
        """Insert or replace the row; with only_if_newer, older writes are dropped."""
        _require_keys("cache.upsert", tenant_id, user_id)
        model = CACHE_MODELS[category]
        stamp = updated_at or utc_now()
        stmt = pg_insert(model).values(
            id=generate_cuid(),
            tenant_id=tenant_id,
            user_id=user_id,
            payload=payload,
            updated_at=stamp,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["tenant_id", "user_id"],
            set_={"payload": stmt.excluded.payload, "updated_at": stmt.excluded.updated_at},
            where=(model.updated_at <= stmt.excluded.updated_at) if only_if_newer else None,
        ).returning(model.tenant_id)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            applied = result.scalar_one_or_none() is not None
            await session.commit()
            if applied:
                record = CacheRecord(tenant_id, user_id, category, payload, stamp)
            else:
                logger.debug(
                    "Rejected out-of-order %s write tenant=%s user=%s at %s",
                    category.value,
                    tenant_id,
                    user_id,
                    stamp.isoformat(),
                )
                current = await self._read(session, category, tenant_id, user_id)
                record = current or CacheRecord(tenant_id, user_id, category, payload, stamp)
        return CacheWrite(record=record, applied=applied)

    async def insert_if_absent(
        self,
        category: CacheCategory,
        tenant_id: str,
        user_id: str,
        payload: CachePayload,
    ) -> CacheWrite:
        """Insert the row unless one exists; the existing row is returned untouched."""
        _require_keys("cache.insert_if_absent", tenant_id, user_id)
        model = CACHE_MODELS[category]
        stamp = utc_now()
        stmt = (
            pg_insert(model)
            .values(id=generate_cuid(), tenant_id=tenant_id, user_id=user_id, payload=payload, updated_at=stamp)
            .on_conflict_do_nothing(index_elements=["tenant_id", "user_id"])
            .returning(model.tenant_id)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            inserted = result.scalar_one_or_none() is not None
            await session.commit()
            if inserted:
                return CacheWrite(CacheRecord(tenant_id, user_id, category, payload, stamp), True)
            current = await self._read(session, category, tenant_id, user_id)
        if current is None:
            # Row deleted between the conflict and the re-read.
            return CacheWrite(CacheRecord(tenant_id, user_id, category, payload, stamp), False)
        return CacheWrite(current, False)
