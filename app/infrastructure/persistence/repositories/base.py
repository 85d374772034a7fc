"""Base repository: generic lookups, create/update and lifecycle hooks (cache invalidation)."""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.persistence.database import Base
from app.shared.utils.datetime import utc_now


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository over a request-scoped session.

    Subclasses override _on_after_create and _on_after_update for cache
    invalidation. Rows with a deleted_at column are hidden by
    _active() unless include_deleted is requested.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]) -> None:
        self.db = db
        self.model = model

    def _active(self, stmt: Any, include_deleted: bool = False) -> Any:
        model: Any = self.model
        if include_deleted or not hasattr(model, "deleted_at"):
            return stmt
        return stmt.where(model.deleted_at.is_(None))

    async def get_entity_by_id(self, entity_id: str, *, include_deleted: bool = False) -> ModelType | None:
        """Return a single ORM record by primary key, or None."""
        model: Any = self.model
        stmt = self._active(select(self.model).where(model.id == entity_id), include_deleted)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_one_by(self, *, include_deleted: bool = False, **filters: Any) -> ModelType | None:
        """Return the single ORM record matching column == value filters, or None."""
        model: Any = self.model
        stmt = select(self.model).where(*(getattr(model, k) == v for k, v in filters.items()))
        result = await self.db.execute(self._active(stmt, include_deleted))
        return result.scalar_one_or_none()

    async def create(self, obj: ModelType) -> ModelType:
        """Persist a new record and run _on_after_create hook."""
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        await self._on_after_create(obj)
        return obj

    async def update_fields(self, obj: ModelType, **fields: Any) -> ModelType:
        """Set attributes on an attached record, flush, and run _on_after_update hook."""
        for name, value in fields.items():
            setattr(obj, name, value)
        await self.db.flush()
        await self.db.refresh(obj)
        await self._on_after_update(obj)
        return obj

    async def soft_delete(self, obj: ModelType) -> ModelType:
        """Stamp deleted_at on the record."""
        return await self.update_fields(obj, deleted_at=utc_now())

    async def _on_after_create(self, obj: ModelType) -> None:
        """Override in subclasses to invalidate caches or emit events."""

    async def _on_after_update(self, obj: ModelType) -> None:
        """Override in subclasses to invalidate caches or emit events."""
