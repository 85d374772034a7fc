"""Cache ORM models: one table per category, one row per (tenant, user).

updated_at is written by the application (not onupdate) so an ordering
guard can compare the timestamps of competing writes.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

from app.domain.enums import CacheCategory
from app.infrastructure.persistence.database import Base
from app.infrastructure.persistence.models.mixins import JsonType, TenantUserModel


class CacheEntryModel(TenantUserModel):
    """Columns shared by all cache tables."""

    __abstract__ = True

    @declared_attr
    def payload(cls) -> Mapped[Any]:
        return mapped_column(JsonType, nullable=False)

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        return (UniqueConstraint("tenant_id", "user_id", name=f"uq_{cls.__tablename__}_tenant_user"),)


class ProfileCache(CacheEntryModel, Base):
    __tablename__ = "profile_cache"


class BillingCache(CacheEntryModel, Base):
    __tablename__ = "billing_cache"


class EntitlementCache(CacheEntryModel, Base):
    __tablename__ = "entitlement_cache"


CACHE_MODELS: dict[CacheCategory, type[CacheEntryModel]] = {
    CacheCategory.PROFILE: ProfileCache,
    CacheCategory.BILLING: BillingCache,
    CacheCategory.ENTITLEMENTS: EntitlementCache,
}
