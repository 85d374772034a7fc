"""SQLAlchemy mixins for common model patterns.

Provides: CuidMixin, TenantMixin, UserRefMixin, TimestampMixin,
SoftDeleteMixin, and the combined TenantUserModel.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

from app.shared.utils.generators import generate_cuid

# JSONB on Postgres, plain JSON elsewhere (e.g. SQLite in local experiments).
JsonType = JSON().with_variant(JSONB(), "postgresql")


class CuidMixin:
    """Mixin for models using CUID as primary key. Provides id with default generate_cuid."""

    @declared_attr
    def id(cls) -> Mapped[str]:
        return mapped_column(String, primary_key=True, default=generate_cuid)


class TenantMixin:
    """Mixin for tenant-scoped models. Provides tenant_id FK to tenant with CASCADE delete."""

    @declared_attr
    def tenant_id(cls) -> Mapped[str]:
        return mapped_column(
            String,
            ForeignKey("tenant.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class UserRefMixin:
    """Mixin for per-user rows. Provides user_id FK to app_user with CASCADE delete."""

    @declared_attr
    def user_id(cls) -> Mapped[str]:
        return mapped_column(
            String,
            ForeignKey("app_user.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class TimestampMixin:
    """Mixin for created_at and updated_at (server defaults, timezone-aware)."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        )


class SoftDeleteMixin:
    """Mixin for soft delete (deleted_at). Null means not deleted."""

    @declared_attr
    def deleted_at(cls) -> Mapped[datetime | None]:
        return mapped_column(DateTime(timezone=True), nullable=True, index=True)


class MetadataMixin:
    """Mixin for a free-form JSON metadata column (attribute name: metadata_)."""

    @declared_attr
    def metadata_(cls) -> Mapped[dict[str, Any]]:
        return mapped_column("metadata", JsonType, nullable=False, default=dict)


class TenantUserModel(CuidMixin, TenantMixin, UserRefMixin):
    """Combined mixin: CUID + tenant_id + user_id. Base of per-(tenant, user) rows."""

    __abstract__ = True
