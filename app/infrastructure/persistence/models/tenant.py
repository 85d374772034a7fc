"""Tenant ORM model. Root entity for multi-tenant hierarchy (no tenant_id)."""

from sqlalchemy import Boolean, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.infrastructure.persistence.database import Base
from app.infrastructure.persistence.models.mixins import (
    CuidMixin,
    MetadataMixin,
    SoftDeleteMixin,
    TimestampMixin,
)


class Tenant(CuidMixin, TimestampMixin, SoftDeleteMixin, MetadataMixin, Base):
    """Tenant (organization or personal account). Table: tenant.

    A user owns at most one personal tenant (partial unique index on
    owner_user_id where is_personal).
    """

    __tablename__ = "tenant"

    external_org_id: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    is_personal: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )
    owner_user_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True
    )
    logo_url: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        Index(
            "uq_tenant_personal_owner",
            "owner_user_id",
            unique=True,
            postgresql_where=text("is_personal"),
            sqlite_where=text("is_personal"),
        ),
    )
