"""User ORM model (global, not tenant-scoped)."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.infrastructure.persistence.database import Base
from app.infrastructure.persistence.models.mixins import (
    CuidMixin,
    MetadataMixin,
    SoftDeleteMixin,
    TimestampMixin,
)


class User(CuidMixin, TimestampMixin, SoftDeleteMixin, MetadataMixin, Base):
    """User model. Table: app_user. Unique external_user_id and email."""

    __tablename__ = "app_user"

    external_user_id: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String, nullable=True)
    platform_role: Mapped[str] = mapped_column(String, nullable=False, default="user")
