"""Tenant membership and per-tenant preferences ORM models."""

from sqlalchemy import Boolean, CheckConstraint, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from app.domain.enums import MembershipStatus, TenantRole
from app.infrastructure.persistence.database import Base
from app.infrastructure.persistence.models.mixins import TenantUserModel, TimestampMixin


def _in_check(column: str, values: list[str]) -> str:
    return "{} IN ({})".format(column, ", ".join(f"'{v}'" for v in values))


class TenantMembership(TenantUserModel, TimestampMixin, Base):
    """Membership of a user in a tenant. Table: tenant_membership."""

    __tablename__ = "tenant_membership"

    external_membership_id: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default=TenantRole.MEMBER.value)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=MembershipStatus.ACTIVE.value, index=True
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="uq_membership_tenant_user"),
        CheckConstraint(_in_check("role", [r.value for r in TenantRole]), name="membership_role_check"),
        CheckConstraint(
            _in_check("status", [s.value for s in MembershipStatus]), name="membership_status_check"
        ),
    )


class UserPreferences(TenantUserModel, TimestampMixin, Base):
    """Per-tenant user preferences. Table: user_preferences."""

    __tablename__ = "user_preferences"

    language: Mapped[str] = mapped_column(String, nullable=False, default="de")
    timezone: Mapped[str] = mapped_column(String, nullable=False, default="Europe/Berlin")
    email_notifications: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true"), default=True
    )
    marketing_emails: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )

    __table_args__ = (UniqueConstraint("tenant_id", "user_id", name="uq_preferences_tenant_user"),)
