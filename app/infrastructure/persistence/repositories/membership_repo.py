"""Tenant membership and preferences repositories. Return application DTOs."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.dtos.tenant import MembershipResult, TenantWithRole
from app.domain.enums import MembershipStatus, TenantRole
from app.infrastructure.persistence.models.membership import TenantMembership, UserPreferences
from app.infrastructure.persistence.models.tenant import Tenant
from app.infrastructure.persistence.repositories.base import BaseRepository
from app.infrastructure.persistence.repositories.tenant_repo import _tenant_to_result
from app.shared.utils.generators import generate_cuid


def _membership_to_result(m: TenantMembership) -> MembershipResult:
    """Map ORM TenantMembership to application MembershipResult."""
    return MembershipResult(
        id=m.id,
        tenant_id=m.tenant_id,
        user_id=m.user_id,
        role=TenantRole(m.role),
        status=MembershipStatus(m.status),
        external_membership_id=m.external_membership_id,
    )


class MembershipRepository(BaseRepository[TenantMembership]):
    """Membership repository keyed by (tenant, user) or identity-provider membership id."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, TenantMembership)

    async def get(self, tenant_id: str, user_id: str) -> MembershipResult | None:
        membership = await self.get_one_by(tenant_id=tenant_id, user_id=user_id)
        return _membership_to_result(membership) if membership else None

    async def list_tenants_for_user(self, user_id: str) -> list[TenantWithRole]:
        """Active, non-deleted tenants of the user, personal tenant first, then by name."""
        stmt = (
            select(Tenant, TenantMembership.role)
            .join(TenantMembership, TenantMembership.tenant_id == Tenant.id)
            .where(
                TenantMembership.user_id == user_id,
                TenantMembership.status == MembershipStatus.ACTIVE.value,
                Tenant.deleted_at.is_(None),
            )
            .order_by(Tenant.is_personal.desc(), Tenant.name)
        )
        result = await self.db.execute(stmt)
        return [TenantWithRole(_tenant_to_result(t), TenantRole(role)) for t, role in result.all()]

    async def upsert(
        self,
        tenant_id: str,
        user_id: str,
        role: TenantRole,
        status: MembershipStatus = MembershipStatus.ACTIVE,
        external_membership_id: str | None = None,
    ) -> MembershipResult:
        membership = await self.get_one_by(tenant_id=tenant_id, user_id=user_id)
        if membership is None:
            membership = await self.create(
                TenantMembership(
                    id=generate_cuid(),
                    tenant_id=tenant_id,
                    user_id=user_id,
                    role=role.value,
                    status=status.value,
                    external_membership_id=external_membership_id,
                )
            )
            return _membership_to_result(membership)
        fields: dict[str, str] = {"role": role.value, "status": status.value}
        if external_membership_id:
            fields["external_membership_id"] = external_membership_id
        membership = await self.update_fields(membership, **fields)
        return _membership_to_result(membership)

    async def set_status_by_external_id(
        self, external_membership_id: str, status: MembershipStatus
    ) -> bool:
        membership = await self.get_one_by(external_membership_id=external_membership_id)
        if membership is None:
            return False
        await self.update_fields(membership, status=status.value)
        return True

    async def set_role_by_external_id(self, external_membership_id: str, role: TenantRole) -> bool:
        membership = await self.get_one_by(external_membership_id=external_membership_id)
        if membership is None:
            return False
        await self.update_fields(membership, role=role.value)
        return True


class PreferencesRepository:
    """Per-tenant user preferences. Only default provisioning is needed here."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def ensure_defaults(self, tenant_id: str, user_id: str) -> None:
        stmt = (
            pg_insert(UserPreferences)
            .values(id=generate_cuid(), tenant_id=tenant_id, user_id=user_id)
            .on_conflict_do_nothing(index_elements=["tenant_id", "user_id"])
        )
        await self.db.execute(stmt)
