"""Tenant repository with optional caching. Returns application DTOs."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.dtos.tenant import TenantResult, TenantUpsert
from app.domain.exceptions import PersonalTenantExistsException, PersonalTenantProvisioningException
from app.infrastructure.cache.cache_protocol import CacheProtocol
from app.infrastructure.cache.keys import tenant_key, tenant_org_key
from app.infrastructure.persistence.models.tenant import Tenant
from app.infrastructure.persistence.repositories.base import BaseRepository
from app.shared.utils.datetime import ensure_utc
from app.shared.utils.generators import generate_cuid

logger = logging.getLogger(__name__)


def _tenant_to_result(t: Tenant) -> TenantResult:
    """Map ORM Tenant to application TenantResult."""
    return TenantResult(
        id=t.id,
        name=t.name,
        slug=t.slug,
        is_personal=bool(t.is_personal),
        external_org_id=t.external_org_id,
        owner_user_id=t.owner_user_id,
        logo_url=t.logo_url,
        metadata=dict(t.metadata_ or {}),
        deleted_at=ensure_utc(t.deleted_at),
    )


def _result_to_cached(r: TenantResult) -> dict[str, Any]:
    return {
        "id": r.id,
        "name": r.name,
        "slug": r.slug,
        "is_personal": r.is_personal,
        "external_org_id": r.external_org_id,
        "owner_user_id": r.owner_user_id,
        "logo_url": r.logo_url,
        "metadata": r.metadata,
    }


def _result_from_cached(cached: dict[str, Any]) -> TenantResult:
    """Build a TenantResult from a cache dict. Deleted tenants are never cached."""
    return TenantResult(**cached)


class TenantRepository(BaseRepository[Tenant]):
    """Tenant repository. Optional cache for organization lookups (tenant_org_key)."""

    def __init__(
        self,
        db: AsyncSession,
        cache_service: CacheProtocol | None = None,
        *,
        cache_ttl: int = 900,
    ) -> None:
        super().__init__(db, Tenant)
        self.cache = cache_service
        self.cache_ttl = cache_ttl

    def _cache_usable(self) -> bool:
        return self.cache is not None and self.cache.is_available()

    async def get_by_id(self, tenant_id: str) -> TenantResult | None:
        tenant = await self.get_entity_by_id(tenant_id)
        return _tenant_to_result(tenant) if tenant else None

    async def get_by_external_org_id(self, external_org_id: str) -> TenantResult | None:
        """Get active tenant for an identity-provider organization, from cache if available."""
        if self._cache_usable():
            cached = await self.cache.get(tenant_org_key(external_org_id))  # type: ignore[union-attr]
            if cached is not None:
                return _result_from_cached(cached)
        tenant = await self.get_one_by(external_org_id=external_org_id)
        if tenant is None:
            return None
        result = _tenant_to_result(tenant)
        if self._cache_usable():
            await self.cache.set(  # type: ignore[union-attr]
                tenant_org_key(external_org_id), _result_to_cached(result), ttl=self.cache_ttl
            )
        return result

    async def get_personal_for_user(self, user_id: str) -> TenantResult | None:
        stmt = select(Tenant).where(
            Tenant.owner_user_id == user_id,
            Tenant.is_personal.is_(True),
            Tenant.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        tenant = result.scalar_one_or_none()
        return _tenant_to_result(tenant) if tenant else None

    async def create_personal_tenant(self, user_id: str, name: str, slug: str) -> TenantResult:
        """Insert the personal tenant inside a savepoint.

        Raises:
            PersonalTenantExistsException: The owner already has a personal tenant.
            PersonalTenantProvisioningException: Any other constraint violation.
        """
        tenant = Tenant(
            id=generate_cuid(),
            name=name,
            slug=slug,
            is_personal=True,
            owner_user_id=user_id,
        )
        try:
            async with self.db.begin_nested():
                created = await self.create(tenant)
        except IntegrityError as exc:
            if await self.get_personal_for_user(user_id) is not None:
                raise PersonalTenantExistsException(user_id) from exc
            raise PersonalTenantProvisioningException(user_id, "tenant insert violated a constraint") from exc
        return _tenant_to_result(created)

    async def upsert_by_external_org_id(self, data: TenantUpsert) -> TenantResult:
        """Create or update an organization tenant; a taken slug falls back to the org id."""
        tenant = await self.get_one_by(external_org_id=data.external_org_id, include_deleted=True)
        fields: dict[str, Any] = {
            "name": data.name,
            "logo_url": data.logo_url,
            "metadata_": dict(data.metadata),
            "deleted_at": None,
        }
        if tenant is None:
            tenant = Tenant(
                id=generate_cuid(),
                external_org_id=data.external_org_id,
                slug=data.slug,
                is_personal=False,
                **fields,
            )
            try:
                async with self.db.begin_nested():
                    saved = await self.create(tenant)
            except IntegrityError:
                fallback = f"{data.slug}-{data.external_org_id.lower()}"
                logger.warning(
                    "Slug %s taken; creating organization %s with slug %s",
                    data.slug,
                    data.external_org_id,
                    fallback,
                )
                tenant = Tenant(
                    id=generate_cuid(),
                    external_org_id=data.external_org_id,
                    slug=fallback,
                    is_personal=False,
                    **fields,
                )
                saved = await self.create(tenant)
            return _tenant_to_result(saved)

        if tenant.slug != data.slug and await self.get_one_by(slug=data.slug, include_deleted=True) is None:
            fields["slug"] = data.slug
        saved = await self.update_fields(tenant, **fields)
        return _tenant_to_result(saved)

    async def soft_delete_by_external_org_id(self, external_org_id: str) -> bool:
        tenant = await self.get_one_by(external_org_id=external_org_id)
        if tenant is None:
            return False
        await self.soft_delete(tenant)
        return True

    async def _invalidate(self, obj: Tenant) -> None:
        if not self._cache_usable():
            return
        await self.cache.delete(tenant_key(obj.id))  # type: ignore[union-attr]
        if obj.external_org_id:
            await self.cache.delete(tenant_org_key(obj.external_org_id))  # type: ignore[union-attr]

    async def _on_after_create(self, obj: Tenant) -> None:
        await self._invalidate(obj)

    async def _on_after_update(self, obj: Tenant) -> None:
        await self._invalidate(obj)
