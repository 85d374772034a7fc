"""Profile updates: the CRM owns the profile, local copies follow it.

The CRM is written first. Only its answer reaches the local tables: the
denormalised user names, then the profile cache row of the active tenant.
"""

from __future__ import annotations

import logging
from typing import Any

from app.application.dtos.tenant import ResolvedTenant
from app.application.interfaces.repositories import ICacheStore, IUnitOfWork
from app.application.interfaces.services import ICrmClient
from app.domain.enums import CacheCategory

logger = logging.getLogger(__name__)

_NAME_FIELDS = (("firstName", "first_name"), ("lastName", "last_name"))


class ProfileService:
    """Writes profile changes through to the CRM, the user row and the cache."""

    def __init__(self, crm: ICrmClient, store: ICacheStore, uow: IUnitOfWork) -> None:
        self.crm = crm
        self.store = store
        self.uow = uow

    async def update_profile(
        self, resolved: ResolvedTenant, changes: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply changes and return the profile as the CRM now has it.

        An UpstreamException from the CRM propagates and nothing local is
        written. The cache row is replaced, never merged.
        """
        user, tenant = resolved.user, resolved.tenant
        profile = await self.crm.update_profile(
            user.external_user_id,
            changes,
            tenant_id=tenant.id,
            tenant_slug=tenant.slug,
        )

        names = {field: changes[key] for key, field in _NAME_FIELDS if key in changes}
        if names:
            await self.uow.users.update_user(user.id, **names)
            await self.uow.commit()

        await self.store.upsert(CacheCategory.PROFILE, tenant.id, user.id, profile)
        logger.info(
            "Profile of user %s updated (%s); cache replaced for tenant %s",
            user.id,
            ", ".join(sorted(changes)) or "no fields",
            tenant.id,
        )
        return profile
