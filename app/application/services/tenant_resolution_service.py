"""Tenant resolution: map a verified session to (user, active tenant, role).

Users are created lazily on first contact. Every user owns exactly one
personal tenant, created on demand inside a savepoint together with its
owner membership and default preferences.
"""

from __future__ import annotations

import logging

from app.application.dtos.tenant import ResolvedTenant, TenantResult, TenantWithRole
from app.application.dtos.user import SessionClaims, UserResult, UserUpsert
from app.application.interfaces.repositories import IUnitOfWork
from app.domain.enums import MembershipStatus, TenantRole, TenantSource
from app.domain.exceptions import (
    AuthenticationException,
    PersonalTenantExistsException,
    PersonalTenantProvisioningException,
)
from app.shared.utils.generators import personal_tenant_slug

logger = logging.getLogger(__name__)


def personal_tenant_name(user: UserResult) -> str:
    """Display name of a user's personal tenant."""
    return f"{user.display_first_name}'s Account"


class TenantResolutionService:
    """Resolves the active tenant for a request (header, organization, personal)."""

    def __init__(self, uow: IUnitOfWork) -> None:
        self.uow = uow

    async def resolve(
        self,
        claims: SessionClaims,
        requested_tenant_id: str | None = None,
    ) -> ResolvedTenant:
        """Resolve user and active tenant for verified claims.

        Precedence: explicitly requested tenant (when the user is an active
        member), then the organization in the claims, then the personal
        tenant. Never fails for a valid user.

        Args:
            claims: Verified session claims.
            requested_tenant_id: Value of the active-tenant request header, if any.

        Returns:
            ResolvedTenant with the user's tenant list.
        """
        user = await self.get_or_create_user(claims)
        personal = await self.ensure_personal_tenant(user)
        tenants = await self.uow.memberships.list_tenants_for_user(user.id)

        if requested_tenant_id:
            match = _find(tenants, requested_tenant_id)
            if match is not None:
                return ResolvedTenant(user, match.tenant, match.role, TenantSource.HEADER, tenants)
            logger.warning(
                "Ignoring requested tenant %s: user %s is not an active member",
                requested_tenant_id,
                user.id,
            )

        if claims.org_id:
            org_tenant = await self._tenant_for_org(claims.org_id, user)
            if org_tenant is not None:
                match = _find(tenants, org_tenant.id)
                if match is not None:
                    return ResolvedTenant(
                        user, match.tenant, match.role, TenantSource.ORGANIZATION, tenants
                    )
                logger.warning(
                    "User %s has no active membership in tenant %s (org %s); using personal tenant",
                    user.id,
                    org_tenant.id,
                    claims.org_id,
                )

        return ResolvedTenant(user, personal, TenantRole.OWNER, TenantSource.PERSONAL, tenants)

    async def _tenant_for_org(self, org_id: str, user: UserResult) -> TenantResult | None:
        """Local tenant for an identity-provider org; lookup failures fall through."""
        try:
            tenant = await self.uow.tenants.get_by_external_org_id(org_id)
        except Exception:
            logger.exception("Failed to map organization %s for user %s", org_id, user.id)
            return None
        if tenant is None:
            logger.info("Organization %s not synced yet; falling back to personal tenant", org_id)
        return tenant

    async def get_or_create_user(self, claims: SessionClaims) -> UserResult:
        """Find the user by subject (or by email when the subject changed), creating it if absent.

        Denormalised identity fields are refreshed when the claims differ.
        """
        if not claims.sub:
            raise AuthenticationException("Session token has no subject")
        users = self.uow.users
        user = await users.get_by_external_id(claims.sub)
        if user is None and claims.email:
            user = await users.get_by_email(claims.email)
            if user is not None:
                logger.info(
                    "Relinking user %s from subject %s to %s",
                    user.id,
                    user.external_user_id,
                    claims.sub,
                )
                user = await users.update_user(user.id, external_user_id=claims.sub) or user

        if user is None:
            user = await users.create_user(
                UserUpsert(
                    external_user_id=claims.sub,
                    email=claims.email or "",
                    first_name=claims.first_name,
                    last_name=claims.last_name,
                    avatar_url=claims.avatar_url,
                )
            )
            logger.info("Created user %s for subject %s", user.id, claims.sub)
            return user

        changes = {
            name: value
            for name, value in (
                ("email", claims.email),
                ("first_name", claims.first_name),
                ("last_name", claims.last_name),
                ("avatar_url", claims.avatar_url),
            )
            if value is not None and getattr(user, name) != value
        }
        if changes:
            user = await users.update_user(user.id, **changes) or user
        return user

    async def ensure_personal_tenant(self, user: UserResult) -> TenantResult:
        """Return the user's personal tenant, creating it (with owner membership) if absent.

        Concurrent callers for the same user converge on one tenant: the
        loser of the creation race re-reads the winner's row.

        Raises:
            PersonalTenantProvisioningException: Tenant could be neither created nor found.
        """
        existing = await self.uow.tenants.get_personal_for_user(user.id)
        if existing is not None:
            return existing

        try:
            async with self.uow.atomic():
                tenant = await self.uow.tenants.create_personal_tenant(
                    user.id, personal_tenant_name(user), personal_tenant_slug(user.id)
                )
                await self.uow.memberships.upsert(
                    tenant.id, user.id, TenantRole.OWNER, MembershipStatus.ACTIVE
                )
                await self.uow.preferences.ensure_defaults(tenant.id, user.id)
        except PersonalTenantExistsException:
            winner = await self.uow.tenants.get_personal_for_user(user.id)
            if winner is None:
                raise PersonalTenantProvisioningException(
                    user.id, "conflict reported but no personal tenant found"
                ) from None
            logger.info("Personal tenant for user %s created concurrently; reusing %s", user.id, winner.id)
            return winner

        logger.info("Created personal tenant %s for user %s", tenant.id, user.id)
        return tenant


def _find(tenants: list[TenantWithRole], tenant_id: str) -> TenantWithRole | None:
    for item in tenants:
        if item.tenant.id == tenant_id:
            return item
    return None
