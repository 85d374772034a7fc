"""Handlers applying typed webhook events to the cache and identity tables.

Each handler returns a WebhookOutcome. Events referring to an unknown
user or tenant are acknowledged with processed=False; anything else that
goes wrong propagates to the reconciler, which marks the event failed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from app.application.dtos.cache import CachePayload
from app.application.dtos.tenant import TenantResult
from app.application.dtos.user import UserResult
from app.application.dtos.webhook import WebhookOutcome
from app.application.interfaces.repositories import ICacheStore, IUnitOfWork
from app.application.interfaces.services import ICrmClient
from app.application.services.cache_refresh_service import default_payload
from app.application.services.tenant_resolution_service import TenantResolutionService
from app.application.services.webhook_events import (
    CacheEvent,
    ConsentUpdated,
    ContactUpdated,
    EntitlementsChanged,
    IdentityUserDeleted,
    IdentityUserUpserted,
    InvoiceRecorded,
    MembershipRemoved,
    MembershipRoleChanged,
    MembershipUpserted,
    OrganizationDeleted,
    OrganizationUpserted,
    SubscriptionChanged,
    UnknownEvent,
    WebhookEvent,
)
from app.core.constants import MAX_CACHED_INVOICES
from app.domain.enums import CacheCategory, MembershipStatus
from app.infrastructure.exceptions import UpstreamException

logger = logging.getLogger(__name__)

PROCESSED = WebhookOutcome(received=True, processed=True)

_PLATFORM_ROLES = {
    "platform:admin": "platform_admin",
    "platform_admin": "platform_admin",
    "platform:support": "platform_support",
    "platform_support": "platform_support",
    "platform:finance": "platform_finance",
    "platform_finance": "platform_finance",
    "platform:content_admin": "platform_content_admin",
    "platform_content_admin": "platform_content_admin",
}


def map_platform_role(role: str | None) -> str:
    """Map identity-provider private metadata role to a platform role (default 'user')."""
    return _PLATFORM_ROLES.get(role or "", "user")


def skipped(reason: str) -> WebhookOutcome:
    return WebhookOutcome(received=True, processed=False, reason=reason)


class WebhookHandlers:
    """Dispatch table from event variant to handler."""

    def __init__(
        self,
        store: ICacheStore,
        uow: IUnitOfWork,
        crm: ICrmClient | None = None,
        *,
        reject_out_of_order_writes: bool = False,
    ) -> None:
        self.store = store
        self.uow = uow
        self.crm = crm
        self.tenant_resolution = TenantResolutionService(uow)
        self.reject_out_of_order_writes = reject_out_of_order_writes
        self._handlers: dict[type[WebhookEvent], Callable[[Any], Awaitable[WebhookOutcome]]] = {
            SubscriptionChanged: self.on_subscription_changed,
            InvoiceRecorded: self.on_invoice_recorded,
            EntitlementsChanged: self.on_entitlements_changed,
            ContactUpdated: self.on_contact_updated,
            ConsentUpdated: self.on_consent_updated,
            IdentityUserUpserted: self.on_user_upserted,
            IdentityUserDeleted: self.on_user_deleted,
            OrganizationUpserted: self.on_organization_upserted,
            OrganizationDeleted: self.on_organization_deleted,
            MembershipUpserted: self.on_membership_upserted,
            MembershipRoleChanged: self.on_membership_role_changed,
            MembershipRemoved: self.on_membership_removed,
            UnknownEvent: self.on_unknown,
        }

    async def dispatch(self, event: WebhookEvent) -> WebhookOutcome:
        handler = self._handlers.get(type(event), self.on_unknown)
        return await handler(event)

    # --- cache events -------------------------------------------------

    async def _resolve_refs(
        self, event: CacheEvent
    ) -> tuple[UserResult, TenantResult] | WebhookOutcome:
        user = await self.uow.users.get_by_external_id(event.user_ref)
        if user is None:
            logger.warning("Webhook %s: user not found for subject %s", event.event_type, event.user_ref)
            return skipped("User not found")
        tenant = await self.uow.tenants.get_by_id(event.tenant_ref)
        if tenant is None:
            tenant = await self.uow.tenants.get_by_external_org_id(event.tenant_ref)
        if tenant is None:
            logger.warning("Webhook %s: tenant not found for %s", event.event_type, event.tenant_ref)
            return skipped("Tenant not found")
        return user, tenant

    async def _write(
        self,
        category: CacheCategory,
        tenant_id: str,
        user_id: str,
        payload: CachePayload,
        event: WebhookEvent,
    ) -> None:
        if self.reject_out_of_order_writes and event.occurred_at is not None:
            write = await self.store.upsert(
                category,
                tenant_id,
                user_id,
                payload,
                updated_at=event.occurred_at,
                only_if_newer=True,
            )
            if not write.applied:
                logger.info(
                    "Dropped out-of-order %s for %s tenant=%s user=%s",
                    event.event_type,
                    category.value,
                    tenant_id,
                    user_id,
                )
            return
        await self.store.upsert(category, tenant_id, user_id, payload)

    async def _current_billing(self, tenant_id: str, user_id: str) -> dict[str, Any]:
        record = await self.store.read(CacheCategory.BILLING, tenant_id, user_id)
        billing = default_payload(CacheCategory.BILLING)
        if record is not None and isinstance(record.payload, dict):
            billing.update(record.payload)
        return billing

    async def on_subscription_changed(self, event: SubscriptionChanged) -> WebhookOutcome:
        resolved = await self._resolve_refs(event)
        if isinstance(resolved, WebhookOutcome):
            return resolved
        user, tenant = resolved
        billing = await self._current_billing(tenant.id, user.id)
        billing["subscription"] = event.subscription
        await self._write(CacheCategory.BILLING, tenant.id, user.id, billing, event)
        logger.info("Updated billing subscription for tenant=%s user=%s", tenant.id, user.id)
        return PROCESSED

    async def on_invoice_recorded(self, event: InvoiceRecorded) -> WebhookOutcome:
        resolved = await self._resolve_refs(event)
        if isinstance(resolved, WebhookOutcome):
            return resolved
        user, tenant = resolved
        billing = await self._current_billing(tenant.id, user.id)
        invoices = billing.get("invoices") or []
        billing["invoices"] = [event.invoice, *invoices][:MAX_CACHED_INVOICES]
        await self._write(CacheCategory.BILLING, tenant.id, user.id, billing, event)
        logger.info("Recorded invoice for tenant=%s user=%s", tenant.id, user.id)
        return PROCESSED

    async def on_entitlements_changed(self, event: EntitlementsChanged) -> WebhookOutcome:
        resolved = await self._resolve_refs(event)
        if isinstance(resolved, WebhookOutcome):
            return resolved
        user, tenant = resolved
        await self._write(CacheCategory.ENTITLEMENTS, tenant.id, user.id, event.entitlements, event)
        logger.info("Replaced entitlements for tenant=%s user=%s", tenant.id, user.id)
        return PROCESSED

    async def on_contact_updated(self, event: ContactUpdated) -> WebhookOutcome:
        """Update the user's names, commit, then replace the profile cache.

        The cache store commits on its own, so it is written last: a failed
        name update leaves the cache untouched. A failed cache write after
        the commit leaves a stale profile row, which the next TTL refresh
        from the CRM replaces.
        """
        resolved = await self._resolve_refs(event)
        if isinstance(resolved, WebhookOutcome):
            return resolved
        user, tenant = resolved
        names = {
            field: event.profile[key]
            for key, field in (("firstName", "first_name"), ("lastName", "last_name"))
            if event.profile.get(key)
        }
        if names:
            await self.uow.users.update_user(user.id, **names)
            await self.uow.commit()
        await self._write(CacheCategory.PROFILE, tenant.id, user.id, event.profile, event)
        logger.info("Updated profile for tenant=%s user=%s", tenant.id, user.id)
        return PROCESSED

    async def on_consent_updated(self, event: ConsentUpdated) -> WebhookOutcome:
        logger.info("Consent update received; no local cache action")
        return PROCESSED

    # --- identity events ----------------------------------------------

    async def on_user_upserted(self, event: IdentityUserUpserted) -> WebhookOutcome:
        user = await self.uow.users.upsert_by_external_id(event.user)
        if event.platform_role is not None:
            await self.uow.users.update_user(
                user.id, platform_role=map_platform_role(event.platform_role)
            )
        if event.created:
            await self._sync_crm_customer(user)
            await self.tenant_resolution.ensure_personal_tenant(user)
        logger.info("Synced user %s from %s", user.id, event.event_type)
        return PROCESSED

    async def _sync_crm_customer(self, user: UserResult) -> None:
        """Create the CRM customer; a CRM outage never fails the webhook."""
        if self.crm is None:
            return
        name = " ".join(part for part in (user.first_name, user.last_name) if part) or None
        try:
            await self.crm.create_customer(user.external_user_id, user.email, name)
        except UpstreamException as exc:
            logger.warning("CRM customer sync failed for user %s: %s", user.id, exc.message)

    async def on_user_deleted(self, event: IdentityUserDeleted) -> WebhookOutcome:
        if not await self.uow.users.soft_delete_by_external_id(event.external_user_id):
            return skipped("User not found")
        logger.info("Soft-deleted user %s", event.external_user_id)
        return PROCESSED

    async def on_organization_upserted(self, event: OrganizationUpserted) -> WebhookOutcome:
        tenant = await self.uow.tenants.upsert_by_external_org_id(event.tenant)
        logger.info("Synced tenant %s from organization %s", tenant.id, event.tenant.external_org_id)
        return PROCESSED

    async def on_organization_deleted(self, event: OrganizationDeleted) -> WebhookOutcome:
        if not await self.uow.tenants.soft_delete_by_external_org_id(event.external_org_id):
            return skipped("Tenant not found")
        logger.info("Soft-deleted tenant for organization %s", event.external_org_id)
        return PROCESSED

    async def on_membership_upserted(self, event: MembershipUpserted) -> WebhookOutcome:
        tenant = await self.uow.tenants.get_by_external_org_id(event.external_org_id)
        if tenant is None:
            return skipped("Tenant not found")
        user = await self.uow.users.get_by_external_id(event.external_user_id)
        if user is None:
            return skipped("User not found")
        await self.uow.memberships.upsert(
            tenant.id,
            user.id,
            event.role,
            MembershipStatus.ACTIVE,
            external_membership_id=event.external_membership_id,
        )
        logger.info("Membership %s -> %s (%s)", user.id, tenant.id, event.role.value)
        return PROCESSED

    async def on_membership_role_changed(self, event: MembershipRoleChanged) -> WebhookOutcome:
        updated = await self.uow.memberships.set_role_by_external_id(
            event.external_membership_id, event.role
        )
        if not updated:
            logger.warning("Membership not found: %s", event.external_membership_id)
            return skipped("Membership not found")
        return PROCESSED

    async def on_membership_removed(self, event: MembershipRemoved) -> WebhookOutcome:
        updated = await self.uow.memberships.set_status_by_external_id(
            event.external_membership_id, MembershipStatus.REMOVED
        )
        if not updated:
            return skipped("Membership not found")
        return PROCESSED

    async def on_unknown(self, event: WebhookEvent) -> WebhookOutcome:
        logger.info("Unhandled webhook event type %s acknowledged", event.event_type)
        return PROCESSED
