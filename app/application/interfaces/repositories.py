"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference application DTOs only; no infrastructure imports.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from app.domain.enums import CacheCategory, MembershipStatus, TenantRole, WebhookSource, WebhookStatus

if TYPE_CHECKING:
    from app.application.dtos.cache import CachePayload, CacheRecord, CacheWrite
    from app.application.dtos.tenant import (
        MembershipResult,
        TenantResult,
        TenantUpsert,
        TenantWithRole,
    )
    from app.application.dtos.user import UserResult, UserUpsert
    from app.application.dtos.webhook import WebhookEventRecord


# Cache store interface
class ICacheStore(Protocol):
    """Protocol for the tenant-scoped cache store (one row per tenant, user, category).

    Implementations must be safe to call from detached tasks: they may not
    depend on a request-scoped session.
    """

    async def read(
        self, category: CacheCategory, tenant_id: str, user_id: str
    ) -> CacheRecord | None:
        """Return the cached record, or None when the key was never written."""

    async def upsert(
        self,
        category: CacheCategory,
        tenant_id: str,
        user_id: str,
        payload: CachePayload,
        *,
        updated_at: datetime | None = None,
        only_if_newer: bool = False,
    ) -> CacheWrite:
        """Insert or replace the row.

        updated_at defaults to now. With only_if_newer, the write is dropped
        (applied=False) when the stored row carries a later updated_at.
        """

    async def insert_if_absent(
        self,
        category: CacheCategory,
        tenant_id: str,
        user_id: str,
        payload: CachePayload,
    ) -> CacheWrite:
        """Insert the row only if none exists; never overwrites."""


# Webhook event log interface
class IWebhookEventRepository(Protocol):
    """Protocol for the webhook idempotency log."""

    async def get_by_event_id(
        self, source: WebhookSource, event_id: str
    ) -> WebhookEventRecord | None:
        """Return the record for (source, event id), if any."""

    async def try_record_processing(
        self,
        event_id: str,
        event_type: str,
        source: WebhookSource,
        payload: dict[str, Any],
    ) -> WebhookEventRecord | None:
        """Insert a 'processing' record; return None if (source, event id) already exists."""

    async def mark(
        self,
        source: WebhookSource,
        event_id: str,
        status: WebhookStatus,
        error_message: str | None = None,
    ) -> None:
        """Finalise the record (success, failed or skipped) and stamp processed_at."""


# User repository interface
class IUserRepository(Protocol):
    """Protocol for user repository (DIP)."""

    async def get_by_id(self, user_id: str) -> UserResult | None:
        """Return active user by internal id."""

    async def get_by_external_id(self, external_user_id: str) -> UserResult | None:
        """Return active user by identity-provider subject id."""

    async def get_by_email(self, email: str) -> UserResult | None:
        """Return active user by email."""

    async def create_user(self, data: UserUpsert) -> UserResult:
        """Create a user."""

    async def update_user(self, user_id: str, **fields: Any) -> UserResult | None:
        """Update the given columns; return the updated user or None if missing."""

    async def upsert_by_external_id(self, data: UserUpsert) -> UserResult:
        """Create or update a user keyed by external id (identity webhooks)."""

    async def soft_delete_by_external_id(self, external_user_id: str) -> bool:
        """Mark user deleted; return False when unknown."""


# Tenant repository interface
class ITenantRepository(Protocol):
    """Protocol for tenant repository (DIP)."""

    async def get_by_id(self, tenant_id: str) -> TenantResult | None:
        """Return active tenant by id."""

    async def get_by_external_org_id(self, external_org_id: str) -> TenantResult | None:
        """Return active tenant by identity-provider organization id."""

    async def get_personal_for_user(self, user_id: str) -> TenantResult | None:
        """Return the personal tenant owned by user, if any."""

    async def create_personal_tenant(self, user_id: str, name: str, slug: str) -> TenantResult:
        """Create a personal tenant.

        Raises:
            PersonalTenantExistsException: When the user already owns one.
            PersonalTenantProvisioningException: When the slug belongs to another tenant.
        """

    async def upsert_by_external_org_id(self, data: TenantUpsert) -> TenantResult:
        """Create or update an organization tenant."""

    async def soft_delete_by_external_org_id(self, external_org_id: str) -> bool:
        """Mark tenant deleted; return False when unknown."""


# Membership repository interface
class IMembershipRepository(Protocol):
    """Protocol for tenant membership repository (DIP)."""

    async def get(self, tenant_id: str, user_id: str) -> MembershipResult | None:
        """Return the membership (any status) for tenant and user."""

    async def list_tenants_for_user(self, user_id: str) -> list[TenantWithRole]:
        """Return active tenants the user is an active member of."""

    async def upsert(
        self,
        tenant_id: str,
        user_id: str,
        role: TenantRole,
        status: MembershipStatus = MembershipStatus.ACTIVE,
        external_membership_id: str | None = None,
    ) -> MembershipResult:
        """Create or update the membership for tenant and user."""

    async def set_status_by_external_id(
        self, external_membership_id: str, status: MembershipStatus
    ) -> bool:
        """Set status of a membership by identity-provider id; False when unknown."""

    async def set_role_by_external_id(
        self, external_membership_id: str, role: TenantRole
    ) -> bool:
        """Set role of a membership by identity-provider id; False when unknown."""


# Preferences repository interface
class IPreferencesRepository(Protocol):
    """Protocol for per-tenant user preferences."""

    async def ensure_defaults(self, tenant_id: str, user_id: str) -> None:
        """Create the default preferences row if missing."""


# Unit of work interface
class IUnitOfWork(Protocol):
    """Transactional scope for multi-row writes (personal tenant provisioning)."""

    users: IUserRepository
    tenants: ITenantRepository
    memberships: IMembershipRepository
    preferences: IPreferencesRepository

    def atomic(self) -> Any:
        """Async context manager: savepoint; rolls back its writes on error."""

    async def commit(self) -> None:
        """Commit the outer transaction."""

    async def rollback(self) -> None:
        """Discard uncommitted writes."""
