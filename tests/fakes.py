"""In-memory fakes of the repository and upstream ports for unit and API tests."""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from app.application.dtos.cache import CachePayload, CacheRecord, CacheWrite
from app.application.dtos.tenant import MembershipResult, TenantResult, TenantUpsert, TenantWithRole
from app.application.dtos.user import UserResult, UserUpsert
from app.application.dtos.webhook import WebhookEventRecord
from app.domain.enums import (
    CacheCategory,
    MembershipStatus,
    TenantRole,
    WebhookSource,
    WebhookStatus,
)
from app.domain.exceptions import PersonalTenantExistsException
from app.shared.utils.datetime import utc_now
from app.shared.utils.generators import generate_cuid


class FakeCacheStore:
    """ICacheStore in memory. Every call yields to the loop once, like a DB round trip."""

    def __init__(self) -> None:
        self.rows: dict[tuple[CacheCategory, str, str], CacheRecord] = {}
        self.writes: list[CacheRecord] = []

    def put(
        self,
        category: CacheCategory,
        tenant_id: str,
        user_id: str,
        payload: CachePayload,
        updated_at: datetime | None = None,
    ) -> CacheRecord:
        """Seed a row without going through upsert."""
        record = CacheRecord(tenant_id, user_id, category, payload, updated_at or utc_now())
        self.rows[(category, tenant_id, user_id)] = record
        return record

    async def read(self, category: CacheCategory, tenant_id: str, user_id: str) -> CacheRecord | None:
        await asyncio.sleep(0)
        return self.rows.get((category, tenant_id, user_id))

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
        await asyncio.sleep(0)
        key = (category, tenant_id, user_id)
        stamp = updated_at or utc_now()
        current = self.rows.get(key)
        if only_if_newer and current is not None and current.updated_at > stamp:
            return CacheWrite(current, applied=False)
        record = CacheRecord(tenant_id, user_id, category, payload, stamp)
        self.rows[key] = record
        self.writes.append(record)
        return CacheWrite(record, applied=True)

    async def insert_if_absent(
        self,
        category: CacheCategory,
        tenant_id: str,
        user_id: str,
        payload: CachePayload,
    ) -> CacheWrite:
        await asyncio.sleep(0)
        key = (category, tenant_id, user_id)
        current = self.rows.get(key)
        if current is not None:
            return CacheWrite(current, applied=False)
        record = CacheRecord(tenant_id, user_id, category, payload, utc_now())
        self.rows[key] = record
        self.writes.append(record)
        return CacheWrite(record, applied=True)


class FakeWebhookEvents:
    """IWebhookEventRepository in memory."""

    def __init__(self) -> None:
        self.records: dict[tuple[WebhookSource, str], WebhookEventRecord] = {}

    async def get_by_event_id(self, source: WebhookSource, event_id: str) -> WebhookEventRecord | None:
        return self.records.get((source, event_id))

    async def try_record_processing(
        self,
        event_id: str,
        event_type: str,
        source: WebhookSource,
        payload: dict[str, Any],
    ) -> WebhookEventRecord | None:
        key = (source, event_id)
        existing = self.records.get(key)
        if existing is not None:
            self.records[key] = dataclasses.replace(existing, attempt_count=existing.attempt_count + 1)
            return None
        record = WebhookEventRecord(
            id=generate_cuid(),
            event_id=event_id,
            event_type=event_type,
            source=source,
            payload=payload,
            status=WebhookStatus.PROCESSING,
            attempt_count=1,
        )
        self.records[key] = record
        return record

    async def mark(
        self,
        source: WebhookSource,
        event_id: str,
        status: WebhookStatus,
        error_message: str | None = None,
    ) -> None:
        key = (source, event_id)
        self.records[key] = dataclasses.replace(
            self.records[key], status=status, error_message=error_message, processed_at=utc_now()
        )


class FakeUserRepository:
    def __init__(self) -> None:
        self.users: dict[str, UserResult] = {}

    def add(self, external_user_id: str, email: str, **fields: Any) -> UserResult:
        user = UserResult(id=generate_cuid(), external_user_id=external_user_id, email=email, **fields)
        self.users[user.id] = user
        return user

    async def get_by_id(self, user_id: str) -> UserResult | None:
        user = self.users.get(user_id)
        return user if user and user.deleted_at is None else None

    async def get_by_external_id(self, external_user_id: str) -> UserResult | None:
        return next(
            (u for u in self.users.values() if u.external_user_id == external_user_id and u.deleted_at is None),
            None,
        )

    async def get_by_email(self, email: str) -> UserResult | None:
        return next((u for u in self.users.values() if u.email == email and u.deleted_at is None), None)

    async def create_user(self, data: UserUpsert) -> UserResult:
        await asyncio.sleep(0)
        existing = await self.get_by_external_id(data.external_user_id)
        if existing is not None:
            return existing
        return self.add(
            data.external_user_id,
            data.email,
            first_name=data.first_name,
            last_name=data.last_name,
            avatar_url=data.avatar_url,
            metadata=dict(data.metadata),
        )

    async def update_user(self, user_id: str, **fields: Any) -> UserResult | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        updated = dataclasses.replace(user, **fields)
        self.users[user_id] = updated
        return updated

    async def upsert_by_external_id(self, data: UserUpsert) -> UserResult:
        user = await self.get_by_external_id(data.external_user_id)
        if user is None:
            return await self.create_user(data)
        return await self.update_user(
            user.id,
            email=data.email or user.email,
            first_name=data.first_name,
            last_name=data.last_name,
            avatar_url=data.avatar_url,
            metadata=dict(data.metadata),
        )  # type: ignore[return-value]

    async def soft_delete_by_external_id(self, external_user_id: str) -> bool:
        user = await self.get_by_external_id(external_user_id)
        if user is None:
            return False
        await self.update_user(user.id, deleted_at=utc_now())
        return True


class FakeTenantRepository:
    """Tenants in memory; at most one personal tenant per owner, like the partial unique index."""

    def __init__(self) -> None:
        self.tenants: dict[str, TenantResult] = {}
        self.personal_creates = 0

    def add(self, name: str, slug: str, *, is_personal: bool = False, **fields: Any) -> TenantResult:
        tenant = TenantResult(id=generate_cuid(), name=name, slug=slug, is_personal=is_personal, **fields)
        self.tenants[tenant.id] = tenant
        return tenant

    async def get_by_id(self, tenant_id: str) -> TenantResult | None:
        tenant = self.tenants.get(tenant_id)
        return tenant if tenant and tenant.deleted_at is None else None

    async def get_by_external_org_id(self, external_org_id: str) -> TenantResult | None:
        return next(
            (t for t in self.tenants.values() if t.external_org_id == external_org_id and t.deleted_at is None),
            None,
        )

    async def get_personal_for_user(self, user_id: str) -> TenantResult | None:
        await asyncio.sleep(0)
        return next(
            (t for t in self.tenants.values() if t.is_personal and t.owner_user_id == user_id),
            None,
        )

    async def create_personal_tenant(self, user_id: str, name: str, slug: str) -> TenantResult:
        await asyncio.sleep(0)
        if any(t.is_personal and t.owner_user_id == user_id for t in self.tenants.values()):
            raise PersonalTenantExistsException(user_id)
        self.personal_creates += 1
        return self.add(name, slug, is_personal=True, owner_user_id=user_id)

    async def upsert_by_external_org_id(self, data: TenantUpsert) -> TenantResult:
        existing = next((t for t in self.tenants.values() if t.external_org_id == data.external_org_id), None)
        if existing is None:
            return self.add(
                data.name,
                data.slug,
                external_org_id=data.external_org_id,
                logo_url=data.logo_url,
                metadata=dict(data.metadata),
            )
        updated = dataclasses.replace(
            existing, name=data.name, logo_url=data.logo_url, metadata=dict(data.metadata), deleted_at=None
        )
        self.tenants[updated.id] = updated
        return updated

    async def soft_delete_by_external_org_id(self, external_org_id: str) -> bool:
        tenant = await self.get_by_external_org_id(external_org_id)
        if tenant is None:
            return False
        self.tenants[tenant.id] = dataclasses.replace(tenant, deleted_at=utc_now())
        return True


class FakeMembershipRepository:
    def __init__(self, tenants: FakeTenantRepository) -> None:
        self._tenants = tenants
        self.memberships: dict[tuple[str, str], MembershipResult] = {}

    async def get(self, tenant_id: str, user_id: str) -> MembershipResult | None:
        return self.memberships.get((tenant_id, user_id))

    async def list_tenants_for_user(self, user_id: str) -> list[TenantWithRole]:
        result = []
        for (tenant_id, member_id), membership in self.memberships.items():
            if member_id != user_id or membership.status != MembershipStatus.ACTIVE:
                continue
            tenant = await self._tenants.get_by_id(tenant_id)
            if tenant is not None:
                result.append(TenantWithRole(tenant, membership.role))
        return sorted(result, key=lambda t: (not t.tenant.is_personal, t.tenant.name))

    async def upsert(
        self,
        tenant_id: str,
        user_id: str,
        role: TenantRole,
        status: MembershipStatus = MembershipStatus.ACTIVE,
        external_membership_id: str | None = None,
    ) -> MembershipResult:
        existing = self.memberships.get((tenant_id, user_id))
        membership = MembershipResult(
            id=existing.id if existing else generate_cuid(),
            tenant_id=tenant_id,
            user_id=user_id,
            role=role,
            status=status,
            external_membership_id=external_membership_id
            or (existing.external_membership_id if existing else None),
        )
        self.memberships[(tenant_id, user_id)] = membership
        return membership

    def _by_external_id(self, external_membership_id: str) -> MembershipResult | None:
        return next(
            (m for m in self.memberships.values() if m.external_membership_id == external_membership_id),
            None,
        )

    async def set_status_by_external_id(self, external_membership_id: str, status: MembershipStatus) -> bool:
        membership = self._by_external_id(external_membership_id)
        if membership is None:
            return False
        self.memberships[(membership.tenant_id, membership.user_id)] = dataclasses.replace(membership, status=status)
        return True

    async def set_role_by_external_id(self, external_membership_id: str, role: TenantRole) -> bool:
        membership = self._by_external_id(external_membership_id)
        if membership is None:
            return False
        self.memberships[(membership.tenant_id, membership.user_id)] = dataclasses.replace(membership, role=role)
        return True


class FakePreferencesRepository:
    def __init__(self) -> None:
        self.rows: set[tuple[str, str]] = set()

    async def ensure_defaults(self, tenant_id: str, user_id: str) -> None:
        self.rows.add((tenant_id, user_id))


class FakeUnitOfWork:
    """IUnitOfWork in memory. Counts commits and rollbacks; atomic() does not undo writes."""

    def __init__(self) -> None:
        self.users = FakeUserRepository()
        self.tenants = FakeTenantRepository()
        self.memberships = FakeMembershipRepository(self.tenants)
        self.preferences = FakePreferencesRepository()
        self.commits = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        yield

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


class FakePayments:
    """IPaymentsClient returning canned data or raising a configured error.

    When gate is set, every call waits for it, so tests can hold a fetch open.
    """

    def __init__(
        self,
        subscription: dict[str, Any] | None = None,
        invoices: list[Any] | None = None,
        entitlements: list[Any] | None = None,
    ) -> None:
        self.subscription = subscription
        self.invoices = invoices or []
        self.entitlements = entitlements or []
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str, str, str | None]] = []

    async def _call(self, name: str, subject_id: str, tenant_id: str | None) -> None:
        self.calls.append((name, subject_id, tenant_id))
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error

    async def get_subscription(self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None):
        await self._call("subscription", subject_id, tenant_id)
        return self.subscription

    async def get_invoices(self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None):
        await self._call("invoices", subject_id, tenant_id)
        return list(self.invoices)

    async def get_entitlements(self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None):
        await self._call("entitlements", subject_id, tenant_id)
        return list(self.entitlements)


class FakeCrm:
    def __init__(self, profile: dict[str, Any] | None = None) -> None:
        self.profile = profile or {}
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.profile_calls: list[str] = []
        self.customers: list[tuple[str, str, str | None]] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []

    async def get_profile(self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None):
        self.profile_calls.append(subject_id)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return dict(self.profile)

    async def update_profile(
        self,
        subject_id: str,
        changes: dict[str, Any],
        *,
        tenant_id: str | None = None,
        tenant_slug: str | None = None,
    ):
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        self.updates.append((subject_id, dict(changes)))
        self.profile = {**self.profile, **changes}
        return dict(self.profile)

    async def create_customer(self, subject_id: str, email: str, name: str | None = None):
        if self.error is not None:
            raise self.error
        self.customers.append((subject_id, email, name))
        return {"accountId": f"acc-{subject_id}", "created": True}
