"""Unit tests for webhook event parsing and the handlers applying them."""

from datetime import timedelta
from typing import Any

import pytest

from app.application.services.webhook_events import (
    IdentityUserUpserted,
    MembershipUpserted,
    SubscriptionChanged,
    UnknownEvent,
    parse_event,
)
from app.application.services.webhook_handlers import WebhookHandlers, map_platform_role
from app.core.constants import MAX_CACHED_INVOICES
from app.domain.enums import CacheCategory, MembershipStatus, TenantRole, WebhookSource
from app.domain.exceptions import MalformedWebhookException
from app.infrastructure.exceptions import UpstreamTimeoutError
from app.shared.utils.datetime import utc_now
from tests.fakes import FakeCacheStore, FakeCrm, FakeUnitOfWork


@pytest.fixture
def handlers(store: FakeCacheStore, uow: FakeUnitOfWork, crm: FakeCrm) -> WebhookHandlers:
    return WebhookHandlers(store, uow, crm)


@pytest.fixture
def member(uow: FakeUnitOfWork) -> tuple[str, str]:
    user = uow.users.add("user_ext_1", "ada@example.com", first_name="Ada")
    tenant = uow.tenants.add("Acme", "acme", external_org_id="org_1")
    return user.id, tenant.id


async def _apply(handlers: WebhookHandlers, source: WebhookSource, payload: dict[str, Any]):
    return await handlers.dispatch(parse_event(source, payload))


def _payments(event: str, tenant_id: str, **data: Any) -> dict[str, Any]:
    return {"event": event, "data": {"userId": "user_ext_1", "tenantId": tenant_id, **data}}


def _identity(event: str, **data: Any) -> dict[str, Any]:
    return {"type": event, "data": data}


# --- parsing ----------------------------------------------------------


def test_parse_subscription_deleted_clears_subscription() -> None:
    event = parse_event(
        WebhookSource.PAYMENTS,
        _payments("subscription.deleted", "t1", subscription={"id": "sub_1"}),
    )
    assert isinstance(event, SubscriptionChanged)
    assert event.subscription is None


def test_parse_unknown_event_type() -> None:
    event = parse_event(WebhookSource.CRM, {"event": "deal.won", "data": {"x": 1}})
    assert isinstance(event, UnknownEvent)
    assert event.data == {"x": 1}


def test_parse_missing_event_type_is_malformed() -> None:
    with pytest.raises(MalformedWebhookException):
        parse_event(WebhookSource.PAYMENTS, {"data": {}})


def test_parse_identity_user_uses_primary_email() -> None:
    event = parse_event(
        WebhookSource.IDENTITY,
        _identity(
            "user.created",
            id="user_ext_9",
            primary_email_address_id="em_2",
            email_addresses=[
                {"id": "em_1", "email_address": "old@example.com"},
                {"id": "em_2", "email_address": "primary@example.com"},
            ],
            private_metadata={"platform_role": "platform:admin"},
        ),
    )
    assert isinstance(event, IdentityUserUpserted)
    assert event.user.email == "primary@example.com"
    assert event.created is True
    assert event.platform_role == "platform:admin"


def test_parse_timestamp_becomes_occurred_at() -> None:
    payload = _payments("entitlement.granted", "t1", entitlements=[])
    payload["timestamp"] = "2026-01-01T00:00:00Z"
    event = parse_event(WebhookSource.PAYMENTS, payload)
    assert event.occurred_at is not None
    assert event.occurred_at.year == 2026


def test_parse_membership_created_maps_role() -> None:
    event = parse_event(
        WebhookSource.IDENTITY,
        _identity(
            "organizationMembership.created",
            id="mem_1",
            role="org:billing_admin",
            organization={"id": "org_1"},
            public_user_data={"user_id": "user_ext_1"},
        ),
    )

    assert event == MembershipUpserted(
        "organizationMembership.created",
        None,
        external_membership_id="mem_1",
        external_org_id="org_1",
        external_user_id="user_ext_1",
        role=TenantRole.BILLING_ADMIN,
    )


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("platform:admin", "platform_admin"), ("platform_finance", "platform_finance"), (None, "user"), ("root", "user")],
)
def test_map_platform_role(raw: str | None, expected: str) -> None:
    assert map_platform_role(raw) == expected


# --- cache events -----------------------------------------------------


async def test_subscription_update_keeps_cached_invoices(
    handlers: WebhookHandlers, store: FakeCacheStore, member: tuple[str, str]
) -> None:
    user_id, tenant_id = member
    store.put(CacheCategory.BILLING, tenant_id, user_id, {"subscription": None, "invoices": [{"id": "inv_1"}]})

    outcome = await _apply(
        handlers,
        WebhookSource.PAYMENTS,
        _payments("subscription.created", tenant_id, subscription={"id": "sub_2"}),
    )

    assert outcome.processed
    assert store.rows[(CacheCategory.BILLING, tenant_id, user_id)].payload == {
        "subscription": {"id": "sub_2"},
        "invoices": [{"id": "inv_1"}],
    }


async def test_subscription_deleted_stores_null(
    handlers: WebhookHandlers, store: FakeCacheStore, member: tuple[str, str]
) -> None:
    user_id, tenant_id = member
    store.put(CacheCategory.BILLING, tenant_id, user_id, {"subscription": {"id": "sub_1"}, "invoices": []})

    await _apply(handlers, WebhookSource.PAYMENTS, _payments("subscription.deleted", tenant_id))

    assert store.rows[(CacheCategory.BILLING, tenant_id, user_id)].payload["subscription"] is None


async def test_invoice_is_prepended_and_list_capped(
    handlers: WebhookHandlers, store: FakeCacheStore, member: tuple[str, str]
) -> None:
    user_id, tenant_id = member
    existing = [{"id": f"inv_{n}"} for n in range(MAX_CACHED_INVOICES)]
    store.put(CacheCategory.BILLING, tenant_id, user_id, {"subscription": None, "invoices": existing})

    await _apply(
        handlers, WebhookSource.PAYMENTS, _payments("invoice.paid", tenant_id, invoice={"id": "inv_new"})
    )

    invoices = store.rows[(CacheCategory.BILLING, tenant_id, user_id)].payload["invoices"]
    assert len(invoices) == MAX_CACHED_INVOICES
    assert invoices[0] == {"id": "inv_new"}
    assert invoices[-1] == {"id": f"inv_{MAX_CACHED_INVOICES - 2}"}


async def test_invoice_on_empty_cache_starts_from_default(
    handlers: WebhookHandlers, store: FakeCacheStore, member: tuple[str, str]
) -> None:
    user_id, tenant_id = member

    await _apply(
        handlers,
        WebhookSource.PAYMENTS,
        _payments("invoice.payment_failed", tenant_id, invoice={"id": "inv_1"}),
    )

    assert store.rows[(CacheCategory.BILLING, tenant_id, user_id)].payload == {
        "subscription": None,
        "invoices": [{"id": "inv_1"}],
    }


async def test_entitlements_are_replaced(
    handlers: WebhookHandlers, store: FakeCacheStore, member: tuple[str, str]
) -> None:
    user_id, tenant_id = member
    store.put(CacheCategory.ENTITLEMENTS, tenant_id, user_id, [{"id": "old"}])

    await _apply(
        handlers,
        WebhookSource.PAYMENTS,
        _payments("entitlement.revoked", tenant_id, entitlements=[{"id": "new"}]),
    )

    assert store.rows[(CacheCategory.ENTITLEMENTS, tenant_id, user_id)].payload == [{"id": "new"}]


async def test_contact_update_writes_profile_and_user_names(
    handlers: WebhookHandlers, store: FakeCacheStore, uow: FakeUnitOfWork, member: tuple[str, str]
) -> None:
    user_id, tenant_id = member
    profile = {"firstName": "Augusta", "lastName": "King", "phone": "+44"}

    await _apply(
        handlers,
        WebhookSource.CRM,
        {"event": "contact.updated", "data": {"userId": "user_ext_1", "tenantId": tenant_id, "profile": profile}},
    )

    assert store.rows[(CacheCategory.PROFILE, tenant_id, user_id)].payload == profile
    user = uow.users.users[user_id]
    assert (user.first_name, user.last_name) == ("Augusta", "King")
    assert uow.commits == 1


async def test_contact_update_leaves_cache_untouched_when_user_update_fails(
    handlers: WebhookHandlers,
    store: FakeCacheStore,
    uow: FakeUnitOfWork,
    member: tuple[str, str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    user_id, tenant_id = member
    store.put(CacheCategory.PROFILE, tenant_id, user_id, {"firstName": "Ada"})

    async def failing_update(*args: Any, **kwargs: Any) -> None:
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(uow.users, "update_user", failing_update)

    with pytest.raises(RuntimeError):
        await _apply(
            handlers,
            WebhookSource.CRM,
            {
                "event": "contact.updated",
                "data": {"userId": "user_ext_1", "tenantId": tenant_id, "profile": {"firstName": "Augusta"}},
            },
        )

    assert store.rows[(CacheCategory.PROFILE, tenant_id, user_id)].payload == {"firstName": "Ada"}
    assert uow.commits == 0


async def test_contact_update_without_names_skips_user_write(
    handlers: WebhookHandlers, store: FakeCacheStore, uow: FakeUnitOfWork, member: tuple[str, str]
) -> None:
    user_id, tenant_id = member

    await _apply(
        handlers,
        WebhookSource.CRM,
        {"event": "contact.updated", "data": {"userId": "user_ext_1", "tenantId": tenant_id, "profile": {"city": "London"}}},
    )

    assert store.rows[(CacheCategory.PROFILE, tenant_id, user_id)].payload == {"city": "London"}
    assert uow.users.users[user_id].first_name == "Ada"
    assert uow.commits == 0


async def test_consent_update_is_acknowledged(handlers: WebhookHandlers, store: FakeCacheStore) -> None:
    outcome = await _apply(handlers, WebhookSource.CRM, {"event": "consent.updated", "data": {}})
    assert outcome.processed
    assert store.writes == []


async def test_unknown_tenant_is_skipped(
    handlers: WebhookHandlers, store: FakeCacheStore, member: tuple[str, str]
) -> None:
    outcome = await _apply(handlers, WebhookSource.PAYMENTS, _payments("entitlement.granted", "nope"))

    assert outcome.processed is False
    assert outcome.reason == "Tenant not found"
    assert store.writes == []


async def test_ordering_guard_drops_older_event(
    store: FakeCacheStore, uow: FakeUnitOfWork, member: tuple[str, str]
) -> None:
    user_id, tenant_id = member
    handlers = WebhookHandlers(store, uow, reject_out_of_order_writes=True)
    store.put(CacheCategory.ENTITLEMENTS, tenant_id, user_id, [{"id": "current"}])
    payload = _payments("entitlement.granted", tenant_id, entitlements=[{"id": "older"}])
    payload["timestamp"] = (utc_now() - timedelta(hours=1)).isoformat()

    outcome = await _apply(handlers, WebhookSource.PAYMENTS, payload)

    assert outcome.processed
    assert store.rows[(CacheCategory.ENTITLEMENTS, tenant_id, user_id)].payload == [{"id": "current"}]


# --- identity events --------------------------------------------------


async def test_user_created_provisions_personal_tenant_and_crm_customer(
    handlers: WebhookHandlers, uow: FakeUnitOfWork, crm: FakeCrm
) -> None:
    outcome = await _apply(
        handlers,
        WebhookSource.IDENTITY,
        _identity(
            "user.created",
            id="user_new",
            first_name="Grace",
            last_name="Hopper",
            email_addresses=[{"id": "em_1", "email_address": "grace@example.com"}],
        ),
    )

    assert outcome.processed
    user = await uow.users.get_by_external_id("user_new")
    assert user is not None and user.email == "grace@example.com"
    personal = await uow.tenants.get_personal_for_user(user.id)
    assert personal is not None
    assert personal.name == "Grace's Account"
    membership = await uow.memberships.get(personal.id, user.id)
    assert membership is not None and membership.role == TenantRole.OWNER
    assert (personal.id, user.id) in uow.preferences.rows
    assert crm.customers == [("user_new", "grace@example.com", "Grace Hopper")]


async def test_user_created_tolerates_crm_outage(
    handlers: WebhookHandlers, uow: FakeUnitOfWork, crm: FakeCrm
) -> None:
    crm.error = UpstreamTimeoutError("crm", "/customers")

    outcome = await _apply(
        handlers,
        WebhookSource.IDENTITY,
        _identity("user.created", id="user_new", email_addresses=[{"email_address": "g@example.com"}]),
    )

    assert outcome.processed
    user = await uow.users.get_by_external_id("user_new")
    assert user is not None
    assert await uow.tenants.get_personal_for_user(user.id) is not None


async def test_user_updated_sets_platform_role(handlers: WebhookHandlers, uow: FakeUnitOfWork) -> None:
    uow.users.add("user_ext_1", "ada@example.com")

    await _apply(
        handlers,
        WebhookSource.IDENTITY,
        _identity(
            "user.updated",
            id="user_ext_1",
            email_addresses=[{"email_address": "ada@example.com"}],
            private_metadata={"platform_role": "platform:support"},
        ),
    )

    user = await uow.users.get_by_external_id("user_ext_1")
    assert user is not None and user.platform_role == "platform_support"
    assert uow.tenants.personal_creates == 0


async def test_user_deleted_soft_deletes(handlers: WebhookHandlers, uow: FakeUnitOfWork) -> None:
    uow.users.add("user_ext_1", "ada@example.com")

    outcome = await _apply(handlers, WebhookSource.IDENTITY, _identity("user.deleted", id="user_ext_1"))

    assert outcome.processed
    assert await uow.users.get_by_external_id("user_ext_1") is None


async def test_user_deleted_unknown_is_skipped(handlers: WebhookHandlers) -> None:
    outcome = await _apply(handlers, WebhookSource.IDENTITY, _identity("user.deleted", id="ghost"))
    assert outcome.processed is False


async def test_organization_created_then_deleted(handlers: WebhookHandlers, uow: FakeUnitOfWork) -> None:
    await _apply(
        handlers, WebhookSource.IDENTITY, _identity("organization.created", id="org_7", name="Globex", slug="globex")
    )
    tenant = await uow.tenants.get_by_external_org_id("org_7")
    assert tenant is not None and tenant.slug == "globex"

    await _apply(handlers, WebhookSource.IDENTITY, _identity("organization.deleted", id="org_7"))
    assert await uow.tenants.get_by_external_org_id("org_7") is None


async def test_membership_lifecycle(
    handlers: WebhookHandlers, uow: FakeUnitOfWork, member: tuple[str, str]
) -> None:
    user_id, tenant_id = member

    await _apply(
        handlers,
        WebhookSource.IDENTITY,
        _identity(
            "organizationMembership.created",
            id="mem_1",
            role="org:admin",
            organization={"id": "org_1"},
            public_user_data={"user_id": "user_ext_1"},
        ),
    )
    membership = await uow.memberships.get(tenant_id, user_id)
    assert membership is not None
    assert (membership.role, membership.status) == (TenantRole.ADMIN, MembershipStatus.ACTIVE)

    await _apply(
        handlers, WebhookSource.IDENTITY, _identity("organizationMembership.updated", id="mem_1", role="org:member")
    )
    assert (await uow.memberships.get(tenant_id, user_id)).role == TenantRole.MEMBER

    await _apply(handlers, WebhookSource.IDENTITY, _identity("organizationMembership.deleted", id="mem_1"))
    assert (await uow.memberships.get(tenant_id, user_id)).status == MembershipStatus.REMOVED
    assert await uow.memberships.list_tenants_for_user(user_id) == []


async def test_membership_for_unsynced_org_is_skipped(handlers: WebhookHandlers, uow: FakeUnitOfWork) -> None:
    uow.users.add("user_ext_1", "ada@example.com")

    outcome = await _apply(
        handlers,
        WebhookSource.IDENTITY,
        _identity(
            "organizationMembership.created",
            id="mem_1",
            organization={"id": "org_missing"},
            public_user_data={"user_id": "user_ext_1"},
        ),
    )

    assert outcome.processed is False
    assert outcome.reason == "Tenant not found"
