"""SqlCacheStore and webhook event log integration tests. Require Postgres.

Rows are committed (the store opens its own sessions), so every test
works on freshly generated ids.
"""

from datetime import timedelta

import pytest

from app.application.dtos.user import UserUpsert
from app.domain.enums import CacheCategory, WebhookSource, WebhookStatus
from app.domain.exceptions import MissingTenantContextException
from app.infrastructure.persistence.repositories import (
    SqlAlchemyUnitOfWork,
    SqlCacheStore,
    WebhookEventRepository,
)
from app.shared.utils.datetime import utc_now
from app.shared.utils.generators import generate_cuid


async def _tenant_and_user(session_factory) -> tuple[str, str]:
    async with session_factory() as session:
        uow = SqlAlchemyUnitOfWork(session)
        sub = f"user_{generate_cuid()}"
        user = await uow.users.create_user(UserUpsert(external_user_id=sub, email=f"{sub}@example.com"))
        tenant = await uow.tenants.create_personal_tenant(user.id, "Test", f"personal-{user.id}")
        await uow.commit()
    return tenant.id, user.id


@pytest.mark.requires_db
async def test_upsert_then_read(session_factory) -> None:
    store = SqlCacheStore(session_factory)
    tenant_id, user_id = await _tenant_and_user(session_factory)

    write = await store.upsert(CacheCategory.PROFILE, tenant_id, user_id, {"firstName": "Ada"})
    record = await store.read(CacheCategory.PROFILE, tenant_id, user_id)

    assert write.applied
    assert record is not None
    assert record.payload == {"firstName": "Ada"}
    assert await store.read(CacheCategory.BILLING, tenant_id, user_id) is None


@pytest.mark.requires_db
async def test_upsert_replaces_existing_row(session_factory) -> None:
    store = SqlCacheStore(session_factory)
    tenant_id, user_id = await _tenant_and_user(session_factory)

    await store.upsert(CacheCategory.ENTITLEMENTS, tenant_id, user_id, [{"id": "a"}])
    await store.upsert(CacheCategory.ENTITLEMENTS, tenant_id, user_id, [{"id": "b"}])

    record = await store.read(CacheCategory.ENTITLEMENTS, tenant_id, user_id)
    assert record is not None and record.payload == [{"id": "b"}]


@pytest.mark.requires_db
async def test_only_if_newer_rejects_older_write(session_factory) -> None:
    store = SqlCacheStore(session_factory)
    tenant_id, user_id = await _tenant_and_user(session_factory)
    now = utc_now()
    await store.upsert(CacheCategory.BILLING, tenant_id, user_id, {"v": "new"}, updated_at=now)

    write = await store.upsert(
        CacheCategory.BILLING,
        tenant_id,
        user_id,
        {"v": "old"},
        updated_at=now - timedelta(minutes=1),
        only_if_newer=True,
    )

    assert write.applied is False
    assert write.record.payload == {"v": "new"}


@pytest.mark.requires_db
async def test_insert_if_absent_never_overwrites(session_factory) -> None:
    store = SqlCacheStore(session_factory)
    tenant_id, user_id = await _tenant_and_user(session_factory)

    first = await store.insert_if_absent(CacheCategory.PROFILE, tenant_id, user_id, {})
    await store.upsert(CacheCategory.PROFILE, tenant_id, user_id, {"firstName": "Ada"})
    second = await store.insert_if_absent(CacheCategory.PROFILE, tenant_id, user_id, {})

    assert first.applied is True
    assert second.applied is False
    assert second.record.payload == {"firstName": "Ada"}


@pytest.mark.requires_db
async def test_missing_keys_are_rejected(session_factory) -> None:
    store = SqlCacheStore(session_factory)
    with pytest.raises(MissingTenantContextException):
        await store.read(CacheCategory.PROFILE, "", "u1")


@pytest.mark.requires_db
async def test_webhook_event_recorded_once(session_factory) -> None:
    events = WebhookEventRepository(session_factory)
    event_id = f"evt_{generate_cuid()}"

    first = await events.try_record_processing(event_id, "invoice.paid", WebhookSource.PAYMENTS, {"id": event_id})
    second = await events.try_record_processing(event_id, "invoice.paid", WebhookSource.PAYMENTS, {"id": event_id})
    other_source = await events.try_record_processing(event_id, "contact.updated", WebhookSource.CRM, {})

    assert first is not None and first.status == WebhookStatus.PROCESSING
    assert second is None
    assert other_source is not None

    await events.mark(WebhookSource.PAYMENTS, event_id, WebhookStatus.FAILED, "boom")
    record = await events.get_by_event_id(WebhookSource.PAYMENTS, event_id)
    assert record is not None
    assert record.status == WebhookStatus.FAILED
    assert record.error_message == "boom"
    assert record.attempt_count == 2
    assert record.processed_at is not None
