"""Cache refresh orchestration: serve fresh cache, refresh stale, fall back on failure.

Read path for profile, billing and entitlements. For one (category,
tenant, user) key at most one upstream fetch runs per process; all callers
waiting on it receive the same payload.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from app.application.dtos.cache import CachePayload
from app.application.interfaces.repositories import ICacheStore
from app.application.interfaces.services import ICrmClient, IPaymentsClient
from app.application.services.single_flight import SingleFlight
from app.application.services.staleness import is_stale
from app.core.config import Settings
from app.core.constants import CACHE_KEY_SEP, REFRESH_KEY_PREFIX
from app.domain.enums import CacheCategory
from app.domain.exceptions import MissingTenantContextException
from app.infrastructure.exceptions import UpstreamAuthError, UpstreamException
from app.shared.utils.datetime import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchContext:
    """Identifiers an upstream fetch needs for one cache key."""

    tenant_id: str
    user_id: str
    subject_id: str
    tenant_slug: str | None = None


Fetcher = Callable[[FetchContext], Awaitable[CachePayload]]


@dataclass(frozen=True)
class CategoryPolicy:
    """TTL, upstream fetch and empty default for one cache category."""

    ttl: timedelta
    fetch: Fetcher
    default: Callable[[], CachePayload]


def default_payload(category: CacheCategory) -> CachePayload:
    """Empty payload served when nothing has ever been cached for a key."""
    if category == CacheCategory.BILLING:
        return {"subscription": None, "invoices": []}
    if category == CacheCategory.ENTITLEMENTS:
        return []
    return {}


def refresh_key(category: CacheCategory, tenant_id: str, user_id: str) -> str:
    """Single-flight key for one cache entry."""
    return CACHE_KEY_SEP.join((REFRESH_KEY_PREFIX, category.value, tenant_id, user_id))


class CacheRefreshService:
    """Read-through cache over the payments and CRM services.

    Upstream failures never reach the caller: the last cached payload is
    served instead, or an empty default when the key was never cached.
    """

    def __init__(
        self,
        store: ICacheStore,
        policies: dict[CacheCategory, CategoryPolicy],
        single_flight: SingleFlight | None = None,
        *,
        write_placeholder_on_failure: bool = True,
        reject_out_of_order_writes: bool = False,
    ) -> None:
        self.store = store
        self.policies = policies
        self.single_flight = single_flight or SingleFlight()
        self.write_placeholder_on_failure = write_placeholder_on_failure
        self.reject_out_of_order_writes = reject_out_of_order_writes

    @classmethod
    def from_settings(
        cls,
        store: ICacheStore,
        payments: IPaymentsClient,
        crm: ICrmClient,
        settings: Settings,
        single_flight: SingleFlight | None = None,
    ) -> CacheRefreshService:
        """Build the service with the standard category policies."""

        async def fetch_profile(ctx: FetchContext) -> CachePayload:
            return await crm.get_profile(
                ctx.subject_id, tenant_id=ctx.tenant_id, tenant_slug=ctx.tenant_slug
            )

        async def fetch_billing(ctx: FetchContext) -> CachePayload:
            subscription, invoices = await asyncio.gather(
                payments.get_subscription(
                    ctx.subject_id, tenant_id=ctx.tenant_id, tenant_slug=ctx.tenant_slug
                ),
                payments.get_invoices(
                    ctx.subject_id, tenant_id=ctx.tenant_id, tenant_slug=ctx.tenant_slug
                ),
            )
            return {"subscription": subscription, "invoices": invoices}

        async def fetch_entitlements(ctx: FetchContext) -> CachePayload:
            return await payments.get_entitlements(
                ctx.subject_id, tenant_id=ctx.tenant_id, tenant_slug=ctx.tenant_slug
            )

        policies = {
            CacheCategory.PROFILE: CategoryPolicy(
                ttl=timedelta(seconds=settings.cache_ttl_profile_seconds),
                fetch=fetch_profile,
                default=lambda: default_payload(CacheCategory.PROFILE),
            ),
            CacheCategory.BILLING: CategoryPolicy(
                ttl=timedelta(seconds=settings.cache_ttl_billing_seconds),
                fetch=fetch_billing,
                default=lambda: default_payload(CacheCategory.BILLING),
            ),
            CacheCategory.ENTITLEMENTS: CategoryPolicy(
                ttl=timedelta(seconds=settings.cache_ttl_entitlements_seconds),
                fetch=fetch_entitlements,
                default=lambda: default_payload(CacheCategory.ENTITLEMENTS),
            ),
        }
        return cls(
            store,
            policies,
            single_flight,
            write_placeholder_on_failure=settings.cache_placeholder_on_failure,
            reject_out_of_order_writes=settings.cache_reject_out_of_order_writes,
        )

    def _policy(self, category: CacheCategory) -> CategoryPolicy:
        policy = self.policies.get(category)
        if policy is None:
            raise ValueError(f"No cache policy registered for category {category!r}")
        return policy

    async def get_or_refresh(
        self,
        category: CacheCategory,
        tenant_id: str,
        user_id: str,
        *,
        subject_id: str | None = None,
        tenant_slug: str | None = None,
    ) -> CachePayload:
        """Return the cached payload, refreshing it first when stale.

        Args:
            category: Which cache to read.
            tenant_id: Resolved tenant id (required).
            user_id: Internal user id (required).
            subject_id: Id the upstream services know the user by; defaults to user_id.
            tenant_slug: Forwarded to upstream as a header when known.

        Returns:
            Fresh, refreshed, stale or default payload. Never raises on upstream failure.

        Raises:
            MissingTenantContextException: tenant_id or user_id is empty.
            ValueError: No policy for category.
        """
        if not tenant_id or not user_id:
            raise MissingTenantContextException(f"{category.value} read")
        policy = self._policy(category)

        record = await self.store.read(category, tenant_id, user_id)
        if not is_stale(record, policy.ttl):
            return record.payload

        return await self.refresh(
            category, tenant_id, user_id, subject_id=subject_id, tenant_slug=tenant_slug
        )

    async def refresh(
        self,
        category: CacheCategory,
        tenant_id: str,
        user_id: str,
        *,
        subject_id: str | None = None,
        tenant_slug: str | None = None,
    ) -> CachePayload:
        """Fetch from upstream and store, or join the fetch already running for this key."""
        if not tenant_id or not user_id:
            raise MissingTenantContextException(f"{category.value} refresh")
        policy = self._policy(category)
        ctx = FetchContext(
            tenant_id=tenant_id,
            user_id=user_id,
            subject_id=subject_id or user_id,
            tenant_slug=tenant_slug,
        )
        return await self.single_flight.run(
            refresh_key(category, tenant_id, user_id),
            lambda: self._fetch_and_store(category, policy, ctx),
        )

    async def refresh_all(
        self,
        tenant_id: str,
        user_id: str,
        *,
        subject_id: str | None = None,
        tenant_slug: str | None = None,
    ) -> None:
        """Refresh every registered category (e.g. after a tenant switch).

        Failures are logged; nothing is raised to the caller.
        """
        categories = list(self.policies)
        results = await asyncio.gather(
            *(
                self.refresh(
                    category, tenant_id, user_id, subject_id=subject_id, tenant_slug=tenant_slug
                )
                for category in categories
            ),
            return_exceptions=True,
        )
        for category, result in zip(categories, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    "Cache refresh failed for %s tenant=%s user=%s: %s",
                    category.value,
                    tenant_id,
                    user_id,
                    result,
                    exc_info=result,
                )

    async def _fetch_and_store(
        self,
        category: CacheCategory,
        policy: CategoryPolicy,
        ctx: FetchContext,
    ) -> CachePayload:
        started_at = utc_now()
        try:
            payload = await policy.fetch(ctx)
        except UpstreamException as exc:
            return await self._fallback(category, policy, ctx, exc)

        if self.reject_out_of_order_writes:
            write = await self.store.upsert(
                category,
                ctx.tenant_id,
                ctx.user_id,
                payload,
                updated_at=started_at,
                only_if_newer=True,
            )
            if not write.applied:
                logger.info(
                    "Discarded %s refresh for tenant=%s user=%s: newer data already stored",
                    category.value,
                    ctx.tenant_id,
                    ctx.user_id,
                )
            return write.record.payload

        await self.store.upsert(category, ctx.tenant_id, ctx.user_id, payload)
        return payload

    async def _fallback(
        self,
        category: CacheCategory,
        policy: CategoryPolicy,
        ctx: FetchContext,
        exc: UpstreamException,
    ) -> CachePayload:
        log = logger.error if isinstance(exc, UpstreamAuthError) else logger.warning
        log(
            "Upstream %s fetch failed for tenant=%s user=%s, serving cached data: %s",
            category.value,
            ctx.tenant_id,
            ctx.user_id,
            exc.message,
        )
        # Re-read: a webhook may have written while the fetch was running.
        record = await self.store.read(category, ctx.tenant_id, ctx.user_id)
        if record is not None:
            return record.payload
        if not self.write_placeholder_on_failure:
            return policy.default()
        write = await self.store.insert_if_absent(
            category, ctx.tenant_id, ctx.user_id, policy.default()
        )
        return write.record.payload
