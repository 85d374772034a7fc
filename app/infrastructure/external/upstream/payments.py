"""Payments service client: subscription, invoices, entitlements."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from app.infrastructure.exceptions import UpstreamHTTPError, UpstreamResponseError
from app.infrastructure.external.upstream.base import BaseUpstreamClient
from app.shared.utils.datetime import utc_now


def _mock_subscription() -> dict[str, Any]:
    now = utc_now()
    return {
        "id": "sub_mock_123",
        "status": "active",
        "planId": "plan_premium",
        "planName": "Premium",
        "currentPeriodStart": (now - timedelta(days=30)).isoformat(),
        "currentPeriodEnd": (now + timedelta(days=30)).isoformat(),
        "cancelAtPeriodEnd": False,
    }


def _mock_invoices() -> list[dict[str, Any]]:
    now = utc_now()
    return [
        {
            "id": f"inv_mock_00{n}",
            "number": f"INV-{now.year}-00{n}",
            "status": "paid",
            "amount": 9900,
            "currency": "EUR",
            "createdAt": (now - timedelta(days=30 * n)).isoformat(),
        }
        for n in (1, 2)
    ]


def _mock_entitlements() -> list[dict[str, Any]]:
    return [
        {"id": "ent_mock_001", "type": "course_access", "resourceId": "course_101",
         "resourceName": "Foundations", "expiresAt": None, "metadata": {"enrolled": True}},
        {"id": "ent_mock_002", "type": "feature_flag", "resourceId": "premium_support",
         "resourceName": "Premium Support", "expiresAt": None, "metadata": {"enabled": True}},
    ]


class PaymentsClient(BaseUpstreamClient):
    """Client for the payments service (/me/* endpoints keyed by subject id)."""

    def _params(self, subject_id: str, tenant_id: str | None) -> dict[str, str]:
        params = {"userId": subject_id}
        if tenant_id:
            params["tenantId"] = tenant_id
        return params

    async def get_subscription(
        self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None
    ) -> dict[str, Any] | None:
        if self.mock:
            return _mock_subscription()
        try:
            body = await self.request(
                "GET",
                "/me/subscription",
                params=self._params(subject_id, tenant_id),
                tenant_id=tenant_id,
                tenant_slug=tenant_slug,
            )
        except UpstreamHTTPError as exc:
            if exc.status_code == 404:
                return None
            raise
        if body is not None and not isinstance(body, dict):
            raise UpstreamResponseError(self.service, "/me/subscription", "expected object or null")
        return body

    async def get_invoices(
        self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None
    ) -> list[dict[str, Any]]:
        if self.mock:
            return _mock_invoices()
        body = await self.request(
            "GET",
            "/me/invoices",
            params=self._params(subject_id, tenant_id),
            tenant_id=tenant_id,
            tenant_slug=tenant_slug,
        )
        if not isinstance(body, list):
            raise UpstreamResponseError(self.service, "/me/invoices", "expected array")
        return body

    async def get_entitlements(
        self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None
    ) -> list[dict[str, Any]]:
        if self.mock:
            return _mock_entitlements()
        body = await self.request(
            "GET",
            "/me/entitlements",
            params=self._params(subject_id, tenant_id),
            tenant_id=tenant_id,
            tenant_slug=tenant_slug,
        )
        if not isinstance(body, list):
            raise UpstreamResponseError(self.service, "/me/entitlements", "expected array")
        return body
