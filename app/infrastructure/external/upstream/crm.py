"""CRM service client: contact profile and customer provisioning."""

from __future__ import annotations

from typing import Any

from app.infrastructure.exceptions import UpstreamResponseError
from app.infrastructure.external.upstream.base import BaseUpstreamClient

_MOCK_PROFILE: dict[str, Any] = {
    "firstName": "Max",
    "lastName": "Mustermann",
    "email": "demo@example.com",
    "phone": "+49 123 456789",
    "company": "Example GmbH",
    "street": "Musterstrasse 123",
    "city": "Berlin",
    "postalCode": "10115",
    "country": "DE",
}


class CrmClient(BaseUpstreamClient):
    """Client for the CRM service.

    Requests carry the configured CRM tenant slug unless the caller passes one.
    """

    def __init__(self, *args: Any, default_tenant_slug: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.default_tenant_slug = default_tenant_slug

    async def get_profile(
        self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None
    ) -> dict[str, Any]:
        if self.mock:
            return dict(_MOCK_PROFILE)
        body = await self.request(
            "GET",
            "/me/profile",
            params={"clerkUserId": subject_id},
            tenant_id=tenant_id,
            tenant_slug=tenant_slug or self.default_tenant_slug,
        )
        if not isinstance(body, dict):
            raise UpstreamResponseError(self.service, "/me/profile", "expected object")
        return body

    async def update_profile(
        self,
        subject_id: str,
        changes: dict[str, Any],
        *,
        tenant_id: str | None = None,
        tenant_slug: str | None = None,
    ) -> dict[str, Any]:
        """Apply a partial update in the CRM and return the full updated profile."""
        if self.mock:
            return {**_MOCK_PROFILE, **changes}
        body = await self.request(
            "PATCH",
            "/me/profile",
            params={"clerkUserId": subject_id},
            json=changes,
            tenant_id=tenant_id,
            tenant_slug=tenant_slug or self.default_tenant_slug,
        )
        if not isinstance(body, dict):
            raise UpstreamResponseError(self.service, "/me/profile", "expected object")
        return body

    async def create_customer(
        self, subject_id: str, email: str, name: str | None = None
    ) -> dict[str, Any]:
        if self.mock:
            return {"accountId": "mock-account-id", "created": True}
        first_name, _, last_name = (name or "").partition(" ")
        body = await self.request(
            "POST",
            "/internal/customers",
            json={
                "clerkUserId": subject_id,
                "email": email,
                "firstName": first_name or "Unknown",
                "lastName": last_name or "User",
            },
            tenant_slug=self.default_tenant_slug,
        )
        return body if isinstance(body, dict) else {}
