"""Service interfaces (ports) for the application layer.

Protocols define contracts for upstream clients and webhook verifiers (DIP).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class IPaymentsClient(Protocol):
    """Protocol for the payments service client.

    Raises UpstreamException subclasses on failure.
    """

    async def get_subscription(
        self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None
    ) -> dict[str, Any] | None:
        """Return the user's subscription or None."""

    async def get_invoices(
        self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None
    ) -> list[dict[str, Any]]:
        """Return the user's invoices, newest first."""

    async def get_entitlements(
        self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None
    ) -> list[dict[str, Any]]:
        """Return the user's entitlements."""


class ICrmClient(Protocol):
    """Protocol for the CRM service client."""

    async def get_profile(
        self, subject_id: str, *, tenant_id: str | None = None, tenant_slug: str | None = None
    ) -> dict[str, Any]:
        """Return the user's CRM profile."""

    async def update_profile(
        self,
        subject_id: str,
        changes: dict[str, Any],
        *,
        tenant_id: str | None = None,
        tenant_slug: str | None = None,
    ) -> dict[str, Any]:
        """Apply a partial profile update; return the updated profile."""

    async def create_customer(
        self, subject_id: str, email: str, name: str | None = None
    ) -> dict[str, Any]:
        """Create or link the customer in the CRM."""


class IWebhookVerifier(Protocol):
    """Verifies a raw webhook body against its headers."""

    def verify(self, raw_body: bytes, headers: Mapping[str, str]) -> None:
        """Return on success; raise InvalidWebhookSignatureException otherwise."""

    def event_id(self, raw_body: bytes, headers: Mapping[str, str], payload: Mapping[str, Any]) -> str:
        """Idempotency key of the delivery."""
