"""Cached account data API schemas (profile, billing, entitlements).

Inner payloads are owned by the upstream services and passed through
unvalidated.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionResponse(BaseModel):
    """Response for GET /billing/subscription."""

    subscription: dict[str, Any] | None = None


class InvoicesResponse(BaseModel):
    """Response for GET /billing/invoices."""

    invoices: list[Any] = Field(default_factory=list)


class EntitlementsResponse(BaseModel):
    """Response for GET /entitlements."""

    entitlements: list[Any] = Field(default_factory=list)
    grouped: dict[str, list[Any]] = Field(default_factory=dict)
    total: int = 0


class EntitlementCheckResponse(BaseModel):
    """Response for GET /entitlements/{resource_id}."""

    has_access: bool
    entitlement: dict[str, Any] | None = None
    is_expired: bool = False


class ProfileUpdateRequest(BaseModel):
    """Body for PATCH /profile. Omitted fields stay unchanged; email is owned by the identity provider."""

    model_config = ConfigDict(extra="forbid")

    firstName: str | None = Field(default=None, max_length=100)
    lastName: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    company: str | None = Field(default=None, max_length=200)
    street: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=100)
    postalCode: str | None = Field(default=None, max_length=20)
    country: str | None = Field(default=None, min_length=2, max_length=2)
    vatId: str | None = Field(default=None, max_length=50)

    def changes(self) -> dict[str, Any]:
        """Only the fields the client sent (explicit nulls included)."""
        return self.model_dump(exclude_unset=True)
