"""Typed webhook events: one frozen dataclass per event kind, parsed from raw JSON.

Parsing happens after signature verification. Unrecognized event types
become UnknownEvent so the reconciler can acknowledge them without acting.
Cache events missing their user or tenant reference are rejected with
MalformedWebhookException.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.application.dtos.tenant import TenantUpsert
from app.application.dtos.user import UserUpsert
from app.domain.enums import TenantRole, WebhookSource
from app.domain.exceptions import MalformedWebhookException
from app.shared.utils.datetime import parse_datetime_utc
from app.shared.utils.generators import org_fallback_slug


@dataclass(frozen=True)
class WebhookEvent:
    """Common fields of every event variant."""

    event_type: str
    occurred_at: datetime | None


@dataclass(frozen=True)
class CacheEvent(WebhookEvent):
    """An event targeting one (tenant, user) cache row.

    user_ref is the identity-provider subject id; tenant_ref is the internal
    tenant id or the identity-provider organization id.
    """

    user_ref: str
    tenant_ref: str


@dataclass(frozen=True)
class SubscriptionChanged(CacheEvent):
    subscription: dict[str, Any] | None


@dataclass(frozen=True)
class InvoiceRecorded(CacheEvent):
    invoice: dict[str, Any]


@dataclass(frozen=True)
class EntitlementsChanged(CacheEvent):
    entitlements: list[Any]


@dataclass(frozen=True)
class ContactUpdated(CacheEvent):
    profile: dict[str, Any]


@dataclass(frozen=True)
class ConsentUpdated(WebhookEvent):
    """Consent changes are owned by the CRM; acknowledged without local action."""


@dataclass(frozen=True)
class IdentityUserUpserted(WebhookEvent):
    user: UserUpsert
    platform_role: str | None
    created: bool


@dataclass(frozen=True)
class IdentityUserDeleted(WebhookEvent):
    external_user_id: str


@dataclass(frozen=True)
class OrganizationUpserted(WebhookEvent):
    tenant: TenantUpsert


@dataclass(frozen=True)
class OrganizationDeleted(WebhookEvent):
    external_org_id: str


@dataclass(frozen=True)
class MembershipUpserted(WebhookEvent):
    external_membership_id: str
    external_org_id: str
    external_user_id: str
    role: TenantRole


@dataclass(frozen=True)
class MembershipRoleChanged(WebhookEvent):
    external_membership_id: str
    role: TenantRole


@dataclass(frozen=True)
class MembershipRemoved(WebhookEvent):
    external_membership_id: str


@dataclass(frozen=True)
class UnknownEvent(WebhookEvent):
    source: WebhookSource = WebhookSource.PAYMENTS
    data: dict[str, Any] = field(default_factory=dict)


def event_type_of(source: WebhookSource, payload: Mapping[str, Any]) -> str:
    """Event type field of a raw payload ('event' for payments/CRM, 'type' for identity)."""
    key = "type" if source == WebhookSource.IDENTITY else "event"
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedWebhookException(source.value, f"missing '{key}'")
    return value


def _data(source: WebhookSource, payload: Mapping[str, Any]) -> dict[str, Any]:
    data = payload.get("data")
    if not isinstance(data, dict):
        raise MalformedWebhookException(source.value, "missing 'data' object")
    return data


def _refs(source: WebhookSource, data: Mapping[str, Any]) -> tuple[str, str]:
    user_ref = data.get("userId")
    tenant_ref = data.get("tenantId")
    if not user_ref or not tenant_ref:
        raise MalformedWebhookException(source.value, "Missing userId or tenantId")
    return str(user_ref), str(tenant_ref)


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _parse_payments(event_type: str, payload: Mapping[str, Any]) -> WebhookEvent:
    source = WebhookSource.PAYMENTS
    occurred_at = parse_datetime_utc(payload.get("timestamp"))
    if event_type in ("subscription.created", "subscription.updated", "subscription.deleted"):
        data = _data(source, payload)
        user_ref, tenant_ref = _refs(source, data)
        subscription = None if event_type == "subscription.deleted" else data.get("subscription")
        return SubscriptionChanged(
            event_type, occurred_at, user_ref, tenant_ref,
            subscription=subscription if isinstance(subscription, dict) else None,
        )
    if event_type in ("invoice.paid", "invoice.payment_failed"):
        data = _data(source, payload)
        user_ref, tenant_ref = _refs(source, data)
        return InvoiceRecorded(
            event_type, occurred_at, user_ref, tenant_ref, invoice=_as_dict(data.get("invoice"))
        )
    if event_type in ("entitlement.granted", "entitlement.revoked"):
        data = _data(source, payload)
        user_ref, tenant_ref = _refs(source, data)
        entitlements = data.get("entitlements")
        return EntitlementsChanged(
            event_type, occurred_at, user_ref, tenant_ref,
            entitlements=entitlements if isinstance(entitlements, list) else [],
        )
    return UnknownEvent(event_type, occurred_at, source=source, data=_as_dict(payload.get("data")))


def _parse_crm(event_type: str, payload: Mapping[str, Any]) -> WebhookEvent:
    source = WebhookSource.CRM
    occurred_at = parse_datetime_utc(payload.get("timestamp"))
    if event_type == "contact.updated":
        data = _data(source, payload)
        user_ref, tenant_ref = _refs(source, data)
        return ContactUpdated(
            event_type, occurred_at, user_ref, tenant_ref, profile=_as_dict(data.get("profile"))
        )
    if event_type == "consent.updated":
        return ConsentUpdated(event_type, occurred_at)
    return UnknownEvent(event_type, occurred_at, source=source, data=_as_dict(payload.get("data")))


def _primary_email(data: Mapping[str, Any]) -> str:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address") or ""
    if addresses:
        return addresses[0].get("email_address") or ""
    return ""


def _required_id(data: Mapping[str, Any], key: str = "id") -> str:
    value = data.get(key)
    if not value:
        raise MalformedWebhookException(WebhookSource.IDENTITY.value, f"missing '{key}'")
    return str(value)


def _parse_identity(event_type: str, payload: Mapping[str, Any]) -> WebhookEvent:
    source = WebhookSource.IDENTITY
    occurred_at = parse_datetime_utc(payload.get("timestamp"))
    if event_type in ("user.created", "user.updated"):
        data = _data(source, payload)
        private_metadata = _as_dict(data.get("private_metadata"))
        user = UserUpsert(
            external_user_id=_required_id(data),
            email=_primary_email(data),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            avatar_url=data.get("image_url"),
            metadata=_as_dict(data.get("public_metadata")),
        )
        return IdentityUserUpserted(
            event_type,
            occurred_at,
            user=user,
            platform_role=private_metadata.get("platform_role"),
            created=event_type == "user.created",
        )
    if event_type == "user.deleted":
        return IdentityUserDeleted(event_type, occurred_at, _required_id(_data(source, payload)))
    if event_type in ("organization.created", "organization.updated"):
        data = _data(source, payload)
        org_id = _required_id(data)
        tenant = TenantUpsert(
            external_org_id=org_id,
            name=data.get("name") or org_id,
            slug=data.get("slug") or org_fallback_slug(org_id.removeprefix("org_")),
            logo_url=data.get("image_url"),
            metadata=_as_dict(data.get("public_metadata")),
        )
        return OrganizationUpserted(event_type, occurred_at, tenant)
    if event_type == "organization.deleted":
        return OrganizationDeleted(event_type, occurred_at, _required_id(_data(source, payload)))
    if event_type == "organizationMembership.created":
        data = _data(source, payload)
        organization = _as_dict(data.get("organization"))
        user_data = _as_dict(data.get("public_user_data"))
        return MembershipUpserted(
            event_type,
            occurred_at,
            external_membership_id=_required_id(data),
            external_org_id=_required_id(organization),
            external_user_id=_required_id(user_data, "user_id"),
            role=TenantRole.from_identity_role(data.get("role")),
        )
    if event_type == "organizationMembership.updated":
        data = _data(source, payload)
        return MembershipRoleChanged(
            event_type,
            occurred_at,
            external_membership_id=_required_id(data),
            role=TenantRole.from_identity_role(data.get("role")),
        )
    if event_type == "organizationMembership.deleted":
        return MembershipRemoved(event_type, occurred_at, _required_id(_data(source, payload)))
    return UnknownEvent(event_type, occurred_at, source=source, data=_as_dict(payload.get("data")))


_PARSERS: dict[WebhookSource, Callable[[str, Mapping[str, Any]], WebhookEvent]] = {
    WebhookSource.PAYMENTS: _parse_payments,
    WebhookSource.CRM: _parse_crm,
    WebhookSource.IDENTITY: _parse_identity,
}


def parse_event(source: WebhookSource, payload: Mapping[str, Any]) -> WebhookEvent:
    """Parse a verified webhook payload into its typed event variant.

    Raises:
        MalformedWebhookException: Known event type with missing required fields.
    """
    return _PARSERS[source](event_type_of(source, payload), payload)
