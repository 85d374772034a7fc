"""DTOs for user use cases (no dependency on ORM)."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class UserResult:
    """User read-model (result of get_by_id, get_by_external_id, upsert)."""

    id: str
    external_user_id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    platform_role: str = "user"
    metadata: dict[str, Any] = field(default_factory=dict)
    deleted_at: datetime | None = None

    @property
    def display_first_name(self) -> str:
        """First name, or the local part of the email when unknown."""
        return self.first_name or self.email.split("@", 1)[0]


@dataclass(frozen=True)
class UserUpsert:
    """Identity fields to create or refresh a user with."""

    external_user_id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SessionClaims:
    """Verified session token claims consumed by tenant resolution.

    sub is the identity-provider subject id; org_id is the organization
    selected in the identity provider, if any.
    """

    sub: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    org_id: str | None = None
