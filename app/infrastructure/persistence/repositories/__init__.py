"""Persistence repositories. Re-exports for dependency injection."""

from app.infrastructure.persistence.repositories.base import BaseRepository
from app.infrastructure.persistence.repositories.cache_store import SqlCacheStore
from app.infrastructure.persistence.repositories.membership_repo import (
    MembershipRepository,
    PreferencesRepository,
)
from app.infrastructure.persistence.repositories.tenant_repo import TenantRepository
from app.infrastructure.persistence.repositories.unit_of_work import SqlAlchemyUnitOfWork
from app.infrastructure.persistence.repositories.user_repo import UserRepository
from app.infrastructure.persistence.repositories.webhook_event_repo import (
    WebhookEventRepository,
)

__all__ = [
    "BaseRepository",
    "MembershipRepository",
    "PreferencesRepository",
    "SqlAlchemyUnitOfWork",
    "SqlCacheStore",
    "TenantRepository",
    "UserRepository",
    "WebhookEventRepository",
]
