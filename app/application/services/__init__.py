"""Application services: cache refresh, single flight, webhooks, tenant resolution, profile updates."""

from app.application.services.background_tasks import BackgroundTaskRunner
from app.application.services.cache_refresh_service import (
    CacheRefreshService,
    CategoryPolicy,
    FetchContext,
    default_payload,
    refresh_key,
)
from app.application.services.profile_service import ProfileService
from app.application.services.single_flight import SingleFlight
from app.application.services.staleness import is_stale
from app.application.services.tenant_resolution_service import TenantResolutionService
from app.application.services.webhook_handlers import WebhookHandlers
from app.application.services.webhook_reconciler import WebhookReconciler

__all__ = [
    "BackgroundTaskRunner",
    "CacheRefreshService",
    "CategoryPolicy",
    "FetchContext",
    "ProfileService",
    "SingleFlight",
    "TenantResolutionService",
    "WebhookHandlers",
    "WebhookReconciler",
    "default_payload",
    "is_stale",
    "refresh_key",
]
