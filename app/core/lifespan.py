"""Application lifespan: startup and shutdown.

Single place for all startup/shutdown logic. Used by main.py; no
business logic here, only wiring of infrastructure (HTTP client,
upstream clients, cache store, refresh coordinator, Redis, DB engine).
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from app.application.services import BackgroundTaskRunner, CacheRefreshService, SingleFlight
from app.core.config import get_settings
from app.infrastructure.external.upstream import build_upstream_clients
from app.infrastructure.persistence.database import dispose_engine, get_session_factory
from app.infrastructure.persistence.repositories import SqlCacheStore, WebhookEventRepository
from app.infrastructure.security import build_webhook_verifiers
from app.shared.telemetry import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: logging, shared HTTP client and upstream clients,
    cache store and refresh service, Redis (if enabled). Shutdown order:
    background refreshes cancelled, HTTP client closed, Redis
    disconnected, SQL engine disposed.
    """
    settings = get_settings()
    setup_logging()

    # ---- Startup ----
    # One pooled client for all upstream calls; per-request timeouts are set by the clients.
    app.state.http_client = httpx.AsyncClient()
    payments, crm = build_upstream_clients(settings, app.state.http_client)
    app.state.payments_client = payments
    app.state.crm_client = crm

    session_factory = get_session_factory()
    app.state.cache_store = SqlCacheStore(session_factory)
    app.state.webhook_events = WebhookEventRepository(session_factory)
    app.state.single_flight = SingleFlight()
    app.state.refresh_service = CacheRefreshService.from_settings(
        app.state.cache_store, payments, crm, settings, app.state.single_flight
    )
    app.state.background_tasks = BackgroundTaskRunner()
    app.state.webhook_verifiers = build_webhook_verifiers(settings)
    unconfigured = [s.value for s, v in app.state.webhook_verifiers.items() if v is None]
    if unconfigured:
        logger.warning("Webhook secrets not configured for: %s", ", ".join(unconfigured))
    if payments.mock or crm.mock:
        logger.warning("Upstream services running in mock mode")

    if settings.redis_enabled:
        from app.infrastructure.cache.redis_cache import CacheService

        cache = CacheService()
        await cache.connect()
        app.state.cache = cache
    else:
        app.state.cache = None

    yield

    # ---- Shutdown ----
    await app.state.background_tasks.shutdown()

    if getattr(app.state, "http_client", None) is not None:
        await app.state.http_client.aclose()
        app.state.http_client = None
        logger.info("Upstream HTTP client closed")

    if getattr(app.state, "cache", None) is not None:
        await app.state.cache.disconnect()
        logger.info("Cache disconnected")

    await dispose_engine()
