"""Upstream service clients (payments, CRM)."""

import httpx

from app.core.config import Settings
from app.infrastructure.external.upstream.base import BaseUpstreamClient
from app.infrastructure.external.upstream.crm import CrmClient
from app.infrastructure.external.upstream.payments import PaymentsClient


def build_upstream_clients(
    settings: Settings, http_client: httpx.AsyncClient
) -> tuple[PaymentsClient, CrmClient]:
    """Create the payments and CRM clients from settings on a shared HTTP client."""
    common = {
        "caller_name": settings.service_name,
        "timeout": settings.upstream_timeout_seconds,
        "max_retries": settings.upstream_max_retries,
        "retry_delay": settings.upstream_retry_delay_seconds,
        "mock": settings.mock_external_services,
    }
    payments = PaymentsClient(
        "payments",
        settings.payments_api_url,
        settings.payments_api_key.get_secret_value(),
        http_client,
        **common,
    )
    crm = CrmClient(
        "crm",
        settings.crm_api_url,
        settings.crm_api_key.get_secret_value(),
        http_client,
        default_tenant_slug=settings.crm_tenant_slug,
        **common,
    )
    return payments, crm


__all__ = ["BaseUpstreamClient", "CrmClient", "PaymentsClient", "build_upstream_clients"]
