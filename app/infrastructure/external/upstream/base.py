"""Base HTTP client for upstream services: bearer auth, timeout, retry with backoff.

Transient failures (timeouts, connection errors, 5xx, 429) are retried
with exponential backoff (delay * 2**attempt). Other 4xx responses fail
immediately, as do undecodable bodies and redirect loops. Every failure
surfaces as an UpstreamException subclass.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from app.core.constants import SERVICE_NAME_HEADER, TENANT_ID_HEADER, TENANT_SLUG_HEADER
from app.infrastructure.exceptions import (
    UpstreamAuthError,
    UpstreamException,
    UpstreamHTTPError,
    UpstreamResponseError,
    UpstreamTimeoutError,
)
from app.shared.telemetry.tracing import add_span_attributes, traced

logger = logging.getLogger(__name__)


class BaseUpstreamClient:
    """Shared request logic for the payments and CRM clients.

    Args:
        service: Name used in logs and errors (e.g. 'payments').
        base_url: Service base URL (no trailing slash needed).
        api_key: Bearer token; empty means mock mode.
        http_client: Shared httpx.AsyncClient (owned by the app lifespan).
        caller_name: Sent as x-service-name.
        timeout: Per-attempt timeout in seconds.
        max_retries: Retries after the first attempt for transient errors.
        retry_delay: Initial backoff in seconds.
        mock: Serve canned data instead of calling the service.
    """

    def __init__(
        self,
        service: str,
        base_url: str,
        api_key: str,
        http_client: httpx.AsyncClient,
        *,
        caller_name: str = "accounts",
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        mock: bool = False,
    ) -> None:
        self.service = service
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.http = http_client
        self.caller_name = caller_name
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.mock = mock or not api_key
        if self.mock:
            logger.info("%s client running in mock mode", service)

    def _headers(self, tenant_id: str | None, tenant_slug: str | None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            SERVICE_NAME_HEADER: self.caller_name,
        }
        if tenant_id:
            headers[TENANT_ID_HEADER] = tenant_id
        if tenant_slug:
            headers[TENANT_SLUG_HEADER] = tenant_slug
        return headers

    async def _sleep(self, attempt: int) -> None:
        await asyncio.sleep(self.retry_delay * (2**attempt))

    @traced("upstream.request")
    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        tenant_id: str | None = None,
        tenant_slug: str | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None for empty bodies).

        Raises:
            UpstreamTimeoutError: Timeout or connection failure after all retries.
            UpstreamAuthError: 401/403 (never retried).
            UpstreamHTTPError: Other non-2xx status (5xx/429 after all retries).
            UpstreamResponseError: 2xx with a body that is not JSON, a body that
                cannot be decoded, or too many redirects (never retried).
        """
        url = f"{self.base_url}{path}"
        headers = self._headers(tenant_id, tenant_slug)
        add_span_attributes(**{"upstream.service": self.service, "http.method": method, "http.path": path})
        last_error: UpstreamException | None = None

        for attempt in range(self.max_retries + 1):
            if attempt:
                await self._sleep(attempt - 1)
            try:
                response = await self.http.request(
                    method, url, params=params, json=json, headers=headers, timeout=self.timeout
                )
            except httpx.TimeoutException:
                last_error = UpstreamTimeoutError(self.service, path, f"timeout after {self.timeout}s")
            except httpx.TransportError as exc:
                last_error = UpstreamTimeoutError(self.service, path, type(exc).__name__)
            except httpx.RequestError as exc:
                # Undecodable body (bad Content-Encoding) or redirect loop: not transient.
                raise UpstreamResponseError(self.service, path, type(exc).__name__) from exc
            else:
                if response.is_success:
                    add_span_attributes(**{"http.status_code": response.status_code, "upstream.attempts": attempt + 1})
                    return self._decode(response, path)
                if response.status_code in (401, 403):
                    raise UpstreamAuthError(self.service, path, response.status_code, response.text)
                last_error = UpstreamHTTPError(self.service, path, response.status_code, response.text)
                if not last_error.retryable:
                    raise last_error

            if attempt < self.max_retries:
                logger.warning(
                    "%s %s %s failed (attempt %d/%d): %s; retrying",
                    self.service,
                    method,
                    path,
                    attempt + 1,
                    self.max_retries + 1,
                    last_error.message,
                )

        if last_error is None:
            raise ValueError(f"{self.service} client needs max_retries >= 0, got {self.max_retries}")
        raise last_error

    def _decode(self, response: httpx.Response, path: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamResponseError(self.service, path, "body is not valid JSON") from exc
