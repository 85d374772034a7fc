"""Infrastructure exceptions for upstream service calls.

Upstream errors extend AccountsException so presentation can map them
to HTTP responses consistently. The cache refresh path catches
UpstreamException and falls back to cached data instead.
"""

from app.domain.exceptions import AccountsException


class UpstreamException(AccountsException):
    """Base exception for payments/CRM calls."""

    retryable: bool = False


class UpstreamTimeoutError(UpstreamException):
    """Request exceeded the configured timeout or the connection failed."""

    retryable = True

    def __init__(self, service: str, path: str, reason: str = "timeout") -> None:
        super().__init__(
            f"{service} request to {path} failed: {reason}",
            "UPSTREAM_UNAVAILABLE",
            {"service": service, "path": path, "reason": reason},
        )


class UpstreamHTTPError(UpstreamException):
    """Upstream answered with a non-success status."""

    def __init__(self, service: str, path: str, status_code: int, body: str = "") -> None:
        super().__init__(
            f"{service} returned HTTP {status_code} for {path}",
            "UPSTREAM_ERROR",
            {"service": service, "path": path, "status_code": status_code, "body": body[:500]},
        )
        self.status_code = status_code
        self.retryable = status_code >= 500 or status_code == 429


class UpstreamAuthError(UpstreamHTTPError):
    """Upstream rejected our credentials (401/403). Never retried."""


class UpstreamResponseError(UpstreamException):
    """Upstream answered 2xx with a body that is not the expected JSON."""

    def __init__(self, service: str, path: str, reason: str) -> None:
        super().__init__(
            f"Invalid response from {service} for {path}",
            "UPSTREAM_BAD_RESPONSE",
            {"service": service, "path": path, "reason": reason},
        )
