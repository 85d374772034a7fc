"""Domain exceptions for the accounts service.

Defines domain-level exceptions that represent business rule violations.
These exceptions are independent of infrastructure concerns. Presentation
layer maps them to HTTP responses in exception handlers.
"""

from typing import Any


class AccountsException(Exception):
    """Base exception for all accounts service errors.

    All custom exceptions should inherit from this class to allow
    consistent error handling and logging. Presentation layer maps
    these to HTTP responses using message, error_code, and details.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON error responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(AccountsException):
    """Raised when input validation fails (e.g. invalid format or range)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(AccountsException):
    """Raised when authentication fails (e.g. missing or invalid session token)."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, "AUTHENTICATION_ERROR")


class AuthorizationException(AccountsException):
    """Raised when the user may not act on the requested tenant or resource."""

    def __init__(self, message: str = "Permission denied", **details: Any) -> None:
        super().__init__(message, "PERMISSION_DENIED", dict(details))


class TenantNotFoundException(AccountsException):
    """Raised when a requested tenant is not found."""

    def __init__(self, tenant_id: str) -> None:
        """Initialize with the missing tenant identifier.

        Args:
            tenant_id: The tenant ID that was not found.
        """
        super().__init__(
            f"Tenant not found: {tenant_id}",
            "TENANT_NOT_FOUND",
            {"tenant_id": tenant_id},
        )


class ResourceNotFoundException(AccountsException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Type of resource (e.g. 'user', 'entitlement').
            resource_id: The ID that was not found.
        """
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class MissingTenantContextException(AccountsException):
    """Raised when a tenant-scoped operation is called without tenant or user id.

    This is a programming error on the calling side, never a user error.
    """

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Tenant context missing for {operation}",
            "TENANT_CONTEXT_MISSING",
            {"operation": operation},
        )


class PersonalTenantExistsException(AccountsException):
    """Raised by persistence when a personal tenant for the owner already exists.

    Signals a lost creation race; the resolver re-reads the winner's tenant.
    """

    def __init__(self, owner_user_id: str) -> None:
        super().__init__(
            f"Personal tenant already exists for user {owner_user_id}",
            "PERSONAL_TENANT_EXISTS",
            {"owner_user_id": owner_user_id},
        )


class PersonalTenantProvisioningException(AccountsException):
    """Raised when a personal tenant can be neither created nor found."""

    def __init__(self, user_id: str, reason: str) -> None:
        super().__init__(
            f"Could not provision personal tenant for user {user_id}",
            "PERSONAL_TENANT_PROVISIONING_FAILED",
            {"user_id": user_id, "reason": reason},
        )


class InvalidWebhookSignatureException(AccountsException):
    """Raised when a webhook signature is missing, stale, or does not match."""

    def __init__(self, source: str, reason: str = "Invalid signature") -> None:
        super().__init__(
            reason,
            "INVALID_WEBHOOK_SIGNATURE",
            {"source": source},
        )


class WebhookNotConfiguredException(AccountsException):
    """Raised when a webhook arrives for a source without a configured secret."""

    def __init__(self, source: str) -> None:
        super().__init__(
            f"Webhook secret not configured for {source}",
            "WEBHOOK_NOT_CONFIGURED",
            {"source": source},
        )


class MalformedWebhookException(AccountsException):
    """Raised when a verified webhook body cannot be parsed into a known shape."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(
            f"Malformed {source} webhook: {reason}",
            "MALFORMED_WEBHOOK",
            {"source": source, "reason": reason},
        )


class WebhookProcessingException(AccountsException):
    """Raised when a verified, recorded webhook fails during processing.

    The event record is already marked failed when this propagates.
    """

    def __init__(self, event_id: str, reason: str) -> None:
        super().__init__(
            "Webhook processing failed",
            "WEBHOOK_PROCESSING_FAILED",
            {"event_id": event_id, "reason": reason},
        )
