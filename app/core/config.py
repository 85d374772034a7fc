"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Required fields (DATABASE_URL, SECRET_KEY) are
validated at load time.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment and .env.

    All settings are optional with defaults except those validated in
    validate_required (database_url, secret_key, and the mock/production
    combination).
    """

    # App
    app_name: str = "accounts"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database
    database_url: str = ""
    database_echo: bool = False
    # Optional pool/driver overrides (None = use defaults in database.py)
    db_pool_size: int | None = None
    db_max_overflow: int | None = None
    db_command_timeout: int | None = None

    # Session tokens
    secret_key: SecretStr = SecretStr("")
    algorithm: str = "HS256"

    # CORS
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"

    # Tenant: explicit active-tenant override sent by the frontend
    tenant_header_name: str = "X-Active-Tenant-Id"

    # Request / middleware
    request_id_header: str = "X-Request-ID"
    max_request_body_bytes: int = 1_048_576
    log_level: str | None = None

    # Rate limits (slowapi limit strings)
    webhook_rate_limit: str = "300/minute"
    read_rate_limit: str = "120/minute"

    # Upstream services
    service_name: str = "accounts"
    payments_api_url: str = "http://localhost:3001/api/v1"
    payments_api_key: SecretStr = SecretStr("")
    crm_api_url: str = "http://localhost:3002/api/v1"
    crm_api_key: SecretStr = SecretStr("")
    crm_tenant_slug: str = "default"
    # Serve canned upstream data; also implied per client when its API key is empty.
    mock_external_services: bool = False
    upstream_timeout_seconds: float = 10.0
    upstream_max_retries: int = 3
    upstream_retry_delay_seconds: float = 1.0

    # Webhooks. Payments/CRM: X-Webhook-Signature: sha256=<hex(hmac_sha256(secret, body))>.
    # Identity provider: Svix-style headers with a whsec_ secret.
    webhook_secret_payments: SecretStr | None = None
    webhook_secret_crm: SecretStr | None = None
    identity_webhook_secret: SecretStr | None = None
    webhook_timestamp_tolerance_seconds: int = 300

    # Cache reconciliation (seconds)
    cache_ttl_profile_seconds: int = 300
    cache_ttl_billing_seconds: int = 60
    cache_ttl_entitlements_seconds: int = 300
    # Write an empty row when the very first fetch for a key fails.
    cache_placeholder_on_failure: bool = True
    # Reject cache writes carrying an older timestamp than the stored row.
    cache_reject_out_of_order_writes: bool = False

    # Redis Cache (tenant lookups by external org id)
    redis_enabled: bool = True
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None
    redis_max_connections: int = 10
    cache_ttl_tenants: int = 900

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_required(self) -> "Settings":
        """Validate required env and unsafe combinations.

        - DATABASE_URL and SECRET_KEY are required.
        - Mock upstream data is refused in production.
        """
        if not self.database_url:
            raise ValueError(
                "DATABASE_URL is required. Set in environment or .env file."
            )
        if not self.secret_key.get_secret_value():
            raise ValueError(
                "SECRET_KEY is required. Generate with: openssl rand -hex 32."
            )
        if self.environment == "production" and self.mock_external_services:
            raise ValueError(
                "MOCK_EXTERNAL_SERVICES must not be enabled when ENVIRONMENT is 'production'."
            )
        if self.upstream_max_retries < 0:
            raise ValueError("UPSTREAM_MAX_RETRIES must be >= 0")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
