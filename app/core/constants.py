"""Core constants: cache key prefixes and shared literal values.

Single source of truth for cache key structure.
"""

# Redis key prefixes (used with :id)
CACHE_PREFIX_TENANT = "tenant"
CACHE_PREFIX_TENANT_BY_ORG = "tenant_org"

# In-process single-flight key prefix (refresh:<category>:<tenant>:<user>)
REFRESH_KEY_PREFIX = "refresh"

# Delimiter for composite keys
CACHE_KEY_SEP = ":"

# Invoices kept in the billing cache when webhooks prepend new ones
MAX_CACHED_INVOICES = 50

# Header names on inbound webhooks
WEBHOOK_SIGNATURE_HEADER = "X-Webhook-Signature"
WEBHOOK_ID_HEADER = "X-Webhook-Id"
SVIX_ID_HEADER = "svix-id"
SVIX_TIMESTAMP_HEADER = "svix-timestamp"
SVIX_SIGNATURE_HEADER = "svix-signature"

# Header names on outbound upstream calls
SERVICE_NAME_HEADER = "x-service-name"
TENANT_ID_HEADER = "x-tenant-id"
TENANT_SLUG_HEADER = "x-tenant-slug"

PERSONAL_TENANT_SLUG_PREFIX = "personal-"
