"""Cache: Redis lookup cache and key builders."""

from app.infrastructure.cache.cache_protocol import CacheProtocol
from app.infrastructure.cache.keys import tenant_key, tenant_org_key
from app.infrastructure.cache.redis_cache import CacheService

__all__ = [
    "CacheProtocol",
    "CacheService",
    "tenant_key",
    "tenant_org_key",
]
