"""Cache key builders. Single place for key format.

Key components must not contain CACHE_KEY_SEP to avoid ambiguous or
colliding keys.
"""

from app.core.constants import CACHE_KEY_SEP, CACHE_PREFIX_TENANT, CACHE_PREFIX_TENANT_BY_ORG


def _validate_key_component(value: str, name: str) -> None:
    """Raise ValueError if value contains the cache key separator."""
    if CACHE_KEY_SEP in value:
        raise ValueError(
            f"Cache key component {name!r} must not contain separator {CACHE_KEY_SEP!r}"
        )


def tenant_key(tenant_id: str) -> str:
    """Cache key for tenant by ID."""
    _validate_key_component(tenant_id, "tenant_id")
    return f"{CACHE_PREFIX_TENANT}{CACHE_KEY_SEP}id{CACHE_KEY_SEP}{tenant_id}"


def tenant_org_key(external_org_id: str) -> str:
    """Cache key for tenant by identity-provider organization id."""
    _validate_key_component(external_org_id, "external_org_id")
    return f"{CACHE_PREFIX_TENANT_BY_ORG}{CACHE_KEY_SEP}{external_org_id}"
