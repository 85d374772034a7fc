"""ID and value generators (CUID, tenant slugs)."""

import re

from cuid2 import cuid_wrapper

from app.core.constants import PERSONAL_TENANT_SLUG_PREFIX

cuid_generator = cuid_wrapper()

_SLUG_INVALID = re.compile(r"[^a-z0-9-]+")


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier (CUID2).

    Returns:
        A new CUID string.
    """
    result = cuid_generator()
    if not isinstance(result, str):
        raise TypeError(
            f"Expected str from cuid_generator, got {type(result).__name__}"
        )
    return result


def personal_tenant_slug(user_id: str) -> str:
    """Slug of a user's personal tenant, derived from the full internal user id.

    The full id (not a prefix) is used so two users can never collide.
    """
    return PERSONAL_TENANT_SLUG_PREFIX + _SLUG_INVALID.sub("-", user_id.lower())


def org_fallback_slug(external_org_id: str) -> str:
    """Slug for an organization whose payload carries none."""
    return "org-" + _SLUG_INVALID.sub("-", external_org_id.lower())
