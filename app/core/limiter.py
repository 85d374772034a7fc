"""Rate limiter instance for SlowAPI.

Shared so both main (app.state.limiter) and route modules can use the
same instance without circular imports. Limit strings come from settings
and are read when a request is checked, not at import.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import get_settings

limiter = Limiter(key_func=get_remote_address)


def _webhook_limit() -> str:
    return get_settings().webhook_rate_limit


def _read_limit() -> str:
    return get_settings().read_rate_limit


limit_webhooks = limiter.limit(_webhook_limit)
limit_reads = limiter.limit(_read_limit)
