"""Cache protocol for the repository layer (DIP)."""

from typing import Any, Protocol


class CacheProtocol(Protocol):
    """Protocol for lookup cache backends (e.g. Redis)."""

    def is_available(self) -> bool:
        """Return True if cache is connected and usable."""
        ...

    async def get(self, key: str) -> Any:
        """Return cached value or None."""
        ...

    async def set(self, key: str, value: Any, ttl: int | None = None) -> Any:
        """Store value with optional TTL in seconds."""
        ...

    async def delete(self, key: str) -> Any:
        """Remove key from cache."""
        ...
