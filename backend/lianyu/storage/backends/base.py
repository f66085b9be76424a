"""
Key-value backend interface / 键值存储后端接口
"""

from abc import ABC, abstractmethod
from typing import List, Optional


class KeyValueBackend(ABC):
    """
    Async key-value backend over one physical store.

    Backends see physical (already prefixed) keys and raw string values.
    They raise on failure; converting failures into result values is the
    storage adapter's job.
    """

    name: str = "backend"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the raw value for key, or None when the key does not exist."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store the raw value under key."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete key if present."""

    @abstractmethod
    async def list_keys(self) -> List[str]:
        """List every physical key in the store, including other tenants' keys."""
