"""
Native-bridge storage backend / 原生桥存储后端

Wraps the Capacitor storage plugin, whose calls are already asynchronous and
answer with small dict envelopes (``{"value": ...}``, ``{"keys": [...]}``).
"""

from typing import Any, List, Optional

from lianyu.exceptions import BackendUnavailableError
from lianyu.storage.backends.base import KeyValueBackend


class CapacitorStorageBackend(KeyValueBackend):
    """Backend over an async plugin with ``set/get/remove/keys`` coroutines."""

    name = "capacitorStorage"

    def __init__(self, plugin: Optional[Any]):
        self.plugin = plugin

    def _plugin(self) -> Any:
        if self.plugin is None:
            raise BackendUnavailableError("Native storage plugin is not available")
        return self.plugin

    async def get(self, key: str) -> Optional[str]:
        result = await self._plugin().get(key=key)
        return (result or {}).get("value")

    async def set(self, key: str, value: str) -> None:
        await self._plugin().set(key=key, value=value)

    async def delete(self, key: str) -> None:
        await self._plugin().remove(key=key)

    async def list_keys(self) -> List[str]:
        result = await self._plugin().keys()
        return list((result or {}).get("keys") or [])
