"""
Mini-program storage backend / 小程序存储后端

Exposes the mini-program's synchronous storage API through the async
backend contract.
"""

import json
from typing import Any, List, Optional

from lianyu.exceptions import BackendUnavailableError
from lianyu.storage.backends.base import KeyValueBackend


class WxStorageBackend(KeyValueBackend):
    """Backend over a host object implementing the ``*_storage_sync`` calls."""

    name = "wxStorage"

    def __init__(self, wx: Optional[Any]):
        self.wx = wx

    def _api(self) -> Any:
        if self.wx is None:
            raise BackendUnavailableError("Mini-program storage API is not available")
        return self.wx

    async def get(self, key: str) -> Optional[str]:
        api = self._api()
        value = api.get_storage_sync(key)
        if value is None:
            return None
        # The mini-program answers "" for a missing key, so "" needs the key list.
        if value == "":
            info = api.get_storage_info_sync() or {}
            if key not in (info.get("keys") or []):
                return None
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)

    async def set(self, key: str, value: str) -> None:
        self._api().set_storage_sync(key, value)

    async def delete(self, key: str) -> None:
        self._api().remove_storage_sync(key)

    async def list_keys(self) -> List[str]:
        info = self._api().get_storage_info_sync() or {}
        return list(info.get("keys") or [])
