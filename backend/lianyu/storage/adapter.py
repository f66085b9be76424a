# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  统一存储适配器 - 为三种物理存储提供同一个异步键值接口，
  负责命名空间前缀与透明的 JSON 序列化。
  Unified Storage Adapter - one async key/value interface over the three
  physical stores, applying the namespace prefix and transparent JSON
  (de)serialization.

错误语义 / Failure semantics:
  适配器是最后一道防线：任何后端异常都在边界处被捕获，转换为
  False / None / [] 以及一个带类型的 StorageResult，并记录日志。
  The adapter is the last line of defence: every backend exception is caught
  at the boundary and turned into False / None / [] plus a typed
  StorageResult, and logged.
"""

import json
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from lianyu.exceptions import ConfigurationError, LianyuError, SerializationError, StorageError
from lianyu.platform import HostBridges, PlatformCapabilities
from lianyu.storage.backends import KeyValueBackend, create_backend
from lianyu.storage.results import StorageResult, StoredEntry
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)

ErrorCallback = Callable[[StorageResult], None]


def encode_value(value: Any) -> str:
    """
    序列化存储值

    Strings pass through unchanged; anything else is JSON-encoded.

    Raises:
        SerializationError: 值无法编码为 JSON / Value is not JSON-serializable
    """
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Value of type {type(value).__name__} is not JSON-serializable: {exc}") from exc


def decode_value(raw: str) -> Tuple[Any, str]:
    """Decode stored text, falling back to the raw string. Returns ``(value, raw_encoding)``."""
    try:
        return json.loads(raw), "json"
    except ValueError:
        return raw, "string"


class StorageAdapter:
    """
    统一存储适配器 - 前缀命名空间 + JSON 透明序列化

    Prefix-namespaced key/value adapter over a single backend.

    The backend is chosen once (see :meth:`from_capabilities`) and every
    operation for the adapter's lifetime routes to it. Public methods never
    raise: ``set_item``/``remove_item``/``clear`` answer ``bool``,
    ``get_item`` answers the decoded value or ``None``, ``keys`` answers a
    list. The ``*_result`` variants return a :class:`StorageResult` carrying
    the failure cause.

    Attributes:
        backend (KeyValueBackend): 物理存储 / Physical store
        prefix (str): 命名空间前缀 / Namespace prefix
        last_error (Optional[LianyuError]): 最近一次失败 / Most recent failure
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        prefix: str,
        on_error: Optional[ErrorCallback] = None,
    ):
        if not prefix:
            raise ConfigurationError("Storage prefix must not be empty")
        self.backend = backend
        self.prefix = prefix
        self.on_error = on_error
        self.last_error: Optional[LianyuError] = None

    @classmethod
    def from_capabilities(
        cls,
        capabilities: PlatformCapabilities,
        bridges: Optional[HostBridges] = None,
        data_dir: Optional[Path] = None,
        storage_cfg: Optional[dict] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> "StorageAdapter":
        """Build the adapter for the platform selected at startup."""
        backend = create_backend(capabilities, bridges, data_dir, storage_cfg)
        return cls(backend, capabilities.prefix, on_error=on_error)

    def _full_key(self, key: str) -> str:
        return self.prefix + key

    def _fail(self, operation: str, key: Optional[str], exc: Exception) -> StorageResult:
        if isinstance(exc, LianyuError):
            error = exc
        else:
            error = StorageError(f"{self.backend.name} {operation} failed: {exc}")
            error.__cause__ = exc

        result = StorageResult(ok=False, operation=operation, key=key, error=error)
        self.last_error = error
        logger.error("Storage %s error (key=%s, backend=%s): %s", operation, key, self.backend.name, error)
        if self.on_error is not None:
            try:
                self.on_error(result)
            except Exception as callback_exc:
                logger.warning("Storage error callback raised: %s", callback_exc)
        return result

    async def _run(
        self,
        operation: str,
        key: Optional[str],
        action: Callable[[], Awaitable[Any]],
    ) -> StorageResult:
        try:
            value = await action()
        except Exception as exc:
            return self._fail(operation, key, exc)
        return StorageResult(ok=True, operation=operation, key=key, value=value)

    # ========================================================================
    # 带类型结果的接口 / Typed-result interface
    # ========================================================================

    async def set_item_result(self, key: str, value: Any) -> StorageResult:
        async def action():
            await self.backend.set(self._full_key(key), encode_value(value))
            return True

        return await self._run("setItem", key, action)

    async def get_item_result(self, key: str) -> StorageResult:
        """
        读取并解码 / Read and decode.

        ``value`` is a :class:`StoredEntry`, or ``None`` when the key is absent.
        """
        async def action():
            raw = await self.backend.get(self._full_key(key))
            if raw is None:
                return None
            value, encoding = decode_value(raw)
            return StoredEntry(key=key, value=value, raw_encoding=encoding)

        return await self._run("getItem", key, action)

    async def remove_item_result(self, key: str) -> StorageResult:
        async def action():
            await self.backend.delete(self._full_key(key))
            return True

        return await self._run("removeItem", key, action)

    async def clear_result(self) -> StorageResult:
        """Delete only the physical keys carrying this adapter's prefix."""
        async def action():
            removed = 0
            for physical_key in await self.backend.list_keys():
                if physical_key.startswith(self.prefix):
                    await self.backend.delete(physical_key)
                    removed += 1
            logger.debug("Cleared %d keys with prefix %s", removed, self.prefix)
            return removed

        return await self._run("clear", None, action)

    async def keys_result(self) -> StorageResult:
        async def action():
            return [
                physical_key[len(self.prefix):]
                for physical_key in await self.backend.list_keys()
                if physical_key.startswith(self.prefix)
            ]

        return await self._run("keys", None, action)

    # ========================================================================
    # 公共接口 / Public interface
    # ========================================================================

    async def set_item(self, key: str, value: Any) -> bool:
        """存储数据 / Store a value under the namespaced key."""
        return (await self.set_item_result(key, value)).ok

    async def get_item(self, key: str) -> Any:
        """获取数据 / Decoded value, or None when absent or on error."""
        result = await self.get_item_result(key)
        if not result.ok or result.value is None:
            return None
        return result.value.value

    async def remove_item(self, key: str) -> bool:
        """删除数据 / Delete the namespaced key."""
        return (await self.remove_item_result(key)).ok

    async def clear(self) -> bool:
        """清空带前缀的数据 / Remove every key carrying the prefix, nothing else."""
        return (await self.clear_result()).ok

    async def keys(self) -> List[str]:
        """获取所有键（去除前缀）/ Logical keys with the prefix stripped."""
        result = await self.keys_result()
        return result.value if result.ok else []
