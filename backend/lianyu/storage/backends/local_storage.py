# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  本地存储后端 - 浏览器 localStorage 的等价实现：扁平的字符串键值空间，
  可选持久化为单个 JSON 文件，并带有存储配额。
  Local storage backend - browser localStorage equivalent: a flat string
  namespace, optionally persisted as one JSON file, with a storage quota.
"""

import json
import os
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles

from lianyu.exceptions import QuotaExceededError, StorageError
from lianyu.storage.backends.base import KeyValueBackend
from lianyu.storage.file_lock import AsyncFileLock
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)

# Browsers allow roughly 5 MiB of UTF-16 characters per origin.
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


class LocalStorageBackend(KeyValueBackend):
    """
    localStorage 等价后端

    Flat string-to-string store shared by every tenant using the same file.

    The whole namespace is kept in memory and, when ``path`` is set, written
    back to disk after each mutation. Size accounting follows browsers:
    key length plus value length in characters.
    """

    name = "localStorage"

    def __init__(
        self,
        path: Optional[Path] = None,
        quota_bytes: int = DEFAULT_QUOTA_BYTES,
        locks: Optional[AsyncFileLock] = None,
        encoding: str = "utf-8",
    ):
        self.path = Path(path) if path else None
        self.quota_bytes = quota_bytes
        self.encoding = encoding
        self._locks = locks or AsyncFileLock()
        self._data: Dict[str, str] = {}
        self._loaded = self.path is None

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        if self.path.exists():
            async with aiofiles.open(self.path, "r", encoding=self.encoding) as f:
                raw = await f.read()
            try:
                payload = json.loads(raw) if raw.strip() else {}
            except ValueError as exc:
                raise StorageError(f"Corrupted local storage file {self.path}: {exc}") from exc
            if not isinstance(payload, dict):
                raise StorageError(f"Local storage file {self.path} is not a JSON object")
            self._data = {str(k): str(v) for k, v in payload.items()}
        self._loaded = True

    def _used_bytes(self, data: Dict[str, str]) -> int:
        return sum(len(k) + len(v) for k, v in data.items())

    async def _atomic_write(self, data: Dict[str, str]) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        payload = json.dumps(data, ensure_ascii=False)
        async with aiofiles.open(tmp_path, "w", encoding=self.encoding) as f:
            await f.write(payload)
        os.replace(str(tmp_path), str(self.path))

    async def get(self, key: str) -> Optional[str]:
        await self._ensure_loaded()
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._locks.lock(self.path or "local-storage:memory"):
            await self._ensure_loaded()
            updated = dict(self._data)
            updated[key] = value
            used = self._used_bytes(updated)
            if used > self.quota_bytes:
                raise QuotaExceededError(
                    f"Setting '{key}' exceeds the local storage quota "
                    f"({used} > {self.quota_bytes} bytes)"
                )
            await self._atomic_write(updated)
            self._data = updated

    async def delete(self, key: str) -> None:
        async with self._locks.lock(self.path or "local-storage:memory"):
            await self._ensure_loaded()
            if key not in self._data:
                return
            updated = dict(self._data)
            del updated[key]
            await self._atomic_write(updated)
            self._data = updated

    async def list_keys(self) -> List[str]:
        await self._ensure_loaded()
        return list(self._data.keys())
