# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  快照缓存 - 按缓存代际分区的网络响应快照，键为请求标识（方法 + URL）
  Snapshot cache - network-response snapshots partitioned by cache generation,
  keyed by request identity (method + URL).

实现方式 / Implementation:
  每个代际在内存中保存一个字典；指定 root 时同时写入磁盘：
  root/<generation>/<sha256>.json（元数据）与 <sha256>.body（响应体）。
  删除代际即删除整个目录，这是唯一的淘汰机制。

  Each generation is an in-memory dict; with a root directory it is also
  written through to root/<generation>/<sha256>.json + <sha256>.body.
  Deleting a generation removes the whole directory; this is the only eviction.
"""

import asyncio
import hashlib
import json
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import aiofiles
import httpx

from lianyu.storage.file_lock import AsyncFileLock
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)

Fetcher = Callable[[httpx.Request], Awaitable[httpx.Response]]


def request_identity(method: str, url: str) -> str:
    """Cache key for a request: upper-cased method plus the full URL."""
    return f"{method.upper()} {url}"


def _identity_of(request: httpx.Request) -> str:
    return request_identity(request.method, str(request.url))


@dataclass
class CachedResponse:
    """Byte-exact snapshot of a network response."""

    url: str
    method: str
    status_code: int
    headers: List[Tuple[str, str]]
    content: bytes
    stored_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_response(cls, request: httpx.Request, response: httpx.Response) -> "CachedResponse":
        """Snapshot an already-read response."""
        return cls(
            url=str(request.url),
            method=request.method.upper(),
            status_code=response.status_code,
            headers=list(response.headers.multi_items()),
            content=response.content,
        )

    def to_response(self, request: Optional[httpx.Request] = None) -> httpx.Response:
        # Body is already decoded, so drop headers describing the wire encoding.
        headers = [
            (k, v) for k, v in self.headers
            if k.lower() not in ("content-encoding", "transfer-encoding", "content-length")
        ]
        return httpx.Response(
            status_code=self.status_code,
            headers=headers,
            content=self.content,
            request=request,
        )

    def to_metadata(self) -> Dict:
        return {
            "url": self.url,
            "method": self.method,
            "status_code": self.status_code,
            "headers": [list(item) for item in self.headers],
            "stored_at": self.stored_at.isoformat(),
        }

    @classmethod
    def from_metadata(cls, meta: Dict, content: bytes) -> "CachedResponse":
        return cls(
            url=meta["url"],
            method=meta["method"],
            status_code=int(meta["status_code"]),
            headers=[(k, v) for k, v in meta.get("headers", [])],
            content=content,
            stored_at=datetime.fromisoformat(meta["stored_at"]),
        )


class SnapshotCache:
    """
    单个缓存代际

    One cache generation: snapshots keyed by request identity.
    """

    def __init__(self, name: str, directory: Optional[Path] = None, locks: Optional[AsyncFileLock] = None):
        self.name = name
        self.directory = directory
        self._locks = locks or AsyncFileLock()
        self._entries: Dict[str, CachedResponse] = {}

    def _entry_stem(self, identity: str) -> str:
        return hashlib.sha256(identity.encode("utf-8")).hexdigest()

    async def load(self) -> None:
        """Reload persisted entries from the generation directory."""
        if self.directory is None or not self.directory.exists():
            return
        for meta_path in sorted(self.directory.glob("*.json")):
            body_path = meta_path.with_suffix(".body")
            try:
                async with aiofiles.open(meta_path, "r", encoding="utf-8") as f:
                    meta = json.loads(await f.read())
                async with aiofiles.open(body_path, "rb") as f:
                    content = await f.read()
            except (OSError, ValueError) as exc:
                logger.warning("Skipping unreadable snapshot %s: %s", meta_path.name, exc)
                continue
            entry = CachedResponse.from_metadata(meta, content)
            self._entries[request_identity(entry.method, entry.url)] = entry
        logger.debug("Loaded %d snapshots for generation %s", len(self._entries), self.name)

    async def match(self, request: httpx.Request) -> Optional[CachedResponse]:
        return self._entries.get(_identity_of(request))

    async def put(self, request: httpx.Request, response: httpx.Response) -> CachedResponse:
        """Snapshot ``response`` under the request's identity. The body must be read."""
        identity = _identity_of(request)
        entry = CachedResponse.from_response(request, response)

        if self.directory is not None:
            stem = self._entry_stem(identity)
            async with self._locks.lock(self.directory):
                self.directory.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(self.directory / f"{stem}.body", "wb") as f:
                    await f.write(entry.content)
                async with aiofiles.open(self.directory / f"{stem}.json", "w", encoding="utf-8") as f:
                    await f.write(json.dumps(entry.to_metadata(), ensure_ascii=False))

        self._entries[identity] = entry
        return entry

    async def add(self, url: str, fetch: Fetcher) -> CachedResponse:
        """
        拉取并缓存

        Fetch ``url`` with GET and snapshot it. Non-200 answers are not cached.

        Raises:
            ValueError: 响应状态不是 200 / Response status is not 200
        """
        request = httpx.Request("GET", url)
        response = await fetch(request)
        await response.aread()
        if response.status_code != 200:
            raise ValueError(f"Cannot cache {url}: HTTP {response.status_code}")
        return await self.put(request, response)

    async def delete(self, request: httpx.Request) -> bool:
        identity = _identity_of(request)
        if identity not in self._entries:
            return False
        del self._entries[identity]
        if self.directory is not None:
            stem = self._entry_stem(identity)
            async with self._locks.lock(self.directory):
                for suffix in (".json", ".body"):
                    (self.directory / f"{stem}{suffix}").unlink(missing_ok=True)
        return True

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)


class CacheStorage:
    """
    缓存代际集合

    Named cache generations, optionally persisted under ``root``.
    """

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root else None
        self._caches: Dict[str, SnapshotCache] = {}
        self._locks = AsyncFileLock()
        self._open_lock = asyncio.Lock()

    async def _discover(self) -> None:
        if self.root is None or not self.root.exists():
            return
        for directory in sorted(p for p in self.root.iterdir() if p.is_dir()):
            if directory.name not in self._caches:
                cache = SnapshotCache(directory.name, directory, self._locks)
                await cache.load()
                self._caches[directory.name] = cache

    async def open(self, name: str) -> SnapshotCache:
        async with self._open_lock:
            await self._discover()
            if name not in self._caches:
                directory = self.root / name if self.root else None
                self._caches[name] = SnapshotCache(name, directory, self._locks)
            return self._caches[name]

    async def has(self, name: str) -> bool:
        return name in await self.keys()

    async def keys(self) -> List[str]:
        async with self._open_lock:
            await self._discover()
            return list(self._caches.keys())

    async def delete(self, name: str) -> bool:
        """Delete a whole generation, in memory and on disk."""
        async with self._open_lock:
            await self._discover()
            cache = self._caches.pop(name, None)
            if cache is None:
                return False
            if cache.directory is not None and cache.directory.exists():
                shutil.rmtree(cache.directory)
            return True

    async def match(self, request: httpx.Request) -> Optional[CachedResponse]:
        """Search every generation, oldest first."""
        for name in await self.keys():
            cache = self._caches.get(name)
            if cache is None:
                continue
            entry = await cache.match(request)
            if entry is not None:
                return entry
        return None
