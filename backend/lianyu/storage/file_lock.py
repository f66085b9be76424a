# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  键锁管理器 - 按文件路径或逻辑键串行化读-改-写操作
  Keyed lock manager - serializes read-modify-write sequences per file path or logical key.

实现方式 / Implementation:
  使用asyncio.Lock实现进程内锁定，只在同一事件循环内提供原子性。
  跨进程（多标签页、多个网关进程）仍然是最后写入者获胜。

  Uses asyncio.Lock, so atomicity only holds within one event loop.
  Across processes the store stays last-write-wins.
"""

import asyncio
from pathlib import Path
from typing import Dict, Optional, Union
from contextlib import asynccontextmanager


class AsyncFileLock:
    """
    异步键锁 - 每个文件路径或逻辑键一把 asyncio.Lock

    Async keyed lock - one asyncio.Lock per file path or logical key.

    不同的键可以并发操作；同一个键上的操作按获取顺序串行执行。
    Different keys proceed concurrently; operations on the same key run in
    acquisition order.

    Attributes:
        _locks (Dict[str, asyncio.Lock]): 键到锁的映射 / Mapping from key to lock
        _global_lock (asyncio.Lock): 保护_locks字典本身的全局锁 / Guards the _locks dict
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    @staticmethod
    def _normalize(target: Union[Path, str]) -> str:
        if isinstance(target, Path):
            return f"file:{target.resolve()}"
        return f"key:{target}"

    async def _get_lock(self, name: str) -> asyncio.Lock:
        async with self._global_lock:
            if name not in self._locks:
                self._locks[name] = asyncio.Lock()
            return self._locks[name]

    @asynccontextmanager
    async def lock(self, target: Union[Path, str], timeout: Optional[float] = 30.0):
        """
        获取锁（上下文管理器）

        Acquire the lock for a file path or logical key.

        Args:
            target: 文件路径或逻辑键 / File path or logical key
            timeout: 超时时间（秒），None表示无限等待 / Timeout in seconds, None for infinite

        Raises:
            asyncio.TimeoutError: 如果在timeout秒内无法获取锁 / If the lock is not acquired in time

        Example:
            >>> async with locks.lock(Path("local_storage.json")):
            ...     await write_snapshot(...)
        """
        lock = await self._get_lock(self._normalize(target))

        if timeout is not None:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        else:
            await lock.acquire()

        try:
            yield
        finally:
            lock.release()
