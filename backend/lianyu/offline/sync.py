# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  后台同步 - 保存已注册的同步标签，在网络可用时把同步事件派发给离线缓存
  控制器；排空未完成时按退避延迟重试。
  Background sync - keeps the registered sync tags and dispatches sync events
  to the offline cache controller whenever the network is available; retries
  with backoff while entries remain queued.
"""

import asyncio
from typing import Dict, List, Optional, Set

from lianyu.offline.connectivity import ConnectionMonitor, ConnectionStatus
from lianyu.offline.controller import OfflineCacheController
from lianyu.offline.retry import get_retry_delay
from lianyu.schemas.pending import DrainReport, PendingOperation
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)


class BackgroundSync:
    """
    后台同步调度器

    A tag stays registered until a drain leaves the queue empty. Only one
    drain per tag runs at a time.

    Attributes:
        controller (OfflineCacheController): 处理同步事件 / Handles sync events
        monitor (Optional[ConnectionMonitor]): 网络状态来源，None 表示总是在线 / Connectivity source, None means always online
    """

    def __init__(
        self,
        controller: OfflineCacheController,
        monitor: Optional[ConnectionMonitor] = None,
        retry_delays: Optional[List[float]] = None,
        max_retry_delay: float = 300.0,
    ):
        self.controller = controller
        self.monitor = monitor
        self.retry_delays = retry_delays
        self.max_retry_delay = max_retry_delay
        self._tags: Set[str] = set()
        self._attempts: Dict[str, int] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._retries: Dict[str, asyncio.Task] = {}

        controller.add_enqueue_listener(self._on_enqueue)
        if monitor is not None:
            monitor.register_callback(self._on_status_change)

    @property
    def tags(self) -> List[str]:
        return sorted(self._tags)

    def _online(self) -> bool:
        return self.monitor is None or self.monitor.status != ConnectionStatus.OFFLINE

    def register(self, tag: str) -> None:
        """
        注册同步标签

        Register ``tag``; the sync fires now if the network is up, otherwise
        on the next offline-to-online transition.
        """
        if tag not in self._tags:
            logger.info("Registered background sync: %s", tag)
        self._tags.add(tag)
        if self._online():
            self._schedule(tag, delay=0)

    async def fire(self, tag: str) -> Optional[DrainReport]:
        """
        立即派发同步事件

        Dispatch one sync event for ``tag`` and wait for it. While entries
        remain and the network is up, the next pass is scheduled with backoff;
        a pass that delivered anything starts the backoff over.

        Returns:
            排空报告；标签未被识别时返回 None / Drain report, or None when the tag is not handled
        """
        lock = self._locks.setdefault(tag, asyncio.Lock())
        async with lock:
            report = await self.controller.handle_sync(tag)

        if report is None:
            self._tags.discard(tag)
            return None

        if report.remaining == 0:
            self._tags.discard(tag)
            self._attempts.pop(tag, None)
            self._cancel_retry(tag)
            return report

        self._tags.add(tag)
        attempt = 0 if report.delivered else self._attempts.get(tag, 0)
        self._attempts[tag] = attempt + 1
        if self._online():
            delay = get_retry_delay(attempt, self.retry_delays, self.max_retry_delay)
            logger.info("Sync %s left %d pending; retrying in %.1fs", tag, report.remaining, delay)
            self._schedule(tag, delay=delay)
        return report

    def _cancel_retry(self, tag: str) -> None:
        task = self._retries.pop(tag, None)
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    def _schedule(self, tag: str, delay: float) -> None:
        async def run() -> None:
            if delay:
                await asyncio.sleep(delay)
            if not self._online():
                return
            try:
                await self.fire(tag)
            except Exception as exc:
                logger.error("Background sync %s failed: %s", tag, exc)

        if delay:
            # At most one pending backoff retry per tag.
            self._cancel_retry(tag)
        task = asyncio.create_task(run(), name=f"background-sync:{tag}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        if delay:
            self._retries[tag] = task

    async def _on_enqueue(self, operation: PendingOperation) -> None:
        logger.debug("Queued operation %s, registering sync", operation.id)
        self.register(self.controller.policy.sync_tag)

    async def _on_status_change(self, old_status: ConnectionStatus, new_status: ConnectionStatus) -> None:
        if new_status != ConnectionStatus.ONLINE:
            return
        for tag in self.tags:
            self._attempts.pop(tag, None)
            self._schedule(tag, delay=0)

    async def wait_idle(self) -> None:
        """Wait until every scheduled sync task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
        self._retries.clear()
