# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  连接监控 - 周期性探测上游健康检查接口，在在线/离线状态变化时通知回调。
  网络恢复是触发后台同步的信号。
  Connection monitor - periodically probes the upstream health endpoint and
  notifies callbacks when the online/offline status changes. Regaining the
  network is the signal that fires background sync.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import httpx

from lianyu.utils.logger import get_logger

logger = get_logger(__name__)

Probe = Callable[[], Awaitable[bool]]


class ConnectionStatus(str, Enum):
    """Upstream connection states."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


@dataclass
class ConnectionState:
    """Current connection state with metadata."""

    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


def http_probe(client: httpx.AsyncClient, url: str, timeout: float = 5.0) -> Probe:
    """
    构造 HTTP 健康检查探针

    Build a probe that is healthy when ``GET url`` answers below 500.
    """

    async def probe() -> bool:
        response = await client.get(url, timeout=timeout)
        return response.status_code < 500

    return probe


StatusCallback = Callable[[ConnectionStatus, ConnectionStatus], Awaitable[None]]


class ConnectionMonitor:
    """
    连接状态监控器

    Usage:
        monitor = ConnectionMonitor(http_probe(client, "http://host/api/health"))
        monitor.register_callback(on_change)
        await monitor.start()
    """

    def __init__(
        self,
        probe: Probe,
        check_interval_online: float = 30.0,
        check_interval_offline: float = 10.0,
    ):
        self._probe = probe
        self.check_interval_online = check_interval_online
        self.check_interval_offline = check_interval_offline
        self._state = ConnectionState()
        self._callbacks: List[StatusCallback] = []
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        return self._state.status == ConnectionStatus.ONLINE

    def register_callback(self, callback: StatusCallback) -> None:
        """Register an async ``callback(old_status, new_status)`` run on every status change."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: StatusCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def check(self) -> ConnectionState:
        """
        执行一次探测并更新状态

        Run one probe and update the state. Probe exceptions count as offline.
        """
        old_status = self._state.status
        now = datetime.now(timezone.utc)
        self._state.last_check = now

        try:
            healthy = await self._probe()
            error = None
        except Exception as exc:
            healthy = False
            error = str(exc) or exc.__class__.__name__

        if healthy:
            self._state.status = ConnectionStatus.ONLINE
            self._state.last_online = now
            self._state.consecutive_failures = 0
            self._state.error_message = None
        else:
            self._state.status = ConnectionStatus.OFFLINE
            self._state.consecutive_failures += 1
            self._state.error_message = error

        if old_status != self._state.status:
            logger.info("Connection status changed: %s -> %s", old_status.value, self._state.status.value)
            await self._notify(old_status, self._state.status)

        return self._state

    async def set_status(self, status: ConnectionStatus) -> None:
        """Force a status, notifying callbacks when it changes."""
        old_status = self._state.status
        self._state.status = status
        if status == ConnectionStatus.ONLINE:
            self._state.last_online = datetime.now(timezone.utc)
            self._state.consecutive_failures = 0
        if old_status != status:
            logger.info("Connection status forced: %s -> %s", old_status.value, status.value)
            await self._notify(old_status, status)

    async def _notify(self, old_status: ConnectionStatus, new_status: ConnectionStatus) -> None:
        for callback in list(self._callbacks):
            try:
                await callback(old_status, new_status)
            except Exception as exc:
                logger.error("Error in connection callback: %s", exc)

    async def start(self) -> None:
        """Run an initial check, then keep probing in a background task."""
        if self._task is not None and not self._task.done():
            return
        self._stop.clear()
        await self.check()
        self._task = asyncio.create_task(self._monitoring_loop(), name="connection-monitor")
        logger.debug("Connection monitoring started")

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug("Connection monitoring stopped")

    async def _monitoring_loop(self) -> None:
        while not self._stop.is_set():
            interval = self.check_interval_online if self.is_online else self.check_interval_offline
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.check()
            except Exception as exc:
                logger.error("Error in connection check: %s", exc)

    def to_dict(self) -> dict:
        return {
            "status": self._state.status.value,
            "last_check": self._state.last_check,
            "last_online": self._state.last_online,
            "consecutive_failures": self._state.consecutive_failures,
            "error_message": self._state.error_message,
        }
