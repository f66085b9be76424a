# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  运行时装配 - 启动时按顺序构建一次全部组件并显式传递：
  平台能力 → 存储后端 → 存储适配器 → 待发送队列 → 快照缓存 → 网络 → 控制器 → 监控/同步
  Runtime assembly - builds every component once at startup and passes it
  explicitly: capabilities, backend, adapter, queue, caches, network,
  controller, then monitor and sync.
"""

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from lianyu.network import NetworkAdapter
from lianyu.offline.connectivity import ConnectionMonitor, http_probe
from lianyu.offline.controller import OfflineCacheController, OfflinePolicy
from lianyu.offline.pending_queue import PendingOperationQueue
from lianyu.offline.snapshot_cache import CacheStorage
from lianyu.offline.sync import BackgroundSync
from lianyu.platform import HostBridges, PlatformCapabilities, resolve_capabilities
from lianyu.storage.adapter import StorageAdapter
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class OfflineRuntime:
    """
    离线运行时 - 进程内所有组件的容器

    Attributes:
        capabilities: 平台能力 / Platform capabilities
        storage: 存储适配器 / Storage adapter
        queue: 待发送队列 / Pending-operation queue
        caches: 快照缓存代际 / Snapshot cache generations
        client: 共享 httpx 客户端 / Shared httpx client
        network: 网络适配器 / Network adapter
        controller: 离线缓存控制器 / Offline cache controller
        monitor: 连接监控 / Connection monitor
        sync: 后台同步 / Background sync
    """

    capabilities: PlatformCapabilities
    storage: StorageAdapter
    queue: PendingOperationQueue
    caches: CacheStorage
    client: httpx.AsyncClient
    network: NetworkAdapter
    controller: OfflineCacheController
    monitor: ConnectionMonitor
    sync: BackgroundSync
    monitor_enabled: bool = True

    async def startup(self) -> None:
        """Prime the current cache generation, evict older ones and start monitoring."""
        await self.controller.install()
        deleted = await self.controller.activate()
        if deleted:
            logger.info("Activated %s, removed %d old generations", self.controller.policy.generation, len(deleted))
        if self.monitor_enabled:
            await self.monitor.start()

    async def close(self) -> None:
        await self.sync.close()
        await self.monitor.stop()
        await self.client.aclose()


def build_runtime(
    settings: Any,
    config: Dict[str, Any],
    bridges: Optional[HostBridges] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> OfflineRuntime:
    """
    构建离线运行时

    Args:
        settings: 进程设置（lianyu.config.Settings）/ Process settings
        config: 合并后的 YAML 配置 / Merged YAML config
        bridges: 宿主桥接对象 / Host bridges
        transport: 自定义 httpx 传输（测试使用 MockTransport）/ Custom httpx transport

    Returns:
        OfflineRuntime
    """
    bridges = bridges or HostBridges()
    capabilities = resolve_capabilities(bridges, config.get("platforms", {}), settings.platform)

    data_dir = Path(settings.data_dir) if settings.data_dir else None
    storage = StorageAdapter.from_capabilities(
        capabilities,
        bridges=bridges,
        data_dir=data_dir,
        storage_cfg=config.get("storage", {}),
    )

    queue_cfg = config.get("queue", {})
    max_age_hours = queue_cfg.get("max_age_hours")
    queue = PendingOperationQueue(
        storage,
        storage_key=queue_cfg.get("storage_key", "pendingMessages"),
        max_entries=int(queue_cfg.get("max_entries", 200)),
        max_age=timedelta(hours=float(max_age_hours)) if max_age_hours else None,
    )

    offline_cfg = config.get("offline", {})
    cache_root = None
    if data_dir is not None:
        cache_root = data_dir / offline_cfg.get("cache_dir", "snapshots")
    caches = CacheStorage(cache_root)

    client_kwargs: Dict[str, Any] = {"timeout": capabilities.api_timeout_ms / 1000.0}
    if transport is not None:
        client_kwargs["transport"] = transport
    client = httpx.AsyncClient(**client_kwargs)
    network = NetworkAdapter(client, settings.upstream_url, timeout_ms=capabilities.api_timeout_ms)

    policy = OfflinePolicy.from_config(offline_cfg, settings.upstream_url)
    controller = OfflineCacheController(caches, network, queue, policy)

    sync_cfg = config.get("sync", {})
    monitor = ConnectionMonitor(
        http_probe(
            client,
            network.resolve_url(sync_cfg.get("probe_path", "/api/health")),
            timeout=float(sync_cfg.get("probe_timeout", 5.0)),
        ),
        check_interval_online=float(sync_cfg.get("check_interval_online", 30.0)),
        check_interval_offline=float(sync_cfg.get("check_interval_offline", 10.0)),
    )
    sync = BackgroundSync(
        controller,
        monitor,
        retry_delays=[float(d) for d in sync_cfg.get("retry_delays") or []] or None,
        max_retry_delay=float(sync_cfg.get("max_retry_delay", 300.0)),
    )

    logger.info(
        "Offline runtime ready: platform=%s storage=%s generation=%s upstream=%s",
        capabilities.platform.value,
        capabilities.storage_type.value,
        policy.generation,
        settings.upstream_url,
    )
    return OfflineRuntime(
        capabilities=capabilities,
        storage=storage,
        queue=queue,
        caches=caches,
        client=client,
        network=network,
        controller=controller,
        monitor=monitor,
        sync=sync,
        monitor_enabled=bool(getattr(settings, "monitor_enabled", True)),
    )
