# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  离线缓存控制器 - 对每个请求决定使用快照缓存还是网络，
  维护缓存代际，并在离线时将必达请求放入待发送队列。
  Offline Cache Controller - decides per request between the snapshot cache
  and the network, keeps cache generations in step with deployments, and
  queues must-deliver requests that fail while offline.

策略 / Policy:
  - API 请求：网络优先，失败时回退到快照 / API requests: network first, snapshot fallback
  - 其他 GET 请求：缓存优先 / Other GET requests: cache first
  - 文档请求完全失败时回退到离线文档 / Documents fall back to the offline document
"""

import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import httpx

from lianyu.exceptions import NetworkError, OfflineUnavailableError
from lianyu.network import NetworkAdapter
from lianyu.offline.pending_queue import PendingOperationQueue
from lianyu.offline.snapshot_cache import CacheStorage, SnapshotCache
from lianyu.schemas.pending import DrainReport, PendingOperation
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)

# Hop-by-hop and per-connection headers never replayed on resend.
_RESEND_SKIP_HEADERS = {"host", "content-length", "connection", "transfer-encoding", "accept-encoding"}


@dataclass(frozen=True)
class MustDeliverRoute:
    """A request class that is queued instead of failing while offline."""

    method: str
    path: str

    def matches(self, request: httpx.Request) -> bool:
        return request.method.upper() == self.method.upper() and request.url.path == self.path


@dataclass(frozen=True)
class OfflinePolicy:
    """
    离线策略配置

    Attributes:
        generation: 当前缓存代际 / Current cache generation name
        origin: 上游源（scheme://host[:port]）/ Upstream origin
        precache_urls: 安装时预缓存的地址 / URLs primed on install
        api_marker: API 路径标记 / Substring identifying API requests
        offline_document: 离线文档路径 / Offline fallback document path
        must_deliver: 必达请求类别 / Must-deliver request classes
        sync_tag: 触发排空的同步标签 / Sync tag that drains the queue
        cache_api_responses: 是否缓存成功的 API GET / Snapshot successful API GETs
    """

    generation: str
    origin: str
    precache_urls: Tuple[str, ...] = ()
    api_marker: str = "/api/"
    offline_document: str = "/index.html"
    must_deliver: Tuple[MustDeliverRoute, ...] = ()
    sync_tag: str = "background-sync"
    cache_api_responses: bool = False

    @classmethod
    def from_config(cls, offline_cfg: dict, origin: str) -> "OfflinePolicy":
        routes = tuple(
            MustDeliverRoute(method=item.get("method", "POST"), path=item["path"])
            for item in offline_cfg.get("must_deliver", [])
        )
        return cls(
            generation=offline_cfg["cache_generation"],
            origin=origin.rstrip("/"),
            precache_urls=tuple(offline_cfg.get("precache_urls", [])),
            api_marker=offline_cfg.get("api_marker", "/api/"),
            offline_document=offline_cfg.get("offline_document", "/index.html"),
            must_deliver=routes,
            sync_tag=offline_cfg.get("sync_tag", "background-sync"),
            cache_api_responses=bool(offline_cfg.get("cache_api_responses", False)),
        )

    def resolve(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        if not url.startswith("/"):
            url = "/" + url
        return self.origin + url


@dataclass
class InstallReport:
    """Result of priming the current generation."""

    generation: str
    cached: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def _origin_of(url: httpx.URL) -> str:
    port = f":{url.port}" if url.port else ""
    return f"{url.scheme}://{url.host}{port}"


class OfflineCacheController:
    """
    离线缓存控制器

    Handles the four host events: install, activate, fetch and sync.

    Attributes:
        caches (CacheStorage): 快照缓存代际 / Snapshot cache generations
        network (NetworkAdapter): 网络通道 / Network path
        queue (PendingOperationQueue): 待发送队列 / Pending-operation queue
        policy (OfflinePolicy): 策略 / Policy
    """

    def __init__(
        self,
        caches: CacheStorage,
        network: NetworkAdapter,
        queue: PendingOperationQueue,
        policy: OfflinePolicy,
    ):
        self.caches = caches
        self.network = network
        self.queue = queue
        self.policy = policy
        self._origin = _origin_of(httpx.URL(policy.origin))
        self._enqueue_listeners: List[Any] = []

    def add_enqueue_listener(self, callback) -> None:
        """Register an async callback run after a must-deliver request is queued."""
        self._enqueue_listeners.append(callback)

    async def _current(self) -> SnapshotCache:
        return await self.caches.open(self.policy.generation)

    # ========================================================================
    # 请求分类 / Request classification
    # ========================================================================

    def is_api_request(self, request: httpx.Request) -> bool:
        return self.policy.api_marker in str(request.url)

    def is_document_request(self, request: httpx.Request) -> bool:
        if request.extensions.get("destination") == "document":
            return True
        if request.headers.get("sec-fetch-dest", "").lower() == "document":
            return True
        return request.headers.get("accept", "").lower().startswith("text/html")

    def is_must_deliver(self, request: httpx.Request) -> bool:
        return any(route.matches(request) for route in self.policy.must_deliver)

    def _is_cacheable(self, request: httpx.Request, response: httpx.Response) -> bool:
        # Same-origin 200 answers only ("basic" responses).
        return response.status_code == 200 and _origin_of(request.url) == self._origin

    # ========================================================================
    # 生命周期事件 / Lifecycle events
    # ========================================================================

    async def install(self) -> InstallReport:
        """
        安装：预缓存资源

        Prime the current generation. A URL that fails is logged and skipped.
        """
        cache = await self._current()
        report = InstallReport(generation=self.policy.generation)
        for url in self.policy.precache_urls:
            full_url = self.policy.resolve(url)
            try:
                await cache.add(full_url, self.network.send)
            except Exception as exc:
                logger.warning("Cache add failed: %s (%s)", full_url, exc)
                report.failed.append(full_url)
                continue
            report.cached.append(full_url)

        logger.info(
            "Installed cache generation %s: %d cached, %d failed",
            self.policy.generation,
            len(report.cached),
            len(report.failed),
        )
        return report

    async def activate(self) -> List[str]:
        """
        激活：删除旧代际

        Delete every cache generation other than the current one.

        Returns:
            被删除的代际名称 / Names of deleted generations
        """
        deleted = []
        for name in await self.caches.keys():
            if name != self.policy.generation:
                logger.info("Deleting old cache: %s", name)
                if await self.caches.delete(name):
                    deleted.append(name)
        return deleted

    # ========================================================================
    # 请求拦截 / Fetch interception
    # ========================================================================

    async def handle_fetch(self, request: httpx.Request) -> httpx.Response:
        """
        拦截请求

        Answer a request according to the policy.

        Raises:
            OfflineUnavailableError: 网络失败且没有可用快照 / Network failed and no snapshot applies
        """
        if self.is_api_request(request):
            return await self._network_first(request)
        if request.method.upper() != "GET":
            return await self._network_only(request)
        return await self._cache_first(request)

    async def _network_only(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self.network.send(request)
        except NetworkError as exc:
            raise OfflineUnavailableError(f"{request.method} {request.url} failed: {exc}") from exc

    async def _network_first(self, request: httpx.Request) -> httpx.Response:
        body = request.content if self.is_must_deliver(request) else b""
        try:
            response = await self.network.send(request)
        except NetworkError as exc:
            if self.is_must_deliver(request):
                return await self._queue_for_sync(request, body)

            cached = await self.caches.match(request)
            if cached is not None:
                logger.info("Network unavailable, serving snapshot for %s %s", request.method, request.url)
                return cached.to_response(request)
            raise OfflineUnavailableError(f"{request.method} {request.url} failed and no snapshot exists: {exc}") from exc

        if self.policy.cache_api_responses and request.method.upper() == "GET":
            await response.aread()
            if self._is_cacheable(request, response):
                cache = await self._current()
                await cache.put(request, response)
        return response

    async def _cache_first(self, request: httpx.Request) -> httpx.Response:
        cached = await self.caches.match(request)
        if cached is not None:
            return cached.to_response(request)

        try:
            response = await self.network.send(request)
        except NetworkError as exc:
            if self.is_document_request(request):
                offline_request = httpx.Request("GET", self.policy.resolve(self.policy.offline_document))
                offline = await self.caches.match(offline_request)
                if offline is not None:
                    logger.info("Offline, serving %s for %s", self.policy.offline_document, request.url)
                    return offline.to_response(request)
            raise OfflineUnavailableError(f"GET {request.url} failed and no snapshot exists: {exc}") from exc

        if self._is_cacheable(request, response):
            await response.aread()
            cache = await self._current()
            await cache.put(request, response)
        return response

    async def _queue_for_sync(self, request: httpx.Request, body: bytes) -> httpx.Response:
        operation = PendingOperation(
            target_url=str(request.url),
            method=request.method.upper(),
            headers={
                k: v for k, v in request.headers.items()
                if k.lower() not in _RESEND_SKIP_HEADERS
            },
            body=_decode_json_body(body),
        )
        if not await self.queue.enqueue(operation):
            raise OfflineUnavailableError(f"{request.method} {request.url} failed and could not be queued")

        for callback in self._enqueue_listeners:
            try:
                await callback(operation)
            except Exception as exc:
                logger.warning("Enqueue listener failed: %s", exc)

        return httpx.Response(
            202,
            json={"queued": True, "id": operation.id},
            request=request,
        )

    # ========================================================================
    # 后台同步 / Background sync
    # ========================================================================

    async def resend(self, operation: PendingOperation) -> None:
        """Resend one queued operation; raises NetworkError unless the upstream answered 2xx."""
        await self.network.request(
            operation.target_url,
            method=operation.method,
            data=operation.body,
            headers=dict(operation.headers),
        )

    async def handle_sync(self, tag: str) -> Optional[DrainReport]:
        """
        同步事件

        Drain the pending queue when ``tag`` is the recognised sync tag.

        Returns:
            排空报告；未识别的标签返回 None / Drain report, or None for unknown tags
        """
        if tag != self.policy.sync_tag:
            logger.debug("Ignoring sync event with tag %s", tag)
            return None
        return await self.queue.drain(self.resend)


def _decode_json_body(body: bytes) -> Any:
    if not body:
        return None
    text = body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text
