"""
Offline Module / 离线模块
Snapshot cache, pending-operation queue and background sync
快照缓存、待发送队列与后台同步
"""

from .connectivity import ConnectionMonitor, ConnectionState, ConnectionStatus, http_probe
from .controller import InstallReport, MustDeliverRoute, OfflineCacheController, OfflinePolicy
from .pending_queue import PendingOperationQueue
from .retry import classify_delivery_error, get_retry_delay
from .snapshot_cache import CachedResponse, CacheStorage, SnapshotCache, request_identity
from .sync import BackgroundSync

__all__ = [
    "BackgroundSync",
    "CachedResponse",
    "CacheStorage",
    "ConnectionMonitor",
    "ConnectionState",
    "ConnectionStatus",
    "InstallReport",
    "MustDeliverRoute",
    "OfflineCacheController",
    "OfflinePolicy",
    "PendingOperationQueue",
    "SnapshotCache",
    "classify_delivery_error",
    "get_retry_delay",
    "http_probe",
    "request_identity",
]
