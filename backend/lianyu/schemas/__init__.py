"""
Schemas Module / 数据模型
"""

from .pending import PendingOperation, DrainReport
from .offline import SyncRequest, SyncResponse, ConnectionInfo, OfflineStatus

__all__ = [
    "PendingOperation",
    "DrainReport",
    "SyncRequest",
    "SyncResponse",
    "ConnectionInfo",
    "OfflineStatus",
]
