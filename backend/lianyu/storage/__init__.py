"""
Storage Module / 存储模块
Prefix-namespaced key/value storage over the platform's physical store
基于平台物理存储的带前缀键值存储
"""

from .adapter import StorageAdapter
from .file_lock import AsyncFileLock
from .results import StorageResult, StoredEntry

__all__ = [
    "StorageAdapter",
    "AsyncFileLock",
    "StorageResult",
    "StoredEntry",
]
