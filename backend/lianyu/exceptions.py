# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  应用级异常层次 - 存储、网络、配置异常的完整继承树
  Application-level Exception Hierarchy - storage, network and configuration errors.
"""

from typing import Optional


class LianyuError(Exception):
    """
    恋语AI 错误的基类

    Base exception for all LianyuAI errors.

    所有应用级异常都应继承此类，以便于统一错误处理。
    All application-level exceptions inherit from this class so the storage
    and offline boundaries can convert them into result values.
    """


class ConfigurationError(LianyuError):
    """
    配置无效异常

    Raised when configuration is invalid or missing.

    抛出时机：
    - YAML 配置无法解析 / YAML config cannot be parsed
    - 存储前缀为空 / Empty storage prefix
    - 未知的平台或存储类型 / Unknown platform or storage type
    """


class StorageError(LianyuError):
    """
    存储操作失败异常

    Raised when a key-value backend operation fails (read/write/delete/list).
    """


class BackendUnavailableError(StorageError):
    """
    存储后端不可用

    Raised when the selected backend is not present in the current runtime,
    e.g. the native bridge plugin or the mini-program storage API is absent.
    """


class QuotaExceededError(StorageError):
    """
    存储配额耗尽

    Raised when a write would exceed the backend's storage quota.
    """


class SerializationError(StorageError):
    """
    序列化失败

    Raised when a value cannot be JSON-encoded for storage.
    """


class NetworkError(LianyuError):
    """
    网络请求失败异常

    Raised when a request cannot be completed. ``status_code`` is set when the
    server answered with a non-success status, and is ``None`` for transport
    failures (offline, DNS, connection refused).
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RequestTimeoutError(NetworkError):
    """请求超时 / Raised when a request exceeds its timeout."""


class OfflineUnavailableError(NetworkError):
    """
    离线且无缓存

    Raised by the offline cache controller when the network failed and no
    snapshot can answer the request.
    """
