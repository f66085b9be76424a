# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  依赖注入 - FastAPI Depends() 访问器，从 app.state 读取运行时组件
  Dependency Injection - FastAPI Depends() accessors reading the runtime from app.state.

设计原则 / Design Principles:
  所有Router应通过 Depends() 获取组件，而非模块级实例化。
  Routers never import component instances; tests swap the runtime on app.state.
"""

from fastapi import Request

from lianyu.offline.controller import OfflineCacheController
from lianyu.offline.sync import BackgroundSync
from lianyu.runtime import OfflineRuntime


def get_runtime(request: Request) -> OfflineRuntime:
    """
    获取当前应用的离线运行时

    Get the offline runtime attached to the running application.

    Returns:
        OfflineRuntime实例 / OfflineRuntime instance
    """
    return request.app.state.runtime


def get_controller(request: Request) -> OfflineCacheController:
    return get_runtime(request).controller


def get_background_sync(request: Request) -> BackgroundSync:
    return get_runtime(request).sync
