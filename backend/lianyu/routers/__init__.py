"""
API Routers / API 路由
"""

from .offline import router as offline_router
from .gateway import router as gateway_router

__all__ = [
    "offline_router",
    "gateway_router",
]
