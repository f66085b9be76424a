"""
LianyuAI offline core / 恋语AI 离线核心
Storage adapter, offline cache controller and background sync for the chat client.
"""

__version__ = "1.0.0"
