"""
Rate limiting / 请求限流
Shared slowapi limiter, attached to app.state by the app factory.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["200/minute"])

# Manual sync triggers drain the whole queue; keep them rare.
SYNC_RATE_LIMIT = "10/minute"
