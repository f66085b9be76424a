"""Pytest configuration for LianyuAI offline core tests."""
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest

# Ensure the backend package is importable
backend_root = Path(__file__).resolve().parent.parent
if str(backend_root) not in sys.path:
    sys.path.insert(0, str(backend_root))

from lianyu.storage.backends.base import KeyValueBackend  # noqa: E402

UPSTREAM = "http://upstream.test"


class FakeWx:
    """Mini-program storage API: synchronous, answers "" for missing keys."""

    def __init__(self):
        self.store: Dict[str, Any] = {}

    def get_system_info(self):
        return {"platform": "devtools"}

    def set_storage_sync(self, key, value):
        self.store[key] = value

    def get_storage_sync(self, key):
        return self.store.get(key, "")

    def remove_storage_sync(self, key):
        self.store.pop(key, None)

    def get_storage_info_sync(self):
        return {"keys": list(self.store.keys())}


class FakeCapacitorStorage:
    """Native storage plugin: async calls answering dict envelopes."""

    def __init__(self):
        self.store: Dict[str, str] = {}

    async def set(self, key, value):
        self.store[key] = value

    async def get(self, key):
        return {"value": self.store.get(key)}

    async def remove(self, key):
        self.store.pop(key, None)

    async def keys(self):
        return {"keys": list(self.store.keys())}


class FailingBackend(KeyValueBackend):
    """Backend whose every call raises, like storage disabled by the host."""

    name = "failing"

    async def get(self, key):
        raise RuntimeError("storage disabled")

    async def set(self, key, value):
        raise RuntimeError("storage disabled")

    async def delete(self, key):
        raise RuntimeError("storage disabled")

    async def list_keys(self):
        raise RuntimeError("storage disabled")


class FakeUpstream:
    """
    Scriptable upstream behind an httpx.MockTransport.

    ``routes`` maps "METHOD /path" to a response factory; ``offline`` makes
    every request fail with a connection error.
    """

    def __init__(self):
        self.offline = False
        self.routes: Dict[str, Any] = {}
        self.calls: List[httpx.Request] = []

    def route(self, method: str, path: str, status: int = 200, json: Any = None,
              text: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        def respond(request: httpx.Request) -> httpx.Response:
            if json is not None:
                return httpx.Response(status, json=json, headers=headers)
            return httpx.Response(status, text=text or "", headers=headers)

        self.routes[f"{method.upper()} {path}"] = respond

    def count(self, method: str, path: str) -> int:
        return sum(
            1 for request in self.calls
            if request.method == method.upper() and request.url.path == path
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.offline:
            raise httpx.ConnectError("network unreachable", request=request)
        respond = self.routes.get(f"{request.method} {request.url.path}")
        if respond is None:
            return httpx.Response(404, json={"detail": "not found"})
        return respond(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_wx():
    return FakeWx()


@pytest.fixture
def fake_capacitor():
    return FakeCapacitorStorage()


@pytest.fixture
def upstream():
    return FakeUpstream()
