"""Snapshot cache tests: identity, persistence and generations."""
import httpx
import pytest

from lianyu.offline.snapshot_cache import CacheStorage, SnapshotCache, request_identity
from lianyu.storage.file_lock import AsyncFileLock


def _response(body: str, status: int = 200, **headers) -> httpx.Response:
    response = httpx.Response(status, text=body, headers={"x-test": "1", **headers})
    return response


def test_request_identity():
    assert request_identity("get", "http://a/b?c=1") == "GET http://a/b?c=1"


@pytest.mark.asyncio
async def test_put_and_match_are_byte_exact():
    cache = SnapshotCache("v1")
    request = httpx.Request("GET", "http://app.test/js/app.js")
    await cache.put(request, _response("console.log('hi')"))

    entry = await cache.match(httpx.Request("GET", "http://app.test/js/app.js"))
    assert entry is not None
    response = entry.to_response()
    assert response.status_code == 200
    assert response.text == "console.log('hi')"
    assert response.headers["x-test"] == "1"


@pytest.mark.asyncio
async def test_identity_includes_method_and_query():
    cache = SnapshotCache("v1")
    await cache.put(httpx.Request("GET", "http://app.test/a?x=1"), _response("x1"))

    assert await cache.match(httpx.Request("GET", "http://app.test/a?x=2")) is None
    assert await cache.match(httpx.Request("HEAD", "http://app.test/a?x=1")) is None
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_add_refuses_non_200():
    async def fetch(request):
        return httpx.Response(404, text="missing", request=request)

    cache = SnapshotCache("v1")
    with pytest.raises(ValueError):
        await cache.add("http://app.test/missing.css", fetch)
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_generations_persist_and_reload(tmp_path):
    storage = CacheStorage(tmp_path)
    cache = await storage.open("lianyuai-v1")
    await cache.put(httpx.Request("GET", "http://app.test/index.html"), _response("<html>v1</html>"))

    reopened = CacheStorage(tmp_path)
    assert await reopened.keys() == ["lianyuai-v1"]
    entry = await reopened.match(httpx.Request("GET", "http://app.test/index.html"))
    assert entry is not None
    assert entry.content == b"<html>v1</html>"


@pytest.mark.asyncio
async def test_delete_generation_removes_directory(tmp_path):
    storage = CacheStorage(tmp_path)
    old = await storage.open("lianyuai-v1")
    await old.put(httpx.Request("GET", "http://app.test/"), _response("old"))
    await storage.open("lianyuai-v2")

    assert await storage.delete("lianyuai-v1") is True
    assert await storage.delete("lianyuai-v1") is False
    assert not (tmp_path / "lianyuai-v1").exists()
    assert await storage.match(httpx.Request("GET", "http://app.test/")) is None


@pytest.mark.asyncio
async def test_match_searches_every_generation():
    storage = CacheStorage()
    old = await storage.open("lianyuai-v1")
    await old.put(httpx.Request("GET", "http://app.test/old.css"), _response("old"))
    await storage.open("lianyuai-v2")

    entry = await storage.match(httpx.Request("GET", "http://app.test/old.css"))
    assert entry is not None
    assert entry.content == b"old"
    assert await storage.has("lianyuai-v2")


@pytest.mark.asyncio
async def test_delete_single_entry(tmp_path):
    cache = SnapshotCache("v1", tmp_path / "v1")
    request = httpx.Request("GET", "http://app.test/a")
    await cache.put(request, _response("a"))
    assert len(list((tmp_path / "v1").iterdir())) == 2

    assert await cache.delete(request) is True
    assert await cache.delete(request) is False
    assert list((tmp_path / "v1").iterdir()) == []


@pytest.mark.asyncio
async def test_writes_share_one_lock_per_generation(tmp_path):
    locks = AsyncFileLock()
    cache = SnapshotCache("v1", tmp_path / "v1", locks)
    for i in range(20):
        await cache.put(httpx.Request("GET", f"http://app.test/img/{i}.png"), _response(str(i)))
    await cache.delete(httpx.Request("GET", "http://app.test/img/0.png"))

    assert len(cache) == 19
    assert len(locks._locks) == 1
