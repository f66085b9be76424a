"""Offline cache controller tests: install, activate, fetch policy and sync."""
import json

import httpx
import pytest

from conftest import UPSTREAM
from lianyu.exceptions import OfflineUnavailableError
from lianyu.network import NetworkAdapter
from lianyu.offline.controller import MustDeliverRoute, OfflineCacheController, OfflinePolicy
from lianyu.offline.pending_queue import PendingOperationQueue
from lianyu.offline.snapshot_cache import CacheStorage
from lianyu.storage import StorageAdapter
from lianyu.storage.backends import LocalStorageBackend

GENERATION = "lianyuai-v2"


@pytest.fixture
def policy():
    return OfflinePolicy(
        generation=GENERATION,
        origin=UPSTREAM,
        precache_urls=("/", "/index.html", "/css/style.css"),
        must_deliver=(MustDeliverRoute("POST", "/api/messages/send"),),
    )


@pytest.fixture
async def controller(upstream, policy, tmp_path):
    upstream.route("GET", "/", text="<html>home</html>", headers={"content-type": "text/html"})
    upstream.route("GET", "/index.html", text="<html>shell</html>", headers={"content-type": "text/html"})
    upstream.route("GET", "/css/style.css", text="body{}", headers={"content-type": "text/css"})

    client = httpx.AsyncClient(transport=upstream.transport)
    network = NetworkAdapter(client, UPSTREAM)
    queue = PendingOperationQueue(StorageAdapter(LocalStorageBackend(), "lianyuai_"))
    caches = CacheStorage(tmp_path / "snapshots")
    yield OfflineCacheController(caches, network, queue, policy)
    await client.aclose()


def _get(path: str, **headers) -> httpx.Request:
    return httpx.Request("GET", UPSTREAM + path, headers=headers)


@pytest.mark.asyncio
async def test_install_caches_precache_list(controller):
    report = await controller.install()
    assert report.failed == []
    assert len(report.cached) == 3

    cache = await controller.caches.open(GENERATION)
    assert len(cache) == 3


@pytest.mark.asyncio
async def test_install_skips_failing_urls(controller):
    controller.policy = OfflinePolicy(
        generation=GENERATION,
        origin=UPSTREAM,
        precache_urls=("/index.html", "/missing.js"),
    )
    report = await controller.install()
    assert report.cached == [UPSTREAM + "/index.html"]
    assert report.failed == [UPSTREAM + "/missing.js"]


@pytest.mark.asyncio
async def test_install_survives_offline(controller, upstream):
    upstream.offline = True
    report = await controller.install()
    assert report.cached == []
    assert len(report.failed) == 3


@pytest.mark.asyncio
async def test_activate_deletes_old_generations(controller):
    await controller.caches.open("lianyuai-v1")
    await controller.caches.open("lianyuai-v0")
    await controller.install()

    deleted = await controller.activate()
    assert sorted(deleted) == ["lianyuai-v0", "lianyuai-v1"]
    assert await controller.caches.keys() == [GENERATION]


@pytest.mark.asyncio
async def test_cache_first_reads_network_once(controller, upstream):
    first = await controller.handle_fetch(_get("/css/style.css"))
    second = await controller.handle_fetch(_get("/css/style.css"))

    assert first.status_code == second.status_code == 200
    assert await first.aread() == await second.aread() == b"body{}"
    assert upstream.count("GET", "/css/style.css") == 1


@pytest.mark.asyncio
async def test_cache_first_serves_snapshot_offline(controller, upstream):
    await controller.install()
    upstream.offline = True

    response = await controller.handle_fetch(_get("/css/style.css"))
    assert response.status_code == 200
    assert response.text == "body{}"


@pytest.mark.asyncio
async def test_non_200_responses_are_not_cached(controller, upstream):
    response = await controller.handle_fetch(_get("/nope.png"))
    assert response.status_code == 404
    await controller.handle_fetch(_get("/nope.png"))
    assert upstream.count("GET", "/nope.png") == 2


@pytest.mark.asyncio
async def test_cross_origin_responses_are_not_cached(controller, upstream):
    request = httpx.Request("GET", "http://cdn.test/lib.css")
    upstream.route("GET", "/lib.css", text="lib")
    await controller.handle_fetch(request)
    await controller.handle_fetch(httpx.Request("GET", "http://cdn.test/lib.css"))
    assert upstream.count("GET", "/lib.css") == 2


@pytest.mark.asyncio
async def test_document_falls_back_to_offline_document(controller, upstream):
    await controller.install()
    upstream.offline = True

    response = await controller.handle_fetch(_get("/chat/42", accept="text/html,application/xhtml+xml"))
    assert response.status_code == 200
    assert response.text == "<html>shell</html>"


@pytest.mark.asyncio
async def test_sec_fetch_dest_marks_document(controller, upstream):
    await controller.install()
    upstream.offline = True
    response = await controller.handle_fetch(_get("/settings", **{"sec-fetch-dest": "document"}))
    assert response.text == "<html>shell</html>"


@pytest.mark.asyncio
async def test_non_document_miss_offline_raises(controller, upstream):
    await controller.install()
    upstream.offline = True
    with pytest.raises(OfflineUnavailableError):
        await controller.handle_fetch(_get("/img/avatar.png", accept="image/*"))


@pytest.mark.asyncio
async def test_api_is_network_first(controller, upstream):
    upstream.route("GET", "/api/sessions", json=[{"id": 1}])
    response = await controller.handle_fetch(_get("/api/sessions"))
    assert response.json() == [{"id": 1}]

    # Snapshots of API answers are off by default, so a second call goes out again
    await controller.handle_fetch(_get("/api/sessions"))
    assert upstream.count("GET", "/api/sessions") == 2


@pytest.mark.asyncio
async def test_api_falls_back_to_snapshot(controller, upstream):
    controller.policy = OfflinePolicy(
        generation=GENERATION,
        origin=UPSTREAM,
        cache_api_responses=True,
    )
    upstream.route("GET", "/api/sessions", json=[{"id": 1}])
    await controller.handle_fetch(_get("/api/sessions"))

    upstream.offline = True
    response = await controller.handle_fetch(_get("/api/sessions"))
    assert response.json() == [{"id": 1}]


@pytest.mark.asyncio
async def test_api_offline_without_snapshot_raises(controller, upstream):
    upstream.offline = True
    with pytest.raises(OfflineUnavailableError):
        await controller.handle_fetch(_get("/api/sessions"))


@pytest.mark.asyncio
async def test_api_error_status_passes_through(controller, upstream):
    upstream.route("GET", "/api/broken", status=500, json={"detail": "boom"})
    response = await controller.handle_fetch(_get("/api/broken"))
    assert response.status_code == 500


@pytest.mark.asyncio
async def test_must_deliver_is_queued_offline(controller, upstream):
    upstream.offline = True
    seen = []

    async def listener(operation):
        seen.append(operation)

    controller.add_enqueue_listener(listener)
    request = httpx.Request(
        "POST",
        UPSTREAM + "/api/messages/send",
        json={"sessionId": "s1", "content": "你好"},
        headers={"authorization": "Bearer t"},
    )
    response = await controller.handle_fetch(request)

    assert response.status_code == 202
    payload = response.json()
    assert payload["queued"] is True

    queued = await controller.queue.list()
    assert len(queued) == 1
    assert queued[0].id == payload["id"]
    assert queued[0].body == {"sessionId": "s1", "content": "你好"}
    assert queued[0].headers["authorization"] == "Bearer t"
    assert "content-length" not in queued[0].headers
    assert [operation.id for operation in seen] == [queued[0].id]


@pytest.mark.asyncio
async def test_other_posts_fail_offline(controller, upstream):
    upstream.offline = True
    with pytest.raises(OfflineUnavailableError):
        await controller.handle_fetch(httpx.Request("POST", UPSTREAM + "/api/sessions", json={}))
    with pytest.raises(OfflineUnavailableError):
        await controller.handle_fetch(httpx.Request("POST", UPSTREAM + "/upload", content=b"x"))
    assert await controller.queue.size() == 0


@pytest.mark.asyncio
async def test_sync_resends_queued_messages(controller, upstream):
    upstream.offline = True
    for text in ("one", "two"):
        await controller.handle_fetch(
            httpx.Request("POST", UPSTREAM + "/api/messages/send", json={"content": text})
        )

    upstream.offline = False
    upstream.route("POST", "/api/messages/send", json={"ok": True})
    report = await controller.handle_sync("background-sync")

    assert report.delivered == 2
    assert report.remaining == 0
    resent = [r for r in upstream.calls if r.method == "POST"][-2:]
    assert [json.loads(r.read()) for r in resent] == [{"content": "one"}, {"content": "two"}]


@pytest.mark.asyncio
async def test_sync_ignores_unknown_tag(controller):
    assert await controller.handle_sync("something-else") is None
