"""
Gateway Router / 离线网关路由
Catch-all proxy: every request is answered by the offline cache controller,
which decides between the snapshot cache, the upstream and the pending queue.
"""

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from lianyu.exceptions import OfflineUnavailableError
from lianyu.dependencies import get_controller
from lianyu.offline.controller import OfflineCacheController
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["gateway"])

# Per-connection headers never forwarded in either direction
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
}

# httpx hands back decoded bodies, so the wire encoding no longer applies
RESPONSE_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding"}

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


async def build_upstream_request(request: Request, controller: OfflineCacheController, full_path: str) -> httpx.Request:
    """Translate the incoming request into an ``httpx.Request`` against the upstream."""
    url = controller.policy.resolve("/" + full_path)
    if request.url.query:
        url = f"{url}?{request.url.query}"

    headers = [
        (k, v) for k, v in request.headers.items()
        if k.lower() not in HOP_BY_HOP_HEADERS
    ]
    body = await request.body()
    return httpx.Request(request.method, url, headers=headers, content=body or None)


@router.api_route("/{full_path:path}", methods=PROXY_METHODS)
async def proxy(
    full_path: str,
    request: Request,
    controller: OfflineCacheController = Depends(get_controller),
):
    """
    Forward a request through the offline cache controller.

    Returns 503 when the upstream is unreachable and nothing cached applies.
    """
    upstream_request = await build_upstream_request(request, controller, full_path)
    try:
        upstream_response = await controller.handle_fetch(upstream_request)
    except OfflineUnavailableError as exc:
        logger.warning("Offline and unable to answer %s /%s: %s", request.method, full_path, exc)
        raise HTTPException(status_code=503, detail=str(exc))

    try:
        content = await upstream_response.aread()
    finally:
        await upstream_response.aclose()

    response = Response(content=content, status_code=upstream_response.status_code)
    # multi_items keeps repeated headers such as Set-Cookie apart
    for key, value in upstream_response.headers.multi_items():
        if key.lower() not in RESPONSE_SKIP_HEADERS:
            response.headers.append(key, value)
    return response
