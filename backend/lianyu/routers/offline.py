"""
Offline Router / 离线状态路由
Gateway status and manual background-sync trigger.
"""

from fastapi import APIRouter, Depends, Request

from lianyu.dependencies import get_runtime
from lianyu.rate_limit import SYNC_RATE_LIMIT, limiter
from lianyu.runtime import OfflineRuntime
from lianyu.schemas.offline import ConnectionInfo, OfflineStatus, SyncRequest, SyncResponse

router = APIRouter(prefix="/_offline", tags=["offline"])


@router.get("/status", response_model=OfflineStatus)
async def get_status(runtime: OfflineRuntime = Depends(get_runtime)):
    """Cache generations, queue size, registered sync tags and connection state"""
    return OfflineStatus(
        generation=runtime.controller.policy.generation,
        caches=await runtime.caches.keys(),
        queue_size=await runtime.queue.size(),
        sync_tags=runtime.sync.tags,
        connection=ConnectionInfo(**runtime.monitor.to_dict()),
    )


@router.post("/sync", response_model=SyncResponse)
@limiter.limit(SYNC_RATE_LIMIT)
async def fire_sync(
    request: Request,
    body: SyncRequest,
    runtime: OfflineRuntime = Depends(get_runtime),
):
    """
    Fire a sync event now and wait for the drain.

    Unknown tags answer ``handled: false`` without touching the queue.
    """
    report = await runtime.sync.fire(body.tag)
    return SyncResponse(tag=body.tag, handled=report is not None, report=report)
