"""
Offline gateway request/response models.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from lianyu.schemas.pending import DrainReport


class SyncRequest(BaseModel):
    """Request body for firing a background sync."""

    tag: str = Field("background-sync", description="Sync registration tag")


class SyncResponse(BaseModel):
    """Result of a fired sync."""

    tag: str = Field(..., description="Tag that was fired")
    handled: bool = Field(..., description="Whether the tag is recognised")
    report: Optional[DrainReport] = Field(None, description="Drain report when handled")


class ConnectionInfo(BaseModel):
    """Snapshot of the upstream connection state."""

    status: str = Field(..., description="online / offline / unknown")
    last_check: Optional[datetime] = Field(None, description="Last probe time")
    last_online: Optional[datetime] = Field(None, description="Last successful probe")
    consecutive_failures: int = Field(0, description="Failed probes in a row")
    error_message: Optional[str] = Field(None, description="Last probe error")


class OfflineStatus(BaseModel):
    """Offline gateway status."""

    generation: str = Field(..., description="Current cache generation")
    caches: List[str] = Field(default_factory=list, description="Cache generations on disk")
    queue_size: int = Field(0, description="Pending operations awaiting resend")
    sync_tags: List[str] = Field(default_factory=list, description="Registered sync tags")
    connection: ConnectionInfo
