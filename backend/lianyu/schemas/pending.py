"""
Pending operation data models.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingOperation(BaseModel):
    """An outbound request that failed while offline and awaits resend."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Queue entry id")
    target_url: str = Field(..., description="Absolute URL to resend to")
    method: str = Field("POST", description="HTTP method")
    headers: Dict[str, str] = Field(default_factory=dict, description="Request headers")
    body: Any = Field(None, description="JSON request body")
    enqueued_at: datetime = Field(default_factory=_utcnow, description="Enqueue time (UTC)")


class DrainReport(BaseModel):
    """Outcome of one drain pass over the pending queue."""

    delivered: int = Field(0, description="Entries resent and removed")
    failed: int = Field(0, description="Entries left queued after a retryable failure")
    dropped: int = Field(0, description="Entries removed after a permanent rejection")
    expired: int = Field(0, description="Entries removed for exceeding the max age")
    remaining: int = Field(0, description="Queue size after the pass")
