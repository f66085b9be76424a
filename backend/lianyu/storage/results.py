"""
Storage result types.
"""

from dataclasses import dataclass
from typing import Any, Optional

from lianyu.exceptions import LianyuError


@dataclass(frozen=True)
class StoredEntry:
    """A value read back through the adapter.

    ``raw_encoding`` is ``"json"`` when the stored text decoded as JSON and
    ``"string"`` when it was returned verbatim.
    """

    key: str
    value: Any
    raw_encoding: str


@dataclass(frozen=True)
class StorageResult:
    """Outcome of one adapter operation; ``error`` is set whenever ``ok`` is False."""

    ok: bool
    operation: str
    key: Optional[str] = None
    value: Any = None
    error: Optional[LianyuError] = None

    def __bool__(self) -> bool:
        return self.ok
