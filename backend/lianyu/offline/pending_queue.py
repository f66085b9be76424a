# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  待发送队列 - 离线时失败的必达请求的持久化队列，作为一个 JSON 数组
  保存在存储适配器的单个逻辑键下，由后台同步排空。
  Pending-operation queue - durable queue of must-deliver requests that failed
  while offline, stored as one JSON array under a single logical key of the
  storage adapter and drained by background sync.

并发 / Concurrency:
  所有读-改-写都在同一把 asyncio.Lock 下执行，因此同一事件循环内的入队与
  排空不会互相覆盖。发送期间不持有锁；每次成功后重新读取队列再删除该条目，
  排空期间新入队的条目得以保留。
  Every read-modify-write runs under one asyncio.Lock, so enqueues and drains
  on the same event loop never overwrite each other. The lock is not held
  while sending; each success re-reads the queue before removing the entry,
  so operations enqueued mid-drain survive.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from lianyu.offline.retry import classify_delivery_error
from lianyu.schemas.pending import DrainReport, PendingOperation
from lianyu.storage.adapter import StorageAdapter
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_STORAGE_KEY = "pendingMessages"
DEFAULT_MAX_ENTRIES = 200
DEFAULT_MAX_AGE = timedelta(days=7)

Sender = Callable[[PendingOperation], Awaitable[None]]


class PendingOperationQueue:
    """
    待发送操作队列

    Durable FIFO of :class:`PendingOperation` entries.

    Bounded two ways: at most ``max_entries`` entries (the oldest are dropped
    on overflow) and at most ``max_age`` old (expired entries are dropped at
    the start of a drain). Entries are never edited; a failed resend leaves
    the entry exactly as it was.

    Attributes:
        storage (StorageAdapter): 持久化存储 / Persistence
        storage_key (str): 队列所在的逻辑键 / Logical key holding the queue
        max_entries (int): 队列上限 / Queue size cap
        max_age (Optional[timedelta]): 条目最长保留时间 / Entry expiry, None to disable
    """

    def __init__(
        self,
        storage: StorageAdapter,
        storage_key: str = DEFAULT_STORAGE_KEY,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        max_age: Optional[timedelta] = DEFAULT_MAX_AGE,
    ):
        self.storage = storage
        self.storage_key = storage_key
        self.max_entries = max_entries
        self.max_age = max_age
        self._lock = asyncio.Lock()

    async def _read(self) -> Tuple[bool, List[PendingOperation]]:
        result = await self.storage.get_item_result(self.storage_key)
        if not result.ok:
            return False, []
        if result.value is None:
            return True, []

        raw = result.value.value
        if not isinstance(raw, list):
            logger.warning("Pending queue under '%s' is not a list; treating it as empty", self.storage_key)
            return True, []

        entries: List[PendingOperation] = []
        for item in raw:
            try:
                entries.append(PendingOperation.model_validate(item))
            except ValidationError as exc:
                logger.warning("Discarding malformed pending operation: %s", exc)
        return True, entries

    async def _write(self, entries: List[PendingOperation]) -> bool:
        payload = [entry.model_dump(mode="json") for entry in entries]
        return await self.storage.set_item(self.storage_key, payload)

    def _is_expired(self, entry: PendingOperation, now: datetime) -> bool:
        if self.max_age is None:
            return False
        enqueued_at = entry.enqueued_at
        if enqueued_at.tzinfo is None:
            enqueued_at = enqueued_at.replace(tzinfo=timezone.utc)
        return now - enqueued_at > self.max_age

    async def enqueue(self, operation: PendingOperation) -> bool:
        """
        入队

        Append an operation. Returns False when the queue could not be read
        or written; an unreadable queue is never overwritten.
        """
        async with self._lock:
            ok, entries = await self._read()
            if not ok:
                logger.error("Cannot enqueue %s %s: pending queue unreadable", operation.method, operation.target_url)
                return False

            entries.append(operation)
            overflow = len(entries) - self.max_entries
            if overflow > 0:
                logger.warning("Pending queue full (%d); dropping %d oldest entries", self.max_entries, overflow)
                entries = entries[overflow:]

            written = await self._write(entries)
            if written:
                logger.info("Queued %s %s for background sync (%d pending)", operation.method, operation.target_url, len(entries))
            return written

    async def list(self) -> List[PendingOperation]:
        async with self._lock:
            _, entries = await self._read()
            return entries

    async def size(self) -> int:
        return len(await self.list())

    async def remove(self, ids: Iterable[str]) -> int:
        """Remove entries by id from the persisted queue; returns how many were removed."""
        targets = set(ids)
        async with self._lock:
            ok, entries = await self._read()
            if not ok:
                return 0
            kept = [entry for entry in entries if entry.id not in targets]
            removed = len(entries) - len(kept)
            if removed and not await self._write(kept):
                return 0
            return removed

    async def drain(self, send: Sender) -> DrainReport:
        """
        排空队列

        One drain pass over a snapshot of the queue taken at the start.

        Args:
            send: 重发一个操作，失败时抛出异常 / Resends one operation, raising on failure

        Returns:
            排空报告 / Drain report
        """
        now = datetime.now(timezone.utc)
        async with self._lock:
            ok, entries = await self._read()
            if not ok:
                logger.error("Background sync skipped: pending queue unreadable")
                return DrainReport()

            expired = [entry for entry in entries if self._is_expired(entry, now)]
            snapshot = [entry for entry in entries if not self._is_expired(entry, now)]
            if expired:
                logger.warning("Dropping %d pending operations older than %s", len(expired), self.max_age)
                await self._write(snapshot)

        report = DrainReport(expired=len(expired))
        for operation in snapshot:
            try:
                await send(operation)
            except Exception as exc:
                retryable, reason = classify_delivery_error(exc)
                if retryable:
                    report.failed += 1
                    logger.info("Failed to sync %s (%s): %s", operation.id, reason, exc)
                    continue
                logger.error("Dropping pending operation %s after permanent rejection (%s): %s", operation.id, reason, exc)
                report.dropped += 1
                await self.remove([operation.id])
                continue

            report.delivered += 1
            await self.remove([operation.id])

        report.remaining = await self.size()
        logger.info(
            "Background sync pass: delivered=%d failed=%d dropped=%d expired=%d remaining=%d",
            report.delivered,
            report.failed,
            report.dropped,
            report.expired,
            report.remaining,
        )
        return report
