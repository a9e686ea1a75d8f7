"""Redis-backed CycleLock and CycleStatusStore for the watch scheduler.

Without Redis the cycle still runs: the idempotency key and the
active-slot constraint keep overlapping cycles from double-enqueueing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime

from redis import Redis
from redis.exceptions import LockError, RedisError

from prguard.domain.watching.models import CycleReport
from prguard.domain.watching.ports import CycleLock, CycleStatusStore

logger = logging.getLogger(__name__)

LOCK_KEY = "prguard:lock:watch_cycle"
STATUS_KEY = "prguard:watch_cycle:status"


class RedisCycleLock(CycleLock):
    """Non-blocking lock that expires after *timeout* seconds if the holder dies."""

    def __init__(self, client: Redis | None, *, timeout: int = 300, key: str = LOCK_KEY) -> None:
        self._client = client
        self._lock = client.lock(key, timeout=timeout, blocking=False) if client else None

    def acquire(self) -> bool:
        if self._lock is None:
            logger.warning("Redis unavailable; running watch cycle without lock")
            return True
        try:
            return bool(self._lock.acquire(blocking=False))
        except RedisError:
            logger.warning("Could not reach Redis for watch-cycle lock; running unlocked", exc_info=True)
            self._lock = None
            return True

    def release(self) -> None:
        if self._lock is None:
            return
        try:
            self._lock.release()
        except LockError:
            # expired while the cycle ran
            logger.warning("Watch-cycle lock expired before release")
        except RedisError:
            logger.warning("Could not release watch-cycle lock", exc_info=True)


class RedisCycleStatusStore(CycleStatusStore):
    def __init__(self, client: Redis | None, *, key: str = STATUS_KEY) -> None:
        self._client = client
        self._key = key

    def record_start(self, at: datetime) -> None:
        self._write({"last_started_at": at.isoformat()})

    def record_finish(self, at: datetime, report: CycleReport) -> None:
        self._write(
            {
                "last_finished_at": at.isoformat(),
                "last_report": json.dumps(asdict(report)),
            }
        )

    def load(self) -> dict:
        if self._client is None:
            return {}
        try:
            raw = self._client.hgetall(self._key)
        except RedisError:
            logger.warning("Could not read watch-cycle status", exc_info=True)
            return {}
        return {
            "last_started_at": raw.get("last_started_at"),
            "last_finished_at": raw.get("last_finished_at"),
            "last_report": json.loads(raw["last_report"]) if raw.get("last_report") else None,
        }

    def _write(self, mapping: dict) -> None:
        if self._client is None:
            return
        try:
            self._client.hset(self._key, mapping=mapping)
        except RedisError:
            logger.warning("Could not record watch-cycle status", exc_info=True)
