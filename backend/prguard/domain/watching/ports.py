"""Ports for the repository-watching domain."""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Protocol

from .models import CycleReport, TriggerKind, WatchSettings


class WatchRecord(Protocol):
    """A stored watch as the use cases read it."""

    id: int
    user_id: int
    repository_id: int
    is_active: bool
    email_notifications: bool
    scan_on_open: bool
    scan_on_sync: bool
    scan_on_merge: bool
    notification_email: str | None
    created_at: datetime | None


class WatchRepository(abc.ABC):
    """Repository watches and their per-trigger checkpoints."""

    @abc.abstractmethod
    def list_active(self) -> list[WatchRecord]:
        ...

    @abc.abstractmethod
    def list_active_for_repository(self, repository_id: int) -> list[WatchRecord]:
        ...

    @abc.abstractmethod
    def list_for_user(self, user_id: int) -> list[WatchRecord]:
        ...

    @abc.abstractmethod
    def get_for_user(self, user_id: int, repository_id: int) -> WatchRecord | None:
        ...

    @abc.abstractmethod
    def upsert(self, user_id: int, repository_id: int, settings: WatchSettings) -> WatchRecord:
        """Create or reactivate the (user, repository) watch."""

    @abc.abstractmethod
    def deactivate(self, user_id: int, repository_id: int) -> bool:
        ...

    @abc.abstractmethod
    def get_checkpoint(
        self, watch_id: int, pull_request_id: int, trigger: TriggerKind
    ) -> str | None:
        """Last commit recorded for the trigger, or None if never checked."""

    @abc.abstractmethod
    def set_checkpoint(
        self, watch_id: int, pull_request_id: int, trigger: TriggerKind, commit: str
    ) -> None:
        ...


class CycleLock(abc.ABC):
    """Mutual exclusion for the scheduler cycle across processes."""

    @abc.abstractmethod
    def acquire(self) -> bool:
        """Non-blocking.  False when another cycle holds the lock."""

    @abc.abstractmethod
    def release(self) -> None:
        ...


class CycleStatusStore(abc.ABC):
    """Where the scheduler leaves a trace of its last run for the status endpoint."""

    @abc.abstractmethod
    def record_start(self, at: datetime) -> None:
        ...

    @abc.abstractmethod
    def record_finish(self, at: datetime, report: CycleReport) -> None:
        ...

    @abc.abstractmethod
    def load(self) -> dict:
        """Keys: last_started_at, last_finished_at, last_report (may be None)."""
