"""Status of the polling scheduler, as reported by the monitoring endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from prguard.domain.common.uow import UnitOfWork
from prguard.domain.watching.ports import CycleStatusStore


@dataclass(frozen=True)
class MonitoringStatus:
    interval_seconds: int
    active_watches: int
    watched_repositories: int
    last_started_at: Any = None
    last_finished_at: Any = None
    last_report: dict | None = None


class GetMonitoringStatusUseCase:
    def __init__(self, status_store: CycleStatusStore, interval_seconds: int) -> None:
        self._status = status_store
        self._interval = interval_seconds

    def execute(self, uow: UnitOfWork) -> MonitoringStatus:
        with uow:
            watches = uow.watches.list_active()
            repositories = {w.repository_id for w in watches}
        trace = self._status.load()
        return MonitoringStatus(
            interval_seconds=self._interval,
            active_watches=len(watches),
            watched_repositories=len(repositories),
            last_started_at=trace.get("last_started_at"),
            last_finished_at=trace.get("last_finished_at"),
            last_report=trace.get("last_report"),
        )
