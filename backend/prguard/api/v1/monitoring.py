"""Watch scheduler monitoring."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from ...infra.db.uow import SqlUnitOfWork
from ...schemas.monitoring import CheckQueuedResponse, MonitoringStatusResponse
from ...use_cases.watching.monitoring import GetMonitoringStatusUseCase
from ...wiring.bootstrap import get_monitoring_status_use_case, get_uow

logger = logging.getLogger(__name__)
router = APIRouter()


def _iso(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@router.get("/status", response_model=MonitoringStatusResponse)
def monitoring_status(
    uow: SqlUnitOfWork = Depends(get_uow),
    use_case: GetMonitoringStatusUseCase = Depends(get_monitoring_status_use_case),
):
    status = use_case.execute(uow)
    return MonitoringStatusResponse(
        interval_seconds=status.interval_seconds,
        active_watches=status.active_watches,
        watched_repositories=status.watched_repositories,
        last_started_at=_iso(status.last_started_at),
        last_finished_at=_iso(status.last_finished_at),
        last_report=status.last_report,
    )


@router.post("/check", response_model=CheckQueuedResponse, status_code=202)
def trigger_check():
    """Queue a watch cycle now instead of waiting for the next beat."""
    from ...tasks.watch_tasks import run_watch_cycle

    try:
        task = run_watch_cycle.delay()
    except Exception:
        logger.exception("Failed to queue watch cycle")
        raise HTTPException(status_code=503, detail="Failed to queue watch cycle")
    return CheckQueuedResponse(task_id=task.id)
