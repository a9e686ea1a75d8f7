"""Celery tasks for the watch scheduler (beat poll and on-demand checks)."""

from __future__ import annotations

import logging
from dataclasses import asdict

from prguard.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="prguard.tasks.watch_tasks.run_watch_cycle")
def run_watch_cycle(self) -> dict:
    """Scheduled: sync watched repositories and enqueue due scans."""
    from prguard.wiring.bootstrap import get_watch_scheduler, new_uow

    report = get_watch_scheduler().run_watch_cycle(new_uow)
    return asdict(report)


@celery_app.task(bind=True, name="prguard.tasks.watch_tasks.check_repository")
def check_repository(self, repository_id: int) -> dict:
    """Evaluate watch triggers for one repository after a manual sync."""
    from prguard.wiring.bootstrap import get_watch_scheduler, new_uow

    check = get_watch_scheduler().check_repository(new_uow, repository_id)
    return asdict(check)
