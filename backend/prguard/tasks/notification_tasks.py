"""Celery tasks for notification composition and delivery."""

from __future__ import annotations

import logging
from dataclasses import asdict

from prguard.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="prguard.tasks.notification_tasks.notify_job_finished")
def notify_job_finished(self, job_id: int, status: str) -> dict:
    """Create the job's notification records, then try delivering right away."""
    from prguard.wiring.bootstrap import get_notification_dispatcher, new_uow

    logger.info("notify_job_finished: job=%s status=%s", job_id, status)
    dispatcher = get_notification_dispatcher()
    created = dispatcher.on_job_finished(new_uow(), job_id)
    report = dispatcher.deliver_due(new_uow()) if created else None
    return {
        "job_id": job_id,
        "created": created,
        "delivery": asdict(report) if report else None,
    }


@celery_app.task(bind=True, name="prguard.tasks.notification_tasks.deliver_notifications")
def deliver_notifications(self) -> dict:
    """Scheduled: attempt every due pending notification."""
    from prguard.wiring.bootstrap import get_notification_dispatcher, new_uow

    report = get_notification_dispatcher().deliver_due(new_uow())
    return asdict(report)
