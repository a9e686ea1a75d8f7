"""Celery application bootstrap used by workers and FastAPI."""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import worker_ready, worker_shutting_down
from kombu import Queue

from prguard.config import settings

celery_app = Celery(
    "prguard",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "prguard.tasks.scan_tasks",
        "prguard.tasks.watch_tasks",
        "prguard.tasks.notification_tasks",
    ],
)

celery_app.conf.update(
    task_default_queue="default",
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Scans are long and resumable: ack after completion, one at a time
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.scan_worker_concurrency,
    task_soft_time_limit=settings.celery_task_soft_time_limit,
    task_time_limit=settings.celery_task_time_limit,
    task_queues=[
        Queue("default"),
        Queue(settings.scan_queue),
    ],
    task_routes={
        "prguard.tasks.scan_tasks.run_pr_scan": {"queue": settings.scan_queue},
    },
    broker_connection_retry_on_startup=True,
    beat_schedule={
        "watch-cycle": {
            "task": "prguard.tasks.watch_tasks.run_watch_cycle",
            "schedule": float(settings.watch_poll_interval_seconds),
        },
        "deliver-notifications": {
            "task": "prguard.tasks.notification_tasks.deliver_notifications",
            "schedule": float(settings.notification_poll_interval_seconds),
        },
        "recover-scans": {
            "task": "prguard.tasks.scan_tasks.recover_interrupted_scans",
            "schedule": float(settings.scan_recovery_interval_seconds),
        },
    },
    timezone="UTC",
)


@worker_ready.connect
def on_worker_ready(**kwargs):
    """Configure logging and resume jobs orphaned by the previous worker."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    from prguard.tasks.scan_tasks import recover_interrupted_scans

    recover_interrupted_scans.delay()


@worker_shutting_down.connect
def on_worker_shutting_down(**kwargs):
    from prguard.infra.tasks.cancellation import request_shutdown

    request_shutdown()


__all__ = ["celery_app"]
