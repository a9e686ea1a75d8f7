"""Celery implementations of the ScanDispatcher and JobEventPublisher ports.

Task modules are imported lazily: they import the wiring layer, which
imports these adapters.
"""

from __future__ import annotations

import logging

from prguard.domain.scanning.ports import JobEventPublisher, ScanDispatcher

logger = logging.getLogger(__name__)


class CeleryScanDispatcher(ScanDispatcher):
    """Send scan jobs to the bounded ``scans`` queue."""

    def __init__(self, queue: str = "scans") -> None:
        self._queue = queue

    def dispatch_scan(self, job_id: int) -> str:
        from prguard.tasks.scan_tasks import run_pr_scan

        result = run_pr_scan.apply_async(args=[job_id], queue=self._queue)
        logger.debug("Dispatched scan job %s as task %s", job_id, result.id)
        return result.id


class CeleryJobEventPublisher(JobEventPublisher):
    def publish_job_finished(self, job_id: int, status: str) -> None:
        from prguard.tasks.notification_tasks import notify_job_finished

        notify_job_finished.delay(job_id, status)
