"""Celery task wrappers for scan execution and job recovery.

Thin shims; all business logic lives in
:class:`~prguard.use_cases.scanning.run_scan.RunScanUseCase` and
:class:`~prguard.use_cases.scanning.recover_jobs.RecoverInterruptedJobsUseCase`.
"""

from __future__ import annotations

import logging

from prguard.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="prguard.tasks.scan_tasks.run_pr_scan")
def run_pr_scan(self, job_id: int) -> dict:
    """Execute one PR scan job on the scans queue."""
    from prguard.infra.tasks.cancellation import ShutdownCancellationToken
    from prguard.use_cases.scanning.run_scan import RunScanCommand
    from prguard.wiring.bootstrap import get_run_scan_use_case, new_uow

    logger.info("run_pr_scan: job=%s task=%s", job_id, self.request.id)

    result = get_run_scan_use_case().execute(
        uow=new_uow(),
        cmd=RunScanCommand(job_id=job_id),
        cancel=ShutdownCancellationToken(),
    )
    return {
        "job_id": result.job_id,
        "outcome": result.outcome.value,
        "status": result.status,
        "files_total": result.files_total,
        "files_scanned": result.files_scanned,
        "files_skipped": result.files_skipped,
        "error_message": result.error_message,
    }


@celery_app.task(bind=True, name="prguard.tasks.scan_tasks.recover_interrupted_scans")
def recover_interrupted_scans(self) -> dict:
    """Re-dispatch jobs left pending/running by a previous worker."""
    from prguard.wiring.bootstrap import get_recover_jobs_use_case, new_uow

    report = get_recover_jobs_use_case().execute(new_uow())
    return {"redispatched": report.redispatched, "failed": report.failed}
