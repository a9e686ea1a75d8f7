"""RecoverInterruptedJobsUseCase: resume jobs orphaned by a worker restart.

Runs when a worker starts and then periodically from the beat schedule.
Only jobs whose heartbeat is older than ``stale_after_seconds`` count as
orphaned; a job a live worker is still scanning refreshes its heartbeat
after every file and is left alone.  Each orphan is claimed with a
conditional write, so concurrent recovery passes never both take it.

The persisted per-file results make the rerun pick up where the previous
process stopped.  A job that keeps getting interrupted is failed
explicitly instead of looping forever.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from prguard.domain.common.clock import utcnow
from prguard.domain.common.uow import UnitOfWork
from prguard.domain.scanning.models import JobStatus, validate_transition
from prguard.domain.scanning.ports import (
    JobEventPublisher,
    ScanDispatcher,
    ScanJobRecord,
)

logger = logging.getLogger(__name__)

TOO_MANY_RESUMES = "Scan interrupted too many times"

_ACTIVE = [JobStatus.PENDING.value, JobStatus.RUNNING.value]


@dataclass
class RecoveryReport:
    redispatched: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


class RecoverInterruptedJobsUseCase:
    def __init__(
        self,
        dispatcher: ScanDispatcher,
        publisher: JobEventPublisher,
        *,
        max_resumes: int = 3,
        stale_after_seconds: float = 900.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._dispatcher = dispatcher
        self._publisher = publisher
        self._max_resumes = max_resumes
        self._stale_after = timedelta(seconds=stale_after_seconds)
        self._clock = clock

    def execute(self, uow: UnitOfWork) -> RecoveryReport:
        report = RecoveryReport()
        now = self._clock()
        stale_before = now - self._stale_after

        with uow:
            for job in uow.scan_jobs.list_stale(_ACTIVE, stale_before):
                job_id = job.id
                resumes = (job.resume_count or 0) + 1

                if not uow.scan_jobs.claim_stale(
                    job_id, stale_before, now, resume_count=resumes
                ):
                    uow.rollback()
                    logger.info("Scan job %s was picked up elsewhere; skipping", job_id)
                    continue
                uow.commit()

                if resumes > self._max_resumes:
                    if self._give_up(uow, job, TOO_MANY_RESUMES):
                        report.failed.append(job_id)
                    continue

                try:
                    task_id = self._dispatcher.dispatch_scan(job_id)
                except Exception:
                    logger.exception("Failed to re-dispatch scan job %s", job_id)
                    if self._give_up(uow, job, "Failed to dispatch scan task"):
                        report.failed.append(job_id)
                    continue

                uow.scan_jobs.update(job_id, task_id=task_id)
                uow.commit()
                report.redispatched.append(job_id)

        if report.redispatched or report.failed:
            logger.info(
                "Job recovery: %d re-dispatched, %d failed",
                len(report.redispatched),
                len(report.failed),
            )
        return report

    def _give_up(self, uow: UnitOfWork, job: ScanJobRecord, message: str) -> bool:
        job_id = job.id
        pull_request_id = job.pull_request_id
        validate_transition(JobStatus(job.status), JobStatus.FAILED)
        if not uow.scan_jobs.transition(
            job_id,
            _ACTIVE,
            JobStatus.FAILED.value,
            error_message=message,
            completed_at=self._clock(),
        ):
            uow.rollback()
            return False
        uow.scan_jobs.release_active_slot(pull_request_id, job_id)
        uow.commit()
        logger.warning("Scan job %s failed during recovery: %s", job_id, message)
        try:
            self._publisher.publish_job_finished(job_id, JobStatus.FAILED.value)
        except Exception:
            logger.exception("Failed to publish job-finished event for job %s", job_id)
        return True
