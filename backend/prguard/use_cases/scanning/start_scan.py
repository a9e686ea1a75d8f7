"""StartScanUseCase: the single entry point for creating PR scan jobs.

Business rules:
  1. An idempotency key that matches an existing job returns that job.
  2. A pull request with a pending/running job returns that job
     (at most one active job per pull request).
  3. The job row and its active-slot row are inserted in one
     transaction; a unique-constraint violation means another caller
     won the race and its job is returned instead.
  4. The job is committed BEFORE dispatch so the worker can read it.
  5. Dispatch failure marks the job failed and frees the slot.

Both the HTTP route and the watch scheduler call this use case.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from prguard.domain.common.clock import utcnow
from prguard.domain.common.errors import (
    DuplicateKeyError,
    EntityNotFoundError,
    ValidationError,
)
from prguard.domain.common.types import CommitSha, JobId, PullRequestId
from prguard.domain.common.uow import UnitOfWork
from prguard.domain.scanning.models import JobStatus, ScanType, validate_transition
from prguard.domain.scanning.ports import ScanDispatcher

logger = logging.getLogger(__name__)


# ── Command (input) ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class StartScanCommand:
    pull_request_id: PullRequestId
    scan_type: str = ScanType.DIFF.value
    idempotency_key: str | None = None
    trigger: str | None = None


# ── Result (output) ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class StartScanResult:
    job_id: JobId
    status: str
    head_commit: CommitSha | None
    is_duplicate: bool


# ── Use Case ─────────────────────────────────────────────────────────────


class StartScanUseCase:
    """Create a scan job (or find the one already covering the request)."""

    def __init__(self, dispatcher: ScanDispatcher) -> None:
        self._dispatcher = dispatcher

    def execute(self, uow: UnitOfWork, cmd: StartScanCommand) -> StartScanResult:
        try:
            scan_type = ScanType(cmd.scan_type)
        except ValueError:
            raise ValidationError(f"Unknown scan type: {cmd.scan_type}") from None

        with uow:
            ref = uow.pull_requests.get_ref(cmd.pull_request_id)
            if ref is None:
                raise EntityNotFoundError("PullRequest", cmd.pull_request_id)

            existing = self._find_existing(uow, cmd)
            if existing is not None:
                return self._duplicate(existing)

            try:
                job = uow.scan_jobs.create(
                    pull_request_id=ref.id,
                    repository_id=ref.repository_id,
                    scan_type=scan_type.value,
                    status=JobStatus.PENDING.value,
                    base_commit=ref.base_commit,
                    head_commit=ref.head_commit,
                    idempotency_key=cmd.idempotency_key,
                    trigger=cmd.trigger,
                )
                uow.scan_jobs.claim_active_slot(ref.id, job.id)
                uow.commit()
            except DuplicateKeyError:
                uow.rollback()
                existing = self._find_existing(uow, cmd)
                if existing is None:
                    raise
                logger.info(
                    "Lost scan-creation race for PR %s; returning job %s",
                    ref.id,
                    existing.id,
                )
                return self._duplicate(existing)

            job_id = job.id
            head_commit = job.head_commit

            try:
                task_id = self._dispatcher.dispatch_scan(job_id)
            except Exception:
                logger.exception("Failed to dispatch scan job %s", job_id)
                validate_transition(JobStatus.PENDING, JobStatus.FAILED)
                uow.scan_jobs.transition(
                    job_id,
                    [JobStatus.PENDING.value],
                    JobStatus.FAILED.value,
                    error_message="Failed to dispatch scan task",
                    completed_at=utcnow(),
                )
                uow.scan_jobs.release_active_slot(ref.id, job_id)
                uow.commit()
                raise

            uow.scan_jobs.update(job_id, task_id=task_id)
            uow.commit()

        logger.info(
            "Created scan job %s for PR %s at %s (trigger=%s)",
            job_id,
            ref.id,
            head_commit,
            cmd.trigger or "manual",
        )
        return StartScanResult(
            job_id=job_id,
            status=JobStatus.PENDING.value,
            head_commit=head_commit,
            is_duplicate=False,
        )

    @staticmethod
    def _find_existing(uow: UnitOfWork, cmd: StartScanCommand):
        if cmd.idempotency_key:
            job = uow.scan_jobs.get_by_idempotency_key(cmd.idempotency_key)
            if job is not None:
                return job
        return uow.scan_jobs.get_active_for_pull_request(cmd.pull_request_id)

    @staticmethod
    def _duplicate(job) -> StartScanResult:
        return StartScanResult(
            job_id=job.id,
            status=job.status,
            head_commit=job.head_commit,
            is_duplicate=True,
        )
