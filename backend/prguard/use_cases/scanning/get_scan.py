"""Read-side use cases for scan jobs and security summaries."""

from __future__ import annotations

from dataclasses import dataclass

from prguard.domain.common.errors import EntityNotFoundError
from prguard.domain.common.uow import UnitOfWork


@dataclass(frozen=True)
class ScanDetails:
    job: object
    results: list[object]
    summary: object | None


class GetScanUseCase:
    """Job, its per-file results and (when completed) its summary."""

    def execute(self, uow: UnitOfWork, job_id: int) -> ScanDetails:
        with uow:
            job = uow.scan_jobs.get_by_id(job_id)
            if job is None:
                raise EntityNotFoundError("PRScanJob", job_id)
            return ScanDetails(
                job=job,
                results=uow.scan_results.list_by_job(job_id),
                summary=uow.summaries.get_by_job(job_id),
            )


class GetLatestSummaryUseCase:
    """Summary of the pull request's most recent completed job, or None."""

    def execute(self, uow: UnitOfWork, pull_request_id: int) -> object | None:
        with uow:
            if uow.pull_requests.get_by_id(pull_request_id) is None:
                raise EntityNotFoundError("PullRequest", pull_request_id)
            return uow.summaries.latest_for_pull_request(pull_request_id)
