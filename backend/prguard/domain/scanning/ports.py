"""Ports (abstract interfaces) for the scanning domain.

These define WHAT the domain needs from the outside world without
specifying HOW it's provided.  Concrete implementations live in infra/.

Note: No infrastructure types (Session, Engine, Redis) appear here.
Repositories receive their session/connection through the UnitOfWork,
not through method parameters.
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Protocol, Sequence

from .models import (
    FileChange,
    PullRequestRef,
    PullRequestSnapshot,
    ReconcileResult,
    SecurityAssessment,
    Vulnerability,
)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class ScanJobRecord(Protocol):
    """The job fields the use cases read; the ORM row satisfies it."""

    id: int
    pull_request_id: int
    repository_id: int
    status: str
    base_commit: str | None
    head_commit: str | None
    resume_count: int
    error_message: str | None
    heartbeat_at: datetime | None


class PullRequestRecord(Protocol):
    id: int
    repository_id: int
    number: int
    status: str
    base_commit: str | None
    head_commit: str | None
    merged_at: datetime | None


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class RepositoryRepository(abc.ABC):
    """Source-control repositories known to the system."""

    @abc.abstractmethod
    def get_by_id(self, repository_id: int) -> object | None:
        ...

    @abc.abstractmethod
    def get_by_full_name(self, full_name: str) -> object | None:
        ...


class PullRequestRepository(abc.ABC):
    """Persist pull requests mirrored from the source-control platform."""

    @abc.abstractmethod
    def get_by_id(self, pull_request_id: int) -> PullRequestRecord | None:
        ...

    @abc.abstractmethod
    def get_ref(self, pull_request_id: int) -> PullRequestRef | None:
        ...

    @abc.abstractmethod
    def upsert(
        self, repository_id: int, snapshot: PullRequestSnapshot
    ) -> tuple[PullRequestRecord, bool]:
        """Insert or update by (repository, number).  Returns (row, created)."""

    @abc.abstractmethod
    def list_by_repository(
        self, repository_id: int, status: str | None = None
    ) -> list[PullRequestRecord]:
        ...


class ScanJobRepository(abc.ABC):
    """Persist and retrieve PR scan jobs and their active-job slots."""

    @abc.abstractmethod
    def create(self, **fields) -> ScanJobRecord:
        """Insert a job.  Raises DuplicateKeyError on idempotency-key clash."""

    @abc.abstractmethod
    def get_by_id(self, job_id: int) -> ScanJobRecord | None:
        ...

    @abc.abstractmethod
    def get_by_idempotency_key(self, key: str) -> ScanJobRecord | None:
        ...

    @abc.abstractmethod
    def get_active_for_pull_request(self, pull_request_id: int) -> ScanJobRecord | None:
        """The job holding the pull request's active slot, if any."""

    @abc.abstractmethod
    def claim_active_slot(self, pull_request_id: int, job_id: int) -> None:
        """Raises DuplicateKeyError when another job holds the slot."""

    @abc.abstractmethod
    def release_active_slot(self, pull_request_id: int, job_id: int) -> None:
        ...

    @abc.abstractmethod
    def transition(
        self, job_id: int, from_statuses: Sequence[str], to_status: str, **fields
    ) -> bool:
        """Conditional status write: applies only while the stored status is
        one of *from_statuses*.  Returns False when another process moved
        the job first.  Transition rules are checked by the caller."""

    @abc.abstractmethod
    def touch(self, job_id: int, at: datetime, **fields) -> bool:
        """Refresh the heartbeat (plus counters) of a ``running`` job.
        False when the job is no longer running."""

    @abc.abstractmethod
    def claim_stale(
        self, job_id: int, stale_before: datetime, at: datetime, **fields
    ) -> bool:
        """Take over an active job whose heartbeat is older than
        *stale_before*; the heartbeat moves to *at* so no other recovery
        claims it."""

    @abc.abstractmethod
    def update(self, job_id: int, **fields) -> None:
        """Write counters or task id without a status change."""

    @abc.abstractmethod
    def list_by_status(self, statuses: Sequence[str]) -> list[ScanJobRecord]:
        ...

    @abc.abstractmethod
    def list_stale(
        self, statuses: Sequence[str], stale_before: datetime
    ) -> list[ScanJobRecord]:
        """Jobs in *statuses* with no heartbeat since *stale_before*."""


class ScanResultRepository(abc.ABC):
    """Per-file reconciliation results of a job."""

    @abc.abstractmethod
    def add(
        self,
        job_id: int,
        file_path: str,
        change_type: str,
        result: ReconcileResult,
        metadata: dict,
    ) -> object:
        ...

    @abc.abstractmethod
    def list_by_job(self, job_id: int) -> list[object]:
        ...

    @abc.abstractmethod
    def partitions_by_job(self, job_id: int) -> dict[str, ReconcileResult]:
        """file path -> persisted partition (the resume checkpoint)."""


class SecuritySummaryRepository(abc.ABC):
    @abc.abstractmethod
    def create(self, job_id: int, assessment: SecurityAssessment) -> object:
        ...

    @abc.abstractmethod
    def get_by_job(self, job_id: int) -> object | None:
        ...

    @abc.abstractmethod
    def latest_for_pull_request(self, pull_request_id: int) -> object | None:
        ...


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------


class VulnerabilityDetector(abc.ABC):
    """AI detector: given a file's text and name, report findings.

    Raises TransientDetectorError / PermanentDetectorError.
    """

    @abc.abstractmethod
    def detect(self, code: str, filename: str) -> list[Vulnerability]:
        ...

    @property
    def name(self) -> str:
        return type(self).__name__


class SourceControlConnector(abc.ABC):
    """Source-control platform API (diffs, pull requests, file contents).

    Raises TransientDiffFetchError / PermanentDiffFetchError.
    """

    @abc.abstractmethod
    def fetch_diff(self, pull_request: PullRequestRef) -> list[FileChange]:
        ...

    @abc.abstractmethod
    def list_pull_requests(self, repository_full_name: str) -> list[PullRequestSnapshot]:
        ...


# ---------------------------------------------------------------------------
# Infrastructure services
# ---------------------------------------------------------------------------


class ScanDispatcher(abc.ABC):
    """Hand a job to the bounded worker pool."""

    @abc.abstractmethod
    def dispatch_scan(self, job_id: int) -> str:
        """Returns the worker task id."""


class JobEventPublisher(abc.ABC):
    """Publish "job finished" for the notification dispatcher."""

    @abc.abstractmethod
    def publish_job_finished(self, job_id: int, status: str) -> None:
        ...


class CancellationToken(abc.ABC):
    """Check whether the running scan should stop (process shutdown)."""

    @abc.abstractmethod
    def is_cancelled(self) -> bool:
        ...
