"""Shared test fakes and fixtures for use case tests.

All in-memory fake implementations of domain ports live here.  Each fake
stores real data and returns it, so tests verify behaviour rather than
"was method X called?".

Other test files import these fakes directly::

    from tests.unit.use_cases.conftest import FakeScanJobRepository, FakeUnitOfWork
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from prguard.domain.common.errors import DeliveryError, DuplicateKeyError
from prguard.domain.common.uow import UnitOfWork
from prguard.domain.notifications.models import DeliveryDecision, NotificationStatus
from prguard.domain.notifications.ports import MailTransport, NotificationRepository
from prguard.domain.scanning.models import (
    ChangeType,
    FileChange,
    PullRequestRef,
    PullRequestSnapshot,
    ReconcileResult,
    SecurityAssessment,
    Severity,
    Vulnerability,
)
from prguard.domain.scanning.ports import (
    CancellationToken,
    JobEventPublisher,
    PullRequestRepository,
    RepositoryRepository,
    ScanDispatcher,
    ScanJobRepository,
    ScanResultRepository,
    SecuritySummaryRepository,
    SourceControlConnector,
    VulnerabilityDetector,
)
from prguard.domain.watching.models import CycleReport, TriggerKind, WatchSettings
from prguard.domain.watching.ports import CycleLock, CycleStatusStore, WatchRepository


# ---------------------------------------------------------------------------
# Mutable ORM-like test records
# ---------------------------------------------------------------------------


@dataclass
class FakeRepository:
    id: int
    full_name: str
    default_branch: str = "main"


@dataclass
class FakePullRequest:
    id: int
    repository_id: int
    number: int
    title: str = "Change"
    author: str = "octocat"
    base_branch: str = "main"
    head_branch: str = "feature"
    base_commit: str = "base000"
    head_commit: str = "head111"
    status: str = "open"
    merged_at: datetime | None = None
    description: str | None = None
    html_url: str | None = None


@dataclass
class FakeJob:
    """Mutable in-memory scan job (mimics the ORM model)."""

    id: int
    pull_request_id: int
    repository_id: int
    scan_type: str = "diff"
    status: str = "pending"
    base_commit: str | None = None
    head_commit: str | None = None
    idempotency_key: str | None = None
    trigger: str | None = None
    task_id: str | None = None
    files_total: int = 0
    files_scanned: int = 0
    files_skipped: int = 0
    resume_count: int = 0
    error_message: str | None = None
    created_at: Any = None
    started_at: Any = None
    completed_at: Any = None
    heartbeat_at: Any = None


@dataclass
class FakeResult:
    id: int
    job_id: int
    file_path: str
    change_type: str
    partition: ReconcileResult
    metadata: dict


@dataclass
class FakeSummary:
    job_id: int
    total_added: int
    total_fixed: int
    total_unchanged: int
    added_by_severity: dict
    fixed_by_severity: dict
    score_before: int
    score_after: int
    recommendation: str


@dataclass
class FakeWatch:
    id: int
    user_id: int
    repository_id: int
    is_active: bool = True
    email_notifications: bool = True
    scan_on_open: bool = True
    scan_on_sync: bool = True
    scan_on_merge: bool = False
    notification_email: str | None = None
    created_at: datetime | None = None


@dataclass
class FakeNotification:
    id: int
    job_id: int
    user_id: int
    recipient: str
    kind: str
    subject: str
    body: str
    status: str = "pending"
    retry_count: int = 0
    max_attempts: int = 5
    next_attempt_at: datetime | None = None
    last_error: str | None = None
    sent_at: datetime | None = None


# ---------------------------------------------------------------------------
# Fake repositories
# ---------------------------------------------------------------------------


class FakeRepositoryRepository(RepositoryRepository):
    def __init__(self, repositories: Sequence[FakeRepository] = ()) -> None:
        self.repositories = {r.id: r for r in repositories}

    def get_by_id(self, repository_id: int) -> FakeRepository | None:
        return self.repositories.get(repository_id)

    def get_by_full_name(self, full_name: str) -> FakeRepository | None:
        for repo in self.repositories.values():
            if repo.full_name == full_name:
                return repo
        return None


class FakePullRequestRepository(PullRequestRepository):
    def __init__(
        self,
        pull_requests: Sequence[FakePullRequest] = (),
        repositories: FakeRepositoryRepository | None = None,
    ) -> None:
        self.pull_requests = {pr.id: pr for pr in pull_requests}
        self._repositories = repositories or FakeRepositoryRepository()

    def get_by_id(self, pull_request_id: int) -> FakePullRequest | None:
        return self.pull_requests.get(pull_request_id)

    def get_ref(self, pull_request_id: int) -> PullRequestRef | None:
        pr = self.pull_requests.get(pull_request_id)
        if pr is None:
            return None
        repo = self._repositories.get_by_id(pr.repository_id)
        return PullRequestRef(
            id=pr.id,
            repository_id=pr.repository_id,
            repository_full_name=repo.full_name if repo else "unknown/repo",
            number=pr.number,
            base_branch=pr.base_branch,
            head_branch=pr.head_branch,
            base_commit=pr.base_commit,
            head_commit=pr.head_commit,
        )

    def upsert(
        self, repository_id: int, snapshot: PullRequestSnapshot
    ) -> tuple[FakePullRequest, bool]:
        for pr in self.pull_requests.values():
            if pr.repository_id == repository_id and pr.number == snapshot.number:
                created = False
                break
        else:
            pr = FakePullRequest(
                id=max(self.pull_requests, default=0) + 1,
                repository_id=repository_id,
                number=snapshot.number,
            )
            self.pull_requests[pr.id] = pr
            created = True

        pr.title = snapshot.title
        pr.author = snapshot.author
        pr.base_branch = snapshot.base_branch
        pr.head_branch = snapshot.head_branch
        pr.base_commit = snapshot.base_commit
        pr.head_commit = snapshot.head_commit
        pr.status = snapshot.status
        pr.merged_at = snapshot.merged_at
        return pr, created

    def list_by_repository(
        self, repository_id: int, status: str | None = None
    ) -> list[FakePullRequest]:
        return sorted(
            (
                pr
                for pr in self.pull_requests.values()
                if pr.repository_id == repository_id
                and (status is None or pr.status == status)
            ),
            key=lambda pr: -pr.number,
        )


class FakeScanJobRepository(ScanJobRepository):
    """In-memory jobs plus the per-PR active slot.

    Jobs created since the last commit are discarded on rollback, so the
    creation race in StartScanUseCase can be exercised.
    """

    def __init__(self) -> None:
        self.jobs: dict[int, FakeJob] = {}
        self.rows: list[FakeJob] = []  # insertion order
        self.slots: dict[int, int] = {}  # pull_request_id -> job_id
        self.status_history: list[tuple[int, str]] = []
        self._uncommitted: list[int] = []
        self._next_id = 1

    def create(self, **fields) -> FakeJob:
        key = fields.get("idempotency_key")
        if key and any(j.idempotency_key == key for j in self.jobs.values()):
            raise DuplicateKeyError(f"idempotency_key {key}")
        job = FakeJob(id=self._next_id, **fields)
        self._next_id += 1
        self.jobs[job.id] = job
        self.rows.append(job)
        self._uncommitted.append(job.id)
        return job

    def add_existing(self, **fields) -> FakeJob:
        """Seed a committed job."""
        job = self.create(**fields)
        self._uncommitted.remove(job.id)
        if job.status in ("pending", "running"):
            self.slots[job.pull_request_id] = job.id
        return job

    def get_by_id(self, job_id: int) -> FakeJob | None:
        return self.jobs.get(job_id)

    def get_by_idempotency_key(self, key: str) -> FakeJob | None:
        for job in self.jobs.values():
            if job.idempotency_key == key:
                return job
        return None

    def get_active_for_pull_request(self, pull_request_id: int) -> FakeJob | None:
        job_id = self.slots.get(pull_request_id)
        return self.jobs.get(job_id) if job_id is not None else None

    def claim_active_slot(self, pull_request_id: int, job_id: int) -> None:
        if pull_request_id in self.slots:
            raise DuplicateKeyError(f"active slot for PR {pull_request_id}")
        self.slots[pull_request_id] = job_id

    def release_active_slot(self, pull_request_id: int, job_id: int) -> None:
        if self.slots.get(pull_request_id) == job_id:
            del self.slots[pull_request_id]

    def update_status(self, job_id: int, status: str, **fields) -> None:
        job = self.jobs.get(job_id)
        if job is None:
            raise ValueError(f"Cannot update non-existent job: {job_id}")
        job.status = status
        self.update(job_id, **fields)
        self.status_history.append((job_id, status))

    def transition(
        self, job_id: int, from_statuses: Sequence[str], to_status: str, **fields
    ) -> bool:
        job = self.jobs.get(job_id)
        if job is None or job.status not in from_statuses:
            return False
        self.update_status(job_id, to_status, **fields)
        return True

    def touch(self, job_id: int, at: datetime, **fields) -> bool:
        job = self.jobs.get(job_id)
        if job is None or job.status != "running":
            return False
        self.update(job_id, heartbeat_at=at, **fields)
        return True

    def claim_stale(
        self, job_id: int, stale_before: datetime, at: datetime, **fields
    ) -> bool:
        job = self.jobs.get(job_id)
        if job is None or job.status not in ("pending", "running"):
            return False
        if not _is_stale(job, stale_before):
            return False
        self.update(job_id, heartbeat_at=at, **fields)
        return True

    def update(self, job_id: int, **fields) -> None:
        job = self.jobs[job_id]
        for name, value in fields.items():
            if not hasattr(job, name):
                raise AttributeError(name)
            setattr(job, name, value)

    def list_by_status(self, statuses: Sequence[str]) -> list[FakeJob]:
        return [j for j in self.rows if j.status in statuses]

    def list_stale(
        self, statuses: Sequence[str], stale_before: datetime
    ) -> list[FakeJob]:
        return [
            j for j in self.rows if j.status in statuses and _is_stale(j, stale_before)
        ]

    # ── transaction hooks used by FakeUnitOfWork ──

    def _commit(self) -> None:
        self._uncommitted.clear()

    def _rollback(self) -> None:
        for job_id in self._uncommitted:
            job = self.jobs.pop(job_id)
            self.rows.remove(job)
            if self.slots.get(job.pull_request_id) == job_id:
                del self.slots[job.pull_request_id]
        self._uncommitted.clear()


def _is_stale(job: FakeJob, stale_before: datetime) -> bool:
    return job.heartbeat_at is None or job.heartbeat_at < stale_before


class FakeScanResultRepository(ScanResultRepository):
    def __init__(self) -> None:
        self.rows: list[FakeResult] = []

    def add(
        self,
        job_id: int,
        file_path: str,
        change_type: str,
        result: ReconcileResult,
        metadata: dict,
    ) -> FakeResult:
        if any(r.job_id == job_id and r.file_path == file_path for r in self.rows):
            raise DuplicateKeyError(f"result {job_id}/{file_path}")
        row = FakeResult(len(self.rows) + 1, job_id, file_path, change_type, result, metadata)
        self.rows.append(row)
        return row

    def list_by_job(self, job_id: int) -> list[FakeResult]:
        return sorted((r for r in self.rows if r.job_id == job_id), key=lambda r: r.file_path)

    def partitions_by_job(self, job_id: int) -> dict[str, ReconcileResult]:
        return {r.file_path: r.partition for r in self.list_by_job(job_id)}


class FakeSecuritySummaryRepository(SecuritySummaryRepository):
    def __init__(self, jobs: FakeScanJobRepository | None = None) -> None:
        self.summaries: dict[int, FakeSummary] = {}
        self._jobs = jobs

    def create(self, job_id: int, assessment: SecurityAssessment) -> FakeSummary:
        if job_id in self.summaries:
            raise DuplicateKeyError(f"summary for job {job_id}")
        summary = FakeSummary(
            job_id=job_id,
            total_added=assessment.total_added,
            total_fixed=assessment.total_fixed,
            total_unchanged=assessment.total_unchanged,
            added_by_severity=dict(assessment.added_by_severity),
            fixed_by_severity=dict(assessment.fixed_by_severity),
            score_before=assessment.score_before,
            score_after=assessment.score_after,
            recommendation=assessment.recommendation.value,
        )
        self.summaries[job_id] = summary
        return summary

    def get_by_job(self, job_id: int) -> FakeSummary | None:
        return self.summaries.get(job_id)

    def latest_for_pull_request(self, pull_request_id: int) -> FakeSummary | None:
        candidates = [
            s
            for s in self.summaries.values()
            if self._jobs is not None
            and self._jobs.jobs[s.job_id].pull_request_id == pull_request_id
            and self._jobs.jobs[s.job_id].status == "completed"
        ]
        return max(candidates, key=lambda s: s.job_id, default=None)


class FakeWatchRepository(WatchRepository):
    def __init__(self, watches: Sequence[FakeWatch] = ()) -> None:
        self.watches = {w.id: w for w in watches}
        self.checkpoints: dict[tuple[int, int, str], str] = {}

    def list_active(self) -> list[FakeWatch]:
        return [w for w in self.watches.values() if w.is_active]

    def list_active_for_repository(self, repository_id: int) -> list[FakeWatch]:
        return [w for w in self.list_active() if w.repository_id == repository_id]

    def list_for_user(self, user_id: int) -> list[FakeWatch]:
        return [w for w in self.list_active() if w.user_id == user_id]

    def get_for_user(self, user_id: int, repository_id: int) -> FakeWatch | None:
        for w in self.watches.values():
            if w.user_id == user_id and w.repository_id == repository_id:
                return w
        return None

    def upsert(self, user_id: int, repository_id: int, settings: WatchSettings) -> FakeWatch:
        watch = self.get_for_user(user_id, repository_id)
        if watch is None:
            watch = FakeWatch(
                id=max(self.watches, default=0) + 1,
                user_id=user_id,
                repository_id=repository_id,
            )
            self.watches[watch.id] = watch
        watch.is_active = True
        for name, value in vars(settings).items():
            if value is not None:
                setattr(watch, name, value)
        return watch

    def deactivate(self, user_id: int, repository_id: int) -> bool:
        watch = self.get_for_user(user_id, repository_id)
        if watch is None or not watch.is_active:
            return False
        watch.is_active = False
        return True

    def get_checkpoint(
        self, watch_id: int, pull_request_id: int, trigger: TriggerKind
    ) -> str | None:
        return self.checkpoints.get((watch_id, pull_request_id, trigger.value))

    def set_checkpoint(
        self, watch_id: int, pull_request_id: int, trigger: TriggerKind, commit: str
    ) -> None:
        self.checkpoints[(watch_id, pull_request_id, trigger.value)] = commit


class FakeNotificationRepository(NotificationRepository):
    def __init__(self) -> None:
        self.records: dict[int, FakeNotification] = {}
        self.claims: list[int] = []

    def create_if_absent(self, **fields) -> FakeNotification | None:
        for r in self.records.values():
            if r.job_id == fields["job_id"] and r.recipient == fields["recipient"]:
                return None
        record = FakeNotification(id=len(self.records) + 1, **fields)
        self.records[record.id] = record
        return record

    def get_by_id(self, notification_id: int) -> FakeNotification | None:
        return self.records.get(notification_id)

    def list_by_job(self, job_id: int) -> list[FakeNotification]:
        return [r for r in self.records.values() if r.job_id == job_id]

    def _is_due(self, record: FakeNotification, now: datetime) -> bool:
        return record.status == NotificationStatus.PENDING.value and (
            record.next_attempt_at is None or record.next_attempt_at <= now
        )

    def due_ids(self, now: datetime, limit: int) -> list[int]:
        return [r.id for r in self.records.values() if self._is_due(r, now)][:limit]

    def claim(self, notification_id: int, now: datetime, lease_until: datetime) -> bool:
        record = self.records.get(notification_id)
        if record is None or not self._is_due(record, now):
            return False
        record.next_attempt_at = lease_until
        self.claims.append(notification_id)
        return True

    def record_attempt(self, notification_id: int, decision: DeliveryDecision) -> None:
        record = self.records[notification_id]
        record.status = decision.status.value
        record.retry_count = decision.retry_count
        record.next_attempt_at = decision.next_attempt_at
        if decision.last_error is not None:
            record.last_error = decision.last_error
        if decision.sent_at is not None:
            record.sent_at = decision.sent_at

    def count_by_status(self, user_id: int | None = None) -> dict[str, int]:
        counts: dict[str, int] = {}
        for r in self.records.values():
            if user_id is None or r.user_id == user_id:
                counts[r.status] = counts.get(r.status, 0) + 1
        return counts


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeScanDispatcher(ScanDispatcher):
    """Records all dispatch calls; optionally raises on dispatch."""

    def __init__(self, *, should_fail: bool = False) -> None:
        self._should_fail = should_fail
        self.dispatched: list[int] = []

    def dispatch_scan(self, job_id: int) -> str:
        if self._should_fail:
            raise RuntimeError("Celery is down")
        self.dispatched.append(job_id)
        return f"fake-task-{job_id}"


class FakeJobEventPublisher(JobEventPublisher):
    def __init__(self, *, should_fail: bool = False) -> None:
        self._should_fail = should_fail
        self.published: list[tuple[int, str]] = []

    def publish_job_finished(self, job_id: int, status: str) -> None:
        if self._should_fail:
            raise RuntimeError("broker unavailable")
        self.published.append((job_id, status))


class FakeDetector(VulnerabilityDetector):
    """Returns the findings registered for a file's *content*.

    ``failures`` maps a filename to exceptions raised (in order) before
    the detector answers normally for that file.
    """

    def __init__(
        self,
        findings: dict[str, list[Vulnerability]] | None = None,
        failures: dict[str, list[Exception]] | None = None,
    ) -> None:
        self._findings = findings or {}
        self._failures = {k: list(v) for k, v in (failures or {}).items()}
        self.calls: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "fake-detector"

    def detect(self, code: str, filename: str) -> list[Vulnerability]:
        self.calls.append((filename, code))
        pending = self._failures.get(filename)
        if pending:
            raise pending.pop(0)
        return list(self._findings.get(code, []))


class FakeConnector(SourceControlConnector):
    def __init__(
        self,
        changes: list[FileChange] | None = None,
        *,
        pull_requests: dict[str, list[PullRequestSnapshot]] | None = None,
        diff_failures: list[Exception] | None = None,
        list_failures: dict[str, Exception] | None = None,
    ) -> None:
        self.changes = changes or []
        self.pull_requests = pull_requests or {}
        self._diff_failures = list(diff_failures or [])
        self._list_failures = list_failures or {}
        self.diff_calls: list[PullRequestRef] = []

    def fetch_diff(self, pull_request: PullRequestRef) -> list[FileChange]:
        self.diff_calls.append(pull_request)
        if self._diff_failures:
            raise self._diff_failures.pop(0)
        return list(self.changes)

    def list_pull_requests(self, repository_full_name: str) -> list[PullRequestSnapshot]:
        if repository_full_name in self._list_failures:
            raise self._list_failures[repository_full_name]
        return list(self.pull_requests.get(repository_full_name, []))


class FakeMailTransport(MailTransport):
    """Fails the first *fail_times* sends, then succeeds."""

    def __init__(self, fail_times: int = 0, *, error: Exception | None = None) -> None:
        self._remaining_failures = fail_times
        self._error = error or DeliveryError("SMTP server unavailable")
        self.sent: list[tuple[str, str, str]] = []
        self.attempts = 0

    def send(self, recipient: str, subject: str, body: str) -> None:
        self.attempts += 1
        if self._remaining_failures:
            self._remaining_failures -= 1
            raise self._error
        self.sent.append((recipient, subject, body))


class FakeCycleLock(CycleLock):
    def __init__(self, *, available: bool = True) -> None:
        self._available = available
        self.acquired = 0
        self.released = 0

    def acquire(self) -> bool:
        if not self._available:
            return False
        self.acquired += 1
        return True

    def release(self) -> None:
        self.released += 1


class FakeCycleStatusStore(CycleStatusStore):
    def __init__(self) -> None:
        self.trace: dict = {}

    def record_start(self, at: datetime) -> None:
        self.trace["last_started_at"] = at.isoformat()

    def record_finish(self, at: datetime, report: CycleReport) -> None:
        self.trace["last_finished_at"] = at.isoformat()
        self.trace["last_report"] = vars(report).copy()

    def load(self) -> dict:
        return dict(self.trace)


class FakeCancellationToken(CancellationToken):
    """Configurable cancellation: cancels after *cancel_after* checks.

    ``cancel_after=None`` (default) means never cancel.
    ``cancel_after=1`` cancels on the second call to ``is_cancelled()``.
    """

    def __init__(self, cancel_after: int | None = None) -> None:
        self._cancel_after = cancel_after
        self._checks = 0

    def is_cancelled(self) -> bool:
        self._checks += 1
        if self._cancel_after is not None and self._checks > self._cancel_after:
            return True
        return False


# ---------------------------------------------------------------------------
# Fake unit of work
# ---------------------------------------------------------------------------


class FakeUnitOfWork(UnitOfWork):
    """In-memory UoW wiring up all fake repositories."""

    def __init__(
        self,
        *,
        repositories: FakeRepositoryRepository | None = None,
        pull_requests: FakePullRequestRepository | None = None,
        scan_jobs: FakeScanJobRepository | None = None,
        scan_results: FakeScanResultRepository | None = None,
        summaries: FakeSecuritySummaryRepository | None = None,
        watches: FakeWatchRepository | None = None,
        notifications: FakeNotificationRepository | None = None,
    ) -> None:
        self.repositories = repositories or FakeRepositoryRepository()
        self.pull_requests = pull_requests or FakePullRequestRepository(
            repositories=self.repositories
        )
        self.scan_jobs = scan_jobs or FakeScanJobRepository()
        self.scan_results = scan_results or FakeScanResultRepository()
        self.summaries = summaries or FakeSecuritySummaryRepository(self.scan_jobs)
        self.watches = watches or FakeWatchRepository()
        self.notifications = notifications or FakeNotificationRepository()
        self.committed = 0
        self.rolled_back = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.rollback()

    def commit(self):
        self.committed += 1
        self.scan_jobs._commit()

    def rollback(self):
        self.rolled_back += 1
        self.scan_jobs._rollback()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def vuln(
    category: str = "sql_injection",
    severity: Severity | str = Severity.HIGH,
    start: int = 10,
    end: int | None = None,
    title: str = "",
) -> Vulnerability:
    return Vulnerability(
        category=category,
        severity=Severity(severity),
        start_line=start,
        end_line=end if end is not None else start,
        title=title,
    )


def modified(path: str, base: str, head: str) -> FileChange:
    return FileChange(
        path=path, change_type=ChangeType.MODIFIED, base_content=base, head_content=head
    )


def make_uow(
    *,
    head_commit: str = "head111",
    pr_status: str = "open",
    watches: Sequence[FakeWatch] = (),
) -> FakeUnitOfWork:
    """UoW seeded with repository 1 ``acme/web`` and its PR 10 (#7)."""
    repositories = FakeRepositoryRepository([FakeRepository(1, "acme/web")])
    pull_requests = FakePullRequestRepository(
        [
            FakePullRequest(
                id=10,
                repository_id=1,
                number=7,
                title="Add login form",
                head_commit=head_commit,
                status=pr_status,
            )
        ],
        repositories,
    )
    return FakeUnitOfWork(
        repositories=repositories,
        pull_requests=pull_requests,
        watches=FakeWatchRepository(watches),
    )
