"""RunScanUseCase: drives one PR scan job end-to-end.

This use case contains the business rules for executing a scan job:
  1. Load the job; ``pending`` moves to ``running``, ``running`` resumes
  2. Fetch the diff (transient errors retried with backoff)
  3. Scan each changed file via the VulnerabilityDetector port;
     files that already hold a result are skipped (resume checkpoint)
  4. Persist each file's reconciliation result, one commit per file
  5. Check the CancellationToken between files and between retries
  6. Score, write the summary, complete and free the slot in one commit
  7. Publish "job finished" after the terminal commit

A job fails only when the diff is unobtainable or no file could be
scanned.  A cancelled run leaves the job ``running`` for recovery.

Every status write is conditional on the status this run expects, and
the heartbeat is refreshed after each file.  A run whose job was failed
by recovery in the meantime stops without writing a result.

The use case depends ONLY on domain ports, never on SQLAlchemy, Celery,
Redis, or any other infrastructure.
"""

from __future__ import annotations

import logging
import posixpath
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, TypeVar

from prguard.domain.common.backoff import BackoffPolicy
from prguard.domain.common.clock import utcnow
from prguard.domain.common.errors import (
    DetectorError,
    DiffFetchError,
    DuplicateKeyError,
    EntityNotFoundError,
    TransientDetectorError,
    TransientDiffFetchError,
)
from prguard.domain.common.uow import UnitOfWork
from prguard.domain.scanning.models import (
    ChangeType,
    FileChange,
    JobStatus,
    PullRequestRef,
    ReconcileResult,
    ScanOutcome,
    Vulnerability,
    validate_transition,
)
from prguard.domain.scanning.ports import (
    CancellationToken,
    JobEventPublisher,
    ScanJobRecord,
    SourceControlConnector,
    VulnerabilityDetector,
)
from prguard.domain.scanning.reconciler import (
    ReconcilerConfig,
    all_added,
    all_fixed,
    reconcile,
)
from prguard.domain.scanning.scoring import ScoringConfig, assess

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Interrupted(Exception):
    """Raised internally when the cancellation token fires."""


# ── Policy ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ScanPolicy:
    """Retry and file-selection policy.  Built from settings by the wiring layer."""

    detector_max_attempts: int = 3
    diff_fetch_max_attempts: int = 3
    backoff: BackoffPolicy = BackoffPolicy(base_seconds=2.0, factor=2.0, cap_seconds=30.0)
    # lowercase extensions including the dot; empty means every file
    supported_extensions: frozenset[str] = field(default_factory=frozenset)

    def is_supported(self, path: str) -> bool:
        if not self.supported_extensions:
            return True
        _, ext = posixpath.splitext(path.lower())
        return ext in self.supported_extensions


# ── Command / Result ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class RunScanCommand:
    job_id: int


@dataclass(frozen=True)
class RunScanResult:
    job_id: int
    outcome: ScanOutcome
    status: str
    files_total: int = 0
    files_scanned: int = 0
    files_skipped: int = 0
    error_message: str | None = None


# ── Use Case ─────────────────────────────────────────────────────────────


class RunScanUseCase:
    """Execute a scan job: diff → detect → reconcile → persist → score.

    ``execute()`` receives a fresh UoW per invocation (same pattern as
    :class:`StartScanUseCase`).  ``sleep`` is injectable so tests never
    wait on backoff.
    """

    def __init__(
        self,
        detector: VulnerabilityDetector,
        connector: SourceControlConnector,
        publisher: JobEventPublisher,
        *,
        policy: ScanPolicy | None = None,
        reconciler_config: ReconcilerConfig | None = None,
        scoring_config: ScoringConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._detector = detector
        self._connector = connector
        self._publisher = publisher
        self._policy = policy or ScanPolicy()
        self._reconciler_config = reconciler_config or ReconcilerConfig()
        self._scoring_config = scoring_config or ScoringConfig()
        self._sleep = sleep
        self._clock = clock

    def execute(
        self, uow: UnitOfWork, cmd: RunScanCommand, cancel: CancellationToken
    ) -> RunScanResult:
        with uow:
            job = uow.scan_jobs.get_by_id(cmd.job_id)
            if job is None:
                raise EntityNotFoundError("PRScanJob", cmd.job_id)

            status = JobStatus(job.status)
            if not status.is_active:
                logger.info("Scan job %s already %s; nothing to do", job.id, status.value)
                return RunScanResult(job.id, ScanOutcome.SKIPPED, status.value)

            try:
                return self._run(uow, job, status, cancel)
            except Exception:
                logger.exception("Scan job %s crashed", cmd.job_id)
                uow.rollback()
                try:
                    self._fail(uow, cmd.job_id, "Internal error while scanning")
                except Exception:
                    logger.exception("Could not mark scan job %s failed", cmd.job_id)
                raise

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run(
        self,
        uow: UnitOfWork,
        job: ScanJobRecord,
        status: JobStatus,
        cancel: CancellationToken,
    ) -> RunScanResult:
        job_id = job.id
        pull_request_id = job.pull_request_id
        base_commit, head_commit = job.base_commit, job.head_commit

        now = self._clock()
        if status is JobStatus.PENDING:
            validate_transition(JobStatus.PENDING, JobStatus.RUNNING)
            started = uow.scan_jobs.transition(
                job_id,
                [JobStatus.PENDING.value],
                JobStatus.RUNNING.value,
                started_at=now,
                heartbeat_at=now,
            )
        else:
            logger.info("Resuming scan job %s", job_id)
            started = uow.scan_jobs.touch(job_id, now)
        if not started:
            return self._lost(uow, job_id)
        uow.commit()

        ref = uow.pull_requests.get_ref(pull_request_id)
        if ref is None:
            return self._fail(uow, job_id, f"Pull request {pull_request_id} no longer exists")
        # Scan the commits snapshotted at creation, not the current head
        ref = replace(
            ref,
            base_commit=base_commit or ref.base_commit,
            head_commit=head_commit or ref.head_commit,
        )

        # ── Diff ──────────────────────────────────────────────────
        try:
            changes = self._retrying(
                lambda: self._connector.fetch_diff(ref),
                TransientDiffFetchError,
                self._policy.diff_fetch_max_attempts,
                cancel,
                f"fetch diff for PR {ref.id}",
            )
        except _Interrupted:
            return self._interrupted(job_id)
        except DiffFetchError as exc:
            return self._fail(uow, job_id, f"Failed to fetch diff: {exc}")

        scannable = [c for c in changes if self._policy.is_supported(c.path)]
        unsupported = len(changes) - len(scannable)
        if unsupported:
            logger.info(
                "Scan job %s: skipping %d unsupported file(s)", job_id, unsupported
            )

        done = uow.scan_results.partitions_by_job(job_id)
        scanned = sum(1 for c in scannable if c.path in done)
        failed_files = 0
        if scanned:
            logger.info(
                "Resuming scan job %s from checkpoint %d/%d",
                job_id,
                scanned,
                len(scannable),
            )

        if not uow.scan_jobs.touch(
            job_id,
            self._clock(),
            files_total=len(changes),
            files_scanned=scanned,
            files_skipped=unsupported,
        ):
            return self._lost(uow, job_id)
        uow.commit()

        # ── Files ─────────────────────────────────────────────────
        for change in scannable:
            if change.path in done:
                continue
            if cancel.is_cancelled():
                return self._interrupted(job_id, len(changes), scanned, unsupported + failed_files)

            try:
                partition, metadata = self._scan_file(ref, change, cancel)
            except _Interrupted:
                return self._interrupted(job_id, len(changes), scanned, unsupported + failed_files)
            except DetectorError as exc:
                failed_files += 1
                logger.warning(
                    "Scan job %s: skipping %s after detector error: %s",
                    job_id,
                    change.path,
                    exc,
                )
                continue

            try:
                uow.scan_results.add(
                    job_id,
                    change.path,
                    _stored_change_type(change.change_type),
                    partition,
                    metadata,
                )
                if not uow.scan_jobs.touch(
                    job_id,
                    self._clock(),
                    files_scanned=scanned + 1,
                    files_skipped=unsupported + failed_files,
                ):
                    return self._lost(uow, job_id)
                uow.commit()
            except DuplicateKeyError:
                # another run of the same job persisted this file first
                uow.rollback()
                logger.info("Scan job %s: %s already persisted", job_id, change.path)
            scanned += 1

        skipped = unsupported + failed_files
        if scannable and scanned == 0:
            return self._fail(
                uow,
                job_id,
                f"No files could be scanned ({failed_files} detector failure(s))",
                files_skipped=skipped,
            )

        return self._complete(uow, job_id, pull_request_id, len(changes), scanned, skipped)

    def _scan_file(
        self, ref: PullRequestRef, change: FileChange, cancel: CancellationToken
    ) -> tuple[ReconcileResult, dict]:
        metadata: dict = {
            "detector": self._detector.name,
            "head_commit": ref.head_commit,
            "additions": change.additions,
            "deletions": change.deletions,
        }

        if change.change_type is ChangeType.ADDED:
            after = self._detect(change.head_content, change.path, cancel)
            metadata["findings_after"] = len(after)
            return all_added(after), metadata

        base_path = change.previous_path or change.path
        if change.change_type is ChangeType.DELETED:
            before = self._detect(change.base_content, base_path, cancel)
            metadata["findings_before"] = len(before)
            return all_fixed(before), metadata

        before = self._detect(change.base_content, base_path, cancel)
        after = self._detect(change.head_content, change.path, cancel)
        metadata["findings_before"] = len(before)
        metadata["findings_after"] = len(after)
        if change.previous_path:
            metadata["previous_path"] = change.previous_path
        return reconcile(before, after, self._reconciler_config), metadata

    def _detect(
        self, code: str | None, filename: str, cancel: CancellationToken
    ) -> list[Vulnerability]:
        if not code:
            return []
        return self._retrying(
            lambda: self._detector.detect(code, filename),
            TransientDetectorError,
            self._policy.detector_max_attempts,
            cancel,
            f"detect {filename}",
        )

    def _retrying(
        self,
        call: Callable[[], T],
        transient: type[Exception],
        max_attempts: int,
        cancel: CancellationToken,
        what: str,
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return call()
            except transient as exc:
                if attempt >= max_attempts:
                    raise
                delay = self._policy.backoff.delay(attempt)
                logger.warning(
                    "Attempt %d/%d to %s failed (%s); retrying in %.1fs",
                    attempt,
                    max_attempts,
                    what,
                    exc,
                    delay,
                )
                self._sleep(delay)
                if cancel.is_cancelled():
                    raise _Interrupted() from exc

    # ── Terminal transitions ─────────────────────────────────────────

    def _complete(
        self,
        uow: UnitOfWork,
        job_id: int,
        pull_request_id: int,
        files_total: int,
        scanned: int,
        skipped: int,
    ) -> RunScanResult:
        results = uow.scan_results.partitions_by_job(job_id).values()
        assessment = assess(results, self._scoring_config)

        validate_transition(JobStatus.RUNNING, JobStatus.COMPLETED)
        try:
            if not uow.scan_jobs.transition(
                job_id,
                [JobStatus.RUNNING.value],
                JobStatus.COMPLETED.value,
                completed_at=self._clock(),
                files_scanned=scanned,
                files_skipped=skipped,
            ):
                return self._lost(uow, job_id)
            uow.summaries.create(job_id, assessment)
            uow.scan_jobs.release_active_slot(pull_request_id, job_id)
            uow.commit()
        except DuplicateKeyError:
            uow.rollback()
            logger.info("Scan job %s was completed by another run", job_id)
            return RunScanResult(job_id, ScanOutcome.SKIPPED, JobStatus.COMPLETED.value)

        logger.info(
            "Scan job %s completed: %d file(s) scanned, %d skipped, "
            "+%d/-%d vulnerabilities, score %d -> %d (%s)",
            job_id,
            scanned,
            skipped,
            assessment.total_added,
            assessment.total_fixed,
            assessment.score_before,
            assessment.score_after,
            assessment.recommendation.value,
        )
        self._publish(job_id, JobStatus.COMPLETED)
        return RunScanResult(
            job_id=job_id,
            outcome=ScanOutcome.COMPLETED,
            status=JobStatus.COMPLETED.value,
            files_total=files_total,
            files_scanned=scanned,
            files_skipped=skipped,
        )

    def _fail(
        self, uow: UnitOfWork, job_id: int, message: str, **fields
    ) -> RunScanResult:
        job = uow.scan_jobs.get_by_id(job_id)
        if job is None or not JobStatus(job.status).is_active:
            return RunScanResult(job_id, ScanOutcome.SKIPPED, job.status if job else "unknown")

        pull_request_id = job.pull_request_id
        validate_transition(JobStatus(job.status), JobStatus.FAILED)
        if not uow.scan_jobs.transition(
            job_id,
            [job.status],
            JobStatus.FAILED.value,
            error_message=message,
            completed_at=self._clock(),
            **fields,
        ):
            return self._lost(uow, job_id)
        uow.scan_jobs.release_active_slot(pull_request_id, job_id)
        uow.commit()

        logger.warning("Scan job %s failed: %s", job_id, message)
        self._publish(job_id, JobStatus.FAILED)
        return RunScanResult(
            job_id=job_id,
            outcome=ScanOutcome.FAILED,
            status=JobStatus.FAILED.value,
            error_message=message,
        )

    @staticmethod
    def _lost(uow: UnitOfWork, job_id: int) -> RunScanResult:
        """Another process moved the job on (recovery gave up on it, or a
        second run finished it); drop this run's pending writes."""
        uow.rollback()
        job = uow.scan_jobs.get_by_id(job_id)
        status = job.status if job is not None else "unknown"
        logger.warning("Scan job %s is no longer ours (now %s); stopping", job_id, status)
        return RunScanResult(job_id, ScanOutcome.SKIPPED, status)

    @staticmethod
    def _interrupted(
        job_id: int, files_total: int = 0, scanned: int = 0, skipped: int = 0
    ) -> RunScanResult:
        logger.info("Scan job %s interrupted at %d file(s); left running", job_id, scanned)
        return RunScanResult(
            job_id=job_id,
            outcome=ScanOutcome.INTERRUPTED,
            status=JobStatus.RUNNING.value,
            files_total=files_total,
            files_scanned=scanned,
            files_skipped=skipped,
        )

    def _publish(self, job_id: int, status: JobStatus) -> None:
        # Runs after the terminal commit; the job outcome is already durable.
        try:
            self._publisher.publish_job_finished(job_id, status.value)
        except Exception:
            logger.exception("Failed to publish job-finished event for job %s", job_id)


def _stored_change_type(change_type: ChangeType) -> str:
    # renamed files are reconciled and stored like modifications
    if change_type is ChangeType.RENAMED:
        return ChangeType.MODIFIED.value
    return change_type.value
