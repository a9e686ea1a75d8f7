"""WatchSchedulerUseCase: decide which watched pull requests need a scan.

Two entry points converge on :meth:`evaluate_trigger`:

* the periodic poll (:meth:`run_watch_cycle`), which syncs every watched
  repository and evaluates each enabled trigger for each pull request;
* the inbound webhook (:meth:`handle_pull_request_event`), which upserts
  the one pull request named in the event and evaluates one trigger.

Every enqueue carries the idempotency key ``pr:head:trigger`` so a
(pull request, head commit, trigger) is scanned at most once however
often, or however concurrently, it is evaluated.  The checkpoint is
advanced only when the job returned covers the current head.

Each step opens its own unit of work via ``uow_factory`` so that one
repository's failure rolls back only that repository's work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from prguard.domain.common.clock import utcnow
from prguard.domain.common.uow import UnitOfWork
from prguard.domain.scanning.models import PullRequestSnapshot, ScanType
from prguard.domain.scanning.ports import PullRequestRecord
from prguard.domain.watching.models import (
    CycleReport,
    PullRequestState,
    TriggerDecision,
    TriggerKind,
    TriggerOutcome,
    WatchTarget,
    decide_trigger,
    enabled_triggers,
    idempotency_key,
    trigger_for_event,
)
from prguard.domain.watching.ports import CycleLock, CycleStatusStore, WatchRecord
from prguard.use_cases.scanning.start_scan import StartScanCommand, StartScanUseCase
from prguard.use_cases.watching.sync_pull_requests import SyncPullRequestsUseCase

logger = logging.getLogger(__name__)

UowFactory = Callable[[], UnitOfWork]


@dataclass(frozen=True)
class RepositoryCheck:
    repository_id: int
    pull_requests_seen: int = 0
    scans_enqueued: int = 0
    duplicates: int = 0


@dataclass(frozen=True)
class WebhookResult:
    handled: bool
    trigger: str | None = None
    pull_request_id: int | None = None
    outcomes: tuple[str, ...] = ()
    reason: str | None = None


class WatchSchedulerUseCase:
    def __init__(
        self,
        start_scan: StartScanUseCase,
        sync: SyncPullRequestsUseCase,
        lock: CycleLock,
        status_store: CycleStatusStore,
    ) -> None:
        self._start_scan = start_scan
        self._sync = sync
        self._lock = lock
        self._status = status_store

    # ── Poll ─────────────────────────────────────────────────────────

    def run_watch_cycle(self, uow_factory: UowFactory) -> CycleReport:
        if not self._lock.acquire():
            logger.info("Watch cycle already running elsewhere; skipping")
            return CycleReport(skipped_locked=True)

        try:
            self._status.record_start(utcnow())
            with uow_factory() as uow:
                repository_ids = sorted(
                    {w.repository_id for w in uow.watches.list_active()}
                )

            checked = seen = enqueued = duplicates = errors = 0
            for repository_id in repository_ids:
                try:
                    self._sync.execute(uow_factory(), repository_id)
                    check = self.check_repository(uow_factory, repository_id)
                except Exception:
                    errors += 1
                    logger.exception(
                        "Watch cycle failed for repository %s", repository_id
                    )
                    continue
                checked += 1
                seen += check.pull_requests_seen
                enqueued += check.scans_enqueued
                duplicates += check.duplicates

            report = CycleReport(
                repositories_checked=checked,
                pull_requests_seen=seen,
                scans_enqueued=enqueued,
                duplicates=duplicates,
                errors=errors,
            )
            self._status.record_finish(utcnow(), report)
        finally:
            self._lock.release()

        logger.info(
            "Watch cycle done: %d repositories, %d PRs, %d scans enqueued, %d errors",
            report.repositories_checked,
            report.pull_requests_seen,
            report.scans_enqueued,
            report.errors,
        )
        return report

    def check_repository(
        self, uow_factory: UowFactory, repository_id: int
    ) -> RepositoryCheck:
        """Evaluate every enabled trigger of every active watch on the repository."""
        with uow_factory() as uow:
            watches = [
                _watch_target(w)
                for w in uow.watches.list_active_for_repository(repository_id)
            ]
            pull_requests = [
                _pull_request_state(pr)
                for pr in uow.pull_requests.list_by_repository(repository_id)
            ]

        enqueued = duplicates = 0
        for watch in watches:
            for pull_request in pull_requests:
                for kind in watch.triggers:
                    outcome = self.evaluate_trigger(uow_factory, kind, watch, pull_request)
                    if outcome is TriggerOutcome.ENQUEUED:
                        enqueued += 1
                    elif outcome is TriggerOutcome.DUPLICATE:
                        duplicates += 1

        return RepositoryCheck(
            repository_id=repository_id,
            pull_requests_seen=len(pull_requests),
            scans_enqueued=enqueued,
            duplicates=duplicates,
        )

    # ── Single trigger ───────────────────────────────────────────────

    def evaluate_trigger(
        self,
        uow_factory: UowFactory,
        kind: TriggerKind,
        watch: WatchTarget,
        pull_request: PullRequestState,
    ) -> TriggerOutcome:
        with uow_factory() as uow:
            last_commit = uow.watches.get_checkpoint(watch.id, pull_request.id, kind)

        decision = decide_trigger(
            kind,
            pull_request.status,
            pull_request.head_commit,
            last_commit,
            merged_at=pull_request.merged_at,
            watch_since=watch.created_at,
        )

        if decision is TriggerDecision.SKIP:
            return TriggerOutcome.SKIPPED

        if decision is TriggerDecision.BASELINE:
            self._checkpoint(uow_factory, watch, pull_request, kind)
            return TriggerOutcome.BASELINE

        result = self._start_scan.execute(
            uow_factory(),
            StartScanCommand(
                pull_request_id=pull_request.id,
                scan_type=ScanType.DIFF.value,
                idempotency_key=idempotency_key(
                    pull_request.id, pull_request.head_commit, kind
                ),
                trigger=kind.value,
            ),
        )

        if result.head_commit == pull_request.head_commit:
            self._checkpoint(uow_factory, watch, pull_request, kind)
        else:
            logger.info(
                "PR %s busy with job %s at %s; %s will be retried",
                pull_request.id,
                result.job_id,
                result.head_commit,
                kind.value,
            )

        return TriggerOutcome.DUPLICATE if result.is_duplicate else TriggerOutcome.ENQUEUED

    # ── Webhook ──────────────────────────────────────────────────────

    def handle_pull_request_event(
        self,
        uow_factory: UowFactory,
        repository_full_name: str,
        action: str,
        snapshot: PullRequestSnapshot,
    ) -> WebhookResult:
        kind = trigger_for_event(action, merged=snapshot.status == "merged")
        if kind is None:
            return WebhookResult(handled=False, reason=f"ignored action: {action}")

        with uow_factory() as uow:
            repository = uow.repositories.get_by_full_name(repository_full_name)
            if repository is None:
                return WebhookResult(
                    handled=False,
                    trigger=kind.value,
                    reason=f"unknown repository: {repository_full_name}",
                )
            repository_id = repository.id
            row, _ = uow.pull_requests.upsert(repository_id, snapshot)
            uow.commit()
            pull_request = _pull_request_state(row)
            watches = [
                _watch_target(w)
                for w in uow.watches.list_active_for_repository(repository_id)
            ]

        outcomes = tuple(
            self.evaluate_trigger(uow_factory, kind, watch, pull_request).value
            for watch in watches
            if kind in watch.triggers
        )
        logger.info(
            "Webhook %s for %s#%s: %s",
            action,
            repository_full_name,
            snapshot.number,
            ", ".join(outcomes) or "no watch with this trigger",
        )
        return WebhookResult(
            handled=True,
            trigger=kind.value,
            pull_request_id=pull_request.id,
            outcomes=outcomes,
        )

    @staticmethod
    def _checkpoint(
        uow_factory: UowFactory,
        watch: WatchTarget,
        pull_request: PullRequestState,
        kind: TriggerKind,
    ) -> None:
        with uow_factory() as uow:
            uow.watches.set_checkpoint(
                watch.id, pull_request.id, kind, pull_request.head_commit
            )
            uow.commit()


def _watch_target(watch: WatchRecord) -> WatchTarget:
    return WatchTarget(
        id=watch.id,
        repository_id=watch.repository_id,
        triggers=tuple(enabled_triggers(watch)),
        created_at=watch.created_at,
    )


def _pull_request_state(pr: PullRequestRecord) -> PullRequestState:
    return PullRequestState(
        id=pr.id,
        status=pr.status,
        head_commit=pr.head_commit,
        merged_at=pr.merged_at,
    )
