"""Dependency injection bootstrap: the single place that binds ports to adapters.

Every factory function here can be used as a FastAPI ``Depends()`` target
and is also called by the Celery task shims.  Routers and tasks never
import concrete implementations directly.

Example usage in a router::

    from prguard.wiring.bootstrap import get_uow

    @router.get("/pr-scans/{job_id}")
    def get_scan(job_id: int, uow: SqlUnitOfWork = Depends(get_uow)):
        ...
"""

from __future__ import annotations

from typing import Iterator

from prguard.config import settings
from prguard.database import SessionLocal
from prguard.domain.common.backoff import BackoffPolicy
from prguard.domain.notifications.models import RetryPolicy
from prguard.domain.scanning.models import Severity
from prguard.domain.scanning.reconciler import ReconcilerConfig
from prguard.domain.scanning.scoring import ScoringConfig
from prguard.infra.connectors.github import GitHubConnector
from prguard.infra.connectors.http_detector import HttpVulnerabilityDetector
from prguard.infra.connectors.smtp_mail import SmtpMailTransport
from prguard.infra.db.uow import SqlUnitOfWork
from prguard.infra.locks import RedisCycleLock, RedisCycleStatusStore
from prguard.infra.redis_pool import get_redis_client
from prguard.infra.tasks.dispatcher import CeleryJobEventPublisher, CeleryScanDispatcher
from prguard.use_cases.notifications.dispatch import NotificationDispatcherUseCase
from prguard.use_cases.scanning.get_scan import GetLatestSummaryUseCase, GetScanUseCase
from prguard.use_cases.scanning.recover_jobs import RecoverInterruptedJobsUseCase
from prguard.use_cases.scanning.run_scan import RunScanUseCase, ScanPolicy
from prguard.use_cases.scanning.start_scan import StartScanUseCase
from prguard.use_cases.watching.evaluate_triggers import WatchSchedulerUseCase
from prguard.use_cases.watching.manage_watches import ManageWatchesUseCase
from prguard.use_cases.watching.monitoring import GetMonitoringStatusUseCase
from prguard.use_cases.watching.sync_pull_requests import SyncPullRequestsUseCase


# ── Unit of Work ─────────────────────────────────────────────────────────


def get_uow() -> Iterator[SqlUnitOfWork]:
    """Yield a SqlUnitOfWork bound to SessionLocal.

    Designed for FastAPI Depends()::

        uow: SqlUnitOfWork = Depends(get_uow)
    """
    uow = SqlUnitOfWork(SessionLocal)
    yield uow


def new_uow() -> SqlUnitOfWork:
    """Factory form, for use cases that open one unit of work per step."""
    return SqlUnitOfWork(SessionLocal)


# ── Policies (settings -> domain config) ─────────────────────────────────


def reconciler_config() -> ReconcilerConfig:
    return ReconcilerConfig(
        line_tolerance=settings.reconcile_line_tolerance,
        severity_weight=settings.reconcile_severity_weight,
        proximity_weight=settings.reconcile_proximity_weight,
        text_weight=settings.reconcile_text_weight,
    )


def scoring_config() -> ScoringConfig:
    return ScoringConfig(
        weights={
            Severity.CRITICAL: settings.score_weight_critical,
            Severity.HIGH: settings.score_weight_high,
            Severity.MEDIUM: settings.score_weight_medium,
            Severity.LOW: settings.score_weight_low,
        },
        block_threshold=settings.score_block_threshold,
    )


def scan_policy() -> ScanPolicy:
    return ScanPolicy(
        detector_max_attempts=settings.detector_max_attempts,
        diff_fetch_max_attempts=settings.diff_fetch_max_attempts,
        backoff=BackoffPolicy(
            base_seconds=settings.detector_backoff_base_seconds,
            factor=2.0,
            cap_seconds=settings.detector_backoff_max_seconds,
        ),
        supported_extensions=frozenset(
            ext.lower() for ext in settings.supported_file_extensions
        ),
    )


def retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.notification_max_attempts,
        backoff=BackoffPolicy(
            base_seconds=settings.notification_backoff_base_seconds,
            factor=settings.notification_backoff_factor,
            cap_seconds=settings.notification_backoff_cap_seconds,
        ),
        claim_lease_seconds=settings.notification_claim_lease_seconds,
    )


# ── Collaborators (singletons per process) ───────────────────────────────

_connector: GitHubConnector | None = None
_detector: HttpVulnerabilityDetector | None = None


def get_connector() -> GitHubConnector:
    global _connector
    if _connector is None:
        _connector = GitHubConnector(
            settings.github_token,
            base_url=settings.github_api_url,
            timeout=settings.github_request_timeout,
            max_prs=settings.max_prs_per_sync,
        )
    return _connector


def get_detector() -> HttpVulnerabilityDetector:
    global _detector
    if _detector is None:
        _detector = HttpVulnerabilityDetector(
            settings.detector_url,
            api_key=settings.detector_api_key,
            timeout=settings.detector_timeout,
        )
    return _detector


def get_mail_transport() -> SmtpMailTransport:
    return SmtpMailTransport(
        settings.smtp_host or "",
        settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        timeout=settings.smtp_timeout,
        from_name=settings.mail_from_name,
        from_email=settings.mail_from_email,
    )


# ── Use cases ────────────────────────────────────────────────────────────


def get_start_scan_use_case() -> StartScanUseCase:
    return StartScanUseCase(dispatcher=CeleryScanDispatcher(settings.scan_queue))


def get_run_scan_use_case() -> RunScanUseCase:
    return RunScanUseCase(
        detector=get_detector(),
        connector=get_connector(),
        publisher=CeleryJobEventPublisher(),
        policy=scan_policy(),
        reconciler_config=reconciler_config(),
        scoring_config=scoring_config(),
    )


def get_recover_jobs_use_case() -> RecoverInterruptedJobsUseCase:
    return RecoverInterruptedJobsUseCase(
        dispatcher=CeleryScanDispatcher(settings.scan_queue),
        publisher=CeleryJobEventPublisher(),
        max_resumes=settings.scan_max_resumes,
        stale_after_seconds=settings.scan_stale_after_seconds,
    )


def get_get_scan_use_case() -> GetScanUseCase:
    return GetScanUseCase()


def get_latest_summary_use_case() -> GetLatestSummaryUseCase:
    return GetLatestSummaryUseCase()


def get_sync_use_case() -> SyncPullRequestsUseCase:
    return SyncPullRequestsUseCase(get_connector(), max_prs=settings.max_prs_per_sync)


def get_watch_scheduler() -> WatchSchedulerUseCase:
    client = get_redis_client()
    return WatchSchedulerUseCase(
        start_scan=get_start_scan_use_case(),
        sync=get_sync_use_case(),
        lock=RedisCycleLock(client, timeout=settings.watch_lock_timeout_seconds),
        status_store=RedisCycleStatusStore(client),
    )


def get_manage_watches_use_case() -> ManageWatchesUseCase:
    return ManageWatchesUseCase()


def get_monitoring_status_use_case() -> GetMonitoringStatusUseCase:
    return GetMonitoringStatusUseCase(
        RedisCycleStatusStore(get_redis_client()),
        settings.watch_poll_interval_seconds,
    )


def get_notification_dispatcher() -> NotificationDispatcherUseCase:
    return NotificationDispatcherUseCase(
        get_mail_transport(),
        policy=retry_policy(),
        frontend_url=settings.frontend_url,
        batch_size=settings.notification_batch_size,
    )
