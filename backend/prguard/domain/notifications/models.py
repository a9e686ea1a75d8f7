"""Domain models for notification delivery.

Records are composed once, when a job finishes, and from then on only
their delivery state changes.  Retry state is data: status, retry count
and next-attempt time all live on the persisted record.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from ..common.backoff import BackoffPolicy


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationKind(str, Enum):
    SCAN_COMPLETED = "scan_completed"
    VULNERABILITY_FOUND = "vulnerability_found"
    SCAN_FAILED = "scan_failed"


@dataclass(frozen=True)
class RetryPolicy:
    """When to attempt a failed delivery again, and when to give up."""

    max_attempts: int = 5
    backoff: BackoffPolicy = BackoffPolicy(base_seconds=30.0, factor=2.0, cap_seconds=1800.0)
    claim_lease_seconds: float = 300.0

    def next_attempt_at(self, now: datetime, retry_count: int) -> datetime:
        return now + timedelta(seconds=self.backoff.delay(retry_count))

    def is_exhausted(self, retry_count: int) -> bool:
        return retry_count >= self.max_attempts


@dataclass(frozen=True)
class DeliveryDecision:
    """State to persist after one delivery attempt."""

    status: NotificationStatus
    retry_count: int
    next_attempt_at: datetime | None
    last_error: str | None = None
    sent_at: datetime | None = None


def after_success(retry_count: int, now: datetime) -> DeliveryDecision:
    return DeliveryDecision(
        status=NotificationStatus.SENT,
        retry_count=retry_count,
        next_attempt_at=None,
        sent_at=now,
    )


def after_failure(
    retry_count: int,
    error: str,
    now: datetime,
    policy: RetryPolicy,
    *,
    transient: bool = True,
) -> DeliveryDecision:
    """Count the failure; give up when attempts are exhausted or the error is permanent."""
    retries = retry_count + 1
    if not transient or policy.is_exhausted(retries):
        return DeliveryDecision(
            status=NotificationStatus.FAILED,
            retry_count=retries,
            next_attempt_at=None,
            last_error=error,
        )
    return DeliveryDecision(
        status=NotificationStatus.PENDING,
        retry_count=retries,
        next_attempt_at=policy.next_attempt_at(now, retries),
        last_error=error,
    )


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JobDigest:
    """What a notification says about a finished job."""

    job_id: int
    repository_full_name: str
    pull_request_number: int
    pull_request_title: str
    status: str
    results_url: str
    total_added: int = 0
    total_fixed: int = 0
    score_after: int | None = None
    recommendation: str | None = None
    added_by_severity: dict[str, int] | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class RenderedMessage:
    kind: NotificationKind
    subject: str
    body: str


def kind_for(digest: JobDigest) -> NotificationKind:
    if digest.status == "failed":
        return NotificationKind.SCAN_FAILED
    if digest.total_added > 0:
        return NotificationKind.VULNERABILITY_FOUND
    return NotificationKind.SCAN_COMPLETED


def render(digest: JobDigest) -> RenderedMessage:
    kind = kind_for(digest)
    pr = f"{digest.repository_full_name}#{digest.pull_request_number}"

    if kind is NotificationKind.SCAN_FAILED:
        subject = f"Security scan failed for {pr}"
        lines = [
            f"The security scan of pull request {pr} ({digest.pull_request_title}) failed.",
            "",
            f"Reason: {digest.error_message or 'unknown error'}",
        ]
    elif kind is NotificationKind.VULNERABILITY_FOUND:
        subject = (
            f"{digest.total_added} new vulnerabilit"
            f"{'y' if digest.total_added == 1 else 'ies'} in {pr}"
        )
        severities = digest.added_by_severity or {}
        lines = [
            f"The security scan of pull request {pr} ({digest.pull_request_title}) "
            "found newly introduced vulnerabilities.",
            "",
            *(
                f"  {severity}: {count}"
                for severity, count in severities.items()
                if count
            ),
            "",
            f"Fixed: {digest.total_fixed}",
            f"Security score: {digest.score_after}",
            f"Recommendation: {digest.recommendation}",
        ]
    else:
        subject = f"Security scan completed for {pr}"
        lines = [
            f"The security scan of pull request {pr} ({digest.pull_request_title}) "
            "found no new vulnerabilities.",
            "",
            f"Fixed: {digest.total_fixed}",
            f"Security score: {digest.score_after}",
            f"Recommendation: {digest.recommendation}",
        ]

    lines += ["", f"View results: {digest.results_url}"]
    return RenderedMessage(kind=kind, subject=subject, body="\n".join(lines))


TEST_SUBJECT = "PR Guard test email"
TEST_BODY = (
    "This is a test message from PR Guard.\n\n"
    "If you received it, email notifications are configured correctly."
)
