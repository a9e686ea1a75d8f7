"""NotificationDispatcherUseCase: compose, deliver and retry notifications.

Business rules:
  1. A finished job produces one ``pending`` record per distinct recipient
     among the repository's active watches with email enabled.  Records
     are unique on (job, recipient), so replaying the event is harmless.
  2. Subject and body are rendered when the record is created.
  3. Delivery claims each due record with a conditional update that
     pushes its next-attempt time forward by a lease; only the claimant
     sends.
  4. A failed attempt increments the retry count and schedules the next
     one with exponential backoff; at ``max_attempts`` the record is
     failed for good.

Nothing is held in memory between attempts.  Notification failures never
touch the scan job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable

from prguard.domain.common.clock import utcnow
from prguard.domain.common.errors import DeliveryError, EntityNotFoundError
from prguard.domain.common.uow import UnitOfWork
from prguard.domain.notifications.models import (
    TEST_BODY,
    TEST_SUBJECT,
    JobDigest,
    NotificationStatus,
    RetryPolicy,
    after_failure,
    after_success,
    render,
)
from prguard.domain.notifications.ports import MailTransport
from prguard.domain.scanning.models import JobStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryReport:
    claimed: int = 0
    sent: int = 0
    retried: int = 0
    failed: int = 0


@dataclass(frozen=True)
class EmailCheckResult:
    success: bool
    recipient: str
    error: str | None = None


class NotificationDispatcherUseCase:
    def __init__(
        self,
        transport: MailTransport,
        *,
        policy: RetryPolicy | None = None,
        frontend_url: str = "http://localhost:3000",
        batch_size: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._transport = transport
        self._policy = policy or RetryPolicy()
        self._frontend_url = frontend_url.rstrip("/")
        self._batch_size = batch_size
        self._clock = clock

    # ── Compose ──────────────────────────────────────────────────────

    def on_job_finished(self, uow: UnitOfWork, job_id: int) -> list[int]:
        """Create the job's notification records.  Returns the new record ids."""
        now = self._clock()
        with uow:
            job = uow.scan_jobs.get_by_id(job_id)
            if job is None:
                raise EntityNotFoundError("PRScanJob", job_id)
            if JobStatus(job.status).is_active:
                logger.warning("Job %s is still %s; no notification", job_id, job.status)
                return []

            watches = [
                w
                for w in uow.watches.list_active_for_repository(job.repository_id)
                if w.email_notifications and w.notification_email
            ]
            if not watches:
                return []

            ref = uow.pull_requests.get_ref(job.pull_request_id)
            pr = uow.pull_requests.get_by_id(job.pull_request_id)
            summary = uow.summaries.get_by_job(job_id)
            message = render(self._digest(job, ref, pr, summary))

            created: list[int] = []
            for watch in watches:
                row = uow.notifications.create_if_absent(
                    job_id=job_id,
                    user_id=watch.user_id,
                    recipient=watch.notification_email,
                    kind=message.kind.value,
                    subject=message.subject,
                    body=message.body,
                    status=NotificationStatus.PENDING.value,
                    retry_count=0,
                    max_attempts=self._policy.max_attempts,
                    next_attempt_at=now,
                )
                if row is not None:
                    created.append(row.id)
            uow.commit()

        logger.info(
            "Job %s: %d notification(s) queued (%s)", job_id, len(created), message.kind.value
        )
        return created

    def _digest(self, job, ref, pr, summary) -> JobDigest:
        return JobDigest(
            job_id=job.id,
            repository_full_name=ref.repository_full_name if ref else "",
            pull_request_number=ref.number if ref else 0,
            pull_request_title=getattr(pr, "title", "") or "",
            status=job.status,
            results_url=f"{self._frontend_url}/pr-scans/{job.id}",
            total_added=summary.total_added if summary else 0,
            total_fixed=summary.total_fixed if summary else 0,
            score_after=summary.score_after if summary else None,
            recommendation=summary.recommendation if summary else None,
            added_by_severity=dict(summary.added_by_severity or {}) if summary else None,
            error_message=job.error_message,
        )

    # ── Deliver ──────────────────────────────────────────────────────

    def deliver_due(self, uow: UnitOfWork, now: datetime | None = None) -> DeliveryReport:
        now = now or self._clock()
        lease_until = now + timedelta(seconds=self._policy.claim_lease_seconds)
        claimed = sent = retried = failed = 0

        with uow:
            for notification_id in uow.notifications.due_ids(now, self._batch_size):
                if not uow.notifications.claim(notification_id, now, lease_until):
                    continue
                uow.commit()
                claimed += 1

                record = uow.notifications.get_by_id(notification_id)
                decision = self._attempt(record, now)
                uow.notifications.record_attempt(notification_id, decision)
                uow.commit()

                if decision.status is NotificationStatus.SENT:
                    sent += 1
                elif decision.status is NotificationStatus.FAILED:
                    failed += 1
                else:
                    retried += 1

        if claimed:
            logger.info(
                "Notification delivery: %d sent, %d to retry, %d failed",
                sent,
                retried,
                failed,
            )
        return DeliveryReport(claimed=claimed, sent=sent, retried=retried, failed=failed)

    def _attempt(self, record, now: datetime):
        policy = replace(self._policy, max_attempts=record.max_attempts or self._policy.max_attempts)
        try:
            self._transport.send(record.recipient, record.subject, record.body)
        except DeliveryError as exc:
            decision = after_failure(
                record.retry_count, str(exc), now, policy, transient=exc.transient
            )
            logger.warning(
                "Notification %s to %s failed (attempt %d/%d): %s",
                record.id,
                record.recipient,
                decision.retry_count,
                policy.max_attempts,
                exc,
            )
            return decision
        except Exception as exc:
            # any other transport fault still consumes an attempt
            logger.exception(
                "Notification %s to %s raised an unexpected error", record.id, record.recipient
            )
            return after_failure(
                record.retry_count, f"Unexpected delivery error: {exc}", now, policy
            )
        return after_success(record.retry_count, now)

    # ── Queries / utilities ──────────────────────────────────────────

    def stats(self, uow: UnitOfWork, user_id: int | None = None) -> dict[str, int]:
        with uow:
            counts = uow.notifications.count_by_status(user_id)
        return {status.value: counts.get(status.value, 0) for status in NotificationStatus}

    def send_test_email(self, recipient: str) -> EmailCheckResult:
        try:
            self._transport.send(recipient, TEST_SUBJECT, TEST_BODY)
        except DeliveryError as exc:
            logger.warning("Test email to %s failed: %s", recipient, exc)
            return EmailCheckResult(success=False, recipient=recipient, error=str(exc))
        return EmailCheckResult(success=True, recipient=recipient)
