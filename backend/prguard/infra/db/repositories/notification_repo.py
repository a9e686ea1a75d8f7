"""SQLAlchemy implementation of NotificationRepository.

Claiming is a single conditional UPDATE: it matches only while the row
is still pending and due, so at most one dispatcher wins.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from prguard.domain.notifications.models import DeliveryDecision, NotificationStatus
from prguard.domain.notifications.ports import NotificationRepository
from prguard.models.notification import NotificationRecord


class SqlNotificationRepository(NotificationRepository):
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_if_absent(self, **fields) -> NotificationRecord | None:
        exists = (
            self._session.query(NotificationRecord.id)
            .filter(
                NotificationRecord.job_id == fields["job_id"],
                NotificationRecord.recipient == fields["recipient"],
            )
            .first()
        )
        if exists is not None:
            return None

        record = NotificationRecord(**fields)
        try:
            with self._session.begin_nested():
                self._session.add(record)
        except IntegrityError:
            # concurrent insert for the same (job, recipient)
            return None
        return record

    def get_by_id(self, notification_id: int) -> NotificationRecord | None:
        return self._session.get(NotificationRecord, notification_id)

    def list_by_job(self, job_id: int) -> list[NotificationRecord]:
        return (
            self._session.query(NotificationRecord)
            .filter(NotificationRecord.job_id == job_id)
            .order_by(NotificationRecord.id)
            .all()
        )

    def due_ids(self, now: datetime, limit: int) -> list[int]:
        rows = (
            self._session.query(NotificationRecord.id)
            .filter(
                NotificationRecord.status == NotificationStatus.PENDING.value,
                or_(
                    NotificationRecord.next_attempt_at.is_(None),
                    NotificationRecord.next_attempt_at <= now,
                ),
            )
            .order_by(NotificationRecord.next_attempt_at, NotificationRecord.id)
            .limit(limit)
            .all()
        )
        return [row.id for row in rows]

    def claim(self, notification_id: int, now: datetime, lease_until: datetime) -> bool:
        updated = (
            self._session.query(NotificationRecord)
            .filter(
                NotificationRecord.id == notification_id,
                NotificationRecord.status == NotificationStatus.PENDING.value,
                or_(
                    NotificationRecord.next_attempt_at.is_(None),
                    NotificationRecord.next_attempt_at <= now,
                ),
            )
            .update(
                {NotificationRecord.next_attempt_at: lease_until},
                synchronize_session=False,
            )
        )
        return updated == 1

    def record_attempt(self, notification_id: int, decision: DeliveryDecision) -> None:
        record = self.get_by_id(notification_id)
        if record is None:
            return
        # the claim UPDATE bypassed the identity map
        self._session.refresh(record)
        record.status = decision.status.value
        record.retry_count = decision.retry_count
        record.next_attempt_at = decision.next_attempt_at
        if decision.last_error is not None:
            record.last_error = decision.last_error
        if decision.sent_at is not None:
            record.sent_at = decision.sent_at
        self._session.flush()

    def count_by_status(self, user_id: int | None = None) -> dict[str, int]:
        query = self._session.query(
            NotificationRecord.status, func.count(NotificationRecord.id)
        )
        if user_id is not None:
            query = query.filter(NotificationRecord.user_id == user_id)
        return {status: count for status, count in query.group_by(NotificationRecord.status).all()}
