"""SQLAlchemy implementation of ScanJobRepository."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from prguard.domain.scanning.models import JobStatus
from prguard.domain.scanning.ports import ScanJobRepository
from prguard.infra.db.repositories._errors import unique_violation_as_duplicate
from prguard.models.pr_scan import ActiveScanSlot, PRScanJob

_ACTIVE = (JobStatus.PENDING.value, JobStatus.RUNNING.value)


class SqlScanJobRepository(ScanJobRepository):
    """Persist and retrieve PRScanJob rows and their active slots.

    Status changes are conditional UPDATEs so that a worker and a
    recovery pass racing on the same job cannot both win.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, **fields) -> PRScanJob:
        job = PRScanJob(**fields)
        with unique_violation_as_duplicate(self._session):
            self._session.add(job)  # flush assigns PK without committing
        return job

    def get_by_id(self, job_id: int) -> PRScanJob | None:
        return self._session.get(PRScanJob, job_id)

    def get_by_idempotency_key(self, key: str) -> PRScanJob | None:
        return (
            self._session.query(PRScanJob)
            .filter(PRScanJob.idempotency_key == key)
            .first()
        )

    def get_active_for_pull_request(self, pull_request_id: int) -> PRScanJob | None:
        return (
            self._session.query(PRScanJob)
            .join(ActiveScanSlot, ActiveScanSlot.job_id == PRScanJob.id)
            .filter(ActiveScanSlot.pull_request_id == pull_request_id)
            .first()
        )

    def claim_active_slot(self, pull_request_id: int, job_id: int) -> None:
        with unique_violation_as_duplicate(self._session):
            self._session.add(
                ActiveScanSlot(pull_request_id=pull_request_id, job_id=job_id)
            )

    def release_active_slot(self, pull_request_id: int, job_id: int) -> None:
        (
            self._session.query(ActiveScanSlot)
            .filter(
                ActiveScanSlot.pull_request_id == pull_request_id,
                ActiveScanSlot.job_id == job_id,
            )
            .delete(synchronize_session=False)
        )
        self._session.flush()

    def transition(
        self, job_id: int, from_statuses: Sequence[str], to_status: str, **fields
    ) -> bool:
        return self._conditional_update(
            job_id,
            [PRScanJob.status.in_(list(from_statuses))],
            {"status": to_status, **fields},
        )

    def touch(self, job_id: int, at: datetime, **fields) -> bool:
        return self._conditional_update(
            job_id,
            [PRScanJob.status == JobStatus.RUNNING.value],
            {"heartbeat_at": at, **fields},
        )

    def claim_stale(
        self, job_id: int, stale_before: datetime, at: datetime, **fields
    ) -> bool:
        return self._conditional_update(
            job_id,
            [PRScanJob.status.in_(_ACTIVE), _stale(stale_before)],
            {"heartbeat_at": at, **fields},
        )

    def update(self, job_id: int, **fields) -> None:
        job = self.get_by_id(job_id)
        if job is None:
            return
        for name, value in fields.items():
            _check_column(name)
            setattr(job, name, value)
        self._session.flush()

    def list_by_status(self, statuses: Sequence[str]) -> list[PRScanJob]:
        return (
            self._session.query(PRScanJob)
            .filter(PRScanJob.status.in_(list(statuses)))
            .order_by(PRScanJob.created_at, PRScanJob.id)
            .all()
        )

    def list_stale(
        self, statuses: Sequence[str], stale_before: datetime
    ) -> list[PRScanJob]:
        return (
            self._session.query(PRScanJob)
            .filter(PRScanJob.status.in_(list(statuses)), _stale(stale_before))
            .order_by(PRScanJob.created_at, PRScanJob.id)
            .all()
        )

    def _conditional_update(self, job_id: int, criteria: list, values: dict) -> bool:
        for name in values:
            _check_column(name)
        self._session.flush()
        updated = (
            self._session.query(PRScanJob)
            .filter(PRScanJob.id == job_id, *criteria)
            .update(values, synchronize_session=False)
        )
        # the UPDATE bypassed the identity map; reload so callers see the row
        self._session.get(PRScanJob, job_id, populate_existing=True)
        return updated == 1


def _stale(stale_before: datetime):
    return or_(PRScanJob.heartbeat_at.is_(None), PRScanJob.heartbeat_at < stale_before)


def _check_column(name: str) -> None:
    if not hasattr(PRScanJob, name):
        raise AttributeError(f"PRScanJob has no column {name!r}")
