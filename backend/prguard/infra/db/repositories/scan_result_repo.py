"""SQLAlchemy implementations of ScanResultRepository and SecuritySummaryRepository."""

from __future__ import annotations

from sqlalchemy.orm import Session

from prguard.domain.scanning.models import (
    ReconcileResult,
    SecurityAssessment,
    Vulnerability,
)
from prguard.domain.scanning.ports import (
    ScanResultRepository,
    SecuritySummaryRepository,
)
from prguard.infra.db.repositories._errors import unique_violation_as_duplicate
from prguard.models.pr_scan import PRScanJob, PRScanResult, PRSecuritySummary


def _to_json(items) -> list[dict]:
    return [v.to_dict() for v in items]


def _from_json(items) -> tuple[Vulnerability, ...]:
    return tuple(Vulnerability.from_dict(d) for d in items or [])


class SqlScanResultRepository(ScanResultRepository):
    def __init__(self, session: Session) -> None:
        self._session = session

    def add(
        self,
        job_id: int,
        file_path: str,
        change_type: str,
        result: ReconcileResult,
        metadata: dict,
    ) -> PRScanResult:
        row = PRScanResult(
            job_id=job_id,
            file_path=file_path,
            change_type=change_type,
            added_vulnerabilities=_to_json(result.added),
            fixed_vulnerabilities=_to_json(result.fixed),
            unchanged_vulnerabilities=_to_json(result.unchanged),
            scan_metadata=metadata,
        )
        with unique_violation_as_duplicate(self._session):
            self._session.add(row)
        return row

    def list_by_job(self, job_id: int) -> list[PRScanResult]:
        return (
            self._session.query(PRScanResult)
            .filter(PRScanResult.job_id == job_id)
            .order_by(PRScanResult.file_path)
            .all()
        )

    def partitions_by_job(self, job_id: int) -> dict[str, ReconcileResult]:
        return {
            row.file_path: ReconcileResult(
                added=_from_json(row.added_vulnerabilities),
                fixed=_from_json(row.fixed_vulnerabilities),
                unchanged=_from_json(row.unchanged_vulnerabilities),
            )
            for row in self.list_by_job(job_id)
        }


class SqlSecuritySummaryRepository(SecuritySummaryRepository):
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, job_id: int, assessment: SecurityAssessment) -> PRSecuritySummary:
        row = PRSecuritySummary(
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
        with unique_violation_as_duplicate(self._session):
            self._session.add(row)
        return row

    def get_by_job(self, job_id: int) -> PRSecuritySummary | None:
        return (
            self._session.query(PRSecuritySummary)
            .filter(PRSecuritySummary.job_id == job_id)
            .first()
        )

    def latest_for_pull_request(self, pull_request_id: int) -> PRSecuritySummary | None:
        return (
            self._session.query(PRSecuritySummary)
            .join(PRScanJob, PRScanJob.id == PRSecuritySummary.job_id)
            .filter(
                PRScanJob.pull_request_id == pull_request_id,
                PRScanJob.status == "completed",
            )
            .order_by(PRScanJob.completed_at.desc(), PRScanJob.id.desc())
            .first()
        )
