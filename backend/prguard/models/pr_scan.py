"""PR scan jobs, their per-file results and security summaries"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey, UniqueConstraint, Index

from ..database import Base
from ..domain.common.clock import utcnow


class PRScanJob(Base):
    """One security scan of a pull request at a fixed pair of commits."""

    __tablename__ = "pr_scan_jobs"

    id = Column(Integer, primary_key=True, index=True)
    pull_request_id = Column(Integer, ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    repository_id = Column(Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True)
    scan_type = Column(String(20), nullable=False, default="diff")  # diff, full, targeted

    # Commit snapshot taken at creation
    base_commit = Column(String(64), nullable=True)
    head_commit = Column(String(64), nullable=True)

    status = Column(String(20), nullable=False, default="pending", index=True)  # pending, running, completed, failed
    idempotency_key = Column(String(255), nullable=True, unique=True)
    trigger = Column(String(20), nullable=True)  # on_open, on_sync, on_merge; null = manual
    task_id = Column(String(100), nullable=True)  # Celery task ID

    files_total = Column(Integer, nullable=False, default=0)
    files_scanned = Column(Integer, nullable=False, default=0)
    files_skipped = Column(Integer, nullable=False, default=0)
    resume_count = Column(Integer, nullable=False, default=0)

    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    # Refreshed by the worker after each file; recovery only takes stale jobs
    heartbeat_at = Column(DateTime, default=utcnow, nullable=True)

    __table_args__ = (
        Index("idx_pr_scan_job_pr_created", "pull_request_id", "created_at"),
        Index("idx_pr_scan_job_status_heartbeat", "status", "heartbeat_at"),
    )


class ActiveScanSlot(Base):
    """At most one in-flight job per pull request (unique pull_request_id)."""

    __tablename__ = "active_scan_slots"

    id = Column(Integer, primary_key=True, index=True)
    pull_request_id = Column(Integer, ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=False, unique=True)
    job_id = Column(Integer, ForeignKey("pr_scan_jobs.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow)


class PRScanResult(Base):
    """Reconciliation result for one changed file of a job."""

    __tablename__ = "pr_scan_results"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("pr_scan_jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    file_path = Column(String(1000), nullable=False)
    change_type = Column(String(20), nullable=False)  # added, modified, deleted

    # Vulnerability lists as dicts (Vulnerability.to_dict)
    added_vulnerabilities = Column(JSON, nullable=False, default=list)
    fixed_vulnerabilities = Column(JSON, nullable=False, default=list)
    unchanged_vulnerabilities = Column(JSON, nullable=False, default=list)

    scan_metadata = Column(JSON, nullable=True)  # detector name, finding counts, diff stats

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("job_id", "file_path", name="uix_pr_scan_result_job_file"),
    )


class PRSecuritySummary(Base):
    """Scorer output; exists iff the job completed."""

    __tablename__ = "pr_security_summaries"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("pr_scan_jobs.id", ondelete="CASCADE"), nullable=False, unique=True)

    total_added = Column(Integer, nullable=False, default=0)
    total_fixed = Column(Integer, nullable=False, default=0)
    total_unchanged = Column(Integer, nullable=False, default=0)
    added_by_severity = Column(JSON, nullable=False, default=dict)  # {"critical": n, ...}
    fixed_by_severity = Column(JSON, nullable=False, default=dict)

    score_before = Column(Integer, nullable=False)
    score_after = Column(Integer, nullable=False)
    recommendation = Column(String(20), nullable=False)  # approve, review, block

    created_at = Column(DateTime, default=utcnow)
