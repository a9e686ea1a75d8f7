"""Pull requests mirrored from the source-control platform"""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, UniqueConstraint, Index

from ..database import Base
from ..domain.common.clock import utcnow


class PullRequest(Base):
    """
    A pull request as last seen by a sync.
    Only sync operations (poll, webhook, sync endpoint) write these rows.
    """
    __tablename__ = "pull_requests"

    id = Column(Integer, primary_key=True, index=True)
    repository_id = Column(Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True)
    number = Column(Integer, nullable=False)
    title = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=True)
    author = Column(String(255), nullable=True)
    html_url = Column(String(500), nullable=True)

    base_branch = Column(String(255), nullable=False)
    head_branch = Column(String(255), nullable=False)
    base_commit = Column(String(64), nullable=False)
    head_commit = Column(String(64), nullable=False)

    status = Column(String(20), nullable=False, default="open")  # open, closed, merged

    # Platform timestamps
    opened_at = Column(DateTime, nullable=True)
    platform_updated_at = Column(DateTime, nullable=True)
    merged_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("repository_id", "number", name="uix_pull_request_repo_number"),
        Index("idx_pull_request_repo_status", "repository_id", "status"),
    )
