"""Repository watches and the scheduler's per-trigger checkpoints"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint

from ..database import Base
from ..domain.common.clock import utcnow


class RepositoryWatch(Base):
    """
    A user's subscription to a repository.
    Removing a watch only clears is_active.
    """
    __tablename__ = "repository_watches"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    repository_id = Column(Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    email_notifications = Column(Boolean, nullable=False, default=True)
    scan_on_open = Column(Boolean, nullable=False, default=True)
    scan_on_sync = Column(Boolean, nullable=False, default=True)
    scan_on_merge = Column(Boolean, nullable=False, default=False)
    notification_email = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "repository_id", name="uix_watch_user_repo"),
    )


class WatchTriggerCheckpoint(Base):
    """Last head commit a trigger was evaluated at, per (watch, pull request)."""

    __tablename__ = "watch_trigger_checkpoints"

    id = Column(Integer, primary_key=True, index=True)
    watch_id = Column(Integer, ForeignKey("repository_watches.id", ondelete="CASCADE"), nullable=False, index=True)
    pull_request_id = Column(Integer, ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=False)
    trigger = Column(String(20), nullable=False)  # on_open, on_sync, on_merge
    last_commit = Column(String(64), nullable=False)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("watch_id", "pull_request_id", "trigger", name="uix_checkpoint_watch_pr_trigger"),
    )
