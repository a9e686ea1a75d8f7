"""Outbound notification records with durable retry state"""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, UniqueConstraint, Index

from ..database import Base
from ..domain.common.clock import utcnow


class NotificationRecord(Base):
    """One message to one recipient about one finished job."""

    __tablename__ = "notification_records"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("pr_scan_jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    recipient = Column(String(255), nullable=False)
    kind = Column(String(50), nullable=False)  # scan_completed, vulnerability_found, scan_failed
    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)

    # Delivery state
    status = Column(String(20), nullable=False, default="pending")  # pending, sent, failed
    retry_count = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=5)
    next_attempt_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("job_id", "recipient", name="uix_notification_job_recipient"),
        Index("idx_notification_due", "status", "next_attempt_at"),
    )
