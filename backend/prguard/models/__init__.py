"""Database models"""
from .repository import Repository
from .pull_request import PullRequest
from .pr_scan import ActiveScanSlot, PRScanJob, PRScanResult, PRSecuritySummary
from .repository_watch import RepositoryWatch, WatchTriggerCheckpoint
from .notification import NotificationRecord

__all__ = [
    "Repository",
    "PullRequest",
    "PRScanJob",
    "ActiveScanSlot",
    "PRScanResult",
    "PRSecuritySummary",
    "RepositoryWatch",
    "WatchTriggerCheckpoint",
    "NotificationRecord",
]
