"""Schemas for mirrored pull requests"""
from datetime import datetime
from typing import List, Optional

from .common import CamelModel


class PullRequestResponse(CamelModel):
    id: int
    repository_id: int
    number: int
    title: str
    author: Optional[str] = None
    html_url: Optional[str] = None
    base_branch: str
    head_branch: str
    base_commit: str
    head_commit: str
    status: str
    opened_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PullRequestListResponse(CamelModel):
    pull_requests: List[PullRequestResponse]
    total: int


class SyncResponse(CamelModel):
    prs_added: int
    prs_updated: int
    check_queued: bool = False
