"""Schemas for scheduler monitoring and webhooks"""
from typing import Any, Dict, List, Optional

from .common import CamelModel


class MonitoringStatusResponse(CamelModel):
    interval_seconds: int
    active_watches: int
    watched_repositories: int
    last_started_at: Optional[str] = None
    last_finished_at: Optional[str] = None
    last_report: Optional[Dict[str, Any]] = None


class CheckQueuedResponse(CamelModel):
    task_id: str
    status: str = "queued"


class WebhookResponse(CamelModel):
    handled: bool
    trigger: Optional[str] = None
    pull_request_id: Optional[int] = None
    outcomes: List[str] = []
    reason: Optional[str] = None
