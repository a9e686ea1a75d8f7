"""Schemas for repository watches"""
from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr

from .common import CamelModel


class WatchSettingsPayload(CamelModel):
    """Watch settings; omitted fields keep their default (create) or stored value (update)."""
    email_notifications: Optional[bool] = None
    scan_on_open: Optional[bool] = None
    scan_on_sync: Optional[bool] = None
    scan_on_merge: Optional[bool] = None
    notification_email: Optional[EmailStr] = None


class WatchCreateRequest(CamelModel):
    repository_id: int
    settings: WatchSettingsPayload = WatchSettingsPayload()


class WatchResponse(CamelModel):
    id: int
    user_id: int
    repository_id: int
    is_active: bool
    email_notifications: bool
    scan_on_open: bool
    scan_on_sync: bool
    scan_on_merge: bool
    notification_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WatchListResponse(CamelModel):
    watches: List[WatchResponse]
    total: int
