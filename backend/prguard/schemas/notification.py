"""Schemas for notification stats and delivery"""
from pydantic import EmailStr

from .common import CamelModel


class NotificationStatsResponse(CamelModel):
    pending: int = 0
    sent: int = 0
    failed: int = 0


class DeliveryReportResponse(CamelModel):
    claimed: int
    sent: int
    retried: int
    failed: int


class TestEmailRequest(CamelModel):
    email: EmailStr


class TestEmailResponse(CamelModel):
    success: bool
    recipient: str
    error: str | None = None
