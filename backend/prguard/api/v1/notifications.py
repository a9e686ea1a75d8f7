"""Notification endpoints: delivery stats, manual processing, test e-mail."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ...infra.db.uow import SqlUnitOfWork
from ...schemas.notification import (
    DeliveryReportResponse,
    NotificationStatsResponse,
    TestEmailRequest,
    TestEmailResponse,
)
from ...use_cases.notifications.dispatch import NotificationDispatcherUseCase
from ...wiring.bootstrap import get_notification_dispatcher, get_uow
from ..deps import get_current_user_id

router = APIRouter()


@router.get("/stats", response_model=NotificationStatsResponse)
def notification_stats(
    user_id: int = Depends(get_current_user_id),
    uow: SqlUnitOfWork = Depends(get_uow),
    dispatcher: NotificationDispatcherUseCase = Depends(get_notification_dispatcher),
):
    """Counts of the caller's notifications by status."""
    return NotificationStatsResponse(**dispatcher.stats(uow, user_id))


@router.post("/process", response_model=DeliveryReportResponse)
def process_notifications(
    uow: SqlUnitOfWork = Depends(get_uow),
    dispatcher: NotificationDispatcherUseCase = Depends(get_notification_dispatcher),
):
    """Deliver one batch of due notifications now."""
    report = dispatcher.deliver_due(uow)
    return DeliveryReportResponse(
        claimed=report.claimed,
        sent=report.sent,
        retried=report.retried,
        failed=report.failed,
    )


@router.post("/test-email", response_model=TestEmailResponse)
def send_test_email(
    body: TestEmailRequest,
    user_id: int = Depends(get_current_user_id),
    dispatcher: NotificationDispatcherUseCase = Depends(get_notification_dispatcher),
):
    result = dispatcher.send_test_email(body.email)
    return TestEmailResponse(success=result.success, recipient=result.recipient, error=result.error)
