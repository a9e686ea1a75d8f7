"""Ports for notification delivery."""

from __future__ import annotations

import abc
from datetime import datetime

from .models import DeliveryDecision


class NotificationRepository(abc.ABC):
    """Durable notification records."""

    @abc.abstractmethod
    def create_if_absent(self, **fields) -> object | None:
        """Insert unless (job_id, recipient) exists.  Returns the new row or None."""

    @abc.abstractmethod
    def get_by_id(self, notification_id: int) -> object | None:
        ...

    @abc.abstractmethod
    def list_by_job(self, job_id: int) -> list[object]:
        ...

    @abc.abstractmethod
    def due_ids(self, now: datetime, limit: int) -> list[int]:
        """Pending records whose next attempt is due, oldest first."""

    @abc.abstractmethod
    def claim(self, notification_id: int, now: datetime, lease_until: datetime) -> bool:
        """Conditionally push next_attempt_at to *lease_until*.

        Succeeds only while the record is still pending and due, so two
        dispatchers can never both claim the same record.
        """

    @abc.abstractmethod
    def record_attempt(self, notification_id: int, decision: DeliveryDecision) -> None:
        ...

    @abc.abstractmethod
    def count_by_status(self, user_id: int | None = None) -> dict[str, int]:
        ...


class MailTransport(abc.ABC):
    """Outbound mail.  Raises DeliveryError on failure."""

    @abc.abstractmethod
    def send(self, recipient: str, subject: str, body: str) -> None:
        ...
