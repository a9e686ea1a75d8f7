"""ManageWatchesUseCase: a user's repository watches.

Watches are keyed on (user, repository).  Adding a watch that already
exists updates and reactivates it; removing only deactivates, so
checkpoints survive a remove/add cycle.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from prguard.domain.common.errors import EntityNotFoundError, ValidationError
from prguard.domain.common.uow import UnitOfWork
from prguard.domain.watching.models import DEFAULT_SETTINGS, WatchSettings
from prguard.domain.watching.ports import WatchRecord

logger = logging.getLogger(__name__)

# one address, no whitespace (CR/LF would end up in mail headers)
_EMAIL = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


class ManageWatchesUseCase:
    def list_for_user(self, uow: UnitOfWork, user_id: int) -> list[WatchRecord]:
        with uow:
            return uow.watches.list_for_user(user_id)

    def get(self, uow: UnitOfWork, user_id: int, repository_id: int) -> WatchRecord:
        with uow:
            watch = uow.watches.get_for_user(user_id, repository_id)
            if watch is None or not watch.is_active:
                raise EntityNotFoundError("RepositoryWatch", repository_id)
            return watch

    def add(
        self,
        uow: UnitOfWork,
        user_id: int,
        repository_id: int,
        settings: WatchSettings,
        default_email: str | None = None,
    ) -> WatchRecord:
        """Create or reactivate; unspecified settings take their defaults."""
        merged = WatchSettings(
            **{
                name: value if value is not None else getattr(DEFAULT_SETTINGS, name)
                for name, value in vars(settings).items()
            }
        )
        if merged.notification_email is None:
            merged = replace(merged, notification_email=default_email)
        _check_email(merged)

        with uow:
            if uow.repositories.get_by_id(repository_id) is None:
                raise EntityNotFoundError("Repository", repository_id)
            watch = uow.watches.upsert(user_id, repository_id, merged)
            uow.commit()
            logger.info("User %s watching repository %s", user_id, repository_id)
            return watch

    def update(
        self,
        uow: UnitOfWork,
        user_id: int,
        repository_id: int,
        settings: WatchSettings,
    ) -> WatchRecord:
        """Partial update: ``None`` fields keep their stored value."""
        with uow:
            watch = uow.watches.get_for_user(user_id, repository_id)
            if watch is None or not watch.is_active:
                raise EntityNotFoundError("RepositoryWatch", repository_id)

            effective = WatchSettings(
                **{
                    name: value if value is not None else getattr(watch, name)
                    for name, value in vars(settings).items()
                }
            )
            _check_email(effective)

            watch = uow.watches.upsert(user_id, repository_id, effective)
            uow.commit()
            return watch

    def remove(self, uow: UnitOfWork, user_id: int, repository_id: int) -> None:
        with uow:
            if not uow.watches.deactivate(user_id, repository_id):
                raise EntityNotFoundError("RepositoryWatch", repository_id)
            uow.commit()
            logger.info("User %s stopped watching repository %s", user_id, repository_id)


def _check_email(settings: WatchSettings) -> None:
    if settings.email_notifications and not settings.notification_email:
        raise ValidationError("notification_email is required when email notifications are enabled")
    if settings.notification_email and not _EMAIL.fullmatch(settings.notification_email):
        raise ValidationError(f"Invalid notification email: {settings.notification_email!r}")
