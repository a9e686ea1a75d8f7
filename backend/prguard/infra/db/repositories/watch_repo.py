"""SQLAlchemy implementation of WatchRepository."""

from __future__ import annotations

from sqlalchemy.orm import Session

from prguard.domain.watching.models import TriggerKind, WatchSettings
from prguard.domain.watching.ports import WatchRepository
from prguard.models.repository_watch import RepositoryWatch, WatchTriggerCheckpoint


class SqlWatchRepository(WatchRepository):
    def __init__(self, session: Session) -> None:
        self._session = session

    def list_active(self) -> list[RepositoryWatch]:
        return (
            self._session.query(RepositoryWatch)
            .filter(RepositoryWatch.is_active.is_(True))
            .order_by(RepositoryWatch.id)
            .all()
        )

    def list_active_for_repository(self, repository_id: int) -> list[RepositoryWatch]:
        return (
            self._session.query(RepositoryWatch)
            .filter(
                RepositoryWatch.repository_id == repository_id,
                RepositoryWatch.is_active.is_(True),
            )
            .order_by(RepositoryWatch.id)
            .all()
        )

    def list_for_user(self, user_id: int) -> list[RepositoryWatch]:
        return (
            self._session.query(RepositoryWatch)
            .filter(
                RepositoryWatch.user_id == user_id,
                RepositoryWatch.is_active.is_(True),
            )
            .order_by(RepositoryWatch.created_at.desc(), RepositoryWatch.id.desc())
            .all()
        )

    def get_for_user(self, user_id: int, repository_id: int) -> RepositoryWatch | None:
        return (
            self._session.query(RepositoryWatch)
            .filter(
                RepositoryWatch.user_id == user_id,
                RepositoryWatch.repository_id == repository_id,
            )
            .first()
        )

    def upsert(
        self, user_id: int, repository_id: int, settings: WatchSettings
    ) -> RepositoryWatch:
        watch = self.get_for_user(user_id, repository_id)
        if watch is None:
            watch = RepositoryWatch(user_id=user_id, repository_id=repository_id)
            self._session.add(watch)

        watch.is_active = True
        for name, value in vars(settings).items():
            if value is not None:
                setattr(watch, name, value)

        self._session.flush()
        return watch

    def deactivate(self, user_id: int, repository_id: int) -> bool:
        watch = self.get_for_user(user_id, repository_id)
        if watch is None or not watch.is_active:
            return False
        watch.is_active = False
        self._session.flush()
        return True

    def get_checkpoint(
        self, watch_id: int, pull_request_id: int, trigger: TriggerKind
    ) -> str | None:
        row = self._checkpoint(watch_id, pull_request_id, trigger)
        return row.last_commit if row is not None else None

    def set_checkpoint(
        self, watch_id: int, pull_request_id: int, trigger: TriggerKind, commit: str
    ) -> None:
        row = self._checkpoint(watch_id, pull_request_id, trigger)
        if row is None:
            row = WatchTriggerCheckpoint(
                watch_id=watch_id,
                pull_request_id=pull_request_id,
                trigger=trigger.value,
            )
            self._session.add(row)
        row.last_commit = commit
        self._session.flush()

    def _checkpoint(
        self, watch_id: int, pull_request_id: int, trigger: TriggerKind
    ) -> WatchTriggerCheckpoint | None:
        return (
            self._session.query(WatchTriggerCheckpoint)
            .filter(
                WatchTriggerCheckpoint.watch_id == watch_id,
                WatchTriggerCheckpoint.pull_request_id == pull_request_id,
                WatchTriggerCheckpoint.trigger == trigger.value,
            )
            .first()
        )
