"""SQLAlchemy implementation of the UnitOfWork port.

One session per ``with`` block, shared by every repository attribute so
cross-repository writes commit or roll back together.
"""

from __future__ import annotations

import logging
from typing import Self

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from prguard.domain.common.errors import DuplicateKeyError, PersistenceError
from prguard.domain.common.uow import UnitOfWork
from prguard.infra.db.repositories.notification_repo import SqlNotificationRepository
from prguard.infra.db.repositories.pull_request_repo import (
    SqlPullRequestRepository,
    SqlRepositoryRepository,
)
from prguard.infra.db.repositories.scan_job_repo import SqlScanJobRepository
from prguard.infra.db.repositories.scan_result_repo import (
    SqlScanResultRepository,
    SqlSecuritySummaryRepository,
)
from prguard.infra.db.repositories.watch_repo import SqlWatchRepository

logger = logging.getLogger(__name__)


class SqlUnitOfWork(UnitOfWork):
    """Transactional boundary backed by a SQLAlchemy session."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self._session: Session | None = None

    def __enter__(self) -> Self:
        # Rows returned by use cases are read after the block ends
        self._session = self._session_factory(expire_on_commit=False)
        self.repositories = SqlRepositoryRepository(self._session)
        self.pull_requests = SqlPullRequestRepository(self._session)
        self.scan_jobs = SqlScanJobRepository(self._session)
        self.scan_results = SqlScanResultRepository(self._session)
        self.summaries = SqlSecuritySummaryRepository(self._session)
        self.watches = SqlWatchRepository(self._session)
        self.notifications = SqlNotificationRepository(self._session)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            self._session.close()
            self._session = None

    def commit(self) -> None:
        try:
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            raise DuplicateKeyError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error("Commit failed: %s", exc)
            raise PersistenceError(str(exc)) from exc

    def rollback(self) -> None:
        self._session.rollback()
