"""SyncPullRequestsUseCase: mirror a repository's pull requests locally."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from prguard.domain.common.errors import EntityNotFoundError
from prguard.domain.common.uow import UnitOfWork
from prguard.domain.scanning.ports import SourceControlConnector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    repository_id: int
    prs_added: int
    prs_updated: int


class SyncPullRequestsUseCase:
    """Fetch pull requests from the connector and upsert on (repository, number).

    Connector errors propagate; the caller decides whether one
    repository's failure should stop anything else.
    """

    def __init__(self, connector: SourceControlConnector, *, max_prs: int = 100) -> None:
        self._connector = connector
        self._max_prs = max_prs

    def execute(self, uow: UnitOfWork, repository_id: int) -> SyncResult:
        with uow:
            repository = uow.repositories.get_by_id(repository_id)
            if repository is None:
                raise EntityNotFoundError("Repository", repository_id)
            full_name = repository.full_name

            snapshots = self._connector.list_pull_requests(full_name)

            added = updated = 0
            for snapshot in snapshots[: self._max_prs]:
                _, created = uow.pull_requests.upsert(repository_id, snapshot)
                if created:
                    added += 1
                else:
                    updated += 1
            uow.commit()

        logger.info(
            "Synced %s: %d added, %d updated", full_name, added, updated
        )
        return SyncResult(repository_id=repository_id, prs_added=added, prs_updated=updated)
