"""SQLAlchemy implementations of RepositoryRepository and PullRequestRepository."""

from __future__ import annotations

from sqlalchemy.orm import Session

from prguard.domain.scanning.models import PullRequestRef, PullRequestSnapshot
from prguard.domain.scanning.ports import PullRequestRepository, RepositoryRepository
from prguard.models.pull_request import PullRequest
from prguard.models.repository import Repository


class SqlRepositoryRepository(RepositoryRepository):
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, repository_id: int) -> Repository | None:
        return self._session.get(Repository, repository_id)

    def get_by_full_name(self, full_name: str) -> Repository | None:
        return (
            self._session.query(Repository)
            .filter(Repository.full_name == full_name)
            .first()
        )


class SqlPullRequestRepository(PullRequestRepository):
    """Persist and retrieve PullRequest rows via SQLAlchemy."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, pull_request_id: int) -> PullRequest | None:
        return self._session.get(PullRequest, pull_request_id)

    def get_ref(self, pull_request_id: int) -> PullRequestRef | None:
        row = (
            self._session.query(PullRequest, Repository.full_name)
            .join(Repository, Repository.id == PullRequest.repository_id)
            .filter(PullRequest.id == pull_request_id)
            .first()
        )
        if row is None:
            return None
        pr, full_name = row
        return PullRequestRef(
            id=pr.id,
            repository_id=pr.repository_id,
            repository_full_name=full_name,
            number=pr.number,
            base_branch=pr.base_branch,
            head_branch=pr.head_branch,
            base_commit=pr.base_commit,
            head_commit=pr.head_commit,
        )

    def upsert(
        self, repository_id: int, snapshot: PullRequestSnapshot
    ) -> tuple[PullRequest, bool]:
        pr = (
            self._session.query(PullRequest)
            .filter(
                PullRequest.repository_id == repository_id,
                PullRequest.number == snapshot.number,
            )
            .first()
        )
        created = pr is None
        if created:
            pr = PullRequest(repository_id=repository_id, number=snapshot.number)
            self._session.add(pr)

        pr.title = snapshot.title
        pr.description = snapshot.description
        pr.author = snapshot.author
        pr.html_url = snapshot.html_url
        pr.base_branch = snapshot.base_branch
        pr.head_branch = snapshot.head_branch
        pr.base_commit = snapshot.base_commit
        pr.head_commit = snapshot.head_commit
        pr.status = snapshot.status
        pr.opened_at = snapshot.created_at
        pr.platform_updated_at = snapshot.updated_at
        pr.merged_at = snapshot.merged_at

        self._session.flush()
        return pr, created

    def list_by_repository(
        self, repository_id: int, status: str | None = None
    ) -> list[PullRequest]:
        query = self._session.query(PullRequest).filter(
            PullRequest.repository_id == repository_id
        )
        if status is not None:
            query = query.filter(PullRequest.status == status)
        return query.order_by(PullRequest.number.desc()).all()
