"""Pull request endpoints: the local mirror and on-demand sync."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ...domain.common.errors import DiffFetchError, EntityNotFoundError
from ...infra.db.uow import SqlUnitOfWork
from ...schemas.pull_request import (
    PullRequestListResponse,
    PullRequestResponse,
    SyncResponse,
)
from ...use_cases.watching.sync_pull_requests import SyncPullRequestsUseCase
from ...wiring.bootstrap import get_sync_use_case, get_uow

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/pull-requests/{pull_request_id}", response_model=PullRequestResponse)
def get_pull_request(pull_request_id: int, uow: SqlUnitOfWork = Depends(get_uow)):
    with uow:
        pr = uow.pull_requests.get_by_id(pull_request_id)
        if pr is None:
            raise HTTPException(status_code=404, detail="Pull request not found")
        return PullRequestResponse.model_validate(pr)


@router.get(
    "/repositories/{repository_id}/pull-requests",
    response_model=PullRequestListResponse,
)
def list_pull_requests(
    repository_id: int,
    status: Optional[str] = Query(None, description="open, closed or merged"),
    uow: SqlUnitOfWork = Depends(get_uow),
):
    with uow:
        if uow.repositories.get_by_id(repository_id) is None:
            raise HTTPException(status_code=404, detail="Repository not found")
        items = [
            PullRequestResponse.model_validate(pr)
            for pr in uow.pull_requests.list_by_repository(repository_id, status)
        ]
    return PullRequestListResponse(pull_requests=items, total=len(items))


@router.post("/repositories/{repository_id}/sync-prs", response_model=SyncResponse)
def sync_pull_requests(
    repository_id: int,
    uow: SqlUnitOfWork = Depends(get_uow),
    use_case: SyncPullRequestsUseCase = Depends(get_sync_use_case),
):
    """Refresh the mirror, then queue a trigger check for the repository."""
    try:
        result = use_case.execute(uow, repository_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Repository not found")
    except DiffFetchError as e:
        raise HTTPException(status_code=502, detail=f"Source control request failed: {e}")

    check_queued = True
    try:
        from ...tasks.watch_tasks import check_repository

        check_repository.delay(repository_id)
    except Exception as e:
        logger.warning("Could not queue trigger check for repository %s: %s", repository_id, e)
        check_queued = False

    return SyncResponse(
        prs_added=result.prs_added,
        prs_updated=result.prs_updated,
        check_queued=check_queued,
    )
