"""Repository watch endpoints, scoped to the calling user."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ...domain.common.errors import (
    EntityNotFoundError,
    ValidationError as DomainValidationError,
)
from ...domain.watching.models import WatchSettings
from ...infra.db.uow import SqlUnitOfWork
from ...schemas.watch import (
    WatchCreateRequest,
    WatchListResponse,
    WatchResponse,
    WatchSettingsPayload,
)
from ...use_cases.watching.manage_watches import ManageWatchesUseCase
from ...wiring.bootstrap import get_manage_watches_use_case, get_uow
from ..deps import get_current_user_email, get_current_user_id

logger = logging.getLogger(__name__)
router = APIRouter()


def _settings(payload: WatchSettingsPayload) -> WatchSettings:
    return WatchSettings(**payload.model_dump())


@router.get("", response_model=WatchListResponse)
def list_watches(
    user_id: int = Depends(get_current_user_id),
    uow: SqlUnitOfWork = Depends(get_uow),
    use_case: ManageWatchesUseCase = Depends(get_manage_watches_use_case),
):
    watches = [WatchResponse.model_validate(w) for w in use_case.list_for_user(uow, user_id)]
    return WatchListResponse(watches=watches, total=len(watches))


@router.post("", response_model=WatchResponse, status_code=201)
def add_watch(
    body: WatchCreateRequest,
    user_id: int = Depends(get_current_user_id),
    user_email: Optional[str] = Depends(get_current_user_email),
    uow: SqlUnitOfWork = Depends(get_uow),
    use_case: ManageWatchesUseCase = Depends(get_manage_watches_use_case),
):
    """Watch a repository; re-adding an existing watch updates and reactivates it."""
    try:
        watch = use_case.add(
            uow, user_id, body.repository_id, _settings(body.settings), default_email=user_email
        )
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Repository not found")
    except DomainValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return WatchResponse.model_validate(watch)


@router.get("/{repository_id}", response_model=WatchResponse)
def get_watch(
    repository_id: int,
    user_id: int = Depends(get_current_user_id),
    uow: SqlUnitOfWork = Depends(get_uow),
    use_case: ManageWatchesUseCase = Depends(get_manage_watches_use_case),
):
    try:
        return WatchResponse.model_validate(use_case.get(uow, user_id, repository_id))
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Watch not found")


@router.api_route("/{repository_id}", methods=["PUT", "PATCH"], response_model=WatchResponse)
def update_watch(
    repository_id: int,
    body: WatchSettingsPayload,
    user_id: int = Depends(get_current_user_id),
    uow: SqlUnitOfWork = Depends(get_uow),
    use_case: ManageWatchesUseCase = Depends(get_manage_watches_use_case),
):
    try:
        watch = use_case.update(uow, user_id, repository_id, _settings(body))
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Watch not found")
    except DomainValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return WatchResponse.model_validate(watch)


@router.delete("/{repository_id}", status_code=204)
def remove_watch(
    repository_id: int,
    user_id: int = Depends(get_current_user_id),
    uow: SqlUnitOfWork = Depends(get_uow),
    use_case: ManageWatchesUseCase = Depends(get_manage_watches_use_case),
):
    try:
        use_case.remove(uow, user_id, repository_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Watch not found")
