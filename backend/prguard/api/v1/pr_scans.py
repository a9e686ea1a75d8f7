"""PR scan endpoints.

- POST /pull-requests/{id}/scan: start a scan (409 if one is in flight)
- GET  /pr-scans/{job_id}: job, per-file results and summary
- GET  /pull-requests/{id}/security-summary: latest completed summary
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ...domain.common.errors import (
    EntityNotFoundError,
    ValidationError as DomainValidationError,
)
from ...infra.db.uow import SqlUnitOfWork
from ...schemas.pr_scan import (
    ScanDetailsResponse,
    ScanJobResponse,
    ScanRequest,
    ScanResultResponse,
    ScanStartResponse,
    SecuritySummaryResponse,
)
from ...use_cases.scanning.get_scan import GetLatestSummaryUseCase, GetScanUseCase
from ...use_cases.scanning.start_scan import StartScanCommand, StartScanUseCase
from ...wiring.bootstrap import (
    get_get_scan_use_case,
    get_latest_summary_use_case,
    get_start_scan_use_case,
    get_uow,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/pull-requests/{pull_request_id}/scan",
    response_model=ScanStartResponse,
    status_code=202,
    responses={409: {"description": "A scan is already pending or running"}},
)
def start_scan(
    pull_request_id: int,
    body: ScanRequest = ScanRequest(),
    uow: SqlUnitOfWork = Depends(get_uow),
    use_case: StartScanUseCase = Depends(get_start_scan_use_case),
):
    """Queue a diff scan of the pull request's current head."""
    try:
        result = use_case.execute(
            uow,
            StartScanCommand(pull_request_id=pull_request_id, scan_type=body.scan_type),
        )
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DomainValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Failed to start scan for PR %s", pull_request_id)
        raise HTTPException(status_code=503, detail="Failed to queue scan task")

    if result.is_duplicate:
        return JSONResponse(
            status_code=409,
            content={
                "detail": {
                    "message": "A scan is already in progress for this pull request",
                    "jobId": result.job_id,
                    "status": result.status,
                }
            },
        )
    return ScanStartResponse(job_id=result.job_id, status=result.status)


@router.get("/pr-scans/{job_id}", response_model=ScanDetailsResponse)
def get_scan(
    job_id: int,
    uow: SqlUnitOfWork = Depends(get_uow),
    use_case: GetScanUseCase = Depends(get_get_scan_use_case),
):
    try:
        details = use_case.execute(uow, job_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Scan job not found")

    return ScanDetailsResponse(
        job=ScanJobResponse.model_validate(details.job),
        results=[ScanResultResponse.model_validate(r) for r in details.results],
        summary=(
            SecuritySummaryResponse.model_validate(details.summary)
            if details.summary is not None
            else None
        ),
    )


@router.get(
    "/pull-requests/{pull_request_id}/security-summary",
    response_model=Optional[SecuritySummaryResponse],
)
def get_security_summary(
    pull_request_id: int,
    uow: SqlUnitOfWork = Depends(get_uow),
    use_case: GetLatestSummaryUseCase = Depends(get_latest_summary_use_case),
):
    """Summary of the most recent completed scan; null before the first one."""
    try:
        summary = use_case.execute(uow, pull_request_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Pull request not found")
    if summary is None:
        return None
    return SecuritySummaryResponse.model_validate(summary)
