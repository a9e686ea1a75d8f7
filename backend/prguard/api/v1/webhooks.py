"""Inbound source-control webhooks.

Only ``pull_request`` events are acted on: opened/reopened, synchronize
and closed-with-merge map onto the watch triggers.  When a webhook
secret is configured, the ``X-Hub-Signature-256`` header must match.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from ...config import settings
from ...domain.common.errors import ValidationError as DomainValidationError
from ...infra.connectors.github import snapshot_from_github
from ...schemas.monitoring import WebhookResponse
from ...use_cases.watching.evaluate_triggers import WatchSchedulerUseCase
from ...wiring.bootstrap import get_watch_scheduler, new_uow

logger = logging.getLogger(__name__)
router = APIRouter()


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature[len("sha256="):])


@router.post("/github", response_model=WebhookResponse)
async def github_webhook(
    request: Request,
    x_github_event: Optional[str] = Header(None),
    x_hub_signature_256: Optional[str] = Header(None),
    scheduler: WatchSchedulerUseCase = Depends(get_watch_scheduler),
):
    body = await request.body()
    if settings.github_webhook_secret and not verify_signature(
        settings.github_webhook_secret, body, x_hub_signature_256
    ):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    if x_github_event == "ping":
        return WebhookResponse(handled=False, reason="ping")
    if x_github_event != "pull_request":
        return WebhookResponse(handled=False, reason=f"ignored event: {x_github_event}")

    try:
        payload = json.loads(body)
        action = payload["action"]
        full_name = payload["repository"]["full_name"]
        snapshot = snapshot_from_github(payload["pull_request"])
    except (ValueError, KeyError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Malformed pull_request payload: {e}")

    try:
        result = await run_in_threadpool(
            scheduler.handle_pull_request_event, new_uow, full_name, action, snapshot
        )
    except DomainValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return WebhookResponse(
        handled=result.handled,
        trigger=result.trigger,
        pull_request_id=result.pull_request_id,
        outcomes=list(result.outcomes),
        reason=result.reason,
    )
