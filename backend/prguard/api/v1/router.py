"""Main API router"""
from fastapi import APIRouter

from . import monitoring, notifications, pr_scans, pull_requests, watches, webhooks

router = APIRouter()

router.include_router(pull_requests.router, tags=["pull-requests"])
router.include_router(pr_scans.router, tags=["pr-scans"])
router.include_router(watches.router, prefix="/watches", tags=["watches"])
router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
router.include_router(monitoring.router, prefix="/monitoring", tags=["monitoring"])
router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
