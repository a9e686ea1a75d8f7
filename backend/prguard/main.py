"""
FastAPI application entry point.

Serves the /api/v1 routes plus the liveness and readiness checks used by
the container orchestrator.  Scans, watch cycles and notification
delivery run in Celery workers; see ``prguard.celery_app``.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .api.v1.router import router as api_v1_router
from .config import settings
from .database import engine, init_db
from .infra.redis_pool import get_redis_client

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutting down %s", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/livez")
async def livez():
    """Process is up.  No dependency checks."""
    return {"status": "ok"}


@app.get("/readyz")
async def readyz():
    """Database is required; Redis only degrades (scheduler lock and status)."""
    checks = {}
    healthy = True
    degraded = False

    try:
        with engine.connect() as conn:
            table_count = conn.execute(
                text("SELECT count(*) FROM sqlite_master WHERE type='table'")
                if engine.dialect.name == "sqlite"
                else text(
                    "SELECT count(*) FROM information_schema.tables "
                    "WHERE table_schema = current_schema()"
                )
            ).scalar()
        if table_count:
            checks["database"] = "ok"
        else:
            checks["database"] = "error: no tables"
            healthy = False
    except Exception as e:
        checks["database"] = f"error: {type(e).__name__}: {e}"
        healthy = False

    try:
        client = get_redis_client()
        if client is None:
            checks["redis"] = "warning: unavailable"
            degraded = True
        else:
            client.ping()
            checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"warning: {type(e).__name__}: {e}"
        degraded = True

    if not healthy:
        return JSONResponse(status_code=503, content={"status": "unhealthy", "checks": checks})
    return {"status": "degraded" if degraded else "ok", "checks": checks}
