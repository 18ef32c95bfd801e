"""
Health endpoints.

Lightweight checks that never expose secrets.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from talentmatch.core.database import check_connection
from talentmatch.core.services import AppServices, get_services

logger = logging.getLogger("talentmatch")

router = APIRouter(prefix="/api", tags=["health"])
root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz(services: AppServices = Depends(get_services)):
    """Readiness: the SQL backend must answer; in-memory is always ready."""
    if services.stores.backend != "sql":
        return {"status": "ok", "storage": services.stores.backend}
    if not check_connection(services.stores.engine):
        logger.error("[readyz] database unreachable")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
    return {"status": "ok", "storage": "sql"}


@router.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
