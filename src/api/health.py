"""
Liveness and readiness probes.

- GET /health       - process is up
- GET /health/ready - database reachable and every action type has a handler
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from src.database import get_db, ping_database
from src.services.actions import DEFAULT_REGISTRY

router = APIRouter(tags=["health"])

VERSION = "1.0.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": _now(), "version": VERSION}


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """503 with the failing checks while the service cannot run workflows."""
    checks = {
        "database": await ping_database(db),
        "actions": not DEFAULT_REGISTRY.missing_types(),
    }
    ready = all(checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "degraded",
            "checks": checks,
            "timestamp": _now(),
        },
    )
