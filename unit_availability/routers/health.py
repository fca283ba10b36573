"""
Health Check Endpoints

- /health/live  - Liveness check (is process running)
- /health/ready - Readiness check (can we reach the database)
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import text
from datetime import datetime, timezone
import time

from ..database import get_db
from ..utils.dependencies import get_index
from ..services.range_index import RangeQueryIndex

router = APIRouter(prefix="/health", tags=["Health"])


def get_db_health(db: Session) -> dict:
    """Check database connectivity and latency"""
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000
        return {
            "status": "up",
            "latency_ms": round(latency_ms, 2),
            "type": db.get_bind().dialect.name
        }
    except Exception as e:
        return {
            "status": "down",
            "error": str(e)[:100]
        }


@router.get("/live")
async def liveness_check():
    """
    Liveness check - is the process running?
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/ready")
async def readiness_check(
    db: Session = Depends(get_db),
    index: RangeQueryIndex = Depends(get_index),
):
    """
    Readiness check - verifies database connectivity.
    """
    db_health = get_db_health(db)

    if db_health["status"] == "up":
        return {
            "status": "ready",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": db_health,
            "index": {"units": len(index.unit_ids()), "records": len(index)}
        }

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "status": "not_ready",
            "reason": "database_unavailable",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )
