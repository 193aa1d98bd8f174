"""
Health endpoints for uptime monitors and the cron host.

GET /health     - process is up
GET /health/db  - Postgres reachable and the leads table exists
"""

import logging
import time
from datetime import datetime, timezone

import psycopg2
from fastapi import APIRouter, Depends

from lead_scout import __version__
from lead_scout.api.deps import get_db
from lead_scout.api.schemas.health import DatabaseHealthResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

SERVICE_NAME = "lead-scout"


@router.get("/health", response_model=HealthResponse)
def health_check():
    return HealthResponse(
        status="ok",
        service=SERVICE_NAME,
        version=__version__,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/health/db", response_model=DatabaseHealthResponse)
def database_health_check(db=Depends(get_db)):
    """Looks up the leads table, so a fresh database reports schema_ready=False."""
    start = time.perf_counter()
    try:
        with db.cursor() as cur:
            cur.execute("SELECT to_regclass('public.leads') AS leads_table")
            row = cur.fetchone()
    except psycopg2.Error as e:
        logger.warning(f"Database health check failed: {e}")
        return DatabaseHealthResponse(connected=False, error=str(e).strip())

    return DatabaseHealthResponse(
        connected=True,
        schema_ready=bool(row and row.get("leads_table")),
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    )
