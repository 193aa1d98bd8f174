"""Health check schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: datetime


class DatabaseHealthResponse(BaseModel):
    """schema_ready is False until `lead-scout init-db` has created the leads table."""

    connected: bool
    schema_ready: bool = False
    latency_ms: Optional[float] = None
    error: Optional[str] = None
