"""
FastAPI Dependency Injection

Database connections, configuration, the OpenAI client and the shared
bearer-secret check for every POST endpoint.
"""

import hmac
import logging
from typing import Generator, Optional

import psycopg2
from fastapi import Depends, Header, HTTPException
from openai import OpenAI
from psycopg2.extras import RealDictCursor

from lead_scout.ai_client import get_openai_client
from lead_scout.config import ScoutConfig
from lead_scout.errors import ConfigError

logger = logging.getLogger(__name__)


def get_config() -> ScoutConfig:
    """Configuration for this request, read from the environment once."""
    return ScoutConfig.from_env()


def get_db(config: ScoutConfig = Depends(get_config)) -> Generator:
    """
    FastAPI dependency for database connections.

    Yields a connection with RealDictCursor for dict-style row access.
    Commits on success, rolls back on error, always closes.
    """
    conn = psycopg2.connect(
        config.database_url,
        cursor_factory=RealDictCursor
    )
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def get_ai_client(config: ScoutConfig = Depends(get_config)) -> OpenAI:
    try:
        return get_openai_client(config)
    except ConfigError as e:
        logger.error(f"OpenAI client unavailable: {e}")
        raise HTTPException(status_code=503, detail="Language model not configured")


def verify_ingest_secret(
    authorization: Optional[str] = Header(None),
    config: ScoutConfig = Depends(get_config),
) -> None:
    """
    Require `Authorization: Bearer <INGEST_SECRET>`.

    Rejects everything when INGEST_SECRET is unset. Raises HTTPException 401
    on a missing or wrong token.
    """
    if not config.ingest_secret:
        logger.error("INGEST_SECRET not configured - rejecting request")
        raise HTTPException(status_code=401, detail="Unauthorized")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    if not hmac.compare_digest(token.strip().encode(), config.ingest_secret.encode()):
        logger.warning("Rejected request with invalid bearer token")
        raise HTTPException(status_code=401, detail="Unauthorized")
