"""
Lead Scout API - Main Application

FastAPI application exposing the lead pipeline: the cron scout run,
database webhooks for classification and notification, and lead actions.

Run with:
    uvicorn lead_scout.api.main:app --reload --port 8000

API Documentation available at:
    - Swagger UI: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

import logging
import logging.handlers
import os

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lead_scout.config import load_env_file
from lead_scout.logging_utils import LOG_FORMAT, SafeStreamHandler

# =============================================================================
# File-based logging (survives stdout/pipe issues)
# =============================================================================
_LOG_FILE = os.getenv("LEAD_SCOUT_LOG_FILE", "/tmp/lead-scout-app.log")

_root_logger = logging.getLogger()
_root_logger.setLevel(logging.INFO)

if not any(isinstance(h, logging.handlers.RotatingFileHandler) for h in _root_logger.handlers):
    _file_handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=3,
    )
    _file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    _file_handler.setLevel(logging.INFO)
    _root_logger.addHandler(_file_handler)

if not any(isinstance(h, SafeStreamHandler) for h in _root_logger.handlers):
    _stream_handler = SafeStreamHandler()
    _stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    _stream_handler.setLevel(logging.INFO)
    _root_logger.addHandler(_stream_handler)

# Suppress noisy libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)

# =============================================================================

load_env_file()

from lead_scout.api.routers import health, ingest, leads, webhooks

logger = logging.getLogger(__name__)


app = FastAPI(
    title="Lead Scout API",
    description="""
    Reddit lead qualification pipeline.

    ## Features

    - **Scout runs**: Fetch monitored subreddits, filter by keyword, store leads
    - **Classification**: Two-stage AI relevance and opportunity scoring
    - **Notifications**: Slack, Discord and email alerts for high-scoring leads
    - **Reply drafts**: On-demand suggested replies
    """,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies get 400 with the validation details."""
    logger.warning(f"Rejected {request.method} {request.url.path}: invalid payload")
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request payload", "errors": jsonable_encoder(exc.errors())},
    )


# Dashboard origins for test notifications and reply drafts
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health.router)
app.include_router(ingest.router)
app.include_router(webhooks.router)
app.include_router(leads.router)


@app.get("/")
def root():
    """Root endpoint with API information."""
    return {
        "name": "Lead Scout API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
