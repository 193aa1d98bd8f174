"""
Ingestion API Endpoints

POST /api/cron    - run the scout over all active alerts (canonical)
POST /api/ingest  - accept a pre-fetched batch for one alert (deprecated)

Both require `Authorization: Bearer <INGEST_SECRET>`.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from openai import OpenAI

from lead_scout.api.deps import get_ai_client, get_config, get_db, verify_ingest_secret
from lead_scout.api.schemas.ingest import CronResponse, IngestRequest, IngestResponse
from lead_scout.config import ScoutConfig
from lead_scout.db.lead_store import LeadStore
from lead_scout.db.settings_store import SettingsStore
from lead_scout.ingest import IngestService
from lead_scout.notification_service import NotificationService
from lead_scout.notifications import NotificationDispatcher
from lead_scout.scout import Scout, build_scout

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["ingest"],
    dependencies=[Depends(verify_ingest_secret)],
)


def get_scout(db=Depends(get_db), config: ScoutConfig = Depends(get_config)) -> Scout:
    """Dependency for the cron Scout."""
    return build_scout(db, config)


def get_ingest_service(
    db=Depends(get_db),
    client: OpenAI = Depends(get_ai_client),
    config: ScoutConfig = Depends(get_config),
) -> IngestService:
    """Dependency for IngestService."""
    lead_store = LeadStore(db)
    settings_store = SettingsStore(db)
    notifier = NotificationService(
        lead_store, settings_store, NotificationDispatcher(config), config
    )
    return IngestService(lead_store, settings_store, notifier, client, config)


@router.post("/cron", response_model=CronResponse)
def run_cron(scout: Scout = Depends(get_scout)):
    """
    Fetch, filter and store new leads for every active alert.

    Always answers with a run summary. A run that hits the circuit breaker
    reports success=false with abortReason="circuit_breaker".
    """
    started_at = datetime.now(timezone.utc).isoformat()
    try:
        report = scout.run()
    except Exception as e:
        logger.exception("Scout run failed")
        return CronResponse(
            success=False,
            alerts_processed=0,
            total_new_leads=0,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc).isoformat(),
            error=str(e),
        )

    return CronResponse(**report.to_response())


@router.post("/ingest", response_model=IngestResponse, deprecated=True)
def ingest_batch(
    request: IngestRequest,
    service: IngestService = Depends(get_ingest_service),
):
    """
    Store and score a batch of posts fetched by an external scheduler.

    Deprecated: the cron endpoint fetches on its own. Kept for schedulers
    that still push batches.
    """
    report = service.ingest(request.alert_id, request.topic, request.posts)
    return IngestResponse(**report.to_response())
