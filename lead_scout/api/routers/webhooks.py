"""
Lead Webhook Endpoints

Database webhooks for the leads table:

POST /webhooks/lead-inserted - classify a new lead (stage 1, then stage 2)
POST /webhooks/lead-updated  - notify once a lead is ready

Each response carries the package log lines emitted while handling the
request as debug_logs.
"""

import logging

from fastapi import APIRouter, Depends
from openai import OpenAI

from lead_scout.api.deps import get_ai_client, get_config, get_db, verify_ingest_secret
from lead_scout.api.schemas.webhooks import (
    LeadInsertedResponse,
    LeadUpdatedResponse,
    LeadWebhookPayload,
)
from lead_scout.config import ScoutConfig
from lead_scout.db.lead_store import LeadStore
from lead_scout.db.settings_store import SettingsStore
from lead_scout.lead_processor import LeadProcessor
from lead_scout.logging_utils import collect_debug_logs
from lead_scout.notification_service import NotificationService
from lead_scout.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/webhooks",
    tags=["webhooks"],
    dependencies=[Depends(verify_ingest_secret)],
)


def get_lead_processor(
    db=Depends(get_db),
    client: OpenAI = Depends(get_ai_client),
    config: ScoutConfig = Depends(get_config),
) -> LeadProcessor:
    """Dependency for LeadProcessor."""
    return LeadProcessor(LeadStore(db), SettingsStore(db), client, config)


def get_notification_service(
    db=Depends(get_db),
    config: ScoutConfig = Depends(get_config),
) -> NotificationService:
    """Dependency for NotificationService."""
    return NotificationService(
        LeadStore(db), SettingsStore(db), NotificationDispatcher(config), config
    )


@router.post("/lead-inserted", response_model=LeadInsertedResponse)
def lead_inserted(
    payload: LeadWebhookPayload,
    processor: LeadProcessor = Depends(get_lead_processor),
):
    """
    Classify a freshly inserted lead.

    A replayed webhook for a lead that is no longer 'new' is skipped.
    """
    lead_id = payload.lead_record().id

    with collect_debug_logs() as collector:
        try:
            outcome = processor.process(lead_id)
        except Exception as e:
            logger.exception(f"Lead {lead_id}: processing failed")
            return LeadInsertedResponse(
                success=False,
                stage="error",
                result={"error": str(e)},
                debug_logs=collector.lines,
            )

    return LeadInsertedResponse(
        success=outcome.success,
        stage=outcome.stage,
        result=outcome.result,
        debug_logs=collector.lines,
    )


@router.post("/lead-updated", response_model=LeadUpdatedResponse)
def lead_updated(
    payload: LeadWebhookPayload,
    service: NotificationService = Depends(get_notification_service),
):
    """
    Send notifications for a lead that just became ready.

    Skips unless processing_status is 'ready' and notification_sent is false.
    """
    record = payload.lead_record()

    with collect_debug_logs() as collector:
        try:
            outcome = service.handle_update(record.model_dump(mode="json"))
        except Exception as e:
            logger.exception(f"Lead {record.id}: notification failed")
            return LeadUpdatedResponse(
                success=False,
                reason=str(e),
                debug_logs=collector.lines,
            )

    return LeadUpdatedResponse(
        success=outcome.success,
        notifications_sent=outcome.sent,
        notifications_failed=outcome.failed,
        skipped=outcome.skipped,
        reason=outcome.reason,
        debug_logs=collector.lines,
    )
