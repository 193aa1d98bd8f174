"""
Lead Action Endpoints

POST /api/leads/{lead_id}/reply-draft - generate and store a reply draft
POST /api/notifications/test          - send a test message to one channel
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from openai import OpenAI

from lead_scout.api.deps import get_ai_client, get_config, get_db, verify_ingest_secret
from lead_scout.api.schemas.leads import (
    NotificationTestRequest,
    NotificationTestResponse,
    ReplyDraftResponse,
)
from lead_scout.config import ScoutConfig
from lead_scout.db.lead_store import LeadStore
from lead_scout.db.settings_store import SettingsStore
from lead_scout.notifications import NotificationDispatcher
from lead_scout.reply_drafter import draft_reply_for_lead

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["leads"],
    dependencies=[Depends(verify_ingest_secret)],
)


def get_dispatcher(config: ScoutConfig = Depends(get_config)) -> NotificationDispatcher:
    """Dependency for NotificationDispatcher."""
    return NotificationDispatcher(config)


@router.post("/leads/{lead_id}/reply-draft", response_model=ReplyDraftResponse)
def create_reply_draft(
    lead_id: UUID,
    db=Depends(get_db),
    client: OpenAI = Depends(get_ai_client),
    config: ScoutConfig = Depends(get_config),
):
    """
    Draft a reply for a lead.

    A failed generation returns success=false and leaves the stored lead as it was.
    """
    lead_store = LeadStore(db)
    lead = lead_store.get_lead(lead_id)
    if lead is None:
        raise HTTPException(status_code=404, detail="Lead not found")

    product_context = ""
    if lead.subscription_id is not None:
        settings = SettingsStore(db).get_settings_for_subscription(lead.subscription_id)
        if settings is not None:
            product_context = settings.business_context

    draft = draft_reply_for_lead(lead_store, lead_id, product_context, client, config)
    if draft is None:
        return ReplyDraftResponse(success=False, error="Could not generate a reply draft")
    return ReplyDraftResponse(success=True, draft=draft)


@router.post("/notifications/test", response_model=NotificationTestResponse)
def send_test_notification(
    request: NotificationTestRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send a fixed test message so users can check a channel before saving it."""
    result = dispatcher.send_test(request.channel, request.target)
    if result.success:
        return NotificationTestResponse(
            success=True,
            message=f"Test notification sent to {request.channel}",
        )
    return NotificationTestResponse(
        success=False,
        message=f"Test notification to {request.channel} failed: {result.error}",
    )
