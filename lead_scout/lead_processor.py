"""
Insert-trigger processing: classify one freshly inserted lead.

    new --(lock)--> processing --stage 1 no--> discarded
                               --stage 2 failed--> error
                               --stage 2 ok--> ready (scores saved together)
    new --(context missing)--> error

The new -> processing transition is a conditional UPDATE, so a replayed
trigger for the same lead finds nothing to lock and is skipped.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict
from uuid import UUID

from openai import OpenAI

from lead_scout.classifier_stage1 import classify_relevance
from lead_scout.classifier_stage2 import score_opportunity
from lead_scout.config import ScoutConfig
from lead_scout.db.lead_store import LeadStore
from lead_scout.db.models import ProcessingStatus
from lead_scout.db.settings_store import SettingsStore

logger = logging.getLogger(__name__)

STAGE_LOAD = "load"
STAGE_CONTEXT = "context"
STAGE_LOCK = "lock"
STAGE_RELEVANCE = "stage1"
STAGE_SCORING = "stage2"
STAGE_COMPLETE = "complete"


@dataclass
class ProcessResult:
    """Outcome of processing one lead, shaped for the webhook response."""

    success: bool
    stage: str
    result: Dict[str, Any] = field(default_factory=dict)


class LeadProcessor:
    """Runs the two classifier stages for one lead and records the outcome."""

    def __init__(
        self,
        lead_store: LeadStore,
        settings_store: SettingsStore,
        client: OpenAI,
        config: ScoutConfig,
    ):
        self.lead_store = lead_store
        self.settings_store = settings_store
        self.client = client
        self.config = config

    def process(self, lead_id: UUID) -> ProcessResult:
        lead = self.lead_store.get_lead(lead_id)
        if lead is None:
            logger.error(f"Lead {lead_id} not found")
            return ProcessResult(False, STAGE_LOAD, {"error": "Lead not found"})

        if lead.processing_status != ProcessingStatus.NEW:
            logger.info(f"Lead {lead_id} already {lead.processing_status.value}, skipping")
            return ProcessResult(True, STAGE_LOCK, {
                "skipped": True,
                "reason": f"status is {lead.processing_status.value}",
            })

        if not lead.title.strip() or lead.subscription_id is None:
            logger.error(f"Lead {lead_id} is missing title or subscription")
            self.lead_store.transition_status(lead_id, ProcessingStatus.NEW, ProcessingStatus.ERROR)
            return ProcessResult(False, STAGE_CONTEXT, {"error": "Missing required lead fields"})

        settings = self.settings_store.get_settings_for_subscription(lead.subscription_id)
        if settings is None or not settings.business_context:
            logger.error(f"Lead {lead_id}: no product description for alert {lead.subscription_id}")
            self.lead_store.transition_status(lead_id, ProcessingStatus.NEW, ProcessingStatus.ERROR)
            return ProcessResult(False, STAGE_CONTEXT, {"error": "Product description not found"})

        if not self.lead_store.transition_status(lead_id, ProcessingStatus.NEW, ProcessingStatus.PROCESSING):
            return ProcessResult(True, STAGE_LOCK, {
                "skipped": True,
                "reason": "already locked by another trigger",
            })

        logger.info(f"Lead {lead_id} locked for processing: '{lead.title[:80]}'")

        try:
            return self._classify(lead_id, lead.title, lead.body, settings.business_context)
        except Exception as e:
            logger.exception(f"Lead {lead_id}: unexpected failure during classification")
            self.lead_store.mark_error(lead_id)
            return ProcessResult(False, "error", {"error": str(e)})

    def _classify(self, lead_id: UUID, title: str, body: str, product_context: str) -> ProcessResult:
        relevance = classify_relevance(title, body, product_context, self.client, self.config)
        if not relevance.relevant:
            self.lead_store.transition_status(
                lead_id, ProcessingStatus.PROCESSING, ProcessingStatus.DISCARDED
            )
            logger.info(f"Lead {lead_id} discarded at stage 1")
            return ProcessResult(True, STAGE_RELEVANCE, {
                "status": ProcessingStatus.DISCARDED.value,
                "relevant": False,
                "answer": relevance.raw_response,
                "error": relevance.error,
            })

        opportunity = score_opportunity(title, body, product_context, self.client, self.config)
        if opportunity.failed:
            self.lead_store.transition_status(
                lead_id, ProcessingStatus.PROCESSING, ProcessingStatus.ERROR
            )
            return ProcessResult(False, STAGE_SCORING, {
                "status": ProcessingStatus.ERROR.value,
                "error": opportunity.error,
            })

        if not self.lead_store.save_classification(lead_id, opportunity):
            logger.warning(f"Lead {lead_id} left processing before scores were saved")
            return ProcessResult(False, STAGE_SCORING, {"error": "Lead no longer in processing"})

        logger.info(
            f"Lead {lead_id} ready: score={opportunity.score} "
            f"type={opportunity.opportunity_type.value}"
        )
        return ProcessResult(True, STAGE_COMPLETE, {
            "status": ProcessingStatus.READY.value,
            "relevant": True,
            "is_opportunity": opportunity.is_opportunity,
            "opportunity_score": opportunity.score,
            "opportunity_type": opportunity.opportunity_type.value,
            "opportunity_reason": opportunity.short_reason,
            "suggested_angle": opportunity.suggested_angle,
        })
