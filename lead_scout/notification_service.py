"""
Update-trigger handling: notify once when a lead becomes ready.

Gates, checked against the webhook record first and then against the
stored row:
    1. processing_status == 'ready'
    2. notification_sent == false
A lead failing either gate gets a skip response and no channel is called.
Ready leads below the high-score threshold are also skipped, without
setting the flag.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from lead_scout.classifier_stage2 import is_high_score
from lead_scout.config import ScoutConfig
from lead_scout.db.lead_store import LeadStore
from lead_scout.db.models import Lead, NotificationSettings, OpportunityResult, ProcessingStatus
from lead_scout.db.settings_store import SettingsStore
from lead_scout.notifications import DispatchResult, NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class NotifyOutcome:
    success: bool
    sent: int = 0
    failed: int = 0
    skipped: bool = False
    reason: Optional[str] = None


def _record_gate(record: Dict[str, Any]) -> Optional[str]:
    """Skip reason based on the webhook record alone, or None to proceed."""
    if record.get("processing_status") != ProcessingStatus.READY.value:
        return "not_ready"
    if record.get("notification_sent"):
        return "already_notified"
    return None


def lead_is_notifiable(lead: Lead, threshold: int) -> bool:
    """Stored scores rebuilt into a result and held to the high-score rule."""
    if lead.opportunity_score is None:
        return False
    result = OpportunityResult(
        is_opportunity=bool(lead.is_opportunity),
        opportunity_type=lead.opportunity_type or "other_marketing",
        score=lead.opportunity_score,
    )
    return is_high_score(result, threshold)


class NotificationService:
    """Applies the notification gates and dispatches ready leads."""

    def __init__(
        self,
        lead_store: LeadStore,
        settings_store: SettingsStore,
        dispatcher: NotificationDispatcher,
        config: ScoutConfig,
    ):
        self.lead_store = lead_store
        self.settings_store = settings_store
        self.dispatcher = dispatcher
        self.config = config

    def handle_update(self, record: Dict[str, Any]) -> NotifyOutcome:
        """Entry point for the update webhook."""
        reason = _record_gate(record)
        if reason:
            logger.info(f"Lead {record.get('id')}: skipping notification ({reason})")
            return NotifyOutcome(success=True, skipped=True, reason=reason)
        return self.notify(UUID(str(record["id"])))

    def notify(self, lead_id: UUID) -> NotifyOutcome:
        """Re-check the gates on the stored lead, dispatch, then set the flag."""
        lead = self.lead_store.get_lead(lead_id)
        if lead is None:
            return NotifyOutcome(success=False, reason="lead_not_found")
        if lead.processing_status != ProcessingStatus.READY:
            return NotifyOutcome(success=True, skipped=True, reason="not_ready")
        if lead.notification_sent:
            return NotifyOutcome(success=True, skipped=True, reason="already_notified")
        if not lead_is_notifiable(lead, self.config.high_score_threshold):
            logger.info(
                f"Lead {lead_id}: score {lead.opportunity_score} below "
                f"{self.config.high_score_threshold}, not notifying"
            )
            return NotifyOutcome(success=True, skipped=True, reason="below_threshold")

        if lead.subscription_id is None:
            return NotifyOutcome(success=False, reason="settings_not_found")
        settings = self.settings_store.get_settings_for_subscription(lead.subscription_id)
        if settings is None:
            logger.error(f"Lead {lead_id}: no settings for alert {lead.subscription_id}")
            return NotifyOutcome(success=False, reason="settings_not_found")

        dispatch = self.dispatcher.dispatch(lead, settings.notifications)
        self._mark_sent(lead_id)
        return NotifyOutcome(success=True, sent=dispatch.sent, failed=dispatch.failed)

    def _mark_sent(self, lead_id: UUID) -> None:
        if not self.lead_store.mark_notification_sent(lead_id):
            logger.warning(f"Lead {lead_id}: notification_sent was already set")

    def deliver(self, lead: Lead, channels: NotificationSettings) -> DispatchResult:
        """Dispatch without gates (pull ingestion path), then set the flag."""
        dispatch = self.dispatcher.dispatch(lead, channels)
        self._mark_sent(lead.id)
        return dispatch
