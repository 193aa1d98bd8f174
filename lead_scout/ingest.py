"""
Pull ingestion: an external scheduler posts already-fetched posts for one
alert.

Deprecated in favour of the cron scout run (lead_scout.scout), which owns
fetching. Kept for schedulers that still push batches.

Per batch:
    dedup -> keyword filter -> insert -> single-shot stage 2 scoring
    high-score leads -> ready + notified concurrently
    everything else  -> discarded

The notification fan-out is the only concurrent step: each lead's
dispatch runs in a worker thread and results are collected with
asyncio.gather(return_exceptions=True), so one failing lead never fails
the batch.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from openai import OpenAI

from lead_scout.classifier_stage2 import is_high_score, score_opportunity
from lead_scout.config import ScoutConfig
from lead_scout.db.lead_store import LeadStore
from lead_scout.db.models import ContentItem, NotificationSettings, ProcessingStatus
from lead_scout.db.settings_store import SettingsStore
from lead_scout.deduplicator import Deduplicator
from lead_scout.errors import StoreWriteError
from lead_scout.keyword_filter import MatchMode, matches_item
from lead_scout.notification_service import NotificationService
from lead_scout.run_controller import RunController

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_SKIPPED = "skipped"


@dataclass
class IngestReport:
    status: str
    processed: int = 0
    new: int = 0
    duplicates: int = 0
    notifications: Optional[Dict[str, int]] = None
    reason: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        response: Dict[str, Any] = {
            "status": self.status,
            "processed": self.processed,
            "new": self.new,
            "duplicates": self.duplicates,
        }
        if self.notifications is not None:
            response["notifications"] = self.notifications
        if self.reason:
            response["reason"] = self.reason
        return response


class IngestService:
    """Handles one pull-ingestion batch."""

    def __init__(
        self,
        lead_store: LeadStore,
        settings_store: SettingsStore,
        notifier: NotificationService,
        client: OpenAI,
        config: ScoutConfig,
        match_mode: MatchMode = MatchMode.SUBSTRING,
    ):
        self.lead_store = lead_store
        self.settings_store = settings_store
        self.notifier = notifier
        self.client = client
        self.config = config
        self.match_mode = match_mode
        self.deduplicator = Deduplicator(lead_store)

    def ingest(self, alert_id: UUID, topic: str, posts: List[ContentItem]) -> IngestReport:
        subscription = self.settings_store.get_subscription(alert_id)
        if subscription is None or not subscription.active:
            logger.info(f"Ingest for unknown or inactive alert {alert_id}, skipping")
            return IngestReport(status=STATUS_SKIPPED, processed=len(posts), reason="alert_not_active")

        settings = self.settings_store.get_owner_settings(subscription.owner_id)
        if settings is None:
            return IngestReport(status=STATUS_SKIPPED, processed=len(posts), reason="settings_not_found")

        for post in posts:
            if not post.topic:
                post.topic = subscription.topic or topic

        controller = RunController.from_config(self.config)
        fresh = self.deduplicator.filter_new(posts)
        report = IngestReport(
            status=STATUS_OK,
            processed=len(posts),
            duplicates=len(posts) - len(fresh),
        )

        notify_ids: List[UUID] = []
        for item in fresh:
            if not controller.should_continue():
                break
            if not matches_item(item, subscription.keywords, self.match_mode):
                continue

            try:
                inserted = self.lead_store.insert_lead(item, subscription.id)
            except StoreWriteError as e:
                logger.error(f"Skipping post {item.external_id}: {e}")
                continue
            if inserted.duplicate:
                report.duplicates += 1
                continue

            controller.record_saved()
            report.new += 1

            if self._classify(inserted.lead_id, item, settings.business_context):
                notify_ids.append(inserted.lead_id)

        if notify_ids:
            report.notifications = asyncio.run(
                self.notify_all(notify_ids, settings.notifications)
            )

        logger.info(
            f"Ingest r/{topic}: {report.processed} posts, {report.new} new, "
            f"{report.duplicates} duplicates, {len(notify_ids)} to notify"
        )
        return report

    def _classify(self, lead_id: UUID, item: ContentItem, product_context: str) -> bool:
        """Single-shot scoring. True if the lead ended up ready and notifiable."""
        if not self.lead_store.transition_status(lead_id, ProcessingStatus.NEW, ProcessingStatus.PROCESSING):
            return False

        result = score_opportunity(item.title, item.body, product_context, self.client, self.config)
        if is_high_score(result, self.config.high_score_threshold):
            return self.lead_store.save_classification(lead_id, result)

        # Failed scoring counts as a negative result on this path
        self.lead_store.transition_status(lead_id, ProcessingStatus.PROCESSING, ProcessingStatus.DISCARDED)
        return False

    def _notify_one(self, lead_id: UUID, channels: NotificationSettings):
        lead = self.lead_store.get_lead(lead_id)
        if lead is None or lead.notification_sent:
            return None
        return self.notifier.deliver(lead, channels)

    async def notify_all(self, lead_ids: List[UUID], channels: NotificationSettings) -> Dict[str, int]:
        """Notify all leads concurrently and tally per-channel outcomes."""
        results = await asyncio.gather(
            *(asyncio.to_thread(self._notify_one, lead_id, channels) for lead_id in lead_ids),
            return_exceptions=True,
        )

        summary = {"leads": len(lead_ids), "sent": 0, "failed": 0, "errors": 0}
        for lead_id, result in zip(lead_ids, results):
            if isinstance(result, Exception):
                logger.error(f"Notification for lead {lead_id} raised: {result}")
                summary["errors"] += 1
            elif result is not None:
                summary["sent"] += result.sent
                summary["failed"] += result.failed
        return summary
