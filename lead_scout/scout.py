"""
Scout run: the cron-driven (push) ingestion pipeline.

For every active subscription, grouped by topic:

    fetch topic -> dedup -> keyword filter per subscriber -> insert lead

Classification normally happens in the insert webhook. With
INLINE_PROCESSING enabled, each inserted lead is classified (and, once
ready, notified) inside the run instead.

Topics and posts are processed strictly in sequence so the run
controller's lead cap and circuit breaker are checked between every step.
The fetch time budget starts with the run and is checked before each
topic; every fetch gets the run deadline.

Usage:
    python -m lead_scout.cli scout
    python -m lead_scout.cli scout --dry-run
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set
from uuid import UUID

from lead_scout.ai_client import get_openai_client
from lead_scout.config import ScoutConfig
from lead_scout.db.lead_store import LeadStore
from lead_scout.db.models import ContentItem, Subscription
from lead_scout.db.settings_store import SettingsStore, group_by_topic
from lead_scout.deduplicator import Deduplicator
from lead_scout.errors import SourceFetchError, StoreWriteError
from lead_scout.keyword_filter import MatchMode, first_match
from lead_scout.lead_processor import LeadProcessor
from lead_scout.notification_service import NotificationService
from lead_scout.notifications import NotificationDispatcher
from lead_scout.reddit_client import build_fetcher
from lead_scout.run_controller import ABORT_CIRCUIT_BREAKER, RunController, RunStats

logger = logging.getLogger(__name__)


@dataclass
class ScoutReport:
    """Run summary, returned by the cron endpoint and printed by the CLI."""

    success: bool
    alerts_processed: int
    total_new_leads: int
    started_at: datetime
    finished_at: datetime
    stats: RunStats = field(default_factory=RunStats)
    cap_reached: bool = False
    lead_ids: List[UUID] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return self.stats.abort_reason == ABORT_CIRCUIT_BREAKER

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "alertsProcessed": self.alerts_processed,
            "totalNewLeads": self.total_new_leads,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
            "aborted": self.aborted,
            "abortReason": self.stats.abort_reason,
            "capReached": self.cap_reached,
            "topicsAttempted": self.stats.topics_attempted,
            "topicsFailed": self.stats.topics_failed,
            "postsFound": self.stats.posts_found,
            "postsMatched": self.stats.posts_matched,
            "duplicates": self.stats.duplicates,
        }


class Scout:
    """Runs one fetch/filter/insert pass over all active subscriptions."""

    def __init__(
        self,
        settings_store: SettingsStore,
        lead_store: LeadStore,
        fetcher,
        controller: RunController,
        config: ScoutConfig,
        processor: Optional[LeadProcessor] = None,
        notifier: Optional[NotificationService] = None,
        match_mode: MatchMode = MatchMode.SUBSTRING,
        dry_run: bool = False,
    ):
        self.settings_store = settings_store
        self.lead_store = lead_store
        self.fetcher = fetcher
        self.controller = controller
        self.config = config
        self.processor = processor
        self.notifier = notifier
        self.match_mode = match_mode
        self.dry_run = dry_run
        self.deduplicator = Deduplicator(lead_store)

    def run(self) -> ScoutReport:
        started_at = datetime.now(timezone.utc)
        stats = self.controller.stats
        self.controller.start()

        subscriptions = self.settings_store.list_active_subscriptions()
        topic_map = group_by_topic(subscriptions)
        logger.info(
            f"Scout run: {len(subscriptions)} active alerts across {len(topic_map)} topics "
            f"(cap {self.controller.max_leads_per_run or 'off'})"
        )

        alerts_processed: Set[UUID] = set()
        lead_ids: List[UUID] = []

        for topic, topic_subs in topic_map.items():
            if not self.controller.should_continue():
                break
            if self.controller.time_budget_exhausted():
                break

            try:
                items = self.fetcher.fetch_topic(topic, deadline=self.controller.deadline)
            except SourceFetchError as e:
                if self.controller.record_fetch_failure(e):
                    break
                continue

            self.controller.record_fetch_success(len(items))
            alerts_processed.update(sub.id for sub in topic_subs)

            fresh = self.deduplicator.filter_new(items)
            stats.posts_new += len(fresh)
            stats.duplicates += len(items) - len(fresh)

            for item in fresh:
                if not self.controller.should_continue():
                    break
                lead_id = self._save_for_first_match(item, topic_subs)
                if lead_id is not None:
                    lead_ids.append(lead_id)

        finished_at = datetime.now(timezone.utc)
        report = ScoutReport(
            success=not self.controller.tripped,
            alerts_processed=len(alerts_processed),
            total_new_leads=stats.leads_saved,
            started_at=started_at,
            finished_at=finished_at,
            stats=stats,
            cap_reached=self.controller.cap_reached,
            lead_ids=lead_ids,
        )

        logger.info(
            f"Scout run complete: {stats.topics_succeeded}/{stats.topics_attempted} topics fetched, "
            f"{stats.posts_found} posts, {stats.posts_matched} matched, "
            f"{stats.leads_saved} leads saved, {stats.duplicates} duplicates"
            + (f", stopped: {stats.abort_reason}" if stats.abort_reason else "")
        )
        return report

    def _save_for_first_match(self, item: ContentItem, subscriptions: List[Subscription]) -> Optional[UUID]:
        """Insert the post for the first subscriber whose keywords match.

        external_post_id is unique, so a post becomes at most one lead.
        """
        stats = self.controller.stats

        for sub in subscriptions:
            if not self.controller.should_continue():
                return None

            keyword = first_match(item.text, sub.keywords, self.match_mode)
            if keyword is None:
                continue

            stats.posts_matched += 1
            logger.info(f"r/{item.topic} {item.external_id} matched '{keyword}' for alert {sub.id}")

            if self.dry_run:
                self.controller.record_saved()
                return None

            try:
                result = self.lead_store.insert_lead(item, sub.id)
            except StoreWriteError as e:
                logger.error(f"Skipping post {item.external_id}: {e}")
                stats.store_errors += 1
                return None

            if result.duplicate:
                stats.duplicates += 1
                return None

            self.controller.record_saved()
            if self.config.inline_processing:
                self._process_inline(result.lead_id)
            return result.lead_id

        return None

    def _process_inline(self, lead_id: UUID) -> None:
        if self.processor is None:
            return
        outcome = self.processor.process(lead_id)
        if outcome.result.get("status") == "ready" and self.notifier is not None:
            self.notifier.notify(lead_id)


def build_scout(db, config: ScoutConfig, dry_run: bool = False) -> Scout:
    """Wire a Scout from one database connection and the config."""
    clock = time.monotonic
    lead_store = LeadStore(db)
    settings_store = SettingsStore(db)

    processor = None
    notifier = None
    if config.inline_processing and not dry_run:
        processor = LeadProcessor(lead_store, settings_store, get_openai_client(config), config)
        notifier = NotificationService(
            lead_store, settings_store, NotificationDispatcher(config), config
        )

    return Scout(
        settings_store=settings_store,
        lead_store=lead_store,
        fetcher=build_fetcher(config, clock=clock),
        controller=RunController.from_config(config, clock=clock),
        config=config,
        processor=processor,
        notifier=notifier,
        dry_run=dry_run,
    )
