"""Read-only access to alerts and per-owner settings."""

import logging
from collections import OrderedDict
from typing import List, Optional
from uuid import UUID

from lead_scout.db.models import NotificationSettings, OwnerSettings, Subscription
from lead_scout.keyword_filter import clean_keywords

logger = logging.getLogger(__name__)


def normalize_topic(topic: Optional[str]) -> str:
    """'r/SaaS ' -> 'saas'."""
    value = (topic or "").strip()
    if value.lower().startswith("/r/"):
        value = value[3:]
    elif value.lower().startswith("r/"):
        value = value[2:]
    return value.strip("/ ").lower()


def group_by_topic(subscriptions: List[Subscription]) -> "OrderedDict[str, List[Subscription]]":
    """Group active subscriptions by normalized topic, preserving first-seen order.

    Subscriptions without keywords are left out; they can never match.
    """
    topic_map: "OrderedDict[str, List[Subscription]]" = OrderedDict()
    for sub in subscriptions:
        if not sub.active:
            continue
        if not sub.keywords:
            logger.info(f"Alert {sub.id} (r/{sub.topic}) has no keywords, skipping")
            continue
        topic = normalize_topic(sub.topic)
        if not topic:
            continue
        topic_map.setdefault(topic, []).append(sub)
    return topic_map


class SettingsStore:
    """Alerts joined with their owner's keyword configuration."""

    SUBSCRIPTION_SQL = """
        SELECT a.id, a.owner_id, a.topic, a.active,
               COALESCE(s.keywords, '{}') AS keywords
        FROM alerts a
        LEFT JOIN project_settings s ON s.owner_id = a.owner_id
    """

    def __init__(self, db_connection):
        self.db = db_connection

    def _to_subscription(self, row: dict) -> Subscription:
        return Subscription(
            id=row["id"],
            owner_id=row["owner_id"],
            topic=normalize_topic(row["topic"]),
            keywords=clean_keywords(row.get("keywords")),
            active=row["active"],
        )

    def list_active_subscriptions(self) -> List[Subscription]:
        with self.db.cursor() as cur:
            cur.execute(self.SUBSCRIPTION_SQL + " WHERE a.active ORDER BY a.created_at")
            rows = cur.fetchall()
        return [self._to_subscription(row) for row in rows]

    def get_subscription(self, subscription_id: UUID) -> Optional[Subscription]:
        with self.db.cursor() as cur:
            cur.execute(self.SUBSCRIPTION_SQL + " WHERE a.id = %s", (str(subscription_id),))
            row = cur.fetchone()
        return self._to_subscription(row) if row else None

    def get_owner_settings(self, owner_id: UUID) -> Optional[OwnerSettings]:
        with self.db.cursor() as cur:
            cur.execute(
                """
                SELECT owner_id, keywords, product_description, product_context,
                       slack_webhook_url, slack_notifications_enabled,
                       discord_webhook_url, discord_notifications_enabled,
                       notification_email, email_notifications_enabled
                FROM project_settings
                WHERE owner_id = %s
                """,
                (str(owner_id),),
            )
            row = cur.fetchone()

        if not row:
            return None

        return OwnerSettings(
            owner_id=row["owner_id"],
            keywords=clean_keywords(row.get("keywords")),
            product_description=row.get("product_description"),
            product_context=row.get("product_context"),
            notifications=NotificationSettings(
                slack_webhook_url=row.get("slack_webhook_url"),
                slack_notifications_enabled=bool(row.get("slack_notifications_enabled")),
                discord_webhook_url=row.get("discord_webhook_url"),
                discord_notifications_enabled=bool(row.get("discord_notifications_enabled")),
                notification_email=row.get("notification_email"),
                email_notifications_enabled=bool(row.get("email_notifications_enabled")),
            ),
        )

    def get_settings_for_subscription(self, subscription_id: UUID) -> Optional[OwnerSettings]:
        """Resolve alert -> owner -> settings. None if either link is missing."""
        subscription = self.get_subscription(subscription_id)
        if subscription is None:
            return None
        return self.get_owner_settings(subscription.owner_id)
