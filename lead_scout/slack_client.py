"""
Slack-compatible incoming webhook client.

Also used for Discord, whose webhooks accept the Slack payload schema at
<webhook_url>/slack.
"""

import logging
from typing import Any, Dict, Optional

import requests

from lead_scout.db.models import Lead

logger = logging.getLogger(__name__)

HEADER_TEXT = "🎯 New Lead Ready"


def discord_slack_url(webhook_url: str) -> str:
    """Discord's Slack-compatible endpoint for a webhook URL."""
    url = webhook_url.rstrip("/")
    return url if url.endswith("/slack") else f"{url}/slack"


def build_lead_message(lead: Lead) -> Dict[str, Any]:
    """Slack blocks payload for a ready lead."""
    fields = [
        {"type": "mrkdwn", "text": f"*Title:*\n{lead.title[:200]}"},
        {"type": "mrkdwn", "text": f"*Subreddit:*\nr/{lead.topic or 'unknown'}"},
        {"type": "mrkdwn", "text": f"*Relevance Score:*\n{_score(lead.relevance_score)}"},
        {"type": "mrkdwn", "text": f"*Opportunity Score:*\n{_score(lead.opportunity_score)}"},
        {
            "type": "mrkdwn",
            "text": f"*Opportunity Type:*\n{lead.opportunity_type.value if lead.opportunity_type else 'N/A'}",
        },
    ]

    blocks = [
        {"type": "header", "text": {"type": "plain_text", "text": HEADER_TEXT}},
        {"type": "section", "fields": fields},
    ]

    if lead.opportunity_reason:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Why:* {lead.opportunity_reason[:500]}"},
        })
    if lead.reply_draft:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Draft reply:*\n```{lead.reply_draft[:900]}```"},
        })
    if lead.url:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"<{lead.url}|View on Reddit>"},
        })

    return {
        "text": f"{HEADER_TEXT}: {lead.title[:150]}",
        "blocks": blocks,
        "unfurl_links": False,
        "unfurl_media": False,
    }


def build_test_message(channel: str) -> Dict[str, Any]:
    text = f"✅ Lead Scout test notification ({channel}). Your alerts are set up correctly."
    return {
        "text": text,
        "blocks": [{"type": "section", "text": {"type": "mrkdwn", "text": text}}],
    }


def _score(value: Optional[int]) -> str:
    return f"{value}/100" if value is not None else "N/A"


class SlackClient:
    """Posts payloads to one incoming webhook URL."""

    DEFAULT_TIMEOUT = 10

    def __init__(
        self,
        webhook_url: Optional[str],
        dry_run: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.webhook_url = webhook_url
        self.dry_run = dry_run
        self.timeout = timeout

    def send(self, payload: Dict[str, Any]) -> bool:
        """
        Post a payload.

        Returns True on any 2xx (Discord answers 204), False otherwise.
        """
        if self.dry_run:
            logger.info(f"[DRY RUN] Would post to webhook: {payload.get('text', '')[:100]}")
            return True

        if not self.webhook_url:
            logger.warning("No webhook URL configured, message not sent")
            return False

        try:
            response = requests.post(
                self.webhook_url,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Webhook request failed: {e}")
            return False

        if 200 <= response.status_code < 300:
            return True

        logger.error(
            f"Webhook returned HTTP {response.status_code}: {response.text[:200]}"
        )
        return False
