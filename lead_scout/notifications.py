"""
Notification Dispatcher.

Delivers a ready lead to each channel the owner has enabled: Slack
webhook, Discord webhook (Slack-compatible endpoint) and email. Every
channel attempt is isolated. An exception or non-2xx from one channel is
recorded as a failure and the remaining channels still run.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from lead_scout.config import ScoutConfig
from lead_scout.db.models import Lead, NotificationSettings
from lead_scout.email_client import ResendEmailClient
from lead_scout.errors import DeliveryError
from lead_scout.slack_client import (
    SlackClient,
    build_lead_message,
    build_test_message,
    discord_slack_url,
)

logger = logging.getLogger(__name__)

SLACK = "slack"
DISCORD = "discord"
EMAIL = "email"
CHANNELS = (SLACK, DISCORD, EMAIL)


@dataclass
class ChannelResult:
    channel: str
    success: bool
    error: Optional[str] = None


@dataclass
class DispatchResult:
    """Per-channel outcomes for one lead."""

    channels: List[ChannelResult] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for c in self.channels if c.success)

    @property
    def failed(self) -> int:
        return sum(1 for c in self.channels if not c.success)

    @property
    def attempted(self) -> int:
        return len(self.channels)


class NotificationDispatcher:
    """Sends lead notifications over every enabled channel."""

    def __init__(
        self,
        config: ScoutConfig,
        email_client: Optional[ResendEmailClient] = None,
        webhook_client_factory: Callable[[str], SlackClient] = SlackClient,
    ):
        self.config = config
        self.email_client = email_client or ResendEmailClient(config)
        self.webhook_client_factory = webhook_client_factory

    def _post_webhook(self, channel: str, url: str, payload: dict) -> None:
        if not self.webhook_client_factory(url).send(payload):
            raise DeliveryError(channel, "webhook did not accept the message")

    def _send_email(self, to: str, lead: Optional[Lead]) -> None:
        if not self.email_client.configured:
            raise DeliveryError(EMAIL, "RESEND_API_KEY not configured")
        ok = self.email_client.send_lead(to, lead) if lead else self.email_client.send_test(to)
        if not ok:
            raise DeliveryError(EMAIL, "email provider rejected the message")

    def _attempt(self, channel: str, send: Callable[[], None]) -> ChannelResult:
        try:
            send()
        except DeliveryError as e:
            logger.warning(f"{channel} notification failed: {e}")
            return ChannelResult(channel=channel, success=False, error=str(e))
        except Exception as e:
            logger.exception(f"{channel} notification raised unexpectedly")
            return ChannelResult(channel=channel, success=False, error=str(e))

        logger.info(f"{channel} notification sent")
        return ChannelResult(channel=channel, success=True)

    def dispatch(self, lead: Lead, settings: NotificationSettings) -> DispatchResult:
        """Attempt delivery on each enabled, configured channel."""
        result = DispatchResult()
        payload = build_lead_message(lead)

        if settings.slack_notifications_enabled and settings.slack_webhook_url:
            url = settings.slack_webhook_url
            result.channels.append(
                self._attempt(SLACK, lambda: self._post_webhook(SLACK, url, payload))
            )

        if settings.discord_notifications_enabled and settings.discord_webhook_url:
            url = discord_slack_url(settings.discord_webhook_url)
            result.channels.append(
                self._attempt(DISCORD, lambda: self._post_webhook(DISCORD, url, payload))
            )

        if settings.email_notifications_enabled and settings.notification_email:
            to = settings.notification_email
            result.channels.append(
                self._attempt(EMAIL, lambda: self._send_email(to, lead))
            )

        if not result.channels:
            logger.info(f"Lead {lead.id}: no notification channels enabled")
        else:
            logger.info(
                f"Lead {lead.id}: {result.sent} notification(s) sent, {result.failed} failed"
            )
        return result

    def send_test(self, channel: str, target: str) -> ChannelResult:
        """Send a fixed test message to one channel target (URL or email)."""
        if channel == SLACK:
            return self._attempt(SLACK, lambda: self._post_webhook(SLACK, target, build_test_message(SLACK)))
        if channel == DISCORD:
            url = discord_slack_url(target)
            return self._attempt(DISCORD, lambda: self._post_webhook(DISCORD, url, build_test_message(DISCORD)))
        if channel == EMAIL:
            return self._attempt(EMAIL, lambda: self._send_email(target, None))
        raise ValueError(f"Unknown notification channel: {channel}")
