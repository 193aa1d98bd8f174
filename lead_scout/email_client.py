"""
Transactional email via the Resend HTTP API.

Requires RESEND_API_KEY at the process level. Without it the client
reports itself unconfigured and the dispatcher counts email as unsent.
"""

import html
import logging
from string import Template
from typing import Optional

import requests

from lead_scout.config import ScoutConfig
from lead_scout.db.models import Lead

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"

LEAD_EMAIL_TEMPLATE = Template("""<!DOCTYPE html>
<html>
  <body style="font-family: -apple-system, Segoe UI, Helvetica, Arial, sans-serif; background: #f6f7f9; padding: 24px;">
    <div style="max-width: 560px; margin: 0 auto; background: #ffffff; border-radius: 8px; padding: 24px;">
      <h2 style="margin-top: 0;">🎯 New Lead Ready</h2>
      <p style="font-size: 16px; font-weight: 600;">$title</p>
      <table style="width: 100%; border-collapse: collapse; font-size: 14px;">
        <tr><td style="color: #666;">Subreddit</td><td>r/$topic</td></tr>
        <tr><td style="color: #666;">Relevance Score</td><td>$relevance_score</td></tr>
        <tr><td style="color: #666;">Opportunity Score</td><td>$opportunity_score</td></tr>
        <tr><td style="color: #666;">Opportunity Type</td><td>$opportunity_type</td></tr>
      </table>
      <p style="font-size: 14px; color: #333;">$reason</p>
      <p>
        <a href="$url" style="display: inline-block; background: #ff4500; color: #ffffff; padding: 10px 18px; border-radius: 6px; text-decoration: none;">View on Reddit</a>
      </p>
      <p style="font-size: 12px; color: #999;">Manage alerts in your <a href="$dashboard_url">Lead Scout dashboard</a>.</p>
    </div>
  </body>
</html>
""")


def render_lead_email(lead: Lead, dashboard_url: str) -> str:
    """HTML body for a lead notification. All lead text is escaped."""

    def score(value: Optional[int]) -> str:
        return f"{value}/100" if value is not None else "N/A"

    return LEAD_EMAIL_TEMPLATE.substitute(
        title=html.escape(lead.title),
        topic=html.escape(lead.topic or "unknown"),
        relevance_score=score(lead.relevance_score),
        opportunity_score=score(lead.opportunity_score),
        opportunity_type=html.escape(lead.opportunity_type.value if lead.opportunity_type else "N/A"),
        reason=html.escape(lead.opportunity_reason or ""),
        url=html.escape(lead.url or dashboard_url, quote=True),
        dashboard_url=html.escape(dashboard_url, quote=True),
    )


class ResendEmailClient:
    """Sends one email per call through Resend."""

    DEFAULT_TIMEOUT = 10

    def __init__(self, config: ScoutConfig, session: Optional[requests.Session] = None):
        self.api_key = config.resend_api_key
        self.sender = config.email_from
        self.dashboard_url = f"{config.app_base_url}/dashboard"
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def send(self, to: str, subject: str, html_body: str) -> bool:
        """True on a 2xx from Resend."""
        if not self.configured:
            logger.warning("RESEND_API_KEY not set, email skipped")
            return False

        try:
            response = self.session.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.sender,
                    "to": [to],
                    "subject": subject,
                    "html": html_body,
                },
                timeout=self.DEFAULT_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error(f"Resend request failed: {e}")
            return False

        if 200 <= response.status_code < 300:
            return True

        logger.error(f"Resend returned HTTP {response.status_code}: {response.text[:200]}")
        return False

    def send_lead(self, to: str, lead: Lead) -> bool:
        subject = f"New lead in r/{lead.topic}: {lead.title[:80]}"
        return self.send(to, subject, render_lead_email(lead, self.dashboard_url))

    def send_test(self, to: str) -> bool:
        body = (
            "<p>✅ This is a test notification from Lead Scout. "
            "Email alerts are set up correctly.</p>"
        )
        return self.send(to, "Lead Scout test notification", body)
