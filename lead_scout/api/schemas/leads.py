"""Lead action schemas: reply drafts and test notifications."""

from typing import Optional

from pydantic import BaseModel, Field

from lead_scout.db.models import NotificationChannel


class ReplyDraftResponse(BaseModel):
    success: bool
    draft: Optional[str] = None
    error: Optional[str] = None


class NotificationTestRequest(BaseModel):
    channel: NotificationChannel
    target: str = Field(
        min_length=3,
        max_length=2000,
        description="Webhook URL for slack/discord, address for email"
    )


class NotificationTestResponse(BaseModel):
    success: bool
    message: str
