"""Pydantic models for pipeline entities and classifier outputs."""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class ProcessingStatus(str, Enum):
    """Lead processing lifecycle status."""

    NEW = "new"
    PROCESSING = "processing"
    READY = "ready"
    DISCARDED = "discarded"
    ERROR = "error"


class OpportunityType(str, Enum):
    DIRECT_BUYING_INTENT = "direct_buying_intent"
    PROBLEM_AWARENESS = "problem_awareness"
    RECOMMENDATION_REQUEST = "recommendation_request"
    COMPETITOR_DISCUSSION = "competitor_discussion"
    OTHER_MARKETING = "other_marketing"


# Dashboard-facing status, separate from the pipeline state
DisplayStatus = Literal["new", "discarded", "error", "archived"]

NotificationChannel = Literal["slack", "discord", "email"]


class ContentItem(BaseModel):
    """A fetched post. Lives only for the duration of a run."""

    external_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    body: str = ""
    url: str = ""
    author: str = ""
    topic: str = ""
    created_at: datetime

    @property
    def text(self) -> str:
        """Title and body joined for keyword matching."""
        return f"{self.title}\n{self.body}"


class Lead(BaseModel):
    """A persisted candidate post (leads table row)."""

    id: UUID
    external_post_id: str
    subscription_id: Optional[UUID] = None
    title: str
    body: str = ""
    url: str = ""
    author: str = ""
    topic: str = ""
    created_at: Optional[datetime] = None
    processing_status: ProcessingStatus = ProcessingStatus.NEW
    display_status: DisplayStatus = "new"

    is_opportunity: Optional[bool] = None
    relevance_score: Optional[int] = None
    opportunity_score: Optional[int] = None
    opportunity_type: Optional[OpportunityType] = None
    opportunity_reason: Optional[str] = None
    suggested_angle: Optional[str] = None
    reply_draft: Optional[str] = None

    notification_sent: bool = False
    inserted_at: Optional[datetime] = None

    @field_validator("body", "url", "author", "topic", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v


class Subscription(BaseModel):
    """An owner's alert: one topic plus that owner's keywords."""

    id: UUID
    owner_id: UUID
    topic: str
    keywords: List[str] = Field(default_factory=list)
    active: bool = True


class NotificationSettings(BaseModel):
    """Per-owner channel configuration."""

    slack_webhook_url: Optional[str] = None
    slack_notifications_enabled: bool = False
    discord_webhook_url: Optional[str] = None
    discord_notifications_enabled: bool = False
    notification_email: Optional[str] = None
    email_notifications_enabled: bool = False


class OwnerSettings(BaseModel):
    """project_settings row: keywords, product context and channels."""

    owner_id: UUID
    keywords: List[str] = Field(default_factory=list)
    product_description: Optional[str] = None
    product_context: Optional[str] = None
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    @property
    def business_context(self) -> str:
        """Text handed to the classifiers as the product/business description."""
        return (self.product_context or self.product_description or "").strip()


class RelevanceResult(BaseModel):
    """Stage 1 output."""

    relevant: bool
    raw_response: Optional[str] = None
    error: Optional[str] = None


class OpportunityResult(BaseModel):
    """Stage 2 output."""

    is_opportunity: bool
    opportunity_type: OpportunityType = OpportunityType.OTHER_MARKETING
    score: int = Field(default=0, ge=0, le=100)
    short_reason: str = ""
    suggested_angle: str = ""
    relevance_score: Optional[int] = Field(default=None, ge=0, le=100)
    error: Optional[str] = None

    @field_validator("score", "relevance_score", mode="before")
    @classmethod
    def clamp_score(cls, v):
        if v is None:
            return v
        if isinstance(v, bool):
            raise ValueError("score must be a number")
        return max(0, min(100, int(round(float(v)))))

    @field_validator("opportunity_type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        if isinstance(v, OpportunityType):
            return v
        try:
            return OpportunityType(str(v).strip().lower())
        except ValueError:
            return OpportunityType.OTHER_MARKETING

    @classmethod
    def safe_default(cls, error: Optional[str] = None) -> "OpportunityResult":
        """Negative result used whenever scoring fails."""
        return cls(is_opportunity=False, score=0, error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None
