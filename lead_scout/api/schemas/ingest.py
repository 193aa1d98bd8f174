"""
Ingestion API Schemas

Request/response models for the pull ingest endpoint and the cron run.
"""

from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from lead_scout.db.models import ContentItem


class IngestRequest(BaseModel):
    """A batch of pre-fetched posts for one alert."""

    alert_id: UUID
    topic: str = Field(min_length=1, max_length=100)
    posts: List[ContentItem] = Field(
        default_factory=list,
        max_length=500,
        description="Posts already fetched by the scheduler"
    )


class IngestResponse(BaseModel):
    status: Literal["ok", "skipped"]
    processed: int
    new: int
    duplicates: int
    notifications: Optional[Dict[str, int]] = None
    reason: Optional[str] = None


class CronResponse(BaseModel):
    """Scout run summary. Serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    alerts_processed: int = Field(alias="alertsProcessed")
    total_new_leads: int = Field(alias="totalNewLeads")
    started_at: str = Field(alias="startedAt")
    finished_at: str = Field(alias="finishedAt")
    aborted: bool = False
    abort_reason: Optional[str] = Field(default=None, alias="abortReason")
    cap_reached: bool = Field(default=False, alias="capReached")
    topics_attempted: int = Field(default=0, alias="topicsAttempted")
    topics_failed: int = Field(default=0, alias="topicsFailed")
    posts_found: int = Field(default=0, alias="postsFound")
    posts_matched: int = Field(default=0, alias="postsMatched")
    duplicates: int = 0
    error: Optional[str] = None
