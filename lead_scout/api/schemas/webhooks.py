"""
Webhook API Schemas

Database webhooks arrive as an envelope {type, table, record, old_record}.
A bare lead record (with id at the top level) is accepted too.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LeadRecord(BaseModel):
    """The leads row carried by a webhook. Extra columns are ignored."""

    model_config = ConfigDict(extra="ignore")

    id: UUID
    processing_status: Optional[str] = None
    notification_sent: Optional[bool] = None


class LeadWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    table: Optional[str] = None
    record: Optional[LeadRecord] = None
    old_record: Optional[Dict[str, Any]] = None

    # Bare-record form
    id: Optional[UUID] = None
    processing_status: Optional[str] = None
    notification_sent: Optional[bool] = None

    @model_validator(mode="after")
    def require_lead_id(self):
        if self.record is None and self.id is None:
            raise ValueError("payload must contain record.id or id")
        return self

    def lead_record(self) -> LeadRecord:
        if self.record is not None:
            return self.record
        return LeadRecord(
            id=self.id,
            processing_status=self.processing_status,
            notification_sent=self.notification_sent,
        )


class LeadInsertedResponse(BaseModel):
    success: bool
    stage: str
    result: Dict[str, Any] = Field(default_factory=dict)
    debug_logs: List[str] = Field(default_factory=list)


class LeadUpdatedResponse(BaseModel):
    """Serialized with camelCase counters."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    notifications_sent: int = Field(default=0, alias="notificationsSent")
    notifications_failed: int = Field(default=0, alias="notificationsFailed")
    skipped: bool = False
    reason: Optional[str] = None
    debug_logs: List[str] = Field(default_factory=list)
