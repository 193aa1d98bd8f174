"""Database module for Lead Scout."""

from .models import ContentItem, Lead, OpportunityResult, ProcessingStatus
from .connection import get_connection, init_db

__all__ = [
    "ContentItem",
    "Lead",
    "OpportunityResult",
    "ProcessingStatus",
    "get_connection",
    "init_db",
]
