"""Drops posts that are already stored as leads."""

import logging
from typing import List

from lead_scout.db.lead_store import LeadStore
from lead_scout.db.models import ContentItem

logger = logging.getLogger(__name__)


class Deduplicator:
    """Batch existence check against the leads table.

    One query per batch. Races between overlapping runs are still possible
    and are absorbed by the unique constraint in LeadStore.insert_lead.
    """

    def __init__(self, store: LeadStore):
        self.store = store

    def filter_new(self, items: List[ContentItem]) -> List[ContentItem]:
        """Items not yet stored, in input order. Repeats within the batch collapse to the first."""
        unique: List[ContentItem] = []
        seen = set()
        for item in items:
            if item.external_id in seen:
                continue
            seen.add(item.external_id)
            unique.append(item)

        if not unique:
            return []

        existing = self.store.find_existing(item.external_id for item in unique)
        fresh = [item for item in unique if item.external_id not in existing]

        if existing:
            logger.debug(f"Dedup: {len(existing)} already stored, {len(fresh)} new")
        return fresh
