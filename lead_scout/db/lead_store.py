"""Lead persistence and the processing-status state machine.

Lifecycle:
    new -> processing -> ready | discarded | error
    new -> error            (context could not be resolved before locking)

Every status change is a conditional UPDATE. The affected-row count is the
lock proof: a transition that matches zero rows means another trigger got
there first (or the lead is gone) and the caller should skip, not fail.
Each write is committed immediately so concurrent triggers observe it.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Set
from uuid import UUID

import psycopg2
from psycopg2 import errors as pg_errors

from lead_scout.db.models import ContentItem, Lead, OpportunityResult, ProcessingStatus
from lead_scout.errors import InvalidTransitionError, StoreWriteError

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {
    ProcessingStatus.READY,
    ProcessingStatus.DISCARDED,
    ProcessingStatus.ERROR,
}

VALID_TRANSITIONS = {
    ProcessingStatus.NEW: {ProcessingStatus.PROCESSING, ProcessingStatus.ERROR},
    ProcessingStatus.PROCESSING: {
        ProcessingStatus.READY,
        ProcessingStatus.DISCARDED,
        ProcessingStatus.ERROR,
    },
}

# display_status written alongside each processing status (None = leave as is)
DISPLAY_STATUS_FOR = {
    ProcessingStatus.PROCESSING: None,
    ProcessingStatus.READY: "new",
    ProcessingStatus.DISCARDED: "discarded",
    ProcessingStatus.ERROR: "error",
}

LEAD_COLUMNS = """
    id, external_post_id, subscription_id, title, body, url, author, topic,
    created_at, processing_status, display_status, is_opportunity, relevance_score,
    opportunity_score, opportunity_type, opportunity_reason, suggested_angle,
    reply_draft, notification_sent, inserted_at
"""


@dataclass
class InsertResult:
    """Outcome of insert_lead. lead_id is None for duplicates."""

    lead_id: Optional[UUID]
    duplicate: bool = False


def validate_transition(from_status: ProcessingStatus, to_status: ProcessingStatus) -> None:
    """Raise InvalidTransitionError if from_status -> to_status is not allowed."""
    if from_status in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            f"Cannot transition from terminal status '{from_status.value}'"
        )
    allowed = VALID_TRANSITIONS.get(from_status, set())
    if to_status not in allowed:
        raise InvalidTransitionError(
            f"Invalid transition: {from_status.value} -> {to_status.value}. "
            f"Allowed: {sorted(s.value for s in allowed)}"
        )


class LeadStore:
    """Reads and writes the leads table."""

    def __init__(self, db_connection):
        self.db = db_connection

    def find_existing(self, external_ids: Iterable[str]) -> Set[str]:
        """Return which of the given external ids are already stored (one query)."""
        ids = list(dict.fromkeys(i for i in external_ids if i))
        if not ids:
            return set()

        with self.db.cursor() as cur:
            cur.execute(
                "SELECT external_post_id FROM leads WHERE external_post_id = ANY(%s)",
                (ids,),
            )
            return {row["external_post_id"] for row in cur.fetchall()}

    def insert_lead(self, item: ContentItem, subscription_id: Optional[UUID]) -> InsertResult:
        """Insert a new lead in status 'new'.

        A duplicate external_post_id is a no-op, reported as duplicate=True.
        Any other database error raises StoreWriteError for this item only.
        """
        try:
            with self.db.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO leads (
                        external_post_id, subscription_id, title, body, url,
                        author, topic, created_at, processing_status, display_status
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, 'new', 'new')
                    ON CONFLICT (external_post_id) DO NOTHING
                    RETURNING id
                    """,
                    (
                        item.external_id,
                        str(subscription_id) if subscription_id else None,
                        item.title,
                        item.body,
                        item.url,
                        item.author,
                        item.topic,
                        item.created_at,
                    ),
                )
                row = cur.fetchone()
            self.db.commit()
        except pg_errors.UniqueViolation:
            # A concurrent run won the race between ON CONFLICT check and insert
            self.db.rollback()
            logger.info(f"Duplicate lead {item.external_id} (unique violation)")
            return InsertResult(lead_id=None, duplicate=True)
        except psycopg2.Error as e:
            self.db.rollback()
            raise StoreWriteError(f"Failed to insert lead {item.external_id}: {e}") from e

        if row is None:
            logger.debug(f"Duplicate lead {item.external_id} skipped")
            return InsertResult(lead_id=None, duplicate=True)

        lead_id = row["id"]
        if not isinstance(lead_id, UUID):
            lead_id = UUID(str(lead_id))
        return InsertResult(lead_id=lead_id)

    def get_lead(self, lead_id: UUID) -> Optional[Lead]:
        with self.db.cursor() as cur:
            cur.execute(
                f"SELECT {LEAD_COLUMNS} FROM leads WHERE id = %s",
                (str(lead_id),),
            )
            row = cur.fetchone()
        return Lead(**row) if row else None

    def transition_status(
        self,
        lead_id: UUID,
        from_status: ProcessingStatus,
        to_status: ProcessingStatus,
    ) -> bool:
        """Move a lead from from_status to to_status.

        Returns False when no row matched (already moved by someone else, or
        missing). Raises InvalidTransitionError for disallowed transitions
        without touching the database.
        """
        validate_transition(from_status, to_status)

        with self.db.cursor() as cur:
            cur.execute(
                """
                UPDATE leads
                SET processing_status = %s,
                    display_status = COALESCE(%s, display_status)
                WHERE id = %s AND processing_status = %s
                """,
                (
                    to_status.value,
                    DISPLAY_STATUS_FOR[to_status],
                    str(lead_id),
                    from_status.value,
                ),
            )
            updated = cur.rowcount == 1
        self.db.commit()

        if not updated:
            logger.info(
                f"Lead {lead_id}: transition {from_status.value} -> {to_status.value} "
                f"matched no row, skipping"
            )
        return updated

    def mark_error(self, lead_id: UUID) -> bool:
        """Move a non-terminal lead to 'error'."""
        with self.db.cursor() as cur:
            cur.execute(
                """
                UPDATE leads
                SET processing_status = 'error', display_status = 'error'
                WHERE id = %s AND processing_status IN ('new', 'processing')
                """,
                (str(lead_id),),
            )
            updated = cur.rowcount == 1
        self.db.commit()
        return updated

    def save_classification(self, lead_id: UUID, result: OpportunityResult) -> bool:
        """Persist all scoring fields and mark the lead ready in one statement.

        Only applies to a lead currently in 'processing'.
        """
        relevance = result.relevance_score if result.relevance_score is not None else result.score

        with self.db.cursor() as cur:
            cur.execute(
                """
                UPDATE leads
                SET is_opportunity = %s,
                    relevance_score = %s,
                    opportunity_score = %s,
                    opportunity_type = %s,
                    opportunity_reason = %s,
                    suggested_angle = %s,
                    processing_status = 'ready',
                    display_status = 'new'
                WHERE id = %s AND processing_status = 'processing'
                """,
                (
                    result.is_opportunity,
                    relevance,
                    result.score,
                    result.opportunity_type.value,
                    result.short_reason,
                    result.suggested_angle,
                    str(lead_id),
                ),
            )
            updated = cur.rowcount == 1
        self.db.commit()
        return updated

    def mark_notification_sent(self, lead_id: UUID) -> bool:
        """Flip notification_sent false -> true. Returns False if already set."""
        with self.db.cursor() as cur:
            cur.execute(
                """
                UPDATE leads
                SET notification_sent = TRUE
                WHERE id = %s AND notification_sent = FALSE
                """,
                (str(lead_id),),
            )
            updated = cur.rowcount == 1
        self.db.commit()
        return updated

    def update_reply_draft(self, lead_id: UUID, draft: str) -> bool:
        with self.db.cursor() as cur:
            cur.execute(
                "UPDATE leads SET reply_draft = %s WHERE id = %s",
                (draft, str(lead_id)),
            )
            updated = cur.rowcount == 1
        self.db.commit()
        return updated
