"""
On-demand reply drafts for qualified leads.

Not part of the scout run. A draft is generated when a user asks for one,
and stored only if generation succeeds.
"""
import logging
from typing import Optional
from uuid import UUID

from openai import OpenAI

from lead_scout.ai_client import chat_completion, truncate
from lead_scout.config import ScoutConfig
from lead_scout.db.lead_store import LeadStore
from lead_scout.db.models import Lead, OpportunityResult, OpportunityType

logger = logging.getLogger(__name__)

TEMPERATURE = 0.7
MAX_TOKENS = 300
DEFAULT_SCORE = 70

SYSTEM_PROMPT = (
    "You write short, genuine Reddit replies. You help first and never sound like an ad."
)

REPLY_PROMPT = """Write a reply to this Reddit post on behalf of someone who builds the product below.

Product: {product_context}

Post Title: {title}
Post Body: {body}

Opportunity type: {opportunity_type}
Why it matters: {reason}
Suggested angle: {angle}

Rules:
- 2 to 4 sentences, conversational, no marketing language
- Answer the author's actual question or problem first
- Mention the product at most once, only if it genuinely helps
- No links, no hashtags, no sign-off

Reply with the text of the comment only."""


def opportunity_from_lead(lead: Lead) -> OpportunityResult:
    """Rebuild scoring metadata from stored columns, with defaults for gaps."""
    return OpportunityResult(
        is_opportunity=True,
        opportunity_type=lead.opportunity_type or OpportunityType.OTHER_MARKETING,
        score=lead.opportunity_score if lead.opportunity_score is not None else DEFAULT_SCORE,
        short_reason=lead.opportunity_reason or "",
        suggested_angle=lead.suggested_angle or "",
    )


def generate_reply_draft(
    title: str,
    body: str,
    product_context: str,
    opportunity: OpportunityResult,
    client: OpenAI,
    config: ScoutConfig,
) -> Optional[str]:
    """Draft a reply. Returns None on any failure."""
    prompt = REPLY_PROMPT.format(
        product_context=product_context or "(not provided)",
        title=truncate(title, 200),
        body=truncate(body, 800) or "(no body)",
        opportunity_type=opportunity.opportunity_type.value,
        reason=opportunity.short_reason or "n/a",
        angle=opportunity.suggested_angle or "n/a",
    )

    try:
        draft = chat_completion(
            client,
            model=config.drafting_model,
            system_prompt=SYSTEM_PROMPT,
            user_prompt=prompt,
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
        )
    except Exception as e:
        logger.warning(f"Reply draft failed for '{truncate(title, 80)}': {e}")
        return None

    return draft.strip().strip('"').strip() or None


def draft_reply_for_lead(
    store: LeadStore,
    lead_id: UUID,
    product_context: str,
    client: OpenAI,
    config: ScoutConfig,
) -> Optional[str]:
    """Generate and save a draft for a stored lead.

    Returns the draft, or None if the lead is missing or generation failed.
    Stored state is only touched when a draft was produced.
    """
    lead = store.get_lead(lead_id)
    if lead is None:
        logger.warning(f"Reply draft requested for unknown lead {lead_id}")
        return None

    draft = generate_reply_draft(
        lead.title,
        lead.body,
        product_context,
        opportunity_from_lead(lead),
        client,
        config,
    )
    if draft is None:
        return None

    store.update_reply_draft(lead_id, draft)
    return draft
