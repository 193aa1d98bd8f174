"""
Stage 2: Structured Opportunity Scoring

Purpose: Score a post that passed Stage 1 as a sales opportunity
Input: Post title, truncated body, product description
Output: OpportunityResult (type, 0-100 score, reason, suggested angle)
Failure mode: Any API, JSON or validation failure returns
OpportunityResult.safe_default() (is_opportunity=False, score=0) so the
run always moves on to the next post.

The pull ingestion path uses this stage alone as a single-shot classifier.
"""
import json
import logging
import re

from openai import OpenAI
from pydantic import ValidationError

from lead_scout.ai_client import chat_completion, truncate
from lead_scout.config import ScoutConfig
from lead_scout.db.models import OpportunityResult
from lead_scout.errors import ClassificationError

logger = logging.getLogger(__name__)

TITLE_LIMIT = 200
BODY_LIMIT = 800
TEMPERATURE = 0.2
MAX_TOKENS = 500
DEFAULT_HIGH_SCORE_THRESHOLD = 70

SYSTEM_PROMPT = "You are a sales intelligence analyst. You respond with a single JSON object and nothing else."

STAGE2_PROMPT = """Evaluate this Reddit post as a sales or engagement opportunity for the product below.

**Product Description:**
{product_context}

**Post Title:** {title}
**Post Body:**
{body}

---

## Opportunity Types

1. **direct_buying_intent** - Author is actively looking to buy or switch tools
2. **problem_awareness** - Author describes a pain the product solves
3. **recommendation_request** - Author asks for tool or service recommendations
4. **competitor_discussion** - Post discusses a competing product
5. **other_marketing** - Some marketing or feedback value, none of the above

## Scoring

- 80-100: Clear, immediate fit. Replying now could win a customer
- 60-79: Good fit, worth a thoughtful reply
- 30-59: Loose fit, mostly awareness value
- 0-29: Not an opportunity

Respond in JSON format:
{{
  "is_opportunity": true or false,
  "opportunity_type": "one of the 5 types above",
  "score": 0-100,
  "relevance_score": 0-100,
  "short_reason": "one sentence on why",
  "suggested_angle": "one sentence on how to engage without being promotional"
}}"""

FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the model added one."""
    return FENCE_RE.sub("", text.strip()).strip()


def parse_opportunity(raw: str) -> OpportunityResult:
    """Strict JSON parse plus schema validation. Raises ClassificationError."""
    try:
        data = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as e:
        raise ClassificationError(f"Invalid JSON from stage 2: {e}") from e

    if not isinstance(data, dict):
        raise ClassificationError("Stage 2 response is not a JSON object")
    if "is_opportunity" not in data or "score" not in data:
        raise ClassificationError("Stage 2 response missing is_opportunity or score")

    try:
        return OpportunityResult(
            is_opportunity=data["is_opportunity"],
            opportunity_type=data.get("opportunity_type", "other_marketing"),
            score=data["score"],
            short_reason=str(data.get("short_reason") or ""),
            suggested_angle=str(data.get("suggested_angle") or ""),
            relevance_score=data.get("relevance_score"),
        )
    except (ValidationError, TypeError, ValueError) as e:
        raise ClassificationError(f"Stage 2 response failed validation: {e}") from e


def score_opportunity(
    title: str,
    body: str,
    product_context: str,
    client: OpenAI,
    config: ScoutConfig,
) -> OpportunityResult:
    """
    Structured scoring for one post.

    Returns:
        OpportunityResult. On any failure, a safe default with error set.
    """
    prompt = STAGE2_PROMPT.format(
        product_context=product_context or "(not provided)",
        title=truncate(title, TITLE_LIMIT),
        body=truncate(body, BODY_LIMIT) or "(no body)",
    )

    try:
        raw = chat_completion(
            client,
            model=config.stage2_model,
            system_prompt=SYSTEM_PROMPT,
            user_prompt=prompt,
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
            json_mode=True,
        )
        result = parse_opportunity(raw)
    except Exception as e:
        logger.warning(f"Stage 2 failed for '{truncate(title, 80)}': {e}")
        return OpportunityResult.safe_default(error=str(e))

    logger.info(
        f"Stage 2 '{truncate(title, 80)}': opportunity={result.is_opportunity} "
        f"type={result.opportunity_type.value} score={result.score}"
    )
    return result


def is_high_score(result: OpportunityResult, threshold: int = DEFAULT_HIGH_SCORE_THRESHOLD) -> bool:
    """Notifiable: flagged as an opportunity and scored at or above threshold."""
    return result.is_opportunity and result.score >= threshold
