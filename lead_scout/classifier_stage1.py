"""
Stage 1: Binary Relevance Gate

Purpose: Cheap yes/no check before paying for structured scoring
Input: Post title, truncated body, product description
Output: RelevanceResult(relevant=bool)
Failure mode: Fail closed. Anything but a reply starting with "yes"
(including API errors and empty replies) counts as not relevant.
"""
import logging

from openai import OpenAI

from lead_scout.ai_client import chat_completion, truncate
from lead_scout.config import ScoutConfig
from lead_scout.db.models import RelevanceResult

logger = logging.getLogger(__name__)

TITLE_LIMIT = 200
BODY_LIMIT = 500
TEMPERATURE = 0.0
MAX_TOKENS = 10

SYSTEM_PROMPT = "Answer ONLY 'Yes' or 'No'."

STAGE1_PROMPT = """Determine if this Reddit post has any potential for sales, marketing, or feedback for a product with this description:

Product Description: {product_context}

Post Title: {title}
Post Body: {body}

Does this post have any potential for sales, marketing, or feedback? Answer ONLY 'Yes' or 'No'."""


def is_yes(answer: str) -> bool:
    return answer.strip().lower().startswith("yes")


def classify_relevance(
    title: str,
    body: str,
    product_context: str,
    client: OpenAI,
    config: ScoutConfig,
) -> RelevanceResult:
    """
    Binary relevance check for one post.

    Args:
        title: Post title (truncated to 200 chars)
        body: Post body (truncated to 500 chars)
        product_context: Owner's product/business description
        client: OpenAI client
        config: Supplies the model name

    Returns:
        RelevanceResult. error is set when the call itself failed.
    """
    prompt = STAGE1_PROMPT.format(
        product_context=product_context or "(not provided)",
        title=truncate(title, TITLE_LIMIT),
        body=truncate(body, BODY_LIMIT) or "(no body)",
    )

    try:
        answer = chat_completion(
            client,
            model=config.stage1_model,
            system_prompt=SYSTEM_PROMPT,
            user_prompt=prompt,
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
        )
    except Exception as e:
        logger.warning(f"Stage 1 failed for '{truncate(title, 80)}': {e}")
        return RelevanceResult(relevant=False, error=str(e))

    relevant = is_yes(answer)
    logger.info(f"Stage 1 '{truncate(title, 80)}': {answer!r} -> {'relevant' if relevant else 'not relevant'}")
    return RelevanceResult(relevant=relevant, raw_response=answer)
