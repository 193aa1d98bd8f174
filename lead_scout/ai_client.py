"""OpenAI client construction and the shared chat-completion call."""

import logging
from typing import Optional

from openai import OpenAI

from lead_scout.config import ScoutConfig
from lead_scout.errors import ClassificationError, ConfigError

logger = logging.getLogger(__name__)


def get_openai_client(config: ScoutConfig) -> OpenAI:
    """Build an OpenAI client from config. Raises ConfigError without a key."""
    if not config.openai_api_key:
        raise ConfigError("OPENAI_API_KEY not set")
    return OpenAI(api_key=config.openai_api_key)


def chat_completion(
    client: OpenAI,
    model: str,
    system_prompt: str,
    user_prompt: str,
    temperature: float,
    max_tokens: int,
    json_mode: bool = False,
) -> str:
    """Run one chat completion and return the message text.

    Raises ClassificationError when the response carries no content.
    API exceptions propagate to the caller, which owns the fallback.
    """
    kwargs = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    response = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        temperature=temperature,
        max_tokens=max_tokens,
        **kwargs,
    )

    content: Optional[str] = None
    if response.choices:
        content = response.choices[0].message.content
    if not content or not content.strip():
        raise ClassificationError(f"Empty response from {model}")
    return content.strip()


def truncate(text: Optional[str], limit: int) -> str:
    """Trim text to at most limit characters."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit]
