"""
Runtime configuration for the lead pipeline.

All environment reads happen here. Entry points (API app, CLI) build a
ScoutConfig once via ScoutConfig.from_env() and pass it down; pipeline
components never touch os.environ themselves.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent

DEFAULT_FEED_MIRRORS = [
    "https://rss-bridge.org/bridge01",
    "https://rss.bka.li",
    "https://feed.eugenemolnar.com",
    "https://bridge.suumitsu.eu",
    "https://rssbridge.noc.social",
]


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load .env from the project root (or an explicit path) into os.environ."""
    return load_dotenv(path or PROJECT_ROOT / ".env")


def _env_int(name: str, default: int, low: int, high: int) -> int:
    """Read an int knob, clamped to [low, high]. Bad values fall back to default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    return max(low, min(high, value))


def _env_float(name: str, default: float, low: float, high: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    return max(low, min(high, value))


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [part.strip().rstrip("/") for part in raw.split(",") if part.strip()]


@dataclass
class ScoutConfig:
    """Explicit configuration passed to every pipeline component."""

    # Storage
    database_url: str = "postgresql://localhost:5432/lead_scout"

    # Content source
    reddit_base_url: str = "https://www.reddit.com"
    reddit_user_agent: str = "Mozilla/5.0 (compatible; RSS Reader/1.0)"
    reddit_api_token: Optional[str] = None
    feed_mirrors: List[str] = field(default_factory=lambda: list(DEFAULT_FEED_MIRRORS))
    fetch_time_budget_seconds: float = 30.0
    mirror_timeout_seconds: float = 3.0

    # Language model
    openai_api_key: Optional[str] = None
    stage1_model: str = "gpt-4.1-nano"
    stage2_model: str = "gpt-4.1-nano"
    drafting_model: str = "gpt-4o-mini"

    # Delivery
    resend_api_key: Optional[str] = None
    email_from: str = "Lead Scout <alerts@leadscout.app>"
    app_base_url: str = "http://localhost:3000"

    # Ingestion auth
    ingest_secret: Optional[str] = None

    # Run governance
    max_posts_per_run: int = 10
    circuit_breaker_threshold: int = 3
    smart_pause_seconds: float = 5.0
    high_score_threshold: int = 70

    # Classify each lead in the cron run instead of waiting for the insert webhook
    inline_processing: bool = False

    @classmethod
    def from_env(cls) -> "ScoutConfig":
        """Build config from the process environment."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            reddit_base_url=os.getenv("REDDIT_BASE_URL", cls.reddit_base_url).rstrip("/"),
            reddit_user_agent=os.getenv("REDDIT_USER_AGENT", cls.reddit_user_agent),
            reddit_api_token=os.getenv("REDDIT_API_TOKEN") or None,
            feed_mirrors=_env_list("FEED_MIRRORS", DEFAULT_FEED_MIRRORS),
            fetch_time_budget_seconds=_env_float("FETCH_TIME_BUDGET_SECONDS", 30.0, 1.0, 300.0),
            mirror_timeout_seconds=_env_float("MIRROR_TIMEOUT_SECONDS", 3.0, 0.5, 30.0),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            stage1_model=os.getenv("AI_MODEL_STAGE1", cls.stage1_model),
            stage2_model=os.getenv("AI_MODEL_STAGE2", cls.stage2_model),
            drafting_model=os.getenv("AI_MODEL_DRAFTING", cls.drafting_model),
            resend_api_key=os.getenv("RESEND_API_KEY") or None,
            email_from=os.getenv("EMAIL_FROM", cls.email_from),
            app_base_url=os.getenv("APP_BASE_URL", cls.app_base_url).rstrip("/"),
            ingest_secret=os.getenv("INGEST_SECRET") or None,
            # 0 disables the cap
            max_posts_per_run=_env_int("MAX_POSTS_PER_RUN", 10, 0, 1000),
            circuit_breaker_threshold=_env_int("CIRCUIT_BREAKER_THRESHOLD", 3, 1, 50),
            smart_pause_seconds=_env_float("SMART_PAUSE_SECONDS", 5.0, 0.0, 120.0),
            high_score_threshold=_env_int("HIGH_SCORE_THRESHOLD", 70, 0, 100),
            inline_processing=_env_bool("INLINE_PROCESSING", False),
        )
