"""Tests for environment-driven configuration."""

from lead_scout.config import DEFAULT_FEED_MIRRORS, ScoutConfig
from lead_scout.db.settings_store import group_by_topic, normalize_topic
from tests.factories import make_subscription


def test_defaults(monkeypatch):
    for name in ("MAX_POSTS_PER_RUN", "CIRCUIT_BREAKER_THRESHOLD", "HIGH_SCORE_THRESHOLD", "FEED_MIRRORS"):
        monkeypatch.delenv(name, raising=False)

    config = ScoutConfig.from_env()

    assert config.max_posts_per_run == 10
    assert config.circuit_breaker_threshold == 3
    assert config.high_score_threshold == 70
    assert config.feed_mirrors == DEFAULT_FEED_MIRRORS


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MAX_POSTS_PER_RUN", "0")
    monkeypatch.setenv("HIGH_SCORE_THRESHOLD", "85")
    monkeypatch.setenv("INGEST_SECRET", "s3cret")
    monkeypatch.setenv("FEED_MIRRORS", "https://a.example/, https://b.example")
    monkeypatch.setenv("INLINE_PROCESSING", "true")

    config = ScoutConfig.from_env()

    assert config.max_posts_per_run == 0
    assert config.high_score_threshold == 85
    assert config.ingest_secret == "s3cret"
    assert config.feed_mirrors == ["https://a.example", "https://b.example"]
    assert config.inline_processing is True


def test_invalid_and_out_of_range_values(monkeypatch):
    monkeypatch.setenv("MAX_POSTS_PER_RUN", "lots")
    monkeypatch.setenv("HIGH_SCORE_THRESHOLD", "250")
    monkeypatch.setenv("CIRCUIT_BREAKER_THRESHOLD", "0")

    config = ScoutConfig.from_env()

    assert config.max_posts_per_run == 10
    assert config.high_score_threshold == 100
    assert config.circuit_breaker_threshold == 1


def test_empty_secret_is_unset(monkeypatch):
    monkeypatch.setenv("INGEST_SECRET", "")
    assert ScoutConfig.from_env().ingest_secret is None


class TestTopics:
    def test_normalize_topic(self):
        assert normalize_topic(" r/SaaS ") == "saas"
        assert normalize_topic("/r/Startups/") == "startups"
        assert normalize_topic(None) == ""

    def test_group_by_topic_preserves_order_and_merges(self):
        a = make_subscription(topic="SaaS")
        b = make_subscription(topic="startups")
        c = make_subscription(topic="r/saas")
        inactive = make_subscription(topic="marketing", active=False)

        grouped = group_by_topic([a, b, c, inactive])

        assert list(grouped) == ["saas", "startups"]
        assert grouped["saas"] == [a, c]
