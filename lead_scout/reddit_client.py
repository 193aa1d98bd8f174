"""
Reddit content fetcher.

Two sources, same contract (fetch_topic(topic, deadline=None) ->
list[ContentItem] or SourceFetchError):

- RedditFeedClient: the public Atom feed at /r/<topic>/new.rss.
- MirrorFeedClient: RSS-Bridge instances serving the same subreddit as a
  JSON Feed. Used when reddit.com blocks the fetch identity. Mirrors are
  tried in order with a short per-mirror timeout.

FallbackFeedClient chains the two. deadline is a clock() value set by the
scout run; no request is allowed to outlive it.
"""

import calendar
import logging
import re
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

import feedparser
import requests
from bs4 import BeautifulSoup

from lead_scout.config import ScoutConfig
from lead_scout.db.models import ContentItem
from lead_scout.db.settings_store import normalize_topic
from lead_scout.errors import SourceFetchError

logger = logging.getLogger(__name__)

COMMENTS_ID_RE = re.compile(r"/comments/([^/?#]+)")
BARE_ID_RE = re.compile(r"^[a-z0-9]+$", re.IGNORECASE)
SUBREDDIT_RE = re.compile(r"/r/([^/?#]+)/")


def extract_post_id(value: Optional[str]) -> str:
    """Short stable post id from a permalink or feed entry id.

    'https://www.reddit.com/r/saas/comments/1abc2de/title/' -> '1abc2de'
    '1abc2de' -> '1abc2de'
    'https://example.org/item/t3_1abc2de' -> 't3_1abc2de' (last path segment)
    """
    if not value:
        return ""
    value = value.strip()

    match = COMMENTS_ID_RE.search(value)
    if match:
        return match.group(1)

    if BARE_ID_RE.match(value):
        return value

    segments = [s for s in re.split(r"[/?#]", value) if s]
    return segments[-1] if segments else ""


def strip_markup(html: Optional[str]) -> str:
    """Plain text from an HTML fragment, whitespace collapsed."""
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ", strip=True)
    return re.sub(r"\s+", " ", text).strip()


def topic_from_url(url: Optional[str], default: str) -> str:
    match = SUBREDDIT_RE.search(url or "")
    return normalize_topic(match.group(1)) if match else default


def _entry_timestamp(entry) -> Optional[datetime]:
    parsed = entry.get("updated_parsed") or entry.get("published_parsed")
    if not parsed:
        return None
    return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)


def _entry_author(entry) -> str:
    author = entry.get("author_detail", {}).get("name") or entry.get("author") or ""
    author = author.strip()
    if author.startswith("/u/"):
        author = author[3:]
    return author


def parse_atom_feed(content: bytes, topic: str) -> List[ContentItem]:
    """Parse a Reddit Atom feed into ContentItems.

    Entries missing id, title, author or timestamp are skipped. Raises
    SourceFetchError(parse_error) only when the document is not a feed.
    """
    parsed = feedparser.parse(content)
    entries = parsed.get("entries", [])

    if parsed.get("bozo") and not entries and not parsed.get("feed"):
        raise SourceFetchError(
            SourceFetchError.PARSE_ERROR,
            topic,
            message=f"unreadable feed: {parsed.get('bozo_exception')}",
        )

    items = []
    skipped = 0
    for entry in entries:
        link = entry.get("link", "")
        external_id = extract_post_id(link) or extract_post_id(entry.get("id"))
        title = (entry.get("title") or "").strip()
        author = _entry_author(entry)
        created_at = _entry_timestamp(entry)

        if not (external_id and title and author and created_at):
            skipped += 1
            continue

        content_html = ""
        if entry.get("content"):
            content_html = entry["content"][0].get("value", "")
        elif entry.get("summary"):
            content_html = entry["summary"]

        items.append(ContentItem(
            external_id=external_id,
            title=title,
            body=strip_markup(content_html),
            url=link,
            author=author,
            topic=topic_from_url(link, topic),
            created_at=created_at,
        ))

    if skipped:
        logger.debug(f"r/{topic}: skipped {skipped} incomplete entries")
    return items


def _as_text(value) -> str:
    """Feed fields are untrusted JSON. Anything but a string reads as empty."""
    return value if isinstance(value, str) else ""


def _parse_timestamp(value) -> Optional[datetime]:
    text = _as_text(value)
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_json_feed(data, topic: str) -> List[ContentItem]:
    """Parse an RSS-Bridge JSON Feed document into ContentItems.

    Items with missing or mistyped fields are skipped like incomplete ones.
    """
    if not isinstance(data, dict) or not isinstance(data.get("items"), list):
        raise SourceFetchError(
            SourceFetchError.PARSE_ERROR, topic, message="not a JSON feed"
        )

    items = []
    for raw in data["items"]:
        if not isinstance(raw, dict):
            continue
        url = _as_text(raw.get("url"))
        external_id = extract_post_id(url) or extract_post_id(_as_text(raw.get("id")))
        title = _as_text(raw.get("title")).strip()
        author_field = raw.get("author")
        if isinstance(author_field, dict):
            author_field = author_field.get("name")
        author = _as_text(author_field).strip()
        if author.startswith("/u/"):
            author = author[3:]

        created_at = _parse_timestamp(raw.get("date_published")) or _parse_timestamp(raw.get("date_modified"))

        if not (external_id and title and author and created_at):
            continue

        content = _as_text(raw.get("content_html")) or _as_text(raw.get("content_text"))
        items.append(ContentItem(
            external_id=external_id,
            title=title,
            body=strip_markup(content),
            url=url,
            author=author,
            topic=topic_from_url(url, topic),
            created_at=created_at,
        ))
    return items


def _time_left(deadline: Optional[float], clock: Callable[[], float], topic: str) -> Optional[float]:
    """Seconds until deadline, or None without one.

    Raises SourceFetchError(network_error) once the deadline has passed.
    """
    if deadline is None:
        return None
    remaining = deadline - clock()
    if remaining <= 0:
        raise SourceFetchError(
            SourceFetchError.NETWORK_ERROR, topic, message="time budget exhausted"
        )
    return remaining


class RedditFeedClient:
    """Fetches /r/<topic>/new.rss from Reddit."""

    # (connect, read) seconds
    DEFAULT_TIMEOUT = (5, 15)
    FEED_LIMIT = 100
    ACCEPT = "application/atom+xml, application/rss+xml, application/xml;q=0.9, */*;q=0.8"

    def __init__(
        self,
        config: ScoutConfig,
        session: Optional[requests.Session] = None,
        timeout: tuple = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = config.reddit_base_url.rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.clock = clock
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": config.reddit_user_agent,
            "Accept": self.ACCEPT,
        })
        if config.reddit_api_token:
            self.session.headers["Authorization"] = f"Bearer {config.reddit_api_token}"

    def feed_url(self, topic: str) -> str:
        return f"{self.base_url}/r/{topic}/new.rss?limit={self.FEED_LIMIT}"

    def fetch_topic(self, topic: str, deadline: Optional[float] = None) -> List[ContentItem]:
        """Newest posts for one topic. Empty list is a valid result.

        With a deadline (a clock() value) the request timeout never runs
        past it.
        """
        topic = normalize_topic(topic)
        timeout = self.timeout
        remaining = _time_left(deadline, self.clock, topic)
        if remaining is not None:
            timeout = tuple(min(t, remaining) for t in timeout)

        try:
            response = self.session.get(self.feed_url(topic), timeout=timeout)
        except requests.RequestException as e:
            raise SourceFetchError(SourceFetchError.NETWORK_ERROR, topic, message=str(e)) from e

        if response.status_code != 200:
            raise SourceFetchError.from_status(response.status_code, topic)

        content_type = response.headers.get("Content-Type", "")
        if "text/html" in content_type:
            raise SourceFetchError(
                SourceFetchError.PARSE_ERROR, topic, message="received HTML instead of a feed"
            )

        items = parse_atom_feed(response.content, topic)
        logger.info(f"r/{topic}: fetched {len(items)} posts")
        return items


class MirrorFeedClient:
    """Fetches subreddits through RSS-Bridge mirrors (JSON Feed format)."""

    BRIDGE_QUERY = "/?action=display&bridge=Reddit&context=single&subreddit={topic}&format=Json"

    def __init__(
        self,
        config: ScoutConfig,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.mirrors = [m.rstrip("/") for m in config.feed_mirrors]
        self.mirror_timeout = config.mirror_timeout_seconds
        self.clock = clock
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": config.reddit_user_agent,
            "Accept": "application/feed+json, application/json;q=0.9",
        })

    def mirror_url(self, mirror: str, topic: str) -> str:
        return mirror + self.BRIDGE_QUERY.format(topic=topic)

    def fetch_topic(self, topic: str, deadline: Optional[float] = None) -> List[ContentItem]:
        """Try each mirror in order until one returns a usable feed.

        Raises SourceFetchError(network_error) if all mirrors fail or the
        deadline passes first.
        """
        topic = normalize_topic(topic)
        failures = []

        for mirror in self.mirrors:
            timeout = self.mirror_timeout
            if deadline is not None:
                remaining = deadline - self.clock()
                if remaining <= 0:
                    failures.append("time budget exhausted")
                    break
                timeout = min(timeout, remaining)

            url = self.mirror_url(mirror, topic)
            try:
                response = self.session.get(url, timeout=timeout)
            except requests.RequestException as e:
                failures.append(f"{mirror}: {type(e).__name__}")
                continue

            if not 200 <= response.status_code < 300:
                failures.append(f"{mirror}: HTTP {response.status_code}")
                continue

            if "text/html" in response.headers.get("Content-Type", ""):
                # Cloudflare-style challenge page
                failures.append(f"{mirror}: HTML challenge page")
                continue

            try:
                items = parse_json_feed(response.json(), topic)
            except (ValueError, SourceFetchError) as e:
                failures.append(f"{mirror}: {e}")
                continue

            logger.info(f"r/{topic}: fetched {len(items)} posts via {mirror}")
            return items

        logger.warning(f"r/{topic}: all mirrors failed ({'; '.join(failures)})")
        raise SourceFetchError(
            SourceFetchError.NETWORK_ERROR, topic, message="all mirrors failed"
        )


class FallbackFeedClient:
    """Primary Reddit feed first, mirrors when the primary fails."""

    def __init__(self, primary: RedditFeedClient, fallback: MirrorFeedClient):
        self.primary = primary
        self.fallback = fallback

    def fetch_topic(self, topic: str, deadline: Optional[float] = None) -> List[ContentItem]:
        try:
            return self.primary.fetch_topic(topic, deadline=deadline)
        except SourceFetchError as primary_error:
            logger.info(f"Primary fetch failed ({primary_error}), trying mirrors")
            try:
                return self.fallback.fetch_topic(topic, deadline=deadline)
            except SourceFetchError:
                raise primary_error


def build_fetcher(config: ScoutConfig, clock: Callable[[], float] = time.monotonic):
    """Fetcher used by scout runs: Reddit first, then mirrors if configured.

    clock must be the one the run's deadline is measured on.
    """
    primary = RedditFeedClient(config, clock=clock)
    if not config.feed_mirrors:
        return primary
    return FallbackFeedClient(primary, MirrorFeedClient(config, clock=clock))
