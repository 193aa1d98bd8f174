"""
Run Controller / Cost Governor.

Three independent limits per run:

- Lead cap: once max_leads_per_run leads are saved, every loop stops.
  Each saved lead means paid classification calls downstream.
- Circuit breaker: consecutive topic-fetch failures are counted and any
  successful fetch (empty included) resets the count. At the threshold
  the run aborts so a blocking source is not hammered. Below it, the
  controller sleeps a fixed "smart pause" before the next topic.
- Time budget: fetching stops once the run has spent
  fetch_time_budget_seconds of wall-clock time. Topics not reached are
  skipped. Posts already fetched are still processed.

Callers check should_continue() at every loop boundary (topic, post,
subscriber) and time_budget_exhausted() before each topic fetch.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from lead_scout.config import ScoutConfig
from lead_scout.errors import SourceFetchError

logger = logging.getLogger(__name__)

ABORT_CAP_REACHED = "cap_reached"
ABORT_CIRCUIT_BREAKER = "circuit_breaker"
ABORT_TIME_BUDGET = "time_budget"


@dataclass
class RunStats:
    """Counters reported at the end of a run."""

    topics_attempted: int = 0
    topics_succeeded: int = 0
    topics_failed: int = 0
    posts_found: int = 0
    posts_new: int = 0
    posts_matched: int = 0
    leads_saved: int = 0
    duplicates: int = 0
    store_errors: int = 0
    failures: List[str] = field(default_factory=list)
    abort_reason: Optional[str] = None


class RunController:
    """Tracks one run's lead budget and fetch health."""

    def __init__(
        self,
        max_leads_per_run: int = 10,
        breaker_threshold: int = 3,
        backoff_seconds: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        time_budget_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        # max_leads_per_run <= 0 disables the cap, time_budget_seconds <= 0 the budget
        self.max_leads_per_run = max_leads_per_run
        self.breaker_threshold = max(1, breaker_threshold)
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep
        self.time_budget_seconds = time_budget_seconds
        self.clock = clock
        self.deadline: Optional[float] = None

        self.consecutive_failures = 0
        self.tripped = False
        self.stats = RunStats()

    @classmethod
    def from_config(
        cls,
        config: ScoutConfig,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> "RunController":
        return cls(
            max_leads_per_run=config.max_posts_per_run,
            breaker_threshold=config.circuit_breaker_threshold,
            backoff_seconds=config.smart_pause_seconds,
            sleep=sleep,
            time_budget_seconds=config.fetch_time_budget_seconds,
            clock=clock,
        )

    @property
    def cap_enabled(self) -> bool:
        return self.max_leads_per_run > 0

    @property
    def cap_reached(self) -> bool:
        return self.cap_enabled and self.stats.leads_saved >= self.max_leads_per_run

    def start(self) -> None:
        """Start the wall-clock budget. Called once when the run begins."""
        if self.time_budget_seconds > 0:
            self.deadline = self.clock() + self.time_budget_seconds

    def time_budget_exhausted(self) -> bool:
        """True once the deadline has passed. Records the abort reason once."""
        if self.deadline is None or self.clock() < self.deadline:
            return False
        if self.stats.abort_reason is None:
            self.stats.abort_reason = ABORT_TIME_BUDGET
            logger.warning(
                f"Fetch budget of {self.time_budget_seconds:.0f}s exhausted, "
                f"skipping remaining topics"
            )
        return True

    def should_continue(self) -> bool:
        """False once either cap has stopped the run."""
        if self.tripped:
            return False
        if self.cap_reached:
            if self.stats.abort_reason is None:
                self.stats.abort_reason = ABORT_CAP_REACHED
                logger.info(f"Run cap of {self.max_leads_per_run} leads reached, stopping")
            return False
        return True

    def record_saved(self, count: int = 1) -> None:
        self.stats.leads_saved += count

    def record_fetch_success(self, item_count: int) -> None:
        self.stats.topics_attempted += 1
        self.stats.topics_succeeded += 1
        self.stats.posts_found += item_count
        self.consecutive_failures = 0

    def record_fetch_failure(self, error: SourceFetchError) -> bool:
        """Count a failed topic fetch.

        Returns True if the breaker tripped. Otherwise pauses for
        backoff_seconds and returns False.
        """
        self.stats.topics_attempted += 1
        self.stats.topics_failed += 1
        self.stats.failures.append(f"{error.topic}: {error.kind}")
        self.consecutive_failures += 1

        level = logging.ERROR if error.is_critical else logging.WARNING
        logger.log(
            level,
            f"Fetch failed for r/{error.topic} ({error.kind}), "
            f"{self.consecutive_failures}/{self.breaker_threshold} consecutive",
        )

        if self.consecutive_failures >= self.breaker_threshold:
            self.tripped = True
            self.stats.abort_reason = ABORT_CIRCUIT_BREAKER
            logger.error(
                f"Circuit breaker tripped after {self.consecutive_failures} "
                f"consecutive fetch failures, aborting run"
            )
            return True

        if self.backoff_seconds > 0:
            logger.info(f"Pausing {self.backoff_seconds:.0f}s before next topic")
            self.sleep(self.backoff_seconds)
        return False
