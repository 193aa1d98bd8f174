"""Exception taxonomy for the lead pipeline."""

from typing import Optional


class LeadScoutError(Exception):
    """Base class for pipeline errors."""

    pass


class ConfigError(LeadScoutError):
    """Raised when a required setting is missing or invalid."""

    pass


class SourceFetchError(LeadScoutError):
    """A topic fetch failed.

    kind is one of RATE_LIMITED, FORBIDDEN, SERVER_ERROR, PARSE_ERROR,
    NETWORK_ERROR or HTTP_ERROR. The run controller counts these toward
    the circuit breaker.
    """

    RATE_LIMITED = "rate_limited"
    FORBIDDEN = "forbidden"
    SERVER_ERROR = "server_error"
    PARSE_ERROR = "parse_error"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"

    def __init__(
        self,
        kind: str,
        topic: str,
        status_code: Optional[int] = None,
        message: Optional[str] = None,
    ):
        self.kind = kind
        self.topic = topic
        self.status_code = status_code
        detail = message or kind
        if status_code is not None:
            detail = f"{detail} (HTTP {status_code})"
        super().__init__(f"r/{topic}: {detail}")

    @classmethod
    def from_status(cls, status_code: int, topic: str) -> "SourceFetchError":
        """Classify a non-success HTTP status."""
        if status_code == 429:
            kind = cls.RATE_LIMITED
        elif status_code == 403:
            kind = cls.FORBIDDEN
        elif 500 <= status_code < 600:
            kind = cls.SERVER_ERROR
        else:
            kind = cls.HTTP_ERROR
        return cls(kind, topic, status_code=status_code)

    @property
    def is_critical(self) -> bool:
        """403 usually means the fetch identity is blocked."""
        return self.kind == self.FORBIDDEN


class ClassificationError(LeadScoutError):
    """A model call or its output could not be used. Always converted to a safe default."""

    pass


class StoreWriteError(LeadScoutError):
    """A non-duplicate database write failure for one unit of work."""

    pass


class DeliveryError(LeadScoutError):
    """A single notification channel failed."""

    def __init__(self, channel: str, message: str):
        self.channel = channel
        super().__init__(f"{channel}: {message}")


class InvalidTransitionError(LeadScoutError):
    """Raised when a lead status transition is not allowed."""

    pass
