"""Shared logging utilities.

SafeStreamHandler survives broken pipes and closed file descriptors, which
happen when the API runs under a reloader or the CLI output is piped to a
process that exits early.

DebugLogCollector is the observer used by the webhook endpoints: it is
attached to the package logger for one unit of work and hands the captured
lines back as the response's debug_logs. Pipeline code only ever logs; it
never knows whether anyone is collecting.

Sync endpoints run in a threadpool, so several collectors can sit on the
package logger at once. Each one only keeps records from the thread that
created it.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Tuple

PACKAGE_LOGGER = "lead_scout"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# logger name -> (active collectors, level before the first one attached)
_collector_lock = threading.Lock()
_active_collectors: Dict[str, Tuple[int, int]] = {}


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that ignores broken pipe and closed file errors."""

    def emit(self, record):
        try:
            super().emit(record)
        except BrokenPipeError:
            pass  # stdout closed
        except ValueError:
            pass  # I/O operation on closed file


class SameThreadFilter(logging.Filter):
    """Passes only records logged from the thread that built the filter."""

    def __init__(self):
        super().__init__()
        self.thread_id = threading.get_ident()

    def filter(self, record):
        return record.thread == self.thread_id


class DebugLogCollector(logging.Handler):
    """Buffers formatted log lines in memory, capped at max_lines."""

    def __init__(self, level=logging.INFO, max_lines: int = 200):
        super().__init__(level)
        self.lines: List[str] = []
        self.max_lines = max_lines
        self.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        self.addFilter(SameThreadFilter())

    def emit(self, record):
        if len(self.lines) >= self.max_lines:
            return
        try:
            self.lines.append(self.format(record))
        except Exception:
            self.handleError(record)


@contextmanager
def collect_debug_logs(level=logging.INFO, logger_name: str = PACKAGE_LOGGER) -> Iterator[DebugLogCollector]:
    """Capture package log lines emitted by this thread inside the with-block.

    The logger level is lowered while any collector is attached and put
    back when the last one leaves.

    Usage:
        with collect_debug_logs() as collector:
            result = processor.process(lead_id)
        return {"debug_logs": collector.lines, ...}
    """
    target = logging.getLogger(logger_name)
    collector = DebugLogCollector(level=level)

    with _collector_lock:
        count, previous_level = _active_collectors.get(logger_name, (0, target.level))
        _active_collectors[logger_name] = (count + 1, previous_level)
        target.addHandler(collector)
        if target.level == logging.NOTSET or target.level > level:
            target.setLevel(level)
    try:
        yield collector
    finally:
        with _collector_lock:
            target.removeHandler(collector)
            count, previous_level = _active_collectors[logger_name]
            if count <= 1:
                del _active_collectors[logger_name]
                target.setLevel(previous_level)
            else:
                _active_collectors[logger_name] = (count - 1, previous_level)


def configure_safe_logging(level=logging.INFO):
    """Configure root logger with SafeStreamHandler.

    Safe to call multiple times (guards against duplicate handlers).
    """
    logger = logging.getLogger()
    if not any(isinstance(h, SafeStreamHandler) for h in logger.handlers):
        handler = SafeStreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        logger.addHandler(handler)
        # The openai package can leave the root logger at WARNING on import
        if logger.level == logging.NOTSET or logger.level > level:
            logger.setLevel(level)
