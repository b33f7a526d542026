"""Diagnostic tap: logs each line on its way from the source to the publisher."""

from collections.abc import Iterable, Iterator

import structlog

log = structlog.get_logger()


def log_line(line: str) -> str:
    """Log ``line`` at debug level and return it unchanged."""
    try:
        log.debug("line_received", line=line)
    except Exception:
        pass  # Logging must never stop the pipeline
    return line


def tap(lines: Iterable[str]) -> Iterator[str]:
    """Lazily pass every line through ``log_line``."""
    for line in lines:
        yield log_line(line)
