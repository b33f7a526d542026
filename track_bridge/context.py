"""Pipeline context shared by the source and the publisher."""

import threading

import structlog

log = structlog.get_logger()


class PipelineContext:
    """Carries the cooperative cancellation signal for one bridge run."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self, reason: str | None = None) -> None:
        """Request shutdown. Safe to call from signal handlers and other threads."""
        if not self._cancelled.is_set():
            log.info("pipeline_cancel_requested", reason=reason)
        self._cancelled.set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning early (True) on cancellation."""
        return self._cancelled.wait(timeout)
