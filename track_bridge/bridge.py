"""File watcher to topic bridge.

Tails files written by the location job and republishes every line to
the topic the dashboard subscribes to:
- Watcher source emitting appended lines per file
- Diagnostic tap logging each line
- Topic publisher wrapping each line as JSON
- Graceful shutdown on SIGTERM/SIGINT
"""

import logging
import signal
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from track_bridge.config import BridgeConfig
from track_bridge.context import PipelineContext
from track_bridge.errors import BridgeError
from track_bridge.metrics import BridgeMetrics
from track_bridge.publisher import LocalFilePublisher, MessagePublisher, PubSubPublisher
from track_bridge.source import FileWatcherSource, LineSource
from track_bridge.tap import tap

log = structlog.get_logger()


class BridgeState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class Bridge:
    """Pipes lines from a source through the tap into a publisher."""

    def __init__(
        self,
        config: BridgeConfig,
        source: LineSource,
        publisher: MessagePublisher,
        *,
        context: PipelineContext | None = None,
        metrics: BridgeMetrics | None = None,
    ) -> None:
        self.config = config
        self.context = context or PipelineContext()
        self.metrics = metrics or BridgeMetrics()
        self.state = BridgeState.STOPPED

        self._source = source
        self._publisher = publisher

        log.info(
            "bridge_initialised",
            watch_dir=config.watch_dir,
            watch_glob=config.watch_glob,
            topic=config.topic,
            backend=config.backend,
        )

    def run(self) -> None:
        """
        Main run loop. Returns once the context is cancelled.

        Startup failures (watch directory, topic handle) and publish errors
        propagate to the caller; the bridge does no recovery of its own.
        """
        self._source.open()
        self._publisher.open()

        self.state = BridgeState.RUNNING
        log.info("bridge_started", topic=self._publisher.topic)

        try:
            for line in tap(self._source.lines(self.context)):
                self.metrics.lines_received += 1
                self.metrics.last_line_at = datetime.now(timezone.utc)

                self._publisher.publish(line)
                self.metrics.messages_published += 1
        finally:
            self._shutdown()

    def _shutdown(self) -> None:
        log.info("graceful_shutdown_starting")
        try:
            self._publisher.close()
        finally:
            self.state = BridgeState.STOPPED
            log.info("bridge_shutdown_complete", **self.metrics.counters())

    def get_health(self) -> dict[str, Any]:
        """Return health check data."""
        idle_seconds = None
        if self.metrics.last_line_at:
            idle_seconds = (
                datetime.now(timezone.utc) - self.metrics.last_line_at
            ).total_seconds()

        return {
            "status": "healthy" if self.state is BridgeState.RUNNING else "stopped",
            "state": self.state.value,
            "topic": self.config.topic,
            "seconds_since_last_line": idle_seconds,
            "metrics": self.metrics.counters(),
        }


def create_components(
    config: BridgeConfig,
    metrics: BridgeMetrics | None = None,
) -> tuple[FileWatcherSource, MessagePublisher]:
    """Build the watcher source and the configured publisher."""
    metrics = metrics or BridgeMetrics()
    source = FileWatcherSource(
        config.watch_dir,
        config.watch_glob,
        poll_interval=config.poll_interval_seconds,
        read_existing=config.read_existing,
    )

    publisher: MessagePublisher
    if config.backend == "pubsub":
        publisher = PubSubPublisher(
            config.project_id,
            config.topic,
            ordering_key=config.ordering_key,
            verify_topic=config.verify_topic,
            metrics=metrics,
        )
    else:
        publisher = LocalFilePublisher(config.local_topic_dir, config.topic, metrics=metrics)

    return source, publisher


def install_signal_handlers(context: PipelineContext) -> None:
    """Cancel the context on SIGTERM/SIGINT. Must be called from the main thread."""

    def _handle_shutdown(signum: int, frame: Any) -> None:
        log.info("shutdown_signal_received", signal=signum)
        context.cancel(reason=signal.Signals(signum).name)

    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)


def configure_logging(level: str = "INFO") -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
    )


def main() -> int:
    """Entry point for the bridge."""
    configure_logging()

    try:
        config = BridgeConfig.from_env()
    except BridgeError as e:
        log.error("config_invalid", error=str(e))
        return 1

    configure_logging(config.log_level)

    context = PipelineContext()
    install_signal_handlers(context)

    metrics = BridgeMetrics()
    source, publisher = create_components(config, metrics)
    bridge = Bridge(config, source, publisher, context=context, metrics=metrics)

    try:
        bridge.run()
    except BridgeError as e:
        log.error("bridge_failed", error=str(e), error_type=type(e).__name__)
        return 1
    except Exception as e:
        log.exception("bridge_failed", error=str(e), error_type=type(e).__name__)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
