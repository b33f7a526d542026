"""
Track Bridge - republishes lines from watched files onto a pub/sub topic.

Tails the files written by the train location job (``beam-output-*`` in
the working directory) and publishes every appended line, as JSON, to the
``treno`` topic read by the dashboard.

Usage:
    python -m track_bridge

Environment Variables:
    WATCH_DIR: Directory to watch (default: .)
    WATCH_GLOB: File name pattern (default: beam-output-*)
    TOPIC: Destination topic (default: treno)
    BRIDGE_BACKEND: "local" or "pubsub" (default: local)
    PROJECT_ID: GCP project (required for pubsub)
"""

from track_bridge.bridge import Bridge, BridgeState, create_components, main
from track_bridge.config import BridgeConfig
from track_bridge.context import PipelineContext
from track_bridge.errors import (
    BridgeError,
    ConfigError,
    PublisherNotOpenError,
    SourceError,
    TopicUnavailableError,
    WatchDirectoryError,
)
from track_bridge.metrics import BridgeMetrics
from track_bridge.publisher import JsonMessage, LocalFilePublisher, MessagePublisher, PubSubPublisher
from track_bridge.source import FileWatcherSource, LineSource

__version__ = "0.1.0"

__all__ = [
    "Bridge",
    "BridgeConfig",
    "BridgeError",
    "BridgeMetrics",
    "BridgeState",
    "ConfigError",
    "FileWatcherSource",
    "JsonMessage",
    "LineSource",
    "LocalFilePublisher",
    "MessagePublisher",
    "PipelineContext",
    "PubSubPublisher",
    "PublisherNotOpenError",
    "SourceError",
    "TopicUnavailableError",
    "WatchDirectoryError",
    "create_components",
    "main",
]
