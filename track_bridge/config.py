"""Configuration loaded from environment variables."""

import math
import os
from dataclasses import dataclass

from track_bridge.errors import ConfigError

BACKENDS = ("local", "pubsub")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class BridgeConfig:
    """Bridge configuration."""

    # Watcher
    watch_dir: str = "."
    watch_glob: str = "beam-output-*"
    poll_interval_seconds: float = 0.5
    read_existing: bool = False  # Emit content already present at startup

    # Topic
    topic: str = "treno"
    backend: str = "local"  # "local" or "pubsub"

    # Pub/Sub
    project_id: str | None = None
    ordering_key: str = ""  # Empty disables ordered publishing
    verify_topic: bool = True

    # Local topic files
    local_topic_dir: str = "topics"

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ConfigError(f"Unknown backend {self.backend!r}, expected one of {BACKENDS}")
        if self.backend == "pubsub" and not self.project_id:
            raise ConfigError("PROJECT_ID is required for the pubsub backend")
        if not math.isfinite(self.poll_interval_seconds) or self.poll_interval_seconds <= 0:
            raise ConfigError("WATCH_POLL_SECONDS must be a finite number greater than zero")
        if not self.watch_glob:
            raise ConfigError("WATCH_GLOB must not be empty")
        if not self.topic:
            raise ConfigError("TOPIC must not be empty")
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Unknown LOG_LEVEL {self.log_level!r}")

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        """Load configuration from environment variables."""
        return cls(
            watch_dir=os.environ.get("WATCH_DIR", "."),
            watch_glob=os.environ.get("WATCH_GLOB", "beam-output-*"),
            poll_interval_seconds=_parse_float("WATCH_POLL_SECONDS", 0.5),
            read_existing=_parse_bool("WATCH_READ_EXISTING", False),
            topic=os.environ.get("TOPIC", "treno"),
            backend=os.environ.get("BRIDGE_BACKEND", "local").lower(),
            project_id=os.environ.get("PROJECT_ID") or None,
            ordering_key=os.environ.get("PUBSUB_ORDERING_KEY", ""),
            verify_topic=_parse_bool("PUBSUB_VERIFY_TOPIC", True),
            local_topic_dir=os.environ.get("LOCAL_TOPIC_DIR", "topics"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


def _parse_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _parse_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e
