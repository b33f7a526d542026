"""In-memory counters for monitoring bridge health."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


@dataclass
class BridgeMetrics:
    """Metrics for monitoring bridge health."""
    lines_received: int = 0
    messages_published: int = 0  # Publish calls issued
    messages_acked: int = 0  # Publishes confirmed by the topic
    publish_failures: int = 0
    last_line_at: datetime | None = None
    last_publish_at: datetime | None = None

    def counters(self) -> dict[str, Any]:
        """Return the integer counters, for log summaries and health checks."""
        return {k: v for k, v in asdict(self).items() if isinstance(v, int)}
