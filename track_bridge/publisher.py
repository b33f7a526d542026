"""Topic publishers: Pub/Sub for deployments, a local file for development.

Both wrap each line in a ``JsonMessage`` and publish it without looking at
the content. Delivery, retry and fan-out belong to the topic backend.
"""

from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, ClassVar, Protocol

import structlog
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import pubsub_v1

from track_bridge.errors import PublisherNotOpenError, TopicUnavailableError
from track_bridge.metrics import BridgeMetrics

log = structlog.get_logger()


@dataclass(frozen=True)
class JsonMessage:
    """A line marked as JSON content. The text is never parsed or validated."""
    value: str

    CONTENT_TYPE: ClassVar[str] = "application/json"

    def to_bytes(self) -> bytes:
        # Round-trips bytes the source decoded with surrogateescape
        return self.value.encode("utf-8", errors="surrogateescape")

    @property
    def attributes(self) -> dict[str, str]:
        return {"content_type": self.CONTENT_TYPE}


class MessagePublisher(Protocol):
    """
    Protocol defining the publisher interface.

    - open: obtain the topic handle, failing fast if it is unavailable
    - publish: send one line to the fixed topic
    - close: flush and release the handle
    """

    topic: str

    def open(self) -> None:
        ...

    def publish(self, line: str) -> None:
        ...

    def close(self) -> None:
        ...


class PubSubPublisher:
    """Publishes lines to a Google Cloud Pub/Sub topic."""

    def __init__(
        self,
        project_id: str,
        topic: str,
        *,
        ordering_key: str = "",
        verify_topic: bool = True,
        client: pubsub_v1.PublisherClient | None = None,
        metrics: BridgeMetrics | None = None,
    ) -> None:
        self.project_id = project_id
        self.topic = topic
        self.ordering_key = ordering_key
        self.verify_topic = verify_topic
        self.metrics = metrics or BridgeMetrics()

        self._client = client
        self._topic_path: str | None = None

    def open(self) -> None:
        """Create the client and resolve the topic once for the publisher's lifetime."""
        try:
            if self._client is None:
                self._client = pubsub_v1.PublisherClient(
                    publisher_options=pubsub_v1.types.PublisherOptions(
                        enable_message_ordering=bool(self.ordering_key),
                    ),
                )
            topic_path = self._client.topic_path(self.project_id, self.topic)
            if self.verify_topic:
                self._client.get_topic(request={"topic": topic_path})
        except (GoogleAPIError, GoogleAuthError) as e:
            raise TopicUnavailableError(
                f"Cannot obtain Pub/Sub topic {self.topic!r} in {self.project_id!r}: {e}"
            ) from e

        self._topic_path = topic_path
        log.info(
            "pubsub_publisher_opened",
            topic_path=topic_path,
            ordered=bool(self.ordering_key),
        )

    def publish(self, line: str) -> None:
        if self._client is None or self._topic_path is None:
            raise PublisherNotOpenError(f"Publisher for {self.topic!r} is not open")

        message = JsonMessage(line)
        future = self._client.publish(
            self._topic_path,
            message.to_bytes(),
            ordering_key=self.ordering_key,
            **message.attributes,
        )
        future.add_done_callback(self._on_publish_complete)

    def _on_publish_complete(self, future: Future) -> None:
        """Callback when Pub/Sub publish completes."""
        try:
            message_id = future.result()
        except Exception as e:
            self.metrics.publish_failures += 1
            log.error("pubsub_publish_failed", topic=self.topic, error=str(e))
            if self.ordering_key:
                # A failed ordered publish pauses the key until resumed
                self._client.resume_publish(self._topic_path, self.ordering_key)
            return

        self.metrics.messages_acked += 1
        self.metrics.last_publish_at = datetime.now(timezone.utc)
        log.debug("pubsub_publish_acked", topic=self.topic, message_id=message_id)

    def close(self) -> None:
        """Flush pending messages and stop the client."""
        if self._client is None or self._topic_path is None:
            return
        try:
            self._client.stop()
        except GoogleAPIError as e:
            log.warning("pubsub_publisher_stop_failed", topic=self.topic, error=str(e))
        finally:
            self._topic_path = None
        log.info("pubsub_publisher_closed", topic=self.topic)


class LocalFilePublisher:
    """
    Appends each message payload to ``<base_dir>/<topic>.jsonl``.

    Used for local development, where tailing the topic file stands in
    for a subscriber. Only the payload bytes are written, one message per
    line; the ``.jsonl`` suffix takes the place of the ``content_type``
    attribute that ``JsonMessage`` carries on Pub/Sub.
    """

    def __init__(self, base_dir: str | Path, topic: str, *, metrics: BridgeMetrics | None = None) -> None:
        self.base_dir = Path(base_dir)
        self.topic = topic
        self.metrics = metrics or BridgeMetrics()
        self._handle: BinaryIO | None = None

    @property
    def path(self) -> Path:
        return self.base_dir / f"{self.topic}.jsonl"

    def open(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            self._handle = self.path.open("ab")
        except OSError as e:
            raise TopicUnavailableError(f"Cannot open local topic file {self.path}: {e}") from e
        log.info("local_publisher_opened", path=str(self.path))

    def publish(self, line: str) -> None:
        if self._handle is None:
            raise PublisherNotOpenError(f"Publisher for {self.topic!r} is not open")

        message = JsonMessage(line)
        self._handle.write(message.to_bytes() + b"\n")
        self._handle.flush()
        self.metrics.messages_acked += 1
        self.metrics.last_publish_at = datetime.now(timezone.utc)

    def close(self) -> None:
        if self._handle is None:
            return
        self._handle.close()
        self._handle = None
        log.info("local_publisher_closed", path=str(self.path))
