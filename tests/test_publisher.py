from pathlib import Path

import pytest
from google.api_core.exceptions import NotFound, ServiceUnavailable

from track_bridge.errors import PublisherNotOpenError, TopicUnavailableError
from track_bridge.metrics import BridgeMetrics
from track_bridge.publisher import JsonMessage, LocalFilePublisher, PubSubPublisher
from tests.conftest import FakePublisherClient


def test_json_message_wraps_text_verbatim():
    message = JsonMessage("not-json-text")

    assert message.to_bytes() == b"not-json-text"
    assert message.attributes == {"content_type": "application/json"}


def test_pubsub_open_resolves_and_verifies_topic():
    client = FakePublisherClient()
    publisher = PubSubPublisher("rail-demo", "treno", client=client)

    publisher.open()

    assert client.checked_topics == ["projects/rail-demo/topics/treno"]


def test_pubsub_open_skips_verification_when_disabled():
    client = FakePublisherClient(fail_get_topic=NotFound("no such topic"))
    publisher = PubSubPublisher("rail-demo", "treno", verify_topic=False, client=client)

    publisher.open()
    publisher.publish("{}")

    assert len(client.published) == 1


def test_pubsub_open_fails_when_topic_unavailable():
    client = FakePublisherClient(fail_get_topic=NotFound("no such topic"))
    publisher = PubSubPublisher("rail-demo", "treno", client=client)

    with pytest.raises(TopicUnavailableError, match="treno"):
        publisher.open()

    with pytest.raises(PublisherNotOpenError):
        publisher.publish("{}")


def test_pubsub_publishes_one_message_per_line():
    client = FakePublisherClient()
    metrics = BridgeMetrics()
    publisher = PubSubPublisher("rail-demo", "treno", client=client, metrics=metrics)
    publisher.open()

    publisher.publish('{"lat":1}')
    publisher.publish('{"lat":1}')
    publisher.publish("not-json-text")

    assert client.published == [
        ("projects/rail-demo/topics/treno", b'{"lat":1}', {"ordering_key": "", "content_type": "application/json"}),
        ("projects/rail-demo/topics/treno", b'{"lat":1}', {"ordering_key": "", "content_type": "application/json"}),
        ("projects/rail-demo/topics/treno", b"not-json-text", {"ordering_key": "", "content_type": "application/json"}),
    ]
    assert metrics.messages_acked == 3
    assert metrics.publish_failures == 0
    assert metrics.last_publish_at is not None


def test_pubsub_sets_ordering_key():
    client = FakePublisherClient()
    publisher = PubSubPublisher("rail-demo", "treno", ordering_key="beam-output", client=client)
    publisher.open()

    publisher.publish("{}")

    assert client.published[0][2]["ordering_key"] == "beam-output"


def test_pubsub_failed_publish_is_counted_not_raised():
    client = FakePublisherClient(fail_publish=ServiceUnavailable("broker down"))
    metrics = BridgeMetrics()
    publisher = PubSubPublisher("rail-demo", "treno", client=client, metrics=metrics)
    publisher.open()

    publisher.publish("{}")

    assert metrics.publish_failures == 1
    assert metrics.messages_acked == 0
    assert client.resumed == []


def test_pubsub_failed_ordered_publish_resumes_key():
    client = FakePublisherClient(fail_publish=ServiceUnavailable("broker down"))
    publisher = PubSubPublisher("rail-demo", "treno", ordering_key="beam-output", client=client)
    publisher.open()

    publisher.publish("{}")

    assert client.resumed == [("projects/rail-demo/topics/treno", "beam-output")]


def test_pubsub_close_stops_client():
    client = FakePublisherClient()
    publisher = PubSubPublisher("rail-demo", "treno", client=client)
    publisher.open()

    publisher.close()

    assert client.stopped
    with pytest.raises(PublisherNotOpenError):
        publisher.publish("{}")


def test_local_publisher_appends_payloads(tmp_path: Path):
    metrics = BridgeMetrics()
    publisher = LocalFilePublisher(tmp_path / "topics", "treno", metrics=metrics)
    publisher.open()

    publisher.publish('{"lat":1}')
    publisher.publish("not-json-text")
    publisher.close()

    assert publisher.path == tmp_path / "topics" / "treno.jsonl"
    assert publisher.path.read_bytes() == b'{"lat":1}\nnot-json-text\n'
    assert metrics.messages_acked == 2


def test_local_publisher_requires_open(tmp_path: Path):
    publisher = LocalFilePublisher(tmp_path, "treno")

    with pytest.raises(PublisherNotOpenError):
        publisher.publish("{}")


def test_local_publisher_fails_when_destination_unusable(tmp_path: Path):
    blocker = tmp_path / "topics"
    blocker.write_text("not a directory")

    with pytest.raises(TopicUnavailableError):
        LocalFilePublisher(blocker, "treno").open()
