from concurrent.futures import Future
from pathlib import Path

import pytest
import structlog

from track_bridge.context import PipelineContext


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def watch_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "watch"
    directory.mkdir()
    return directory


@pytest.fixture
def context() -> PipelineContext:
    return PipelineContext()


def append(path: Path, data: bytes) -> None:
    with path.open("ab") as handle:
        handle.write(data)


class FakePublisherClient:
    """Stands in for ``pubsub_v1.PublisherClient``; futures resolve immediately."""

    def __init__(self, *, fail_publish: Exception | None = None, fail_get_topic: Exception | None = None):
        self.published: list[tuple[str, bytes, dict]] = []
        self.resumed: list[tuple[str, str]] = []
        self.checked_topics: list[str] = []
        self.stopped = False
        self._fail_publish = fail_publish
        self._fail_get_topic = fail_get_topic

    def topic_path(self, project: str, topic: str) -> str:
        return f"projects/{project}/topics/{topic}"

    def get_topic(self, request: dict) -> dict:
        if self._fail_get_topic is not None:
            raise self._fail_get_topic
        self.checked_topics.append(request["topic"])
        return {"name": request["topic"]}

    def publish(self, topic: str, data: bytes, ordering_key: str = "", **attrs: str) -> Future:
        self.published.append((topic, data, {"ordering_key": ordering_key, **attrs}))
        future: Future = Future()
        if self._fail_publish is not None:
            future.set_exception(self._fail_publish)
        else:
            future.set_result(str(len(self.published)))
        return future

    def resume_publish(self, topic: str, ordering_key: str) -> None:
        self.resumed.append((topic, ordering_key))

    def stop(self) -> None:
        self.stopped = True
