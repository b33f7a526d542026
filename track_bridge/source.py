"""
Line sources for the bridge.

A line source watches some input and yields text lines as they appear.
The Protocol lets the bridge work with any source without knowing how
lines are discovered; ``FileWatcherSource`` is the filesystem implementation.

The watcher polls rather than subscribing to filesystem events: every
pass lists the files matching the glob, reads whatever was appended since
the previous pass and yields the complete lines. Offsets live in memory
only, so a restarted bridge starts again from the end of existing files.

A file replaced under the same name (new inode) or shrunk below its offset
is read again from the start. A file truncated in place and rewritten past
its old offset between two polls cannot be told apart from an append, so
reading resumes at the old offset.
"""

import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog

from track_bridge.context import PipelineContext
from track_bridge.errors import SourceError, WatchDirectoryError

log = structlog.get_logger()

READ_CHUNK_BYTES = 64 * 1024


class LineSource(Protocol):
    """
    Protocol defining the line source interface.

    - open: validate the input, failing fast if it cannot be used
    - lines: lazy, infinite, non-restartable sequence of lines
    """

    def open(self) -> None:
        ...

    def lines(self, context: PipelineContext) -> Iterator[str]:
        ...


@dataclass
class TrackedFile:
    """Read position of one watched file."""
    inode: int
    offset: int = 0  # Bytes read from the file so far
    pending: bytes = b""  # Read but not yet emitted, at most one incomplete line after a pass


class FileWatcherSource:
    """
    Tails every file in a directory whose name matches a glob pattern.

    Lines are emitted in append order per file. Files are visited in name
    order on each pass, but no ordering is promised across files.
    """

    def __init__(
        self,
        directory: str | Path,
        pattern: str,
        *,
        poll_interval: float = 0.5,
        read_existing: bool = False,
    ) -> None:
        self.directory = Path(directory)
        self.pattern = pattern
        self.poll_interval = poll_interval
        self.read_existing = read_existing

        self._files: dict[Path, TrackedFile] = {}
        self._opened = False
        self._started = False

    def open(self) -> None:
        """
        Check the directory and snapshot the files already present.

        Existing files start at their current size unless ``read_existing``
        is set, so only content appended after startup is emitted.

        Raises:
            WatchDirectoryError: if the directory is missing or unreadable
        """
        if not self.directory.is_dir():
            raise WatchDirectoryError(f"Watch directory does not exist: {self.directory}")
        if not os.access(self.directory, os.R_OK | os.X_OK):
            raise WatchDirectoryError(f"Watch directory is not readable: {self.directory}")

        try:
            existing = self._matching_files()
            for path in existing:
                stat = path.stat()
                self._files[path] = TrackedFile(
                    inode=stat.st_ino,
                    offset=0 if self.read_existing else stat.st_size,
                )
        except OSError as e:
            raise WatchDirectoryError(f"Cannot scan {self.directory}: {e}") from e

        self._opened = True
        log.info(
            "watcher_opened",
            directory=str(self.directory),
            pattern=self.pattern,
            existing_files=len(existing),
            read_existing=self.read_existing,
        )

    def lines(self, context: PipelineContext) -> Iterator[str]:
        """
        Yield lines until the context is cancelled.

        Cancellation is checked after every emitted line and interrupts the
        wait between polls. A source can only be iterated once.
        """
        if self._started:
            raise SourceError("FileWatcherSource cannot be restarted")
        self._started = True

        if not self._opened:
            self.open()

        while not context.cancelled:
            for line in self.poll():
                yield line
                if context.cancelled:
                    return
            context.wait(self.poll_interval)

        log.info("watcher_stopped", directory=str(self.directory))

    def poll(self) -> Iterator[str]:
        """Make one pass over the matching files, yielding newly completed lines."""
        try:
            matched = self._matching_files()
        except OSError as e:
            # Retried on the next pass
            log.warning("watch_directory_unreadable", directory=str(self.directory), error=str(e))
            return

        current = set(matched)
        for tracked in list(self._files):
            if tracked not in current:
                del self._files[tracked]
                log.info("file_forgotten", file=tracked.name)

        for path in matched:
            yield from self._read_new_lines(path)

    def _matching_files(self) -> list[Path]:
        return sorted(p for p in self.directory.glob(self.pattern) if p.is_file())

    def _read_new_lines(self, path: Path) -> Iterator[str]:
        try:
            stat = path.stat()
        except OSError as e:
            log.warning("file_stat_failed", file=path.name, error=str(e))
            return

        state = self._files.get(path)
        if state is None:
            state = self._files[path] = TrackedFile(inode=stat.st_ino)
            log.info("file_discovered", file=path.name)
        elif stat.st_ino != state.inode:
            log.warning("file_replaced", file=path.name)
            state = self._files[path] = TrackedFile(inode=stat.st_ino)
        elif stat.st_size < state.offset:
            log.warning("file_truncated", file=path.name, offset=state.offset, size=stat.st_size)
            state = self._files[path] = TrackedFile(inode=stat.st_ino)

        # Lines left over from a pass that was cancelled part way
        yield from _drain(state)

        # Stop at the size seen now so a busy writer cannot starve other files
        while state.offset < stat.st_size:
            length = min(READ_CHUNK_BYTES, stat.st_size - state.offset)
            try:
                chunk = self._read_chunk(path, state.offset, length)
            except OSError as e:
                # Offset unchanged, so the same bytes are read again next pass
                log.warning("file_read_failed", file=path.name, offset=state.offset, error=str(e))
                return
            if not chunk:
                return

            state.offset += len(chunk)
            state.pending += chunk
            yield from _drain(state)

    def _read_chunk(self, path: Path, offset: int, length: int) -> bytes:
        with path.open("rb") as handle:
            handle.seek(offset)
            return handle.read(length)


def _drain(state: TrackedFile) -> Iterator[str]:
    """Yield the complete lines in ``state.pending``, keeping any incomplete tail."""
    data = state.pending
    start = 0
    try:
        while True:
            end = data.find(b"\n", start)
            if end < 0:
                return
            raw = data[start:end]
            start = end + 1
            yield _decode_line(raw)
    finally:
        state.pending = data[start:]


def _decode_line(raw: bytes) -> str:
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    # surrogateescape keeps undecodable bytes so the payload can be re-encoded exactly
    return raw.decode("utf-8", errors="surrogateescape")
