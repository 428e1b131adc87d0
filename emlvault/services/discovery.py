"""Source tree discovery feeding the bounded work queue."""

from __future__ import annotations

import os
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Iterator, Optional

from emlvault.config import DEFAULT_FILE_EXTENSION
from emlvault.utils.log_service import LogService

_END_OF_STREAM = object()


class WorkQueue:
    """Bounded FIFO of message paths with close and cancel semantics.

    ``put`` blocks while the queue is full; iterating blocks while it is empty
    and open. Both give up once the run's cancel event is set. After ``close``
    consumers see end-of-stream once the already-queued paths are drained.
    """

    def __init__(self, capacity: int, cancel_event: threading.Event, poll_interval: float = 0.1) -> None:
        self._queue: queue.Queue = queue.Queue(maxsize=capacity)
        self._cancel = cancel_event
        self._poll_interval = poll_interval
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, path: Path) -> bool:
        """Queue ``path``; returns False if the run was cancelled first."""
        if self._closed.is_set():
            raise RuntimeError("Cannot add work to a closed queue")
        while not self._cancel.is_set():
            try:
                self._queue.put(path, timeout=self._poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        while not self._cancel.is_set():
            try:
                self._queue.put(_END_OF_STREAM, timeout=self._poll_interval)
                return
            except queue.Full:
                continue

    def __iter__(self) -> Iterator[Path]:
        while not self._cancel.is_set():
            try:
                item = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            if item is _END_OF_STREAM:
                # Hand the marker on so every other consumer stops too.
                self._queue.put(_END_OF_STREAM)
                return
            yield item

    def pending(self) -> int:
        """Number of paths still waiting to be consumed."""
        with self._queue.mutex:
            return sum(1 for item in self._queue.queue if item is not _END_OF_STREAM)


def _raise_walk_error(error: OSError) -> None:
    raise error


def iter_message_files(root: Path, extension: str = DEFAULT_FILE_EXTENSION) -> Iterator[Path]:
    """Yield every file under ``root`` whose suffix matches ``extension``.

    Raises ``OSError`` when a directory cannot be listed.
    """
    wanted = extension.lower()
    for current, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames.sort()
        for name in sorted(filenames):
            if name.lower().endswith(wanted):
                yield Path(current) / name


def discover_files(
    root: Path,
    work_queue: WorkQueue,
    log: LogService,
    extension: str = DEFAULT_FILE_EXTENSION,
    on_discovered: Optional[Callable[[], None]] = None,
) -> int:
    """Walk ``root`` and push matching paths; always closes ``work_queue``.

    A traversal error ends discovery early instead of failing the run.
    """
    started = time.perf_counter()
    queued = 0
    try:
        for path in iter_message_files(root, extension):
            if not work_queue.put(path):
                log.warning("File scanning cancelled after {} file(s)", queued)
                break
            queued += 1
            if on_discovered is not None:
                on_discovered()
        else:
            log.step("File Scanning", (time.perf_counter() - started) * 1000)
    except OSError as exc:
        log.error("Directory scan failed: {}", exc)
    finally:
        work_queue.close()

    log.debug("Queued {} file(s) from {}", queued, root)
    return queued
