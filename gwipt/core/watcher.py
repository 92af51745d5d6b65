"""Debounced filesystem watcher built on watchdog.

watchdog delivers events on its observer thread one by one. The handler here
only records paths; a single worker thread hands each path to the callback
once that path has been quiet for ``delay`` seconds. Because there is one
worker, callbacks never overlap and batches arrive in order.
"""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from gwipt.core.errors import WatchError
from gwipt.utils.logger import watch_logger

# Reads do not change content
IGNORED_EVENT_TYPES = frozenset({"opened", "closed_no_write"})


class ChangeBatcher(FileSystemEventHandler):
    """Collects changed paths and releases them after a quiet period."""

    def __init__(
        self,
        callback: Callable[[list[str]], Any],
        delay: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.callback = callback
        self.delay = delay
        self._clock = clock
        self._pending: dict[str, float] = {}
        self._cond = threading.Condition()
        self._stopping = False
        self._worker: threading.Thread | None = None

    # ---- watchdog side ----
    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in IGNORED_EVENT_TYPES:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        self.record(*(os.fsdecode(p) for p in paths if p))

    def record(self, *paths: str) -> None:
        now = self._clock()
        with self._cond:
            for path in paths:
                self._pending[path] = now
            self._cond.notify()

    # ---- worker side ----
    def _next_batch(self) -> list[str] | None:
        """Block until some paths are quiet long enough; None when stopping."""
        with self._cond:
            while not self._stopping:
                if not self._pending:
                    self._cond.wait()
                    continue
                now = self._clock()
                ready = [p for p, seen in self._pending.items() if now - seen >= self.delay]
                if ready:
                    for path in ready:
                        del self._pending[path]
                    return ready
                oldest = min(self._pending.values())
                self._cond.wait(max(oldest + self.delay - now, 0.001))
            return None

    def _run(self) -> None:
        while True:
            batch = self._next_batch()
            if batch is None:
                return
            watch_logger.debug("Delivering file events", events=len(batch))
            try:
                self.callback(batch)
            except Exception as e:
                watch_logger.error("Error handling file events", error=str(e))

    def start(self) -> None:
        with self._cond:
            self._stopping = False
        self._worker = threading.Thread(target=self._run, name="gwipt-debounce", daemon=True)
        self._worker.start()

    def stop(self, timeout: float | None = None) -> None:
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
        if self._worker is not None:
            self._worker.join(timeout=timeout)
            self._worker = None


class DebouncedWatcher:
    """Recursive watchdog observer feeding a ChangeBatcher."""

    def __init__(
        self,
        root: Path,
        callback: Callable[[list[str]], Any],
        delay: float,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self.root = root
        self.batcher = ChangeBatcher(callback, delay)
        self._observer_factory = observer_factory
        self._observer: Any = None

    def start(self) -> None:
        """Start watching.

        Raises:
            WatchError: The OS refused the watch (missing dir, inotify limits).
        """
        self.batcher.start()
        self._start_observer()

    def _start_observer(self) -> None:
        observer = self._observer_factory()
        try:
            observer.schedule(self.batcher, str(self.root), recursive=True)
            observer.start()
        except OSError as exc:
            raise WatchError(f"Could not watch {self.root}: {exc}") from exc
        self._observer = observer
        watch_logger.debug("Set up filewatcher", path=str(self.root))

    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def restart(self) -> None:
        """Replace a dead observer thread; queued paths are kept."""
        self._stop_observer()
        self._start_observer()

    def _stop_observer(self) -> None:
        if self._observer is None:
            return
        try:
            self._observer.stop()
            self._observer.join(timeout=2.0)
        except RuntimeError:
            # Thread was never started or already joined
            pass
        self._observer = None

    def stop(self) -> None:
        self._stop_observer()
        self.batcher.stop(timeout=5.0)
