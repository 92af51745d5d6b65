"""Tests for the debounced watcher."""

import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent, FileOpenedEvent

from gwipt.core.errors import WatchError
from gwipt.core.watcher import ChangeBatcher, DebouncedWatcher


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class Collector:
    def __init__(self):
        self.batches = []
        self.delivered = threading.Event()

    def __call__(self, batch):
        self.batches.append(sorted(batch))
        self.delivered.set()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def collector():
    return Collector()


@pytest.fixture
def batcher(clock, collector):
    b = ChangeBatcher(collector, delay=0.1, clock=clock)
    b.start()
    yield b
    b.stop(timeout=2.0)


def test_paths_are_released_after_quiet_period(batcher, clock, collector):
    batcher.record("/repo/a.txt", "/repo/b.txt")
    time.sleep(0.05)
    assert collector.batches == []

    clock.now = 0.2

    assert collector.delivered.wait(5.0)
    assert collector.batches == [["/repo/a.txt", "/repo/b.txt"]]


def test_new_event_restarts_quiet_period(batcher, clock, collector):
    batcher.record("/repo/a.txt")
    clock.now = 0.08
    batcher.record("/repo/a.txt")
    clock.now = 0.15
    time.sleep(0.3)
    assert collector.batches == []

    clock.now = 0.2

    assert collector.delivered.wait(5.0)
    assert collector.batches == [["/repo/a.txt"]]


def test_events_are_translated_to_paths():
    batcher = ChangeBatcher(lambda batch: None, delay=0.1)

    batcher.on_any_event(FileModifiedEvent("/repo/a.txt"))
    batcher.on_any_event(FileMovedEvent("/repo/old.txt", "/repo/new.txt"))
    batcher.on_any_event(FileOpenedEvent("/repo/read-only.txt"))

    assert set(batcher._pending) == {"/repo/a.txt", "/repo/old.txt", "/repo/new.txt"}


def test_callback_errors_do_not_stop_worker(clock):
    seen = []
    first = threading.Event()
    second = threading.Event()

    def callback(batch):
        seen.append(batch)
        if len(seen) == 1:
            first.set()
            raise RuntimeError("handler blew up")
        second.set()

    batcher = ChangeBatcher(callback, delay=0.1, clock=clock)
    batcher.start()
    try:
        batcher.record("/repo/a.txt")
        clock.now = 1.0
        assert first.wait(5.0)

        batcher.record("/repo/b.txt")
        clock.now = 2.0
        assert second.wait(5.0)
    finally:
        batcher.stop(timeout=2.0)
    assert seen == [["/repo/a.txt"], ["/repo/b.txt"]]


def test_watcher_schedules_recursive_observer(tmp_path: Path):
    observer = MagicMock()
    watcher = DebouncedWatcher(tmp_path, lambda batch: None, 0.1, observer_factory=lambda: observer)

    watcher.start()
    try:
        observer.schedule.assert_called_once_with(watcher.batcher, str(tmp_path), recursive=True)
        observer.start.assert_called_once()
        observer.is_alive.return_value = True
        assert watcher.is_alive()
    finally:
        watcher.stop()
    observer.stop.assert_called_once()


def test_watcher_restart_replaces_dead_observer(tmp_path: Path):
    observers = [MagicMock(), MagicMock()]
    factory = MagicMock(side_effect=observers)
    watcher = DebouncedWatcher(tmp_path, lambda batch: None, 0.1, observer_factory=factory)
    watcher.start()
    observers[0].is_alive.return_value = False
    assert not watcher.is_alive()

    watcher.restart()
    try:
        observers[1].is_alive.return_value = True
        assert watcher.is_alive()
        observers[1].start.assert_called_once()
    finally:
        watcher.stop()


def test_watch_failure_raises_watch_error(tmp_path: Path):
    observer = MagicMock()
    observer.schedule.side_effect = OSError(28, "inotify watch limit reached")
    watcher = DebouncedWatcher(tmp_path, lambda batch: None, 0.1, observer_factory=lambda: observer)

    with pytest.raises(WatchError, match="inotify"):
        watcher.start()
    watcher.stop()


def test_real_observer_delivers_file_change(tmp_path: Path, collector):
    watcher = DebouncedWatcher(tmp_path, collector, 0.05)
    watcher.start()
    try:
        (tmp_path / "hello.txt").write_text("hi")
        assert collector.delivered.wait(10.0)
    finally:
        watcher.stop()

    delivered = [p for batch in collector.batches for p in batch]
    assert str(tmp_path / "hello.txt") in delivered
