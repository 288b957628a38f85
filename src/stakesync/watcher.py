"""Foreground daemon for one surface: polls the remote copy and watches the local slot.

Another surface writing the shared local slot shows up as a file event; the
engine then reloads it under the same recency guard as a remote pull.
"""

from __future__ import annotations

import logging
import signal
import threading
import time

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .engine import StateEngine

log = logging.getLogger(__name__)

_DEBOUNCE_SECONDS = 0.5


class _StateFileEventHandler(FileSystemEventHandler):
    """Watches for writes to the local state slot."""

    def __init__(self, engine: StateEngine):
        super().__init__()
        self._engine = engine
        self._filename = engine.local.path.name
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def _is_slot(self, path: str | bytes | None) -> bool:
        if not path:
            return False
        if isinstance(path, bytes):
            path = path.decode(errors="replace")
        return path.endswith(self._filename)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_slot(event.src_path):
            self._schedule_reload()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_slot(event.src_path):
            self._schedule_reload()

    def on_moved(self, event: FileSystemEvent) -> None:
        # Atomic writes land as a rename onto the slot.
        if not event.is_directory and self._is_slot(getattr(event, "dest_path", None)):
            self._schedule_reload()

    def _schedule_reload(self) -> None:
        log.debug("Local state changed, reloading in %.1fs", _DEBOUNCE_SECONDS)
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(_DEBOUNCE_SECONDS, self._do_reload)
            self._timer.daemon = True
            self._timer.start()

    def _do_reload(self) -> None:
        try:
            self._engine.adopt_local()
        except Exception:
            log.error("Reloading local state failed", exc_info=True)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


def watch(engine: StateEngine, *, interval: float | None = None) -> None:
    """Poll and watch until SIGINT/SIGTERM. Blocks."""
    slot_dir = engine.local.path.parent
    slot_dir.mkdir(parents=True, exist_ok=True)

    log.info("Running initial pull...")
    engine.pull()

    handler = _StateFileEventHandler(engine)
    observer = Observer()
    observer.schedule(handler, str(slot_dir), recursive=False)

    stop_event = threading.Event()

    def _shutdown(signum: int, frame: object) -> None:
        sig_name = signal.Signals(signum).name
        log.info("Received %s, shutting down...", sig_name)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    observer.start()
    engine.start_polling(interval)
    log.info("Watching %s for changes (Ctrl+C to stop)", engine.local.path)

    try:
        while not stop_event.is_set():
            time.sleep(1)
    finally:
        engine.stop_polling()
        handler.cancel()
        observer.stop()
        observer.join()
        log.info("Watcher stopped")
