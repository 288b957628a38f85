"""Owner of the current snapshot: commits, pushes, pulls and imports.

``StateEngine`` is the one place that holds the "current" AppState. Store
and pipeline functions receive a snapshot and return a new one; the engine
commits the result by stamping it, writing the local slot synchronously and
pushing it to the remote copy in a detached background thread.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from .clock import Clock, now_iso
from .errors import StateImportError
from .models import AppState
from .persistence import LocalStateStore, RemoteStateStore
from .reconcile import should_adopt, state_recency
from .store import reset_state

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0

ChangeListener = Callable[[AppState], None]


class PullScheduler:
    """Recurring background task with an explicit start/stop lifecycle."""

    def __init__(self, callback: Callable[[], Any], interval: float, *, name: str = "stakesync-pull"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._callback = callback
        self.interval = interval
        self._name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
        log.debug("Polling every %.1fs", self.interval)

    def stop(self, timeout: float | None = None) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            log.debug("Polling stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self._callback()
            except Exception:
                log.error("Scheduled pull failed", exc_info=True)


class StateEngine:
    def __init__(
        self,
        local: LocalStateStore,
        remote: RemoteStateStore | None = None,
        *,
        clock: Clock | None = None,
        on_change: ChangeListener | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.local = local
        self.remote = remote
        self.clock = clock
        self.poll_interval = poll_interval
        self._listeners: list[ChangeListener] = [on_change] if on_change else []
        self._current = AppState()
        self._lock = threading.RLock()
        self._pushes: list[threading.Thread] = []
        self._scheduler: PullScheduler | None = None

    # -- snapshot ownership -------------------------------------------------

    @property
    def current(self) -> AppState:
        with self._lock:
            return self._current

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self, state: AppState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                log.error("State listener failed", exc_info=True)

    def load(self) -> AppState:
        """Initialize from the local slot, or start empty."""
        stored = self.local.read()
        with self._lock:
            self._current = stored if stored is not None else AppState()
            return self._current

    def commit(self, state: AppState) -> AppState:
        """Make ``state`` current: stamp, write locally, push in the background.

        The push is fire-and-forget. Its failure is logged by the remote
        adapter, never retried, and never rolls back the local write.
        """
        with self._lock:
            stamped = replace(state, updated_at=now_iso(self.clock))
            self._current = stamped
            self.local.write(stamped)
        self._push_in_background(stamped)
        self._notify(stamped)
        return stamped

    def apply(self, mutation: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run ``mutation(current, *args, **kwargs)`` and commit its snapshot.

        ``mutation`` may return an AppState, a tuple whose first item is one
        (as ``upsert_stakeholder_by_email`` does), or a result object with a
        ``state`` field (as the pipeline's ``IngestResult``). Whatever else
        it returned is handed back with the committed snapshot in place.
        """
        with self._lock:
            result = mutation(self._current, *args, **kwargs)
            if result is self._current:
                return result
            if isinstance(result, AppState):
                return self.commit(result)
            if isinstance(result, tuple):
                return (self.commit(result[0]), *result[1:])
            return replace(result, state=self.commit(result.state))

    # -- remote push ----------------------------------------------------------

    def _push_in_background(self, state: AppState) -> None:
        if self.remote is None:
            return
        thread = threading.Thread(
            target=self._push, args=(state,), name="stakesync-push", daemon=True
        )
        # Only started threads may be joined by wait_for_pushes.
        with self._lock:
            thread.start()
            self._pushes = [t for t in self._pushes if t.is_alive()]
            self._pushes.append(thread)

    def _push(self, state: AppState) -> None:
        try:
            self.remote.push(state)
        except Exception:
            log.error("Background push failed", exc_info=True)

    def wait_for_pushes(self, timeout: float | None = None) -> None:
        with self._lock:
            pending = list(self._pushes)
        for thread in pending:
            thread.join(timeout)

    # -- remote pull ----------------------------------------------------------

    def pull(self) -> bool:
        """Fetch the remote copy and adopt it if strictly newer.

        The comparison runs against the snapshot that is current when the
        fetch resolves, so a local write made during the fetch is not
        clobbered by an older remote copy.
        """
        if self.remote is None:
            return False
        fetched = self.remote.fetch()
        return self._adopt(fetched, origin="remote")

    def adopt_local(self) -> bool:
        """Reload the local slot after another surface wrote it."""
        return self._adopt(self.local.read(), origin="local slot", write_back=False)

    def _adopt(self, candidate: AppState | None, *, origin: str, write_back: bool = True) -> bool:
        with self._lock:
            if not should_adopt(self._current, candidate):
                return False
            self._current = candidate
            if write_back:
                self.local.write(candidate)
        log.info(
            "Adopted newer state from %s (recency %.0f)", origin, state_recency(candidate)
        )
        self._notify(candidate)
        return True

    def start_polling(self, interval: float | None = None) -> None:
        if self.remote is None:
            log.debug("No remote configured, polling disabled")
            return
        with self._lock:
            if self._scheduler is None:
                self._scheduler = PullScheduler(self.pull, interval or self.poll_interval)
            scheduler = self._scheduler
        scheduler.start()

    def stop_polling(self) -> None:
        with self._lock:
            scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None:
            scheduler.stop()

    @property
    def polling(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    # -- whole-state operations -----------------------------------------------

    def export_state(self) -> str:
        return json.dumps(self.current.to_dict(), indent=2)

    def import_state(self, text: str) -> AppState:
        """Replace the whole local and remote state with an exported file.

        Invalid JSON leaves the current state untouched.
        """
        try:
            raw = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            raise StateImportError(f"Import failed (invalid JSON): {e}") from None
        if not isinstance(raw, dict):
            raise StateImportError("Import failed: expected a JSON object at the top level")
        state = AppState.from_dict(raw)
        log.info(
            "Importing state: %d stakeholders, %d interactions",
            len(state.stakeholders),
            len(state.interactions),
        )
        return self.commit(state)

    def reset(self) -> AppState:
        return self.commit(reset_state(clock=self.clock))

    # -- lifecycle ------------------------------------------------------------

    def close(self) -> None:
        self.stop_polling()
        self.wait_for_pushes()
        if self.remote is not None:
            self.remote.close()

    def __enter__(self) -> StateEngine:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
