"""Durable local slot and best-effort remote copy of the app state.

Both adapters swallow their own I/O failures: callers get ``None`` or
``False`` back and keep working on the last in-memory snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

import httpx

from .models import AppState

log = logging.getLogger(__name__)

STORAGE_KEY = "stakeholderCrm.v1.state"
_DEFAULT_STATE_DIR = Path.home() / ".local" / "share" / "stakesync"
_STATE_ENDPOINT = "/api/state"


class LocalStateStore:
    """Single keyed slot on disk; every write replaces the whole record."""

    def __init__(self, state_dir: Path | None = None, key: str = STORAGE_KEY):
        self.key = key
        self.path = Path(state_dir or _DEFAULT_STATE_DIR) / f"{key}.json"

    def read(self) -> AppState | None:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError):
            log.warning("Failed to read local state at %s", self.path, exc_info=True)
            return None
        state = AppState.from_dict(raw)
        log.debug(
            "Loaded local state: %d stakeholders, %d interactions",
            len(state.stakeholders),
            len(state.interactions),
        )
        return state

    def write(self, state: AppState) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.key}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(state.to_dict(), f, indent=2)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError:
            log.warning("Failed to write local state to %s", self.path, exc_info=True)
            return False
        return True


class RemoteStateStore:
    """Networked copy behind ``GET``/``PUT {base_url}/api/state``.

    There is no server-side merge or lock: a push overwrites whatever is
    there, and concurrent pushes from two surfaces interleave arbitrarily.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    @property
    def url(self) -> str:
        return f"{self.base_url}{_STATE_ENDPOINT}"

    def fetch(self) -> AppState | None:
        """Remote snapshot, or None when there is nothing (usable) to sync."""
        try:
            resp = self._client.get(self.url)
        except httpx.HTTPError as e:
            log.warning("Remote state fetch failed: %s", e)
            return None
        if resp.status_code != 200:
            log.debug("Remote state fetch returned %d", resp.status_code)
            return None
        try:
            data = resp.json()
        except ValueError:
            log.warning("Remote state response was not JSON")
            return None
        if not isinstance(data, dict) or not data.get("state"):
            return None
        return AppState.from_dict(data["state"])

    def push(self, state: AppState) -> bool:
        try:
            resp = self._client.put(self.url, json={"state": state.to_dict()})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.warning("Remote state push failed: %s", e)
            return False
        return True

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
