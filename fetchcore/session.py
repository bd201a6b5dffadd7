"""
fetchcore.session
~~~~~~~~~~~~~~~~~
Mutable state of one download session.

Two separate locks:
  _files_lock    pending / processed / discovered lists, touched by both
                 the stream reader thread and the finalization loop
  _publish_lock  the fields a UI shows, plus delivery to subscribers, so
                 listeners receive complete updates in the order produced

Subscribers are plain callables `callback(kind, payload)`:
  ("state", SessionView)   after any change to the published fields
  ("log",   str)           one new timestamped log entry
  ("file",  str)           a file reached its final path
  ("finished", (SessionOutcome, str))   terminal status of the session

The SessionView carried by "state" leaves logs / raw_output empty;
snapshot() fills them in.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable

from fetchcore.models import DiscoveredFile, SessionPhase, SessionView

LOG_CAPACITY = 1000
LOG_TRIM     = 100

Listener = Callable[[str, object], None]


class SessionState:

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._files_lock   = threading.Lock()
        self._publish_lock = threading.RLock()
        self._listeners: list[Listener] = []

        self._discovered: list[DiscoveredFile] = []
        self._pending: list[DiscoveredFile] = []
        self._processed: list[DiscoveredFile] = []
        self.requires_post_processing = False

        self._view = SessionView()
        self._logs: list[str] = []
        self._raw: list[str] = []

    # ── Subscription ──────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> None:
        with self._publish_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._publish_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Forget everything from the previous session."""
        with self._files_lock:
            self._discovered.clear()
            self._pending.clear()
            self._processed.clear()
            self.requires_post_processing = False
        with self._publish_lock:
            self._logs.clear()
            self._raw.clear()
            self._view = SessionView()
            self._emit("state", self._view)

    def clear_files(self) -> None:
        with self._files_lock:
            self._discovered.clear()
            self._pending.clear()
            self._processed.clear()

    # ── File lists ────────────────────────────────────────────────────────────

    def record_discovered(self, item: DiscoveredFile) -> bool:
        """Add *item* unless the same path was already seen. True if new."""
        path = item.path.strip()
        if not path:
            return False
        with self._files_lock:
            if any(d.path == path for d in self._discovered):
                return False
            self._discovered.append(replace(item, path=path))
            return True

    def discovered(self) -> list[DiscoveredFile]:
        with self._files_lock:
            return list(self._discovered)

    def begin_finalizing(self) -> list[DiscoveredFile]:
        """Move every discovered file into the pending queue."""
        with self._files_lock:
            self._pending = list(self._discovered)
            self._discovered.clear()
            return list(self._pending)

    def pop_pending(self) -> DiscoveredFile | None:
        with self._files_lock:
            return self._pending.pop(0) if self._pending else None

    def pending(self) -> list[DiscoveredFile]:
        with self._files_lock:
            return list(self._pending)

    def drain_pending(self) -> list[DiscoveredFile]:
        with self._files_lock:
            items, self._pending = self._pending, []
            return items

    def append_processed(self, item: DiscoveredFile) -> None:
        with self._files_lock:
            self._processed.append(item)
        self.notify("file", item.path)

    def processed(self) -> list[DiscoveredFile]:
        with self._files_lock:
            return list(self._processed)

    # ── Published fields ──────────────────────────────────────────────────────

    def update(self, **fields) -> None:
        """
        Change one or more published fields as a single update.
        Accepts: phase, status, progress, speed, eta, output_path.
        """
        if "progress" in fields:
            fields["progress"] = min(max(float(fields["progress"]), 0.0), 1.0)
        with self._publish_lock:
            self._view = replace(self._view, **fields)
            self._emit("state", self._view)

    def log(self, message: str) -> str:
        entry = f"[{self._clock().strftime('%H:%M:%S')}] {message}"
        with self._publish_lock:
            self._logs.append(entry)
            if len(self._logs) > LOG_CAPACITY:
                del self._logs[:LOG_TRIM]
            self._emit("log", entry)
        return entry

    def append_raw(self, chunk: str) -> None:
        with self._publish_lock:
            self._raw.append(chunk)

    def snapshot(self) -> SessionView:
        with self._publish_lock:
            return replace(
                self._view,
                logs=tuple(self._logs),
                raw_output="".join(self._raw),
            )

    @property
    def phase(self) -> SessionPhase:
        with self._publish_lock:
            return self._view.phase

    @property
    def progress(self) -> float:
        with self._publish_lock:
            return self._view.progress

    def notify(self, kind: str, payload: object) -> None:
        """Deliver an event that isn't a field change ("file", "finished")."""
        with self._publish_lock:
            self._emit(kind, payload)

    # ── Internal ──────────────────────────────────────────────────────────────

    def _emit(self, kind: str, payload: object) -> None:
        for listener in list(self._listeners):
            listener(kind, payload)
