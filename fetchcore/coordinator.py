"""
fetchcore.coordinator
~~~~~~~~~~~~~~~~~~~~~
SessionCoordinator is the one object a UI talks to: start(), cancel(),
snapshot(), plus signals for everything that changes.

It is single-job: at most one fetcher (and therefore at most one
transcoder) runs at a time. A second start() while a session is active
is ignored.
"""

from __future__ import annotations

from dataclasses import replace

from PySide6.QtCore import QObject, Signal

from fetchcore.models import ConfigSnapshot, SessionOutcome, SessionPhase, SessionView
from fetchcore.pipeline import SessionPipeline
from fetchcore.session import SessionState
from fetchcore.worker import FetchWorker


class SessionCoordinator(QObject):

    state_changed    = Signal(object)        # SessionView
    log_added        = Signal(str)
    file_finalized   = Signal(str)
    session_finished = Signal(object, str)   # (SessionOutcome, status)

    def __init__(self, pipeline: SessionPipeline | None = None, parent=None):
        super().__init__(parent)
        self._pipeline = pipeline or SessionPipeline(SessionState())
        self._worker: FetchWorker | None = None
        self._last_outcome: SessionOutcome | None = None

    # ── Session control ───────────────────────────────────────────────────────

    def start(self, urls: list[str], config: ConfigSnapshot) -> bool:
        """
        Launch a session in the background. Returns False if one is
        already running or there is nothing to download.
        """
        if self.is_running:
            print("[COORD] start() rejected — session already running")
            return False

        targets = [u.strip() for u in urls if u.strip()]
        if not targets:
            print("[COORD] start() rejected — no URLs")
            return False

        print(f"[COORD] start: {len(targets)} URL(s) | format={config.format} "
              f"| codec={config.video_codec} | out='{config.output_dir}'")

        # The run works on its own copy; later edits to the caller's config don't leak in
        worker = FetchWorker(self._pipeline, targets, replace(config), parent=self)
        worker.state_changed.connect(self.state_changed)
        worker.log_added.connect(self.log_added)
        worker.file_finalized.connect(self.file_finalized)
        worker.session_finished.connect(self._on_session_finished)
        worker.finished.connect(self._on_worker_finished)

        self._worker = worker
        self._last_outcome = None
        worker.start()
        return True

    def cancel(self) -> bool:
        """Stop the running session. Idempotent when idle."""
        if self._worker is None or not self.is_running:
            print("[COORD] cancel() — nothing running")
            return False
        return self._worker.cancel()

    def wait(self, timeout_ms: int = -1) -> bool:
        """Block until the background thread exits. Mainly for tests and the CLI."""
        if self._worker is None:
            return True
        if timeout_ms < 0:
            return self._worker.wait()
        return self._worker.wait(timeout_ms)

    # ── State ─────────────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        worker_alive = self._worker is not None and self._worker.isRunning()
        return worker_alive or self._pipeline.is_running

    @property
    def phase(self) -> SessionPhase:
        return self._pipeline.state.phase

    @property
    def last_outcome(self) -> SessionOutcome | None:
        return self._last_outcome

    @property
    def state(self) -> SessionState:
        """For non-Qt consumers: state.subscribe(callback) / unsubscribe(callback)."""
        return self._pipeline.state

    def snapshot(self) -> SessionView:
        return self._pipeline.state.snapshot()

    # ── Worker callbacks ──────────────────────────────────────────────────────

    def _on_session_finished(self, outcome: SessionOutcome, status: str) -> None:
        print(f"[COORD] Session finished: {outcome.name} — {status}")
        self._last_outcome = outcome
        self.session_finished.emit(outcome, status)

    def _on_worker_finished(self) -> None:
        worker = self.sender()
        print("[COORD] Worker thread exited")
        if worker is self._worker:
            self._worker = None
        if worker is not None:
            worker.deleteLater()
