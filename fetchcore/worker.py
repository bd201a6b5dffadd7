"""
fetchcore.worker
~~~~~~~~~~~~~~~~
QThread that runs one SessionPipeline and re-emits its events as signals.

Signals are emitted from the worker thread; connected to a QObject that
lives in the GUI thread they are queued, so the UI receives every update
in the order it was produced and never half of one.

Signals
-------
state_changed(SessionView)         published fields changed
log_added(str)                     one timestamped log line
file_finalized(str)                a file reached its final path
session_finished(SessionOutcome, str)
"""

from __future__ import annotations

from PySide6.QtCore import QThread, Signal

from fetchcore.models import ConfigSnapshot, SessionOutcome
from fetchcore.pipeline import SessionPipeline


class FetchWorker(QThread):

    state_changed    = Signal(object)
    log_added        = Signal(str)
    file_finalized   = Signal(str)
    session_finished = Signal(object, str)

    def __init__(
        self,
        pipeline: SessionPipeline,
        urls: list[str],
        config: ConfigSnapshot,
        parent=None,
    ):
        super().__init__(parent)
        self._pipeline = pipeline
        self._urls = list(urls)
        self._config = config
        self.outcome: SessionOutcome | None = None
        print(f"[WORKER] Created for {len(self._urls)} URL(s)")

    # ── QThread entry point ───────────────────────────────────────────────────

    def run(self):
        print("[WORKER] Thread started")
        state = self._pipeline.state
        state.subscribe(self._relay)
        try:
            self.outcome = self._pipeline.run(self._urls, self._config)
        except Exception as exc:
            print(f"[WORKER] ❌ Exception in run(): {exc!r}")
            state.log(f"Unexpected error: {exc}")
            # relayed as session_finished while still subscribed
            self.outcome = self._pipeline.fail(f"Unexpected error: {exc}")
        finally:
            state.unsubscribe(self._relay)
        print(f"[WORKER] Done: {self.outcome.name if self.outcome else 'rejected'}")

    # ── Cancel ────────────────────────────────────────────────────────────────

    def cancel(self) -> bool:
        print("[WORKER] cancel() called")
        return self._pipeline.cancel()

    # ── Internal ──────────────────────────────────────────────────────────────

    def _relay(self, kind: str, payload: object) -> None:
        if kind == "state":
            self.state_changed.emit(payload)
        elif kind == "log":
            self.log_added.emit(payload)
        elif kind == "file":
            self.file_finalized.emit(payload)
        elif kind == "finished":
            outcome, status = payload
            self.session_finished.emit(outcome, status)
