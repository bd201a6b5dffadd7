"""
fetchcore.pipeline
~~~~~~~~~~~~~~~~~~
One download session, start to finish, in plain Python (no Qt).

run() blocks: it spawns yt-dlp, reads its output on a separate reader
thread, waits for it to exit, then finalizes every file it produced one
at a time. Everything it learns is written to a SessionState, whose
subscribers see the updates in order.

cancel() may be called from any other thread.
"""

from __future__ import annotations

import os
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable

from fetchcore.cleanup import CleanupRegistry, sweep_stale
from fetchcore.decision import decide, describe
from fetchcore.errors import ToolNotFoundError
from fetchcore.fetch_args import build_fetch_arguments, redact
from fetchcore.models import (
    ConfigSnapshot,
    DecisionOutcome,
    DiscoveredFile,
    FetchArguments,
    SessionOutcome,
    SessionPhase,
    Severity,
)
from fetchcore.output_parser import (
    Event,
    FileDiscovered,
    LogLine,
    OutputStreamParser,
    ProgressParsed,
    RawChunk,
    StatusLine,
)
from fetchcore.paths import DefaultResolver, ExecutableResolver, require_executable, temp_dir
from fetchcore.probe import MediaInspector
from fetchcore.session import SessionState
from fetchcore.transcoder import RunFn, TranscodeRunner, run_streaming

CANCEL_GRACE_SECONDS = 5.0
CANCEL_POLL_SECONDS  = 0.1

SUCCESS_MESSAGE      = "Download completed successfully!"
NO_SUBTITLES_MESSAGE = "No subtitles available for this video"
CANCELLED_MESSAGE    = "Download cancelled"

PopenFn = Callable[..., subprocess.Popen]


class SessionPipeline:

    def __init__(
        self,
        state: SessionState | None = None,
        *,
        resolver: ExecutableResolver | None = None,
        popen: PopenFn = subprocess.Popen,
        transcode_run: RunFn = run_streaming,
        probe_run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        cookie_dir: Path | None = None,
        grace_period: float = CANCEL_GRACE_SECONDS,
    ):
        self.state = state or SessionState()
        self._resolver = resolver or DefaultResolver()
        self._popen = popen
        self._transcode_run = transcode_run
        self._probe_run = probe_run
        self._cookie_dir = cookie_dir or temp_dir()
        self._grace_period = grace_period

        self._lock = threading.Lock()
        self._running = False
        self._cancelled = False
        self._cancel_published = False
        self._process: subprocess.Popen | None = None
        self._cleanup = CleanupRegistry()

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def cleanup(self) -> CleanupRegistry:
        return self._cleanup

    # ── Entry point ───────────────────────────────────────────────────────────

    def run(self, urls: list[str], config: ConfigSnapshot) -> SessionOutcome | None:
        """
        Run one session to a terminal state. Returns None (and does
        nothing) if a session is already running.
        """
        with self._lock:
            if self._running:
                print("[SESSION] run() rejected — a session is already running")
                return None
            self._running = True
            self._cancelled = False
            self._cancel_published = False
            self._process = None
            self._cleanup = CleanupRegistry()

        try:
            return self._run(urls, config)
        finally:
            self._cleanup.cleanup_all()
            with self._lock:
                self._running = False
                self._process = None

    # ── Cancel ────────────────────────────────────────────────────────────────

    def cancel(self) -> bool:
        """
        Stop the fetcher. While files are being finalized, the current
        transcoder step is left to finish and the loop stops afterwards.
        Returns False if nothing was running.
        """
        with self._lock:
            if not self._running or self._cancelled:
                return False
            self._cancelled = True
            process = self._process
            finalizing = self.state.phase is SessionPhase.FINALIZING
            # With no live fetcher, run() publishes the cancelled state itself
            publish_here = process is not None and not finalizing
            self._cancel_published = publish_here

        self.state.log("Download cancelled by user")
        print(f"[SESSION] cancel() called (finalizing={finalizing})")

        if not publish_here:
            return True

        self._terminate(process)
        self._finish(SessionOutcome.CANCELLED, CANCELLED_MESSAGE)
        return True

    def fail(self, status: str) -> SessionOutcome:
        """
        Publish a failed, idle view for a session that ended without reaching
        a terminal state of its own (an exception escaped run()).
        """
        return self._finish(SessionOutcome.FAILED, status)

    def _terminate(self, process: subprocess.Popen) -> None:
        if process.poll() is not None:
            return
        process.terminate()
        deadline = time.monotonic() + self._grace_period
        while process.poll() is None and time.monotonic() < deadline:
            time.sleep(CANCEL_POLL_SECONDS)

        if process.poll() is None:
            print(f"[SESSION] Fetcher ignored terminate after {self._grace_period}s — killing")
            process.kill()
        else:
            print(f"[SESSION] Fetcher exited with code {process.returncode} after terminate")

    # ── Session body ──────────────────────────────────────────────────────────

    def _run(self, urls: list[str], config: ConfigSnapshot) -> SessionOutcome:
        state = self.state
        state.reset()
        sweep_stale(self._cookie_dir)

        targets = [u.strip() for u in urls if u.strip()]
        if not targets:
            return self._finish(SessionOutcome.FAILED, "Error: no URLs given")

        fetcher = self._resolver.fetcher(config.fetcher_path)
        try:
            fetcher = require_executable(fetcher, "yt-dlp")
        except ToolNotFoundError as exc:
            state.log(f"Error: {exc}")
            return self._finish(SessionOutcome.FAILED, f"Error: yt-dlp not found ({exc})")

        transcoder = self._resolver.transcoder(config.transcoder_path)
        fetch_args = build_fetch_arguments(
            targets,
            config,
            transcoder_path=transcoder,
            cleanup=self._cleanup,
            cookie_dir=self._cookie_dir,
            log=state.log,
        )
        state.requires_post_processing = fetch_args.requires_post_processing
        if config.log_commands:
            state.log(f"Download command: yt-dlp {' '.join(redact(fetch_args.args))}")

        if len(targets) == 1:
            status = "Starting download..."
            state.log(f"Starting download for URL: {targets[0]}")
        else:
            status = f"Starting downloads ({len(targets)} items)..."
            state.log(f"Starting download batch for {len(targets)} URLs")
            state.log(f"Targets: {', '.join(targets)}")
        state.log(f"Using yt-dlp at: {fetcher}")
        state.update(phase=SessionPhase.RUNNING, status=status, progress=0.0, speed="", eta="")

        code = self._run_fetcher([fetcher, *fetch_args.args], config)
        if code is None:
            if self._was_cancelled():
                return self._finish_cancelled()
            return SessionOutcome.FAILED

        with self._lock:
            cancelled = self._cancelled
            if not cancelled and code == 0:
                state.update(phase=SessionPhase.FINALIZING)
        if cancelled:
            return self._finish_cancelled()

        if code != 0:
            state.log(f"Download failed with exit code {code}")
            return self._finish(SessionOutcome.FAILED, f"Download failed with exit code {code}")

        state.log("Download completed successfully")
        inspector = MediaInspector(transcoder, run=self._probe_run)
        return self._finalize_all(config, fetch_args, inspector)

    def _run_fetcher(self, cmd: list[str], config: ConfigSnapshot) -> int | None:
        """Spawn yt-dlp and block until it exits. None if it never started."""
        if self._was_cancelled():
            return None

        parser = OutputStreamParser(
            self._apply_event,
            verbose=config.verbose_logging,
            subtitle_only=config.subtitle_only,
            show_raw_output=config.show_raw_output,
        )

        try:
            process = self._popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
                errors="replace",
            )
        except OSError as exc:
            self.state.log(f"Failed to start download: {exc}")
            self._finish(SessionOutcome.FAILED, f"Failed to start download: {exc}")
            return None

        with self._lock:
            self._process = process
            cancelled = self._cancelled
        if cancelled:
            self._terminate(process)

        print(f"[FETCH] PID = {getattr(process, 'pid', '?')}")
        self.state.log("Process started successfully")

        def _read_output():
            try:
                for chunk in iter(process.stdout.readline, ""):
                    parser.feed(chunk)
                parser.flush()
            except Exception as exc:
                print(f"[FETCH] ❌ Output reader failed: {exc!r}")
                self.state.log(f"Output parsing stopped: {exc}")
                # Keep draining so yt-dlp never blocks on a full pipe
                for _ in iter(process.stdout.readline, ""):
                    pass

        reader = threading.Thread(target=_read_output, name="fetch-reader", daemon=True)
        reader.start()

        code = process.wait()
        reader.join()
        process.stdout.close()
        print(f"[FETCH] yt-dlp exited with code {code}")
        return code

    def _apply_event(self, event: Event) -> None:
        """Stream reader callback: parser event → session state."""
        if self._was_cancelled():
            return
        state = self.state
        if isinstance(event, FileDiscovered):
            if state.record_discovered(event.file):
                kind = "Subtitle file" if event.file.is_subtitle else "Downloaded file"
                state.log(f"{kind}: {event.file.path}")
        elif isinstance(event, ProgressParsed):
            fields: dict[str, object] = {"status": event.line}
            if event.percent is not None:
                fields["progress"] = event.percent / 100.0
            if event.speed:
                fields["speed"] = event.speed
            if event.eta:
                fields["eta"] = event.eta
            state.update(**fields)
        elif isinstance(event, StatusLine):
            state.update(status=event.text)
            if event.severity is not Severity.INFO:
                state.log(event.text)
        elif isinstance(event, LogLine):
            state.log(event.text)
        elif isinstance(event, RawChunk):
            state.append_raw(event.text)

    # ── Finalization ──────────────────────────────────────────────────────────

    def _finalize_all(
        self,
        config: ConfigSnapshot,
        fetch_args: FetchArguments,
        inspector: MediaInspector,
    ) -> SessionOutcome:
        state = self.state
        pending = state.begin_finalizing()

        if config.subtitle_only and not any(f.is_subtitle for f in pending):
            state.log("No subtitle files were produced")
            state.clear_files()
            return self._finish(SessionOutcome.NO_SUBTITLES, NO_SUBTITLES_MESSAGE)

        runner = TranscodeRunner(state, inspector, self._cleanup, run=self._transcode_run)

        while True:
            if self._was_cancelled():
                for item in state.drain_pending():
                    state.log(f"Skipped after cancel (left as downloaded): {item.path}")
                return self._finish_cancelled()

            item = state.pop_pending()
            if item is None:
                break

            if not os.path.exists(item.path):
                state.log(f"No longer on disk, skipping: {item.path}")
                continue

            if item.is_subtitle or not fetch_args.requires_post_processing:
                outcome = DecisionOutcome.FINALIZE_AS_IS
            else:
                outcome, info = decide(item.path, config, inspector)
                state.log(describe(outcome, info, config))

            result = runner.finalize(
                item.path,
                outcome,
                config,
                plaintext_subtitles=fetch_args.requires_plaintext_subtitles,
            )
            if not result.ok:
                state.drain_pending()
                state.clear_files()
                return self._finish(SessionOutcome.FAILED, result.error or "Processing failed")

            state.append_processed(DiscoveredFile(result.final_path, item.is_subtitle))

        output = representative_path(state.processed(), subtitle_only=config.subtitle_only)
        return self._finish(SessionOutcome.SUCCEEDED, SUCCESS_MESSAGE, output_path=output)

    # ── Terminal state ────────────────────────────────────────────────────────

    def _finish(
        self,
        outcome: SessionOutcome,
        status: str,
        *,
        output_path: str = "",
    ) -> SessionOutcome:
        self._cleanup.cleanup_all()
        if outcome is not SessionOutcome.SUCCEEDED:
            self.state.clear_files()

        succeeded = outcome is SessionOutcome.SUCCEEDED
        self.state.update(
            phase=SessionPhase.IDLE,
            status=status,
            progress=1.0 if succeeded else 0.0,
            speed="",
            eta="",
            output_path=output_path,
        )
        print(f"[SESSION] Finished: {outcome.name} — {status}")
        self.state.notify("finished", (outcome, status))
        return outcome

    def _finish_cancelled(self) -> SessionOutcome:
        with self._lock:
            published = self._cancel_published
        if published:
            return SessionOutcome.CANCELLED
        return self._finish(SessionOutcome.CANCELLED, CANCELLED_MESSAGE)

    def _was_cancelled(self) -> bool:
        with self._lock:
            return self._cancelled


def representative_path(processed: list[DiscoveredFile], *, subtitle_only: bool) -> str:
    """
    The one path a UI shows for the whole session: the last media file,
    or the last subtitle file for subtitle-only runs.
    """
    if not processed:
        return ""
    preferred = [f for f in processed if f.is_subtitle == subtitle_only]
    return (preferred or processed)[-1].path
