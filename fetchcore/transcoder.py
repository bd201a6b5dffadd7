"""
fetchcore.transcoder
~~~~~~~~~~~~~~~~~~~~
Turns one downloaded file into its final form.

FINALIZE_AS_IS  rename to the canonical name, tidy sidecars
REMUX           ffmpeg -c copy into the requested container
RE_ENCODE       ffmpeg with explicit encoders

Transcoder output is always written to a staged path when the final path
would be the input itself, then swapped into place only after ffmpeg
exits 0. A failed remux falls back to a re-encode of the same input; a
failed re-encode is reported for that file and goes no further.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Callable

from fetchcore.cleanup import CleanupRegistry
from fetchcore.command_builder import (
    build_reencode_command,
    build_remux_command,
    command_as_string,
)
from fetchcore.errors import FilesystemError, LaunchFailureError
from fetchcore.models import ConfigSnapshot, DecisionOutcome, FinalizeResult
from fetchcore.probe import MediaInspector
from fetchcore.session import SessionState
from fetchcore.subtitles import convert_to_plaintext

TEMP_STEM_SUFFIX = "_temp"
REMUX_SUFFIX     = ".remux"
CONVERT_SUFFIX   = ".converted"

# (cmd, on_line) -> exit code; raises LaunchFailureError if it can't start
RunFn = Callable[[list[str], Callable[[str], None]], int]


def run_streaming(cmd: list[str], on_line: Callable[[str], None]) -> int:
    """
    Run *cmd* to completion, feeding each line of merged stdout/stderr to
    *on_line*. Blocks until the process exits.
    """
    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        raise LaunchFailureError(str(exc)) from exc

    # stderr is merged into stdout, so a single reader can't deadlock
    for line in process.stdout:
        line = line.strip()
        if line:
            on_line(line)
    process.stdout.close()
    return process.wait()


# ── Path helpers ──────────────────────────────────────────────────────────────

def final_output_path(path: str, desired_extension: str | None = None) -> str:
    """
    "/dl/clip_temp.webm", "mp4"  → "/dl/clip.mp4"
    "/dl/clip.webm",      None   → "/dl/clip.webm"
    """
    p = Path(path)
    stem = p.stem
    if stem.endswith(TEMP_STEM_SUFFIX):
        stem = stem[: -len(TEMP_STEM_SUFFIX)]

    if desired_extension and desired_extension.lower() != "best":
        extension = desired_extension.lstrip(".")
    else:
        extension = p.suffix.lstrip(".")

    name = f"{stem}.{extension}" if extension else stem
    return str(p.with_name(name))


def make_staging_path(path: str, suffix: str) -> str:
    """
    "/dl/clip.mp4", ".remux" → "/dl/clip.remux.mp4" (or clip.remux-1.mp4, ...)
    """
    p = Path(path)
    extension = p.suffix
    candidate = p.with_name(f"{p.stem}{suffix}{extension}")
    counter = 1
    while candidate.exists():
        candidate = p.with_name(f"{p.stem}{suffix}-{counter}{extension}")
        counter += 1
    return str(candidate)


def replace_file(source: str, destination: str) -> None:
    """Move *source* over *destination*, replacing whatever is there."""
    try:
        os.replace(source, destination)
    except OSError as exc:
        raise FilesystemError(f"Failed to move {source} to {destination}: {exc}") from exc


# ── Progress ──────────────────────────────────────────────────────────────────

def parse_progress_line(line: str, duration: float) -> float | None:
    """
    ffmpeg -progress emits "out_time=00:01:02.500000"; return 0.0 – 1.0.
    """
    if not line.startswith("out_time=") or duration <= 0:
        return None
    seconds = hhmmss_to_seconds(line.split("=", 1)[1])
    if seconds is None:
        return None
    return min(seconds / duration, 1.0)


def hhmmss_to_seconds(time_str: str) -> float | None:
    try:
        h, m, s = time_str.strip().split(":")
        return float(h) * 3600 + float(m) * 60 + float(s)
    except ValueError:
        return None


# ── Runner ────────────────────────────────────────────────────────────────────

class TranscodeRunner:

    def __init__(
        self,
        state: SessionState,
        inspector: MediaInspector,
        cleanup: CleanupRegistry,
        run: RunFn = run_streaming,
    ):
        self._state = state
        self._inspector = inspector
        self._cleanup = cleanup
        self._run = run

    # ── Public API ────────────────────────────────────────────────────────────

    def finalize(
        self,
        input_path: str,
        outcome: DecisionOutcome,
        config: ConfigSnapshot,
        *,
        plaintext_subtitles: bool = False,
    ) -> FinalizeResult:
        if outcome is DecisionOutcome.FINALIZE_AS_IS:
            return self.finalize_as_is(input_path, plaintext_subtitles=plaintext_subtitles)

        if not self._inspector.transcoder_path:
            self._state.log("❌ Cannot process: ffmpeg not found")
            return FinalizeResult(error="Processing failed: ffmpeg not found")

        target = config.format if config.format.lower() != "best" else None
        output_path = final_output_path(input_path, target)

        if outcome is DecisionOutcome.REMUX:
            return self.remux(input_path, output_path, config)
        return self.reencode(input_path, output_path, config)

    def finalize_as_is(self, path: str, *, plaintext_subtitles: bool = False) -> FinalizeResult:
        try:
            final_path = self.rename_temp_if_needed(path)
        except FilesystemError as exc:
            self._state.log(f"Failed to rename temporary file: {exc}")
            return FinalizeResult(error=str(exc))

        self.cleanup_sidecar_files(final_path)

        if plaintext_subtitles and Path(final_path).suffix.lower() in (".srt", ".vtt"):
            converted = convert_to_plaintext(final_path)
            if converted:
                self._state.log(f"Converted subtitles to plain text: {converted}")
                final_path = converted
            else:
                self._state.log(f"Kept original subtitles: {final_path}")

        self._state.log(f"✅ No conversion needed: {final_path}")
        return FinalizeResult(final_path=final_path)

    def remux(self, input_path: str, output_path: str, config: ConfigSnapshot) -> FinalizeResult:
        self._state.log(f"🚀 Remuxing (no re-encoding): {input_path} -> {output_path}")
        self._state.update(
            status=f"Remuxing to {config.format} (preserving quality)...",
            progress=max(self._state.progress, 0.5),
        )

        staged = self._staging_for(input_path, output_path, REMUX_SUFFIX)
        cmd = build_remux_command(self._inspector.transcoder_path, config, input_path, staged)
        self._log_command("Remux", cmd, config)

        try:
            code = self._run(cmd, lambda line: self._state.log(f"ffmpeg: {line}"))
        except LaunchFailureError as exc:
            self._state.log(f"Failed to start remux: {exc}")
            code = None

        if code != 0:
            if code is not None:
                self._state.log(f"❌ Remux failed with exit code {code}")
            self._state.update(status="Remuxing failed - falling back to conversion")
            self._discard_staged(staged, output_path, ran=code is not None)
            return self.reencode(input_path, output_path, config)

        result = self._commit(input_path, staged, output_path, config, "remuxed")
        if result.ok:
            self._state.log(f"✅ Remux completed: {result.final_path}")
            self._state.update(
                status="Remuxing completed successfully!",
                progress=max(self._state.progress, 0.85),
            )
        return result

    def reencode(self, input_path: str, output_path: str, config: ConfigSnapshot) -> FinalizeResult:
        self._state.log(f"⚙️ Converting with re-encoding: {input_path} -> {output_path}")
        self._state.update(status=f"Converting to {config.format} (re-encoding)...", progress=0.0)

        staged = self._staging_for(input_path, output_path, CONVERT_SUFFIX)
        cmd = build_reencode_command(
            self._inspector.transcoder_path,
            config,
            input_path,
            staged,
            supports_encoder=self._inspector.supports_encoder,
        )
        self._log_command("Conversion", cmd, config)

        duration = self._inspector.get_duration(input_path)

        def on_line(line: str) -> None:
            fraction = parse_progress_line(line, duration)
            if fraction is not None:
                self._state.update(progress=fraction)
            elif config.verbose_logging or not _is_progress_key(line):
                self._state.log(f"ffmpeg: {line}")

        try:
            code = self._run(cmd, on_line)
        except LaunchFailureError as exc:
            self._state.log(f"Failed to start conversion: {exc}")
            self._state.update(status=f"Failed to start conversion: {exc}")
            self._discard_staged(staged, output_path, ran=False)
            return FinalizeResult(error=f"Failed to start conversion: {exc}")

        if code != 0:
            self._state.log(f"❌ Conversion failed with exit code {code}")
            self._state.update(status="Conversion failed")
            self._discard_staged(staged, output_path, ran=True)
            return FinalizeResult(error=f"Conversion failed with exit code {code}")

        result = self._commit(input_path, staged, output_path, config, "converted")
        if result.ok:
            self._state.log(f"✅ Conversion completed: {result.final_path}")
            self._state.update(
                status="Conversion completed successfully!",
                progress=max(self._state.progress, 0.9),
            )
        return result

    # ── Filesystem choreography ───────────────────────────────────────────────

    def rename_temp_if_needed(self, path: str) -> str:
        """Strip a `_temp` stem suffix. No-op when the name is already final."""
        final_path = final_output_path(path)
        if final_path == path:
            return path

        replace_file(path, final_path)
        self._state.log(f"Renamed temporary file to final name: {final_path}")
        self.rename_associated_temp_files(Path(path).stem, Path(final_path))
        return final_path

    def rename_associated_temp_files(
        self,
        temp_stem: str,
        final_path: Path,
        skip: str | None = None,
    ) -> None:
        """
        Siblings written with the temp stem (clip_temp.en.srt, clip_temp.jpg)
        follow the media file to its final stem. *skip* names a file that
        must stay where it is.
        """
        directory = final_path.parent
        final_stem = final_path.stem
        try:
            names = os.listdir(directory)
        except OSError:
            return

        for name in names:
            if not name.startswith(temp_stem) or name == skip:
                continue
            new_name = (final_stem + name[len(temp_stem):]).replace("_temp.", ".")
            if new_name == name:
                continue
            try:
                replace_file(str(directory / name), str(directory / new_name))
                self._state.log(f"Renamed associated temp file: {new_name}")
            except FilesystemError as exc:
                self._state.log(f"Failed to rename associated temp file {name}: {exc}")

    def cleanup_sidecar_files(self, output_path: str) -> None:
        """An empty .description file is noise; remove it."""
        description = Path(output_path).with_suffix(".description")
        if not description.is_file():
            return
        try:
            contents = description.read_bytes().decode("utf-8", errors="replace")
            if not contents.strip():
                description.unlink()
                self._state.log(f"Removed empty description file: {description}")
        except OSError as exc:
            self._state.log(f"Failed to inspect description file: {exc}")

    # ── Internal ──────────────────────────────────────────────────────────────

    def _staging_for(self, input_path: str, output_path: str, suffix: str) -> str:
        if output_path != input_path:
            return output_path
        staged = make_staging_path(output_path, suffix)
        self._cleanup.register(staged)
        return staged

    def _discard_staged(self, staged: str, output_path: str, *, ran: bool) -> None:
        """Remove a partial output. Only touch output_path if ffmpeg wrote to it."""
        if staged != output_path:
            self._cleanup.remove(staged)
        elif ran and os.path.exists(output_path):
            try:
                os.unlink(output_path)
                self._state.log(f"Removed partial output: {output_path}")
            except OSError as exc:
                self._state.log(f"Failed to remove partial output: {exc}")

    def _commit(
        self,
        input_path: str,
        staged: str,
        output_path: str,
        config: ConfigSnapshot,
        label: str,
    ) -> FinalizeResult:
        if staged != output_path:
            try:
                replace_file(staged, output_path)
            except FilesystemError as exc:
                self._state.log(f"Failed to replace original with {label} file: {exc}")
                self._cleanup.remove(staged)
                return FinalizeResult(error=f"Failed to finalize {label} file")
            self._cleanup.discard(staged)

        if config.delete_original and input_path != output_path:
            try:
                os.unlink(input_path)
                self._state.log(f"Deleted original file: {input_path}")
            except OSError as exc:
                self._state.log(f"Failed to delete original file: {exc}")

        # the input may itself carry the temp stem; it is never a sibling
        final_stem = Path(output_path).stem
        self.rename_associated_temp_files(
            f"{final_stem}{TEMP_STEM_SUFFIX}",
            Path(output_path),
            skip=Path(input_path).name,
        )
        self.cleanup_sidecar_files(output_path)

        return FinalizeResult(final_path=output_path)

    def _log_command(self, label: str, cmd: list[str], config: ConfigSnapshot) -> None:
        print(f"[TRANSCODE] {label} command:\n  {command_as_string(cmd)}")
        if config.log_commands:
            self._state.log(f"{label} command: {command_as_string(cmd)}")


_PROGRESS_KEYS = (
    "frame=", "fps=", "stream_", "bitrate=", "total_size=", "out_time",
    "dup_frames=", "drop_frames=", "speed=", "progress=",
)


def _is_progress_key(line: str) -> bool:
    return line.startswith(_PROGRESS_KEYS)
