"""
fetchcore.probe
~~~~~~~~~~~~~~~
Thin wrapper around the ffprobe / ffmpeg CLIs.
Returns MediaInfo dataclasses and never raises: a file we can't inspect is
simply "unknown", which pushes the decision engine towards a re-encode.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Callable

from fetchcore.command_builder import (
    build_duration_command,
    build_encoders_command,
    build_probe_command,
)
from fetchcore.errors import ProbeFailureError
from fetchcore.models import UNKNOWN, MediaInfo
from fetchcore.paths import probe_path_for

RunFn = Callable[..., subprocess.CompletedProcess]


class MediaInspector:
    """
    Asks the transcoder about files and about itself.
    The encoder list is cached per canonical ffmpeg path for the lifetime
    of the inspector.
    """

    def __init__(self, transcoder_path: str | None, run: RunFn = subprocess.run):
        self.transcoder_path = transcoder_path
        self._run = run
        self._encoder_cache: dict[str, frozenset[str]] = {}

    # ── Public API ────────────────────────────────────────────────────────────

    def probe(self, path: str) -> MediaInfo:
        """
        First stream's codec is taken as video, second as audio.
        Container comes from the file extension.
        """
        if not self.transcoder_path:
            return MediaInfo.unknown()

        try:
            output = self._check_output(
                build_probe_command(probe_path_for(self.transcoder_path), path)
            )
        except ProbeFailureError as exc:
            print(f"[PROBE] Failed to get media info for {path}: {exc}")
            return MediaInfo.unknown()

        codecs = [line.strip() for line in output.splitlines() if line.strip()]
        info = MediaInfo(
            video_codec=codecs[0] if codecs else UNKNOWN,
            audio_codec=codecs[1] if len(codecs) > 1 else UNKNOWN,
            container=Path(path).suffix.lstrip(".").lower() or UNKNOWN,
        )
        print(f"[PROBE] Media info - Video: {info.video_codec}, "
              f"Audio: {info.audio_codec}, Container: {info.container}")
        return info

    def get_duration(self, path: str) -> float:
        """
        Duration in seconds, 0.0 if it cannot be determined.
        """
        if not self.transcoder_path:
            return 0.0
        try:
            output = self._check_output(
                build_duration_command(probe_path_for(self.transcoder_path), path)
            )
            return float(output.strip().splitlines()[0])
        except (ProbeFailureError, ValueError, IndexError):
            return 0.0

    def available_encoders(self, transcoder_path: str | None = None) -> frozenset[str]:
        transcoder_path = transcoder_path or self.transcoder_path
        if not transcoder_path:
            return frozenset()

        canonical = os.path.realpath(transcoder_path)
        cached = self._encoder_cache.get(canonical)
        if cached is not None:
            return cached

        try:
            output = self._check_output(build_encoders_command(canonical))
        except ProbeFailureError as exc:
            print(f"[PROBE] Failed to query ffmpeg encoders: {exc}")
            output = ""

        encoders = frozenset(_parse_encoders(output))
        self._encoder_cache[canonical] = encoders
        return encoders

    def supports_encoder(self, name: str) -> bool:
        return name in self.available_encoders()

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _check_output(self, cmd: list[str]) -> str:
        try:
            result = self._run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except (OSError, UnicodeDecodeError) as exc:
            raise ProbeFailureError(str(exc)) from exc

        if result.returncode != 0:
            raise ProbeFailureError(
                f"{Path(cmd[0]).name} exited with code {result.returncode}: "
                f"{(result.stderr or '').strip()}"
            )
        return result.stdout or ""


def _parse_encoders(output: str) -> set[str]:
    """
    `ffmpeg -encoders` lines look like " V....D libx264   H.264 ...";
    the second token is the encoder name.
    """
    names: set[str] = set()
    for line in output.splitlines():
        tokens = line.split()
        if len(tokens) >= 2:
            names.add(tokens[1])
    return names
