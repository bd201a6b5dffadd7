"""
fetchcore.output_parser
~~~~~~~~~~~~~~~~~~~~~~~
Incremental classifier for yt-dlp's line-oriented stdout/stderr.

Feed it chunks as they arrive; it splits them into lines (keeping any
partial trailing line for the next chunk) and hands structured events to
a sink callable. The parser owns no session state.

Line classification, first match wins:
  1. "Destination: <path>" / 'Merging formats into "<path>"'  → file
  2. "Writing ... subtitles to: <path>"                      → subtitle file
  3. bare absolute path ending in a known extension         → file
  4. "[download] ..."                                        → progress
  5. "[info]" / "[youtube]"                                   → status
  6. contains ERROR / WARNING                                → status + severity
  7. anything else                                           → status

Percent, speed and ETA are each an ordered table of regexes tried until
one matches; add a pattern to the table to teach the parser a new shape.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Callable

from fetchcore.models import DiscoveredFile, Severity

MEDIA_EXTENSIONS: frozenset[str] = frozenset({
    "mp4", "mkv", "webm", "avi", "mov", "m4v",
    "m4a", "mp3", "flac", "wav", "opus", "ogg",
    "aac", "ts",
})
SUBTITLE_EXTENSIONS: frozenset[str] = frozenset({
    "srt", "vtt", "ass", "ssa", "ttml", "srv1", "srv2", "srv3", "json3", "lrc",
})
KNOWN_EXTENSIONS = MEDIA_EXTENSIONS | SUBTITLE_EXTENSIONS

DOWNLOAD_TAG = "[download]"
STATUS_TAGS  = ("[info]", "[youtube]")

SUBTITLE_MARKERS = (
    "Writing video subtitles to:",
    "Writing automatic subtitles to:",
    "Writing subtitles to:",
)

_DESTINATION_RE = re.compile(r"Destination:\s*(.+)$")
_MERGER_RE      = re.compile(r'Merging formats into "([^"]+)"')
_ABSOLUTE_RE    = re.compile(r"^(/|~|[A-Za-z]:[\\/])")
_LINE_SPLIT_RE  = re.compile(r"\r\n|\r|\n")

PERCENT_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"\[download\]\s+(\d+\.?\d*)%", re.IGNORECASE),
    re.compile(r"\[download\]\s+(\d+\.?\d*)%\s+of", re.IGNORECASE),
    re.compile(r"(\d+\.?\d*)%\s+of\s+[~\d.\w\s]+", re.IGNORECASE),
    re.compile(r"(\d+\.?\d*)%"),
)

SPEED_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"(\d+\.?\d*\s*[KMG]iB/s)", re.IGNORECASE),
    re.compile(r"(\d+\.?\d*[KMG]B/s)", re.IGNORECASE),
    re.compile(r"(\d+\.?\d*\s*kb/s)", re.IGNORECASE),
)

ETA_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"ETA\s+(\d+:\d+:\d+)", re.IGNORECASE),
    re.compile(r"ETA\s+(\d+:\d+)", re.IGNORECASE),
    re.compile(r"(\d+:\d+:\d+)\s+ETA", re.IGNORECASE),
    re.compile(r"(\d+:\d+)\s+ETA", re.IGNORECASE),
)


# ── Events ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FileDiscovered:
    file: DiscoveredFile


@dataclass(frozen=True)
class ProgressParsed:
    line: str
    percent: float | None = None   # 0 – 100
    speed: str | None = None
    eta: str | None = None


@dataclass(frozen=True)
class StatusLine:
    text: str
    severity: Severity = Severity.INFO


@dataclass(frozen=True)
class LogLine:
    text: str


@dataclass(frozen=True)
class RawChunk:
    text: str


Event = FileDiscovered | ProgressParsed | StatusLine | LogLine | RawChunk
Sink = Callable[[Event], None]


# ── Pure helpers ──────────────────────────────────────────────────────────────

def first_match(patterns: tuple[re.Pattern, ...], line: str) -> str | None:
    for pattern in patterns:
        m = pattern.search(line)
        if m:
            return m.group(1).strip()
    return None


def parse_progress(line: str) -> ProgressParsed:
    """Same line in, same values out: no state involved."""
    percent = None
    raw_percent = first_match(PERCENT_PATTERNS, line)
    if raw_percent is not None:
        try:
            percent = float(raw_percent)
        except ValueError:
            percent = None

    eta = first_match(ETA_PATTERNS, line)
    return ProgressParsed(
        line=line,
        percent=percent,
        speed=first_match(SPEED_PATTERNS, line),
        eta=f"ETA {eta}" if eta else None,
    )


def extension_of(path: str) -> str:
    return PurePath(path).suffix.lstrip(".").lower()


def is_subtitle_path(path: str) -> bool:
    return extension_of(path) in SUBTITLE_EXTENSIONS


def _clean_path(raw: str) -> str:
    return raw.strip().strip("\"'").strip()


def _destination(line: str) -> str | None:
    m = _DESTINATION_RE.search(line)
    return _clean_path(m.group(1)) if m else None


def _merger(line: str) -> str | None:
    m = _MERGER_RE.search(line)
    return _clean_path(m.group(1)) if m else None


def _subtitle_marker(line: str) -> str | None:
    for marker in SUBTITLE_MARKERS:
        idx = line.find(marker)
        if idx != -1:
            return _clean_path(line[idx + len(marker):])
    return None


def _bare_path(line: str) -> str | None:
    """
    `--print after_move:filepath` prints the finished path on its own.
    Only untagged absolute paths with a known extension qualify.
    """
    if line.startswith("[") or not _ABSOLUTE_RE.match(line):
        return None
    if "/" not in line and "\\" not in line:
        return None
    return line if extension_of(line) in KNOWN_EXTENSIONS else None


# (extractor, forced subtitle flag), in precedence order
FILE_RULES: tuple[tuple[Callable[[str], str | None], bool], ...] = (
    (_destination, False),
    (_merger, False),
    (_subtitle_marker, True),
    (_bare_path, False),
)


# ── Stateful parser ───────────────────────────────────────────────────────────

class OutputStreamParser:

    def __init__(
        self,
        sink: Sink,
        *,
        verbose: bool = False,
        subtitle_only: bool = False,
        show_raw_output: bool = False,
    ):
        self._sink = sink
        self._verbose = verbose
        self._subtitle_only = subtitle_only
        self._show_raw = show_raw_output
        self._buffer = ""

    def feed(self, chunk: str) -> None:
        if not chunk:
            return
        if self._show_raw:
            self._sink(RawChunk(chunk))

        parts = _LINE_SPLIT_RE.split(self._buffer + chunk)
        self._buffer = parts.pop()
        for line in parts:
            self.parse_line(line)

    def flush(self) -> None:
        """End of stream: classify whatever partial line is left."""
        if self._buffer:
            line, self._buffer = self._buffer, ""
            self.parse_line(line)

    def parse_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return

        if self._verbose:
            self._sink(LogLine(f"Raw output: {line}"))

        for extract, subtitle in FILE_RULES:
            path = extract(line)
            if path:
                self._sink(FileDiscovered(
                    DiscoveredFile(path=path, is_subtitle=subtitle or is_subtitle_path(path))
                ))
                return

        if line.startswith(DOWNLOAD_TAG):
            self._parse_download_line(line)
        elif line.startswith(STATUS_TAGS):
            self._sink(StatusLine(line))
        elif "ERROR" in line:
            self._sink(StatusLine(f"❌ {line}", Severity.ERROR))
        elif "WARNING" in line:
            if self._subtitle_only and "subtitle" in line.lower():
                self._sink(LogLine(f"Subtitle warning: {line}"))
            self._sink(StatusLine(f"⚠️ {line}", Severity.WARNING))
        else:
            self._sink(StatusLine(line))

    def _parse_download_line(self, line: str) -> None:
        progress = parse_progress(line)
        if self._verbose:
            if progress.percent is None:
                self._sink(LogLine(f"⚠️ Could not parse progress from: {line}"))
            if progress.speed:
                self._sink(LogLine(f"Speed: {progress.speed}"))
            if progress.eta:
                self._sink(LogLine(progress.eta))
        self._sink(progress)
