"""
fetchcore.models
~~~~~~~~~~~~~~~~
Pure dataclasses — no Qt, no I/O.
These travel freely between the pipeline, the coordinator and any UI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


UNKNOWN = "unknown"


# ── Enums ─────────────────────────────────────────────────────────────────────

class DecisionOutcome(Enum):
    FINALIZE_AS_IS = auto()  # already in the requested shape, just rename
    REMUX          = auto()  # container change only, streams copied
    RE_ENCODE      = auto()  # full decode + encode


class SessionPhase(Enum):
    IDLE       = auto()  # no fetcher running, ready for start()
    RUNNING    = auto()  # fetcher subprocess alive
    FINALIZING = auto()  # fetcher exited 0, walking the pending files


class SessionOutcome(Enum):
    SUCCEEDED    = auto()
    FAILED       = auto()
    NO_SUBTITLES = auto()  # subtitle-only run that produced nothing
    CANCELLED    = auto()


class Severity(Enum):
    INFO    = auto()
    WARNING = auto()
    ERROR   = auto()


# ── Configuration snapshot ────────────────────────────────────────────────────

@dataclass(frozen=True)
class ConfigSnapshot:
    """
    Everything one run needs to know about what the user asked for.

    Numeric options (audio_quality, max_downloads, retries) stay strings:
    they come straight from text fields and are validated by the argument
    builder, which drops anything malformed instead of failing.

    "best" for format and "auto" for video_codec mean "no constraint".
    """
    output_dir: str = "~/Downloads"
    format: str = "best"
    quality: str = "best"
    video_codec: str = "auto"
    audio_codec: str = "aac"
    audio_format: str = "mp3"
    audio_quality: str = "192"

    audio_only: bool = False
    keep_video: bool = False
    subtitle_only: bool = False

    download_subtitles: bool = False
    subtitle_language: str = "en"
    subtitle_format: str = "srt"
    embed_subs: bool = False
    write_auto_subs: bool = False

    download_thumbnail: bool = False
    embed_thumbnail: bool = False
    write_description: bool = False
    write_info_json: bool = False
    no_playlist: bool = False

    max_downloads: str = ""
    rate_limit: str = ""
    retries: str = "10"
    user_agent: str = ""
    proxy: str = ""

    cookie_data: str = ""
    use_browser_cookies: bool = False
    browser_cookie_source: str = "safari"

    fetcher_path: str = ""         # explicit yt-dlp override, "" = discover
    transcoder_path: str = ""      # explicit ffmpeg override, "" = discover

    force_conversion: bool = False
    delete_original: bool = True

    verbose_logging: bool = False
    show_raw_output: bool = False
    log_commands: bool = True


# ── Probe result (returned by fetchcore.probe) ────────────────────────────────

@dataclass(frozen=True)
class MediaInfo:
    """Codec/container identity of one file; "unknown" when probing failed."""
    video_codec: str = UNKNOWN
    audio_codec: str = UNKNOWN
    container: str = UNKNOWN

    @classmethod
    def unknown(cls) -> "MediaInfo":
        return cls()


# ── Argument builder output ───────────────────────────────────────────────────

@dataclass
class FetchArguments:
    """
    The fetcher argv plus the flags later stages need to know about.
    `cookie_file` is set when cookie text was written to a temp file.
    """
    args: list[str]
    requires_post_processing: bool = False
    requires_plaintext_subtitles: bool = False
    cookie_file: str | None = None


# ── Stream parser output ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class DiscoveredFile:
    path: str
    is_subtitle: bool = False


# ── Per-file finalization result ──────────────────────────────────────────────

@dataclass(frozen=True)
class FinalizeResult:
    final_path: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.final_path is not None


# ── Published session snapshot ────────────────────────────────────────────────

@dataclass(frozen=True)
class SessionView:
    """
    Read-only copy of everything a UI shows for the current session.
    Returned by SessionCoordinator.snapshot() and carried by its signals.
    """
    phase: SessionPhase = SessionPhase.IDLE
    status: str = ""
    progress: float = 0.0          # 0.0 – 1.0
    speed: str = ""
    eta: str = ""
    output_path: str = ""
    logs: tuple[str, ...] = field(default_factory=tuple)
    raw_output: str = ""
