"""
fetchcore.fetch_args
~~~~~~~~~~~~~~~~~~~~
Builds the yt-dlp argument vector (everything after the executable) from a
ConfigSnapshot and a list of URLs.

Invalid option values are dropped with a log line rather than rejected,
so a typo in "retries" never stops a download. The only file this module
writes is the temporary cookie file, which is registered for cleanup.
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Callable

from fetchcore import validation
from fetchcore.cleanup import COOKIE_PREFIX, CleanupRegistry
from fetchcore.models import ConfigSnapshot, FetchArguments
from fetchcore.paths import default_output_dir, expand_path, temp_dir

OUTPUT_TEMPLATE = "%(title)s.%(ext)s"

# The fetcher has no plaintext subtitle writer; ask for srt and convert locally
PLAINTEXT_SUBTITLE_FORMAT = "txt"
PLAINTEXT_SOURCE_FORMAT   = "srt"

LogFn = Callable[[str], None]


def _print_log(message: str) -> None:
    print(f"[ARGS] {message}")


# ── Public API ────────────────────────────────────────────────────────────────

def build_fetch_arguments(
    urls: list[str],
    config: ConfigSnapshot,
    *,
    transcoder_path: str | None = None,
    cleanup: CleanupRegistry | None = None,
    cookie_dir: Path | None = None,
    log: LogFn = _print_log,
) -> FetchArguments:
    """
    Translate *config* into yt-dlp flags, URLs last.

    Example (video mode, mp4 requested):
        ['-o', '/home/me/Downloads/%(title)s.%(ext)s',
         '--ffmpeg-location', '/usr/bin/ffmpeg',
         '--format', 'best',
         '--newline', '--progress', '--print', 'after_move:filepath',
         'https://example.com/v1']
    """
    targets = [u.strip() for u in urls if u.strip()]
    if not targets:
        raise ValueError("At least one URL is required")

    result = FetchArguments(args=[])
    args = result.args

    # ── Output location ───────────────────────────────────────────────────────
    raw_dir = config.output_dir.strip() or str(default_output_dir())
    if not validation.is_valid_path(raw_dir):
        # Unsafe destination: fall back to the default folder and nothing else
        log(f"⚠️ Invalid output path '{raw_dir}' - using default downloads folder")
        args += ["-o", _output_template(str(default_output_dir()))]
        args += targets
        return result

    args += ["-o", _output_template(expand_path(raw_dir))]

    if transcoder_path:
        args += ["--ffmpeg-location", transcoder_path]
        log(f"Using ffmpeg at: {transcoder_path}")
    else:
        log("⚠️ ffmpeg not found - audio extraction and conversion may not work")

    if config.verbose_logging:
        args.append("--verbose")

    # ── Media selection ───────────────────────────────────────────────────────
    if config.subtitle_only:
        args.append("--skip-download")
    elif config.audio_only:
        args += _audio_flags(config, log)
    else:
        args += ["--format", format_selector(config.quality)]
        if requires_post_processing(config):
            result.requires_post_processing = True
            log("Will verify downloaded media against requested format/codec")

    # ── Subtitles ─────────────────────────────────────────────────────────────
    if config.download_subtitles or config.subtitle_only:
        args.append("--write-subs")

        language = config.subtitle_language.strip()
        if language:
            args += ["--sub-langs", language]
        elif config.write_auto_subs:
            args += ["--sub-langs", "all"]

        sub_format = config.subtitle_format.strip().lower() or PLAINTEXT_SOURCE_FORMAT
        if sub_format == PLAINTEXT_SUBTITLE_FORMAT:
            sub_format = PLAINTEXT_SOURCE_FORMAT
            result.requires_plaintext_subtitles = True
            log("Plain text subtitles requested - downloading srt and converting afterwards")
        args += ["--sub-format", sub_format]

        if (
            config.embed_subs
            and not config.audio_only
            and not result.requires_post_processing
            and not config.subtitle_only
        ):
            args.append("--embed-subs")

        if config.write_auto_subs:
            args.append("--write-auto-subs")

    # ── Thumbnails & metadata ─────────────────────────────────────────────────
    if config.download_thumbnail:
        args.append("--write-thumbnail")
    if config.embed_thumbnail and not result.requires_post_processing:
        args.append("--embed-thumbnail")
    if config.write_description:
        args.append("--write-description")
    if config.write_info_json:
        args.append("--write-info-json")
    if config.no_playlist:
        args.append("--no-playlist")

    # ── Network ───────────────────────────────────────────────────────────────
    args += _checked("--max-downloads", config.max_downloads,
                     validation.is_valid_max_downloads, log)
    args += _checked("--limit-rate", config.rate_limit,
                     validation.is_valid_rate_limit, log)
    args += _checked("--retries", config.retries,
                     validation.is_valid_retries, log)
    args += _checked("--user-agent", config.user_agent,
                     validation.is_valid_user_agent, log)
    args += _checked("--proxy", config.proxy,
                     validation.is_valid_proxy, log)

    # ── Authentication ────────────────────────────────────────────────────────
    if config.use_browser_cookies:
        source = config.browser_cookie_source.strip()
        log(f"Using cookies from browser: {source}")
        args += ["--cookies-from-browser", source]
    elif config.cookie_data.strip():
        cookie_file = write_cookie_file(config.cookie_data, cookie_dir or temp_dir())
        if cookie_file:
            if cleanup is not None:
                cleanup.register(cookie_file)
            result.cookie_file = cookie_file
            args += ["--cookies", cookie_file]
            log(f"Created temporary cookie file: {cookie_file}")
        else:
            log("Failed to write cookie file - continuing without cookies")

    # ── Stream shape ──────────────────────────────────────────────────────────
    args += ["--newline", "--progress"]
    args += ["--print", "after_move:filepath"]

    args += targets
    return result


def requires_post_processing(config: ConfigSnapshot) -> bool:
    """
    True when the downloaded file may need a remux or re-encode: a concrete
    container or codec was requested, or conversion is forced. A forced
    run with "best" keeps the source container.
    """
    if config.audio_only or config.subtitle_only:
        return False
    return (
        config.format.lower() != "best"
        or config.video_codec.lower() != "auto"
        or config.force_conversion
    )


def format_selector(quality: str) -> str:
    """ "best" → "best", "720" / "height<=720" → "best[height<=720]/best". """
    quality = quality.strip()
    if not quality or quality == "best":
        return "best"
    height = quality.replace("height<=", "").rstrip("p")
    if not validation.is_positive_integer(height):
        return "best"
    return f"best[height<={height}]/best"


def map_audio_format(audio_format: str) -> str:
    """Map UI audio format names to yt-dlp --audio-format values."""
    fmt = audio_format.lower()
    if fmt == "ogg":
        return "vorbis"
    if fmt == "m4a":
        return "aac"
    return fmt


def write_cookie_file(cookie_data: str, directory: Path) -> str | None:
    """
    Write cookie text to a uniquely named file readable by the owner only.
    Returns the path, or None if the write failed.
    """
    path = directory / f"{COOKIE_PREFIX}{uuid.uuid4().hex}.txt"
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(cookie_data)
        os.chmod(path, 0o600)
    except OSError as exc:
        print(f"[ARGS] Failed to write cookie file: {exc}")
        return None
    return str(path)


def redact(args: list[str]) -> list[str]:
    """Copy of *args* with the value after --cookies hidden, for logging."""
    out: list[str] = []
    hide_next = False
    for arg in args:
        out.append("<redacted>" if hide_next else arg)
        hide_next = arg == "--cookies"
    return out


# ── Internal helpers ──────────────────────────────────────────────────────────

def _output_template(directory: str) -> str:
    return os.path.join(directory, OUTPUT_TEMPLATE)


def _audio_flags(config: ConfigSnapshot, log: LogFn) -> list[str]:
    flags = ["--extract-audio", "--audio-format", map_audio_format(config.audio_format)]

    quality = config.audio_quality.strip()
    if quality:
        if validation.is_valid_audio_quality(quality):
            flags += ["--audio-quality", f"{quality}K"]
        else:
            log(f"Ignoring invalid audio quality: {quality}")

    if config.keep_video:
        flags.append("--keep-video")
    return flags


def _checked(flag: str, value: str, is_valid: Callable[[str], bool], log: LogFn) -> list[str]:
    value = value.strip()
    if not value:
        return []
    if not is_valid(value):
        log(f"Ignoring invalid value for {flag}: {value}")
        return []
    return [flag, value]
