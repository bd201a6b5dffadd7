"""
fetchcore.command_builder
~~~~~~~~~~~~~~~~~~~~~~~~~
ffmpeg / ffprobe argument vectors as plain list[str].

Nothing here runs a process; the transcoder and the media inspector do
that. The "-progress pipe:1" flag on re-encodes is what the transcoder
reads its progress from.
"""

from __future__ import annotations

import os
from typing import Callable

from fetchcore.models import ConfigSnapshot

# Container → video encoder when the user left the codec on "auto"
AUTO_VIDEO_ENCODERS: dict[str, str] = {
    "mp4":  "libx264",
    "mkv":  "libx264",
    "webm": "libvpx-vp9",
}
DEFAULT_VIDEO_ENCODER = "libx264"

VIDEO_ENCODERS: dict[str, str] = {
    "h264": "libx264",
    "h265": "libx265",
    "vp9":  "libvpx-vp9",
}

AV1_PREFERRED = "libsvtav1"
AV1_FALLBACK  = "libaom-av1"
AV1_PRESET    = "6"

AUDIO_ENCODERS: dict[str, str] = {
    "aac":       "aac",
    "mp3":       "libmp3lame",
    "ogg":       "libvorbis",
    "vorbis":    "libvorbis",
    "opus":      "libopus",
    "flac":      "flac",
    "wav":       "pcm_s16le",
    "pcm":       "pcm_s16le",
    "pcm_s16le": "pcm_s16le",
}
DEFAULT_AUDIO_ENCODER = "aac"


def build_probe_command(probe_bin: str, input_file: str) -> list[str]:
    """One codec name per line, in stream order."""
    return [
        probe_bin,
        "-v", "quiet",
        "-show_entries", "stream=codec_name",
        "-of", "csv=p=0",
        input_file,
    ]


def build_duration_command(probe_bin: str, input_file: str) -> list[str]:
    return [
        probe_bin,
        "-v", "quiet",
        "-show_entries", "format=duration",
        "-of", "csv=p=0",
        input_file,
    ]


def build_encoders_command(transcoder_bin: str) -> list[str]:
    return [transcoder_bin, "-hide_banner", "-encoders"]


def build_remux_command(
    transcoder_bin: str,
    config: ConfigSnapshot,
    input_file: str,
    output_file: str,
) -> list[str]:
    """
    Container change with every stream copied.

        ffmpeg -i <in> -c copy [-c:s mov_text|copy] -map 0
               -avoid_negative_ts make_zero -y <out>
    """
    cmd = [transcoder_bin, "-i", input_file, "-c", "copy"]

    if config.embed_subs and config.download_subtitles:
        # mp4 only accepts mov_text subtitle streams
        if target_container(config, output_file) == "mp4":
            cmd += ["-c:s", "mov_text"]
        else:
            cmd += ["-c:s", "copy"]

    cmd += ["-map", "0"]
    cmd += ["-avoid_negative_ts", "make_zero"]
    cmd += ["-y", output_file]
    return cmd


def build_reencode_command(
    transcoder_bin: str,
    config: ConfigSnapshot,
    input_file: str,
    output_file: str,
    supports_encoder: Callable[[str], bool] = lambda _name: False,
) -> list[str]:
    """
    Full re-encode with machine-readable progress on stdout.

        ffmpeg -i <in> -c:v <enc> [-preset N] -c:a <enc> [-b:a Nk]
               -progress pipe:1 -y <out>

    *supports_encoder* decides between the two AV1 encoders.
    """
    cmd = [transcoder_bin, "-i", input_file]
    cmd += video_encoder_flags(config, supports_encoder, target_container(config, output_file))
    cmd += ["-c:a", audio_encoder(config.audio_codec)]

    quality = config.audio_quality.strip()
    if quality.isdigit():
        cmd += ["-b:a", f"{quality}k"]

    cmd += ["-progress", "pipe:1"]
    cmd += ["-y", output_file]
    return cmd


def target_container(config: ConfigSnapshot, output_file: str) -> str:
    """
    The requested container, or the output file's own extension when the
    request is "best" (a forced conversion keeps the source container).
    """
    container = config.format.lower()
    if container == "best":
        container = os.path.splitext(output_file)[1].lstrip(".").lower()
    return container


def video_encoder_flags(
    config: ConfigSnapshot,
    supports_encoder: Callable[[str], bool],
    container: str | None = None,
) -> list[str]:
    codec = config.video_codec.lower()

    if codec == "auto":
        container = (container or config.format).lower()
        encoder = AUTO_VIDEO_ENCODERS.get(container, DEFAULT_VIDEO_ENCODER)
        return ["-c:v", encoder]

    if codec in ("av01", "av1"):
        if supports_encoder(AV1_PREFERRED):
            return ["-c:v", AV1_PREFERRED, "-preset", AV1_PRESET]
        return ["-c:v", AV1_FALLBACK]

    return ["-c:v", VIDEO_ENCODERS.get(codec, DEFAULT_VIDEO_ENCODER)]


def audio_encoder(audio_codec: str) -> str:
    return AUDIO_ENCODERS.get(audio_codec.lower(), DEFAULT_AUDIO_ENCODER)


def command_as_string(cmd: list[str]) -> str:
    """Human-readable version of the command for logging."""
    return " ".join(cmd)
