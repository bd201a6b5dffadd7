from __future__ import annotations

from fetchcore.command_builder import (
    audio_encoder,
    build_encoders_command,
    build_reencode_command,
    build_remux_command,
)
from fetchcore.models import ConfigSnapshot


def test_remux_copies_every_stream() -> None:
    cmd = build_remux_command("ffmpeg", ConfigSnapshot(format="mkv"), "in.webm", "out.mkv")

    assert cmd == [
        "ffmpeg", "-i", "in.webm", "-c", "copy",
        "-map", "0", "-avoid_negative_ts", "make_zero",
        "-y", "out.mkv",
    ]


def test_remux_converts_embedded_subtitles_for_mp4() -> None:
    config = ConfigSnapshot(format="mp4", embed_subs=True, download_subtitles=True)
    cmd = build_remux_command("ffmpeg", config, "in.mkv", "out.mp4")

    assert cmd[cmd.index("-c:s") + 1] == "mov_text"


def test_reencode_uses_container_default_encoder() -> None:
    cmd = build_reencode_command("ffmpeg", ConfigSnapshot(format="webm"), "in.mp4", "out.webm")

    assert cmd[cmd.index("-c:v") + 1] == "libvpx-vp9"
    assert cmd[cmd.index("-c:a") + 1] == "aac"
    assert cmd[cmd.index("-b:a") + 1] == "192k"
    assert cmd[-4:] == ["-progress", "pipe:1", "-y", "out.webm"]


def test_reencode_explicit_codecs() -> None:
    config = ConfigSnapshot(format="mkv", video_codec="h265", audio_codec="opus", audio_quality="")
    cmd = build_reencode_command("ffmpeg", config, "in.mp4", "out.mkv")

    assert cmd[cmd.index("-c:v") + 1] == "libx265"
    assert cmd[cmd.index("-c:a") + 1] == "libopus"
    assert "-b:a" not in cmd


def test_av1_falls_back_to_aom() -> None:
    config = ConfigSnapshot(video_codec="av01")
    cmd = build_reencode_command("ffmpeg", config, "in.mp4", "out.mp4", supports_encoder=lambda _n: False)

    assert cmd[cmd.index("-c:v") + 1] == "libaom-av1"
    assert "-preset" not in cmd


def test_audio_encoder_mapping() -> None:
    assert audio_encoder("MP3") == "libmp3lame"
    assert audio_encoder("wav") == "pcm_s16le"
    assert audio_encoder("something-else") == "aac"


def test_encoders_command() -> None:
    assert build_encoders_command("/usr/bin/ffmpeg") == ["/usr/bin/ffmpeg", "-hide_banner", "-encoders"]


def test_best_format_keeps_the_source_container() -> None:
    config = ConfigSnapshot(format="best", force_conversion=True)
    cmd = build_reencode_command("ffmpeg", config, "clip.webm", "clip.converted.webm")

    assert cmd[cmd.index("-c:v") + 1] == "libvpx-vp9"
    assert cmd[-1] == "clip.converted.webm"

    subs = ConfigSnapshot(format="best", embed_subs=True, download_subtitles=True)
    remux = build_remux_command("ffmpeg", subs, "clip.mkv", "clip.remux.mp4")
    assert remux[remux.index("-c:s") + 1] == "mov_text"
