"""
fetchcore.decision
~~~~~~~~~~~~~~~~~~
Decides what to do with a downloaded file: keep it, remux it, or
re-encode it. Pure functions apart from the probe call in decide().
"""

from __future__ import annotations

from fetchcore.models import ConfigSnapshot, DecisionOutcome, MediaInfo
from fetchcore.probe import MediaInspector

# Target container → codecs it can carry without re-encoding
REMUX_COMPATIBILITY: dict[str, dict[str, frozenset[str]]] = {
    "mp4": {
        "video": frozenset({"h264", "h265", "mpeg4", "av1"}),
        "audio": frozenset({"aac", "mp3", "ac3"}),
    },
    "mkv": {
        "video": frozenset({"h264", "h265", "vp8", "vp9", "av1", "mpeg4"}),
        "audio": frozenset({"aac", "mp3", "ac3", "dts", "flac", "vorbis", "opus"}),
    },
    "webm": {
        "video": frozenset({"vp8", "vp9", "av1"}),
        "audio": frozenset({"vorbis", "opus"}),
    },
    "avi": {
        "video": frozenset({"h264", "mpeg4", "mjpeg"}),
        "audio": frozenset({"mp3", "ac3", "pcm"}),
    },
}


def canonical_video_codec(codec: str) -> str:
    """Fold the many spellings ffprobe and yt-dlp use into one token."""
    c = codec.lower()
    if c.startswith("avc") or c == "h264":
        return "h264"
    if c in ("hevc", "h265") or c.startswith("hev"):
        return "h265"
    if c.startswith("vp09") or c == "vp9":
        return "vp9"
    if c.startswith("av01") or c == "av1":
        return "av1"
    if c.startswith("vp8"):
        return "vp8"
    return c


def requested_video_codec(setting: str) -> str | None:
    """None means "any codec is fine"."""
    s = setting.lower()
    if s == "auto":
        return None
    if s == "av01":
        return "av1"
    return canonical_video_codec(s)


def video_codec_matches(actual: str, setting: str) -> bool:
    requested = requested_video_codec(setting)
    return requested is None or canonical_video_codec(actual) == requested


def container_matches(actual: str, requested: str) -> bool:
    return requested.lower() == "best" or requested.lower() == actual.lower()


def can_remux(target: str, video_codec: str, audio_codec: str) -> bool:
    table = REMUX_COMPATIBILITY.get(target.lower())
    if table is None:
        return False
    video_ok = (
        _codec_in(video_codec, table["video"])
        or canonical_video_codec(video_codec) in table["video"]
    )
    return video_ok and _codec_in(audio_codec, table["audio"])


def choose_outcome(info: MediaInfo, config: ConfigSnapshot) -> DecisionOutcome:
    codec_ok     = video_codec_matches(info.video_codec, config.video_codec)
    container_ok = container_matches(info.container, config.format)
    forced       = config.force_conversion

    if codec_ok and container_ok and not forced:
        return DecisionOutcome.FINALIZE_AS_IS

    if (
        codec_ok
        and config.format.lower() != "best"
        and not forced
        and can_remux(config.format, info.video_codec, info.audio_codec)
    ):
        return DecisionOutcome.REMUX

    return DecisionOutcome.RE_ENCODE


def decide(
    input_path: str,
    config: ConfigSnapshot,
    inspector: MediaInspector,
) -> tuple[DecisionOutcome, MediaInfo]:
    info = inspector.probe(input_path)
    outcome = choose_outcome(info, config)
    print(f"[DECIDE] {input_path}: {info} → {outcome.name}")
    return outcome, info


def describe(outcome: DecisionOutcome, info: MediaInfo, config: ConfigSnapshot) -> str:
    """One log line explaining the decision."""
    if outcome is DecisionOutcome.FINALIZE_AS_IS:
        return "✅ Requested codec already present - skipping additional processing"
    if outcome is DecisionOutcome.REMUX:
        return "✅ Compatible formats detected - remuxing without re-encoding"
    if not video_codec_matches(info.video_codec, config.video_codec):
        return (f"⚙️ Downloaded codec {info.video_codec} does not match requested "
                f"{config.video_codec} - re-encoding")
    if config.force_conversion:
        return "⚙️ Forced conversion requested - re-encoding"
    return f"⚙️ Cannot remux from {info.container} to {config.format} without re-encoding"


def _codec_in(codec: str, allowed: frozenset[str]) -> bool:
    c = codec.lower()
    return c in allowed or c.replace("lib", "") in allowed
