from __future__ import annotations

import pytest

from fetchcore.decision import (
    can_remux,
    canonical_video_codec,
    choose_outcome,
    decide,
    requested_video_codec,
)
from fetchcore.models import ConfigSnapshot, DecisionOutcome, MediaInfo
from fetchcore.probe import MediaInspector

from tests.fakes import FakeProbeRun


@pytest.mark.parametrize(
    ("target", "video", "audio", "expected"),
    [
        ("mp4", "h264", "aac", True),
        ("mp4", "hevc", "aac", True),
        ("mp4", "vp9", "opus", False),
        ("mp4", "h264", "opus", False),
        ("mkv", "vp9", "opus", True),
        ("mkv", "h264", "aac", True),
        ("mkv", "h264", "flac", True),
        ("mkv", "mjpeg", "aac", False),
        ("mkv", "h264", "pcm_s16le", False),
        ("webm", "vp9", "opus", True),
        ("webm", "h264", "aac", False),
        ("webm", "av1", "libvorbis", True),
        ("avi", "mpeg4", "mp3", True),
        ("avi", "vp9", "mp3", False),
        ("mov", "h264", "aac", False),
    ],
)
def test_remux_compatibility(target, video, audio, expected) -> None:
    assert can_remux(target, video, audio) is expected


def test_canonical_codec_spellings() -> None:
    assert canonical_video_codec("avc1.64001F") == "h264"
    assert canonical_video_codec("hevc") == "h265"
    assert canonical_video_codec("hev1") == "h265"
    assert canonical_video_codec("vp09.00.40.08") == "vp9"
    assert canonical_video_codec("av01.0.08M.08") == "av1"
    assert canonical_video_codec("mpeg4") == "mpeg4"


def test_requested_codec() -> None:
    assert requested_video_codec("auto") is None
    assert requested_video_codec("AV01") == "av1"
    assert requested_video_codec("h265") == "h265"


def test_matching_file_is_finalized_as_is() -> None:
    info = MediaInfo("h264", "aac", "mp4")
    config = ConfigSnapshot(format="mp4", video_codec="h264")
    assert choose_outcome(info, config) is DecisionOutcome.FINALIZE_AS_IS


def test_any_codec_best_container_is_finalized_as_is() -> None:
    info = MediaInfo("vp9", "opus", "webm")
    assert choose_outcome(info, ConfigSnapshot()) is DecisionOutcome.FINALIZE_AS_IS


def test_container_change_with_compatible_streams_remuxes() -> None:
    info = MediaInfo("h264", "aac", "webm")
    config = ConfigSnapshot(format="mkv")
    assert choose_outcome(info, config) is DecisionOutcome.REMUX


def test_codec_mismatch_re_encodes() -> None:
    info = MediaInfo("h264", "aac", "mp4")
    config = ConfigSnapshot(format="mp4", video_codec="h265")
    assert choose_outcome(info, config) is DecisionOutcome.RE_ENCODE


def test_incompatible_streams_re_encode() -> None:
    info = MediaInfo("vp9", "opus", "webm")
    config = ConfigSnapshot(format="mp4")
    assert choose_outcome(info, config) is DecisionOutcome.RE_ENCODE


def test_force_conversion_always_re_encodes() -> None:
    info = MediaInfo("h264", "aac", "mp4")
    config = ConfigSnapshot(format="mp4", video_codec="h264", force_conversion=True)
    assert choose_outcome(info, config) is DecisionOutcome.RE_ENCODE


def test_unknown_probe_re_encodes() -> None:
    config = ConfigSnapshot(format="mp4", video_codec="h264")
    assert choose_outcome(MediaInfo.unknown(), config) is DecisionOutcome.RE_ENCODE


def test_decide_probes_the_file() -> None:
    inspector = MediaInspector("/usr/bin/ffmpeg", run=FakeProbeRun({"clip.webm": "h264\naac\n"}))

    outcome, info = decide("/dl/clip.webm", ConfigSnapshot(format="mkv"), inspector)

    assert outcome is DecisionOutcome.REMUX
    assert info.container == "webm"
