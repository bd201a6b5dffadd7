from __future__ import annotations

import subprocess

from fetchcore.models import MediaInfo
from fetchcore.probe import MediaInspector

from tests.fakes import FakeProbeRun


def test_probe_reads_first_two_streams_and_extension() -> None:
    run = FakeProbeRun({"clip.webm": "vp9\nopus\n"})
    inspector = MediaInspector("/usr/bin/ffmpeg", run=run)

    info = inspector.probe("/downloads/clip.webm")

    assert info == MediaInfo(video_codec="vp9", audio_codec="opus", container="webm")
    assert run.calls[0][:6] == [
        "/usr/bin/ffprobe", "-v", "quiet", "-show_entries", "stream=codec_name", "-of",
    ]


def test_probe_failure_yields_unknown() -> None:
    inspector = MediaInspector("/usr/bin/ffmpeg", run=FakeProbeRun())

    assert inspector.probe("/downloads/missing.mp4") == MediaInfo.unknown()


def test_probe_launch_error_yields_unknown() -> None:
    def _boom(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    inspector = MediaInspector("/usr/bin/ffmpeg", run=_boom)

    assert inspector.probe("/downloads/clip.mp4") == MediaInfo.unknown()
    assert inspector.get_duration("/downloads/clip.mp4") == 0.0


def test_probe_without_transcoder_is_unknown() -> None:
    inspector = MediaInspector(None, run=FakeProbeRun())
    assert inspector.probe("/downloads/clip.mp4") == MediaInfo.unknown()


def test_single_stream_leaves_audio_unknown() -> None:
    inspector = MediaInspector("/usr/bin/ffmpeg", run=FakeProbeRun({"a.mkv": "h264\n"}))

    info = inspector.probe("/x/a.mkv")

    assert info.video_codec == "h264"
    assert info.audio_codec == "unknown"


def test_duration() -> None:
    inspector = MediaInspector("/usr/bin/ffmpeg", run=FakeProbeRun({"a.mkv": "h264\n"}))
    assert inspector.get_duration("/x/a.mkv") == 10.0


def test_encoder_list_is_cached() -> None:
    run = FakeProbeRun()
    inspector = MediaInspector("/usr/bin/ffmpeg", run=run)

    assert inspector.supports_encoder("libsvtav1")
    assert inspector.supports_encoder("libx265")
    assert not inspector.supports_encoder("libaom-av1")

    encoder_calls = [c for c in run.calls if "-encoders" in c]
    assert len(encoder_calls) == 1


def test_encoder_query_failure_is_empty() -> None:
    def _fail(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 1, "", "boom")

    inspector = MediaInspector("/usr/bin/ffmpeg", run=_fail)
    assert inspector.available_encoders() == frozenset()
