from __future__ import annotations

import pytest

from fetchcore.cleanup import CleanupRegistry
from fetchcore.errors import LaunchFailureError
from fetchcore.models import ConfigSnapshot, DecisionOutcome
from fetchcore.probe import MediaInspector
from fetchcore.session import SessionState
from fetchcore.transcoder import (
    TranscodeRunner,
    final_output_path,
    hhmmss_to_seconds,
    make_staging_path,
    parse_progress_line,
)

from tests.fakes import FakeProbeRun, FakeTranscodeRun


def _runner(run, transcoder="/usr/bin/ffmpeg"):
    state = SessionState()
    cleanup = CleanupRegistry()
    inspector = MediaInspector(transcoder, run=FakeProbeRun())
    return TranscodeRunner(state, inspector, cleanup, run=run), state, cleanup


def _media(tmp_path, name: str, contents: str = "original"):
    path = tmp_path / name
    path.write_text(contents)
    return path


# ── Path helpers ──────────────────────────────────────────────────────────────

def test_final_output_path() -> None:
    assert final_output_path("/dl/clip_temp.webm", "mp4") == "/dl/clip.mp4"
    assert final_output_path("/dl/clip.webm") == "/dl/clip.webm"
    assert final_output_path("/dl/clip.webm", "best") == "/dl/clip.webm"
    assert final_output_path("/dl/clip_temp.mkv") == "/dl/clip.mkv"


def test_staging_path_avoids_existing_files(tmp_path) -> None:
    source = str(tmp_path / "clip.mp4")
    first = make_staging_path(source, ".remux")
    assert first == str(tmp_path / "clip.remux.mp4")

    (tmp_path / "clip.remux.mp4").write_text("x")
    assert make_staging_path(source, ".remux") == str(tmp_path / "clip.remux-1.mp4")


def test_progress_parsing() -> None:
    assert hhmmss_to_seconds("00:01:02.5") == 62.5
    assert hhmmss_to_seconds("garbage") is None
    assert parse_progress_line("out_time=00:00:05.000000", 10.0) == 0.5
    assert parse_progress_line("out_time=00:00:20.000000", 10.0) == 1.0
    assert parse_progress_line("out_time=00:00:05.000000", 0.0) is None
    assert parse_progress_line("frame=10", 10.0) is None


# ── Finalize as is ────────────────────────────────────────────────────────────

def test_finalize_as_is_leaves_final_name_alone(tmp_path) -> None:
    run = FakeTranscodeRun()
    runner, _, _ = _runner(run)
    clip = _media(tmp_path, "clip.mp4")

    result = runner.finalize(str(clip), DecisionOutcome.FINALIZE_AS_IS, ConfigSnapshot())

    assert result.final_path == str(clip)
    assert clip.read_text() == "original"
    assert run.calls == []


def test_finalize_as_is_strips_temp_suffix_and_moves_siblings(tmp_path) -> None:
    runner, _, _ = _runner(FakeTranscodeRun())
    clip = _media(tmp_path, "clip_temp.mp4")
    _media(tmp_path, "clip_temp.en.srt", "subs")

    result = runner.finalize(str(clip), DecisionOutcome.FINALIZE_AS_IS, ConfigSnapshot())

    assert result.final_path == str(tmp_path / "clip.mp4")
    assert (tmp_path / "clip.mp4").read_text() == "original"
    assert (tmp_path / "clip.en.srt").read_text() == "subs"
    assert not clip.exists()


def test_finalize_as_is_removes_empty_description(tmp_path) -> None:
    runner, _, _ = _runner(FakeTranscodeRun())
    clip = _media(tmp_path, "clip.mp4")
    empty = _media(tmp_path, "clip.description", "  \n")

    runner.finalize(str(clip), DecisionOutcome.FINALIZE_AS_IS, ConfigSnapshot())

    assert not empty.exists()


def test_finalize_as_is_keeps_non_empty_description(tmp_path) -> None:
    runner, _, _ = _runner(FakeTranscodeRun())
    clip = _media(tmp_path, "clip.mp4")
    description = _media(tmp_path, "clip.description", "About this video")

    runner.finalize(str(clip), DecisionOutcome.FINALIZE_AS_IS, ConfigSnapshot())

    assert description.exists()


def test_plaintext_subtitle_conversion(tmp_path) -> None:
    runner, _, _ = _runner(FakeTranscodeRun())
    subs = _media(tmp_path, "clip.en.srt", "1\n00:00:01,000 --> 00:00:02,000\nHello\n")

    result = runner.finalize(
        str(subs), DecisionOutcome.FINALIZE_AS_IS, ConfigSnapshot(), plaintext_subtitles=True
    )

    assert result.final_path == str(tmp_path / "clip.en.txt")
    assert (tmp_path / "clip.en.txt").read_text() == "Hello\n"
    assert not subs.exists()


# ── Remux / re-encode ─────────────────────────────────────────────────────────

def test_remux_to_new_container_deletes_original(tmp_path) -> None:
    run = FakeTranscodeRun(0)
    runner, _, cleanup = _runner(run)
    clip = _media(tmp_path, "clip.webm")
    config = ConfigSnapshot(format="mkv")

    result = runner.finalize(str(clip), DecisionOutcome.REMUX, config)

    assert result.final_path == str(tmp_path / "clip.mkv")
    assert run.kinds == ["remux"]
    assert run.calls[0][-1] == str(tmp_path / "clip.mkv")
    assert not clip.exists()
    assert cleanup.pending() == []


def test_keep_original_when_configured(tmp_path) -> None:
    runner, _, _ = _runner(FakeTranscodeRun(0))
    clip = _media(tmp_path, "clip.webm")
    config = ConfigSnapshot(format="mkv", delete_original=False)

    runner.finalize(str(clip), DecisionOutcome.REMUX, config)

    assert clip.exists()
    assert (tmp_path / "clip.mkv").exists()


def test_same_path_output_is_staged_then_swapped(tmp_path) -> None:
    run = FakeTranscodeRun(0)
    runner, _, cleanup = _runner(run)
    clip = _media(tmp_path, "clip.mp4")
    config = ConfigSnapshot(format="mp4", video_codec="h265")

    result = runner.finalize(str(clip), DecisionOutcome.RE_ENCODE, config)

    assert result.final_path == str(clip)
    assert run.calls[0][-1] == str(tmp_path / "clip.converted.mp4")
    assert clip.read_text() == "output of clip.mp4"
    assert not (tmp_path / "clip.converted.mp4").exists()
    assert cleanup.pending() == []


@pytest.mark.parametrize(
    ("outcome", "name", "target", "final_name"),
    [
        (DecisionOutcome.RE_ENCODE, "clip_temp.mp4", "mp4", "clip.mp4"),
        (DecisionOutcome.REMUX, "clip_temp.webm", "mkv", "clip.mkv"),
    ],
)
@pytest.mark.parametrize("delete_original", [True, False])
def test_temp_named_input_never_overwrites_the_output(
    tmp_path, outcome, name, target, final_name, delete_original
) -> None:
    run = FakeTranscodeRun(0)
    runner, _, _ = _runner(run)
    clip = _media(tmp_path, name)
    _media(tmp_path, "clip_temp.en.srt", "subs")
    config = ConfigSnapshot(format=target, video_codec="h264", delete_original=delete_original)

    result = runner.finalize(str(clip), outcome, config)

    final = tmp_path / final_name
    assert result.final_path == str(final)
    assert final.read_text() == f"output of {name}"
    assert clip.exists() is not delete_original
    if not delete_original:
        assert clip.read_text() == "original"
    assert (tmp_path / "clip.en.srt").read_text() == "subs"


def test_failed_remux_falls_back_to_reencode(tmp_path) -> None:
    run = FakeTranscodeRun(1, 0)
    runner, state, _ = _runner(run)
    clip = _media(tmp_path, "clip.webm")
    config = ConfigSnapshot(format="mkv")

    result = runner.finalize(str(clip), DecisionOutcome.REMUX, config)

    assert run.kinds == ["remux", "reencode"]
    assert result.final_path == str(tmp_path / "clip.mkv")
    assert (tmp_path / "clip.mkv").read_text() == "output of clip.webm"
    assert any("Remux failed with exit code 1" in line for line in state.snapshot().logs)


def test_failed_reencode_reports_error_and_keeps_input(tmp_path) -> None:
    run = FakeTranscodeRun(1)
    runner, _, cleanup = _runner(run)
    clip = _media(tmp_path, "clip.mp4")
    config = ConfigSnapshot(format="mp4", video_codec="h265")

    result = runner.finalize(str(clip), DecisionOutcome.RE_ENCODE, config)

    assert not result.ok
    assert result.error == "Conversion failed with exit code 1"
    assert clip.read_text() == "original"
    assert list(tmp_path.glob("*.converted*")) == []
    assert cleanup.pending() == []


def test_reencode_launch_failure(tmp_path) -> None:
    def _cannot_start(cmd, on_line):
        raise LaunchFailureError("No such file or directory")

    runner, _, _ = _runner(_cannot_start)
    clip = _media(tmp_path, "clip.mp4")

    result = runner.finalize(str(clip), DecisionOutcome.RE_ENCODE, ConfigSnapshot(format="mkv"))

    assert result.error.startswith("Failed to start conversion")
    assert clip.exists()


def test_missing_transcoder_fails_processing(tmp_path) -> None:
    run = FakeTranscodeRun(0)
    runner, _, _ = _runner(run, transcoder=None)
    clip = _media(tmp_path, "clip.webm")

    result = runner.finalize(str(clip), DecisionOutcome.REMUX, ConfigSnapshot(format="mkv"))

    assert result.error == "Processing failed: ffmpeg not found"
    assert run.calls == []


def test_reencode_progress_updates_state(tmp_path) -> None:
    run = FakeTranscodeRun(0, lines=("out_time=00:00:05.000000", "progress=continue"))
    runner, state, _ = _runner(run)
    seen: list[float] = []
    state.subscribe(lambda kind, payload: kind == "state" and seen.append(payload.progress))
    clip = _media(tmp_path, "clip.webm")

    runner.finalize(str(clip), DecisionOutcome.RE_ENCODE, ConfigSnapshot(format="mp4"))

    assert 0.5 in seen
    assert not any("progress=continue" in line for line in state.snapshot().logs)


def test_av1_prefers_svt_when_available(tmp_path) -> None:
    run = FakeTranscodeRun(0)
    runner, _, _ = _runner(run)
    clip = _media(tmp_path, "clip.webm")

    runner.finalize(str(clip), DecisionOutcome.RE_ENCODE, ConfigSnapshot(video_codec="av1"))

    cmd = run.calls[0]
    assert cmd[cmd.index("-c:v") + 1] == "libsvtav1"
    assert cmd[cmd.index("-preset") + 1] == "6"
