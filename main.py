"""
Headless front end: download one or more URLs, finalize them, exit.

    python main.py https://example.com/watch?v=abc -o ~/Videos --format mp4 --codec h264

Exit status: 0 succeeded, 1 failed, 2 no subtitles, 130 cancelled.
"""

import argparse
import signal
import sys
from dataclasses import replace

from PySide6.QtCore import QCoreApplication, QTimer

from fetchcore import ConfigSnapshot, SessionCoordinator, SessionOutcome, load_snapshot_file

# same status argparse uses for a bad command line
USAGE_ERROR = 2

EXIT_CODES = {
    SessionOutcome.SUCCEEDED:    0,
    SessionOutcome.FAILED:       1,
    SessionOutcome.NO_SUBTITLES: 3,
    SessionOutcome.CANCELLED:    130,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fetchcore",
        description="Download media with yt-dlp and finalize it with ffmpeg.",
    )
    parser.add_argument("urls", nargs="+", help="one or more media URLs")
    parser.add_argument("--config", metavar="FILE",
                        help="JSON file with settings (read only)")
    parser.add_argument("-o", "--output-dir", metavar="DIR")
    parser.add_argument("--format", help="target container: best, mp4, mkv, webm, ...")
    parser.add_argument("--codec", help="target video codec: auto, h264, h265, vp9, av1")
    parser.add_argument("--quality", help="best, 2160p, 1080p, 720p, 480p, ...")
    parser.add_argument("--audio-only", action="store_true")
    parser.add_argument("--audio-format", help="mp3, m4a, opus, flac, wav, ...")
    parser.add_argument("--subtitles", action="store_true", help="also download subtitles")
    parser.add_argument("--subtitles-only", action="store_true")
    parser.add_argument("--sub-lang", metavar="LANG")
    parser.add_argument("--force", action="store_true",
                        help="re-encode even when the download already matches")
    parser.add_argument("--keep-original", action="store_true",
                        help="keep the downloaded file after converting it")
    parser.add_argument("--fetcher", metavar="PATH", help="path to yt-dlp")
    parser.add_argument("--ffmpeg", metavar="PATH", help="path to ffmpeg")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def config_from_args(args: argparse.Namespace) -> ConfigSnapshot:
    config = load_snapshot_file(args.config) if args.config else ConfigSnapshot()

    overrides = {
        "output_dir":        args.output_dir,
        "format":            args.format,
        "video_codec":       args.codec,
        "quality":           args.quality,
        "audio_format":      args.audio_format,
        "subtitle_language": args.sub_lang,
        "fetcher_path":      args.fetcher,
        "transcoder_path":   args.ffmpeg,
    }
    changes = {k: v for k, v in overrides.items() if v is not None}

    # Flags only ever switch things on; the config file decides otherwise
    if args.audio_only:
        changes["audio_only"] = True
    if args.subtitles:
        changes["download_subtitles"] = True
    if args.subtitles_only:
        changes["subtitle_only"] = True
    if args.force:
        changes["force_conversion"] = True
    if args.keep_original:
        changes["delete_original"] = False
    if args.verbose:
        changes["verbose_logging"] = True

    return replace(config, **changes)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = config_from_args(args)
    except (OSError, ValueError) as exc:
        print(f"Could not read config: {exc}", file=sys.stderr)
        return USAGE_ERROR

    app = QCoreApplication(sys.argv[:1])
    coordinator = SessionCoordinator()
    result = {"code": 1}

    last_status = {"text": ""}

    def on_state(view):
        if view.status and view.status != last_status["text"]:
            last_status["text"] = view.status
            if not view.status.startswith("[download]"):
                return
            sys.stdout.write(f"\r{view.progress * 100:5.1f}%  {view.speed:>12}  {view.eta:<14}")
            sys.stdout.flush()

    def on_finished(outcome, status):
        print(f"\n{status}")
        view = coordinator.snapshot()
        if view.output_path:
            print(f"Saved to: {view.output_path}")
        result["code"] = EXIT_CODES.get(outcome, 1)
        app.quit()

    coordinator.log_added.connect(lambda line: print(line))
    coordinator.state_changed.connect(on_state)
    coordinator.session_finished.connect(on_finished)

    # Ctrl+C cancels the session instead of killing the interpreter mid-download
    signal.signal(signal.SIGINT, lambda *_: coordinator.cancel())
    # Qt's loop never returns to Python on its own, so wake it for signal delivery
    ticker = QTimer()
    ticker.timeout.connect(lambda: None)
    ticker.start(200)

    if not coordinator.start(args.urls, config):
        print("Nothing to download.", file=sys.stderr)
        return USAGE_ERROR

    app.exec()
    coordinator.wait()
    return result["code"]


if __name__ == "__main__":
    sys.exit(main())
