"""Thin CLI entry point — builds an edit request and calls the engine."""

import argparse
import atexit
import logging
import sys
from pathlib import Path

from clipstudio.engine import Editor, JobResult
from clipstudio.errors import ClipStudioError
from clipstudio.manifest import EditorConfig, load_config, load_manifest
from clipstudio.models import Placement
from clipstudio.timecode import format_duration, parse_timecode


def _add_output_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--output", "-o", type=Path, help="Output file path (default: <input>_edited.mp4)")
    p.add_argument("--preview", action="store_true",
                   help="Use the fast, low-fidelity preview profile instead of export")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipstudio",
        description="ClipStudio — trim, merge, retime and re-score videos with ffmpeg.",
    )
    parser.add_argument("--config", "-c", type=Path, help="Path to a JSON config file")
    parser.add_argument("--ffmpeg", type=str, help="ffmpeg binary to use")
    parser.add_argument("--ffprobe", type=str, help="ffprobe binary to use")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log encoder commands")
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("probe", help="Show media facts for a file")
    p.add_argument("input", type=Path)

    p = sub.add_parser("cut", help="Keep only [start, end) of a video")
    p.add_argument("input", type=Path)
    p.add_argument("start", type=parse_timecode, help="Start (seconds or HH:MM:SS)")
    p.add_argument("end", type=parse_timecode, help="End (seconds or HH:MM:SS)")
    _add_output_args(p)

    p = sub.add_parser("merge", help="Insert one video into another")
    p.add_argument("base", type=Path)
    p.add_argument("insert", type=Path)
    p.add_argument("point", type=parse_timecode, help="Insertion point (seconds or HH:MM:SS)")
    p.add_argument("--overlay", action="store_true",
                   help="Replace base footage instead of pushing it later")
    _add_output_args(p)

    p = sub.add_parser("speed", help="Change playback speed of [start, end)")
    p.add_argument("input", type=Path)
    p.add_argument("start", type=parse_timecode)
    p.add_argument("end", type=parse_timecode)
    p.add_argument("factor", type=float, help="Speed factor (2 = twice as fast)")
    _add_output_args(p)

    p = sub.add_parser("add-audio", help="Mix an audio track into a video")
    p.add_argument("video", type=Path)
    p.add_argument("audio", type=Path)
    p.add_argument("--volume", type=float, default=100.0, help="Inserted audio volume, 0-100")
    p.add_argument("--loop", action="store_true", help="Loop the audio to fill the window")
    p.add_argument("--start", type=parse_timecode, help="Custom placement start")
    p.add_argument("--end", type=parse_timecode, help="Custom placement end")
    _add_output_args(p)

    p = sub.add_parser("run", help="Run a JSON job manifest")
    p.add_argument("manifest", type=Path)

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    return parser


def _editor(args: argparse.Namespace) -> Editor:
    config = load_config(args.config) if args.config else EditorConfig()
    if args.ffmpeg:
        config.ffmpeg = args.ffmpeg
    if args.ffprobe:
        config.ffprobe = args.ffprobe
    return Editor(config)


def _print_result(result: JobResult) -> None:
    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Profile: {result.profile} ({result.segment_count} segment(s))")
    print(f"  Expected duration: {result.expected_duration:.1f}s")
    if result.ephemeral:
        print("  This preview is deleted when ClipStudio exits.")


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    editor = _editor(args)
    atexit.register(editor.shutdown)

    if args.command == "serve":
        from clipstudio.web import create_app
        app = create_app(editor)
        print(f"ClipStudio web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    def on_progress(stage: str, frac: float) -> None:
        print(f"  [{frac:3.0%}] {stage}")

    def profile_of(a, source: Path) -> tuple[str, Path]:
        output = a.output or source.with_name(source.stem + "_edited.mp4")
        return ("preview" if a.preview else "export"), output

    try:
        if args.command == "probe":
            facts = editor.probe(args.input)
            print(f"{args.input}")
            print(f"  Duration: {format_duration(facts.duration)} ({facts.duration:.2f}s)")
            print(f"  Video: {facts.has_video} {facts.resolution} @ {facts.fps:.3f} fps")
            print(f"  Audio: {facts.has_audio} {facts.sample_rate} Hz, {facts.channels} ch")
            return

        if args.command == "run":
            m = load_manifest(args.manifest)
            result = editor.run(m.request, m.profile, m.output, on_progress=on_progress)
        elif args.command == "cut":
            profile, output = profile_of(args, args.input)
            result = editor.cut(args.input, args.start, args.end, profile, output, on_progress)
        elif args.command == "merge":
            profile, output = profile_of(args, args.base)
            merge = editor.merge_overlay if args.overlay else editor.merge_sequential
            result = merge(args.base, args.insert, args.point, profile, output, on_progress)
        elif args.command == "speed":
            profile, output = profile_of(args, args.input)
            result = editor.change_speed(
                args.input, args.start, args.end, args.factor, profile, output, on_progress
            )
        else:
            profile, output = profile_of(args, args.video)
            result = editor.add_audio(
                args.video,
                args.audio,
                volume=args.volume,
                placement=Placement(args.start, args.end),
                loop=args.loop,
                profile=profile,
                output=output,
                on_progress=on_progress,
            )
    except (ClipStudioError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    _print_result(result)
