"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import shutil
import subprocess
from pathlib import Path

from clipstudio.errors import FFmpegNotFoundError, ProbeError
from clipstudio.models import CANONICAL_SAMPLE_RATE, MediaFacts

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30.0
DEFAULT_CHANNELS = 2

THUMBNAIL_WIDTH = 320
THUMBNAIL_HEIGHT = 180


def check_ffmpeg(ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in (ffmpeg, ffprobe):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def parse_frame_rate(value: str | None) -> float | None:
    """Parse an ffprobe rate such as ``"30000/1001"``.

    Returns None for missing, malformed or zero-denominator values.
    """
    if not value:
        return None
    num, _, den = str(value).partition("/")
    try:
        numerator = float(num)
        denominator = float(den) if den else 1.0
    except ValueError:
        return None
    if denominator <= 0 or numerator <= 0:
        return None
    return numerator / denominator


def _float(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _int(value, default: int) -> int:
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


def probe(input_path: Path, ffprobe: str = "ffprobe") -> MediaFacts:
    """Extract media facts via ffprobe.

    Missing fields fall back to defaults instead of failing: duration 0,
    fps 30, 44100 Hz, two channels. A file without an audio stream reports
    ``has_audio=False``.
    """
    cmd = [
        ffprobe,
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    logger.debug("ffprobe %s", input_path)
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    except FileNotFoundError:
        raise FFmpegNotFoundError(f"{ffprobe} not found on PATH") from None
    except subprocess.CalledProcessError as e:
        raise ProbeError(input_path, e.stderr or "") from e

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ProbeError(input_path, f"unparsable ffprobe output ({e})") from e
    if not isinstance(data, dict):
        raise ProbeError(input_path, "unexpected ffprobe output")

    streams = data.get("streams") or []
    video_stream = next(
        (s for s in streams if s.get("codec_type") == "video"), None
    )
    audio_stream = next(
        (s for s in streams if s.get("codec_type") == "audio"), None
    )

    fps = DEFAULT_FPS
    if video_stream is not None:
        fps = (
            parse_frame_rate(video_stream.get("r_frame_rate"))
            or parse_frame_rate(video_stream.get("avg_frame_rate"))
            or DEFAULT_FPS
        )

    audio_stream = audio_stream or {}
    video_stream_data = video_stream or {}

    return MediaFacts(
        duration=_float((data.get("format") or {}).get("duration"), 0.0),
        has_video=video_stream is not None,
        has_audio=bool(audio_stream),
        width=_int(video_stream_data.get("width"), 0),
        height=_int(video_stream_data.get("height"), 0),
        fps=fps,
        sample_rate=_int(audio_stream.get("sample_rate"), CANONICAL_SAMPLE_RATE),
        channels=_int(audio_stream.get("channels"), DEFAULT_CHANNELS),
    )


def escape_concat_path(path: Path) -> str:
    """Render *path* as a concat-demuxer ``file`` line.

    The path is made absolute, written with forward slashes, and single
    quotes are closed, escaped and reopened.
    """
    text = str(Path(path).resolve()).replace("\\", "/")
    text = text.replace("'", "'\\''")
    return f"file '{text}'"


def thumbnail_args(input_path: Path, output_path: Path) -> list[str]:
    """ffmpeg arguments that grab the first frame into a letterboxed JPEG."""
    w, h = THUMBNAIL_WIDTH, THUMBNAIL_HEIGHT
    return [
        "-y",
        "-ss", "0",
        "-i", str(input_path),
        "-frames:v", "1",
        "-vf",
        f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2:color=black",
        "-q:v", "2",
        str(output_path),
    ]


def pcm_args(input_path: Path, output_path: Path, sample_rate: int = 8000) -> list[str]:
    """ffmpeg arguments that decode audio to raw mono signed 16-bit PCM."""
    return [
        "-y",
        "-i", str(input_path),
        "-vn",
        "-ac", "1",
        "-ar", str(sample_rate),
        "-f", "s16le",
        "-acodec", "pcm_s16le",
        str(output_path),
    ]
