"""Render planned segments into ffmpeg invocations.

Every plan goes through one path: a single segment is encoded straight to the
job output, two or more are encoded to intermediates and joined with the
concat demuxer (stream copy). Audio-track plans compile to one complex-filter
invocation that rebuilds the audio while stream-copying the video.
"""

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from clipstudio.errors import CompileError
from clipstudio.ffutil import escape_concat_path
from clipstudio.models import (
    CANONICAL_CHANNEL_LAYOUT,
    CANONICAL_SAMPLE_RATE,
    Canvas,
    EditPlan,
    Job,
    PlanMode,
    QualityProfile,
    Segment,
    SegmentRole,
)

ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0

# aloop needs an explicit buffer size; this is the largest it accepts.
ALOOP_SIZE = 2147483647


@dataclass
class Stage:
    """One ffmpeg invocation. ``args`` excludes the ffmpeg binary itself."""

    label: str
    args: list[str]
    output: Path
    temporary: bool = True
    concat_list: tuple[Path, str] | None = None


@dataclass
class TranscodePlan:
    stages: list[Stage]
    output: Path


def _num(value: float) -> str:
    """Format a float for filter strings without exponent or trailing zeros.

    Uses the shortest round-tripping digits, so tiny durations and large
    speed factors never collapse to ``0``.
    """
    text = np.format_float_positional(float(value), trim="-")
    return "0" if text == "-0" else text


def atempo_chain(factor: float) -> list[float]:
    """Split a tempo factor into atempo stages that each stay within [0.5, 2.0]."""
    if factor <= 0:
        raise ValueError("speed factor must be > 0")
    chain: list[float] = []
    remaining = factor
    while remaining > ATEMPO_MAX:
        chain.append(ATEMPO_MAX)
        remaining /= ATEMPO_MAX
    while remaining < ATEMPO_MIN:
        chain.append(ATEMPO_MIN)
        remaining /= ATEMPO_MIN
    chain.append(remaining)
    return chain


def atempo_filter(factor: float) -> str:
    return ",".join(f"atempo={_num(stage)}" for stage in atempo_chain(factor))


def setpts_filter(factor: float) -> str:
    return f"setpts={_num(1 / factor)}*PTS"


def normalize_video_filter(canvas: Canvas) -> str:
    w, h = canvas.width, canvas.height
    return (
        f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2:color=black,"
        f"fps={_num(canvas.fps)},setsar=1"
    )


def normalize_audio_filter() -> str:
    return (
        f"aformat=sample_rates={CANONICAL_SAMPLE_RATE}"
        f":channel_layouts={CANONICAL_CHANNEL_LAYOUT}"
    )


def silence_source(duration: float) -> str:
    return (
        f"anullsrc=channel_layout={CANONICAL_CHANNEL_LAYOUT}"
        f":sample_rate={CANONICAL_SAMPLE_RATE},"
        f"atrim=start=0:end={_num(duration)},asetpts=PTS-STARTPTS"
    )


def trim_filter(start: float, end: float) -> str:
    return f"atrim=start={_num(start)}:end={_num(end)},asetpts=PTS-STARTPTS"


def mix_filter(first: str, second: str, out: str) -> str:
    """Mix two labeled audio streams; the gain was already applied upstream."""
    return (
        f"[{first}][{second}]amix=inputs=2:duration=longest"
        f":dropout_transition=0:normalize=0[{out}]"
    )


def concat_list(paths: list[Path]) -> str:
    return "\n".join(escape_concat_path(p) for p in paths) + "\n"


def _inserted_chain(segment: Segment) -> str:
    parts = [f"volume={_num(segment.gain)}"]
    if segment.loop:
        parts.append(f"aloop=loop=-1:size={ALOOP_SIZE}:start=0")
    parts.append(trim_filter(0.0, segment.duration))
    return ",".join(parts)


def segment_args(
    segment: Segment,
    profile: QualityProfile,
    output: Path,
    canvas: Canvas | None = None,
    faststart: bool = False,
) -> list[str]:
    """Arguments that encode one segment of a source into its own clip."""
    args = [
        "-y",
        "-ss", _num(segment.start),
        "-t", _num(segment.duration),
        "-i", str(segment.source),
    ]

    video_chain: list[str] = []
    audio_chain: list[str] = []
    if segment.speed != 1:
        video_chain.append(setpts_filter(segment.speed))
        if segment.has_audio:
            audio_chain.append(atempo_filter(segment.speed))
    if canvas is not None:
        video_chain.append(normalize_video_filter(canvas))
        if segment.has_audio:
            audio_chain.append(normalize_audio_filter())

    filters: list[str] = []
    if video_chain:
        filters.append(f"[0:v]{','.join(video_chain)}[v]")
    if audio_chain:
        filters.append(f"[0:a]{','.join(audio_chain)}[a]")
    elif canvas is not None and not segment.has_audio:
        # Pad with silence so every merged clip carries the same streams.
        filters.append(f"{silence_source(segment.output_duration)}[a]")
    if filters:
        args += ["-filter_complex", ";".join(filters)]

    args += ["-map", "[v]" if video_chain else "0:v:0"]
    has_audio_out = True
    if audio_chain or (canvas is not None and not segment.has_audio):
        args += ["-map", "[a]"]
    elif segment.has_audio:
        args += ["-map", "0:a:0"]
    else:
        has_audio_out = False

    args += profile.video_args()
    if canvas is not None:
        args += ["-r", _num(canvas.fps)]
    args += profile.audio_args() if has_audio_out else ["-an"]
    args += ["-t", _num(segment.output_duration)]
    if faststart:
        args += ["-movflags", "+faststart"]
    args.append(str(output))
    return args


def concat_args(list_path: Path, output: Path, faststart: bool = False) -> list[str]:
    args = [
        "-y",
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_path),
        "-c", "copy",
        "-avoid_negative_ts", "make_zero",
    ]
    if faststart:
        args += ["-movflags", "+faststart"]
    args.append(str(output))
    return args


def audio_track_filter(plan: EditPlan) -> str:
    """Build the filter graph that assembles the replacement audio track."""

    def stream(path: Path | None) -> str:
        return f"{plan.inputs.index(path)}:a"

    norm = normalize_audio_filter()
    parts: list[str] = []
    labels: list[str] = []
    for i, seg in enumerate(plan.segments):
        label = f"a{i}"
        if seg.role == SegmentRole.SILENCE:
            parts.append(f"{silence_source(seg.duration)},{norm}[{label}]")
        elif seg.role == SegmentRole.PASS_THROUGH:
            parts.append(f"[{stream(seg.source)}]{trim_filter(seg.start, seg.end)},{norm}[{label}]")
        elif seg.role == SegmentRole.INSERTED:
            parts.append(f"[{stream(seg.source)}]{_inserted_chain(seg)},{norm}[{label}]")
        else:
            parts.append(
                f"[{stream(seg.source)}]{trim_filter(seg.start, seg.end)},{norm}[{label}base]"
            )
            parts.append(
                f"[{stream(seg.mix_source)}]{_inserted_chain(seg)},{norm}[{label}ins]"
            )
            parts.append(mix_filter(f"{label}base", f"{label}ins", label))
        labels.append(f"[{label}]")

    if len(labels) == 1:
        parts.append(f"{labels[0]}acopy[aout]")
    else:
        parts.append(f"{''.join(labels)}concat=n={len(labels)}:v=0:a=1[aout]")
    return ";".join(parts)


def audio_track_args(plan: EditPlan, profile: QualityProfile, output: Path) -> list[str]:
    args = ["-y"]
    for path in plan.inputs:
        args += ["-i", str(path)]
    args += [
        "-filter_complex", audio_track_filter(plan),
        "-map", "0:v:0",
        "-map", "[aout]",
        "-c:v", "copy",
    ]
    args += profile.audio_args()
    args += ["-t", _num(plan.total_duration)]
    if profile.faststart:
        args += ["-movflags", "+faststart"]
    args.append(str(output))
    return args


def compile_plan(plan: EditPlan, profile: QualityProfile, job: Job) -> TranscodePlan:
    """Turn a plan into the ordered stages that produce ``job.output_path``."""
    if not plan.segments:
        raise CompileError("plan has no segments to render")

    output = job.output_path
    if plan.mode == PlanMode.AUDIO_TRACK:
        stage = Stage(
            label="audio track",
            args=audio_track_args(plan, profile, output),
            output=output,
            temporary=False,
        )
        return TranscodePlan(stages=[stage], output=output)

    n = len(plan.segments)
    if n == 1:
        segment = plan.segments[0]
        stage = Stage(
            label=f"segment 1/1 ({segment.role.value})",
            args=segment_args(segment, profile, output, plan.canvas, profile.faststart),
            output=output,
            temporary=False,
        )
        return TranscodePlan(stages=[stage], output=output)

    stages: list[Stage] = []
    clips: list[Path] = []
    for i, segment in enumerate(plan.segments):
        clip = job.scratch_path(f"part{i + 1}")
        clips.append(clip)
        stages.append(
            Stage(
                label=f"segment {i + 1}/{n} ({segment.role.value})",
                args=segment_args(segment, profile, clip, plan.canvas),
                output=clip,
            )
        )

    list_path = job.scratch_path("concat", ".txt")
    stages.append(
        Stage(
            label="concat",
            args=concat_args(list_path, output, profile.faststart),
            output=output,
            temporary=False,
            concat_list=(list_path, concat_list(clips)),
        )
    )
    return TranscodePlan(stages=stages, output=output)
