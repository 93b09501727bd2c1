"""Turn edit requests into ordered segments of source media.

Everything here is pure arithmetic over request parameters and probed
``MediaFacts``; nothing touches the filesystem or spawns a process.
"""

import math
from pathlib import Path

from clipstudio.errors import InvalidParameters
from clipstudio.models import (
    AddAudioRequest,
    Canvas,
    CutRequest,
    EditPlan,
    EditRequest,
    MediaFacts,
    MergeMode,
    MergeRequest,
    PlanMode,
    Segment,
    SegmentRole,
    SpeedChangeRequest,
)

SEGMENT_EPSILON = 0.01

DEFAULT_CANVAS = Canvas(width=1920, height=1080, fps=30.0)


def _keep(segments: list[Segment], epsilon: float) -> list[Segment]:
    """Drop segments too short to be worth an encoder pass."""
    kept = [s for s in segments if s.duration > epsilon]
    if not kept:
        raise InvalidParameters("edit would produce no media")
    return kept


def _require_video(path: Path, facts: MediaFacts) -> None:
    if not facts.has_video:
        raise InvalidParameters(f"{path.name} has no video stream")


def overlay_insert_duration(insert_duration: float, base_duration: float, point: float) -> float:
    """Length of the insert actually shown when it replaces base footage."""
    return min(insert_duration, base_duration - point)


def plan_cut(request: CutRequest, facts: MediaFacts, epsilon: float = SEGMENT_EPSILON) -> EditPlan:
    source = Path(request.path)
    _require_video(source, facts)
    end = request.end
    if facts.duration > 0:
        if request.start >= facts.duration:
            raise InvalidParameters(
                f"cut start {request.start}s is past the end of {source.name} ({facts.duration}s)"
            )
        end = min(end, facts.duration)

    duration = end - request.start
    if not math.isfinite(duration) or duration <= 0:
        raise InvalidParameters("invalid segment duration")

    segment = Segment(
        source=source,
        start=request.start,
        duration=duration,
        role=SegmentRole.PASS_THROUGH,
        has_audio=facts.has_audio,
    )
    return EditPlan(
        mode=PlanMode.SEGMENTS,
        segments=[segment],
        inputs=[source],
        expected_duration=duration,
        total_duration=facts.duration,
    )


def plan_merge(
    request: MergeRequest,
    base: MediaFacts,
    insert: MediaFacts,
    epsilon: float = SEGMENT_EPSILON,
) -> EditPlan:
    """Split the base clip around the insertion point.

    Sequential: base[0, p) + insert + base[p, end).
    Overlay:    base[0, p) + insert[0, n) + base[p + n, end) where
                n = min(insert, base - p), so the total length is unchanged.
    """
    base_path = Path(request.base_path)
    insert_path = Path(request.insert_path)
    point = request.insertion_point

    _require_video(base_path, base)
    _require_video(insert_path, insert)
    if insert.duration <= 0:
        raise InvalidParameters(f"{insert_path.name} has no measurable duration")
    if point > base.duration:
        raise InvalidParameters(
            f"insertion point {point}s is past the end of {base_path.name} ({base.duration}s)"
        )

    if request.mode == MergeMode.SEQUENTIAL:
        insert_length = insert.duration
        tail_start = point
        expected = base.duration + insert.duration
    else:
        insert_length = overlay_insert_duration(insert.duration, base.duration, point)
        tail_start = point + insert_length
        expected = base.duration

    canvas = Canvas(
        width=base.width or DEFAULT_CANVAS.width,
        height=base.height or DEFAULT_CANVAS.height,
        fps=base.fps or DEFAULT_CANVAS.fps,
    )

    segments = _keep(
        [
            Segment(base_path, 0.0, point, SegmentRole.PASS_THROUGH, has_audio=base.has_audio),
            Segment(insert_path, 0.0, insert_length, SegmentRole.INSERTED, has_audio=insert.has_audio),
            Segment(
                base_path,
                tail_start,
                base.duration - tail_start,
                SegmentRole.PASS_THROUGH,
                has_audio=base.has_audio,
            ),
        ],
        epsilon,
    )
    return EditPlan(
        mode=PlanMode.SEGMENTS,
        segments=segments,
        inputs=[base_path, insert_path],
        expected_duration=expected,
        canvas=canvas,
        total_duration=base.duration,
    )


def plan_speed_change(
    request: SpeedChangeRequest,
    facts: MediaFacts,
    epsilon: float = SEGMENT_EPSILON,
) -> EditPlan:
    source = Path(request.path)
    _require_video(source, facts)
    start, end = request.start, request.end
    total = facts.duration
    if total > 0:
        if start >= total:
            raise InvalidParameters(
                f"speed change start {start}s is past the end of {source.name} ({total}s)"
            )
        end = min(end, total)
    else:
        total = end

    segments = _keep(
        [
            Segment(source, 0.0, start, SegmentRole.PASS_THROUGH, has_audio=facts.has_audio),
            Segment(
                source,
                start,
                end - start,
                SegmentRole.TRANSFORMED,
                speed=request.factor,
                has_audio=facts.has_audio,
            ),
            Segment(source, end, total - end, SegmentRole.PASS_THROUGH, has_audio=facts.has_audio),
        ],
        epsilon,
    )
    changed = end - start
    return EditPlan(
        mode=PlanMode.SEGMENTS,
        segments=segments,
        inputs=[source],
        expected_duration=total - changed + changed / request.factor,
        total_duration=total,
    )


def plan_add_audio(
    request: AddAudioRequest,
    video: MediaFacts,
    audio: MediaFacts,
    epsilon: float = SEGMENT_EPSILON,
) -> EditPlan:
    """Lay the inserted audio over the video's timeline.

    The play window is the custom placement, or the whole video. Looping only
    engages when the audio is shorter than the window; otherwise the audio
    plays for min(audio, window). When the video has its own audio the
    inserted track is mixed over it and the rest passes through; when it has
    none, gaps are filled with silence.
    """
    video_path = Path(request.video_path)
    audio_path = Path(request.audio_path)

    _require_video(video_path, video)
    if not audio.has_audio:
        raise InvalidParameters(f"{audio_path.name} has no audio stream")
    total = video.duration
    if total <= 0:
        raise InvalidParameters(f"{video_path.name} has no measurable duration")

    placement = request.placement
    if placement.is_custom:
        window_start = placement.start
        window_end = min(placement.end, total)
        if window_start >= total:
            raise InvalidParameters(
                f"audio placement starts at {window_start}s, past the end of the video ({total}s)"
            )
    else:
        window_start, window_end = 0.0, total

    window = window_end - window_start
    # An unmeasurable track is assumed to outlast the window and is trimmed to it.
    audio_length = audio.duration if audio.duration > 0 else window
    looping = request.loop and audio_length < window
    insert_length = window if looping else min(audio_length, window)
    insert_end = window_start + insert_length

    if video.has_audio:
        lead = Segment(video_path, 0.0, window_start, SegmentRole.PASS_THROUGH)
        body = Segment(
            video_path,
            window_start,
            insert_length,
            SegmentRole.TRANSFORMED,
            mix_source=audio_path,
            loop=looping,
            gain=request.gain,
        )
        tail = Segment(video_path, insert_end, total - insert_end, SegmentRole.PASS_THROUGH)
    else:
        lead = Segment(None, 0.0, window_start, SegmentRole.SILENCE, has_audio=False)
        body = Segment(
            audio_path,
            0.0,
            insert_length,
            SegmentRole.INSERTED,
            loop=looping,
            gain=request.gain,
        )
        tail = Segment(None, insert_end, total - insert_end, SegmentRole.SILENCE, has_audio=False)

    return EditPlan(
        mode=PlanMode.AUDIO_TRACK,
        segments=_keep([lead, body, tail], epsilon),
        inputs=[video_path, audio_path],
        expected_duration=total,
        total_duration=total,
    )


def plan(
    request: EditRequest,
    facts: list[MediaFacts],
    epsilon: float = SEGMENT_EPSILON,
) -> EditPlan:
    """Plan *request*; *facts* follow the order of ``request.assets()``."""
    if isinstance(request, CutRequest):
        return plan_cut(request, facts[0], epsilon)
    if isinstance(request, MergeRequest):
        return plan_merge(request, facts[0], facts[1], epsilon)
    if isinstance(request, SpeedChangeRequest):
        return plan_speed_change(request, facts[0], epsilon)
    if isinstance(request, AddAudioRequest):
        return plan_add_audio(request, facts[0], facts[1], epsilon)
    raise InvalidParameters(f"unsupported edit request {type(request).__name__}")
