"""Shared data types used across ClipStudio."""

import math
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from clipstudio.errors import InvalidParameters

CANONICAL_SAMPLE_RATE = 44100
CANONICAL_CHANNEL_LAYOUT = "stereo"


class MediaKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"


@dataclass(frozen=True)
class MediaAsset:
    """A source file referenced by an edit request."""

    path: Path
    kind: MediaKind = MediaKind.VIDEO


@dataclass(frozen=True)
class MediaFacts:
    """Timing and stream facts extracted from a media file via ffprobe."""

    duration: float
    has_video: bool
    has_audio: bool
    width: int = 0
    height: int = 0
    fps: float = 30.0
    sample_rate: int = CANONICAL_SAMPLE_RATE
    channels: int = 2

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


class SegmentRole(str, Enum):
    PASS_THROUGH = "pass-through"
    TRANSFORMED = "transformed"
    SILENCE = "silence"
    INSERTED = "inserted"


@dataclass(frozen=True)
class Segment:
    """A planned sub-interval of output media.

    ``start`` and ``duration`` are measured on ``source``. ``speed`` rescales
    the segment's timestamps; ``mix_source`` names an audio input mixed over
    the source's own audio for ``gain``-scaled inserted tracks.
    """

    source: Path | None
    start: float
    duration: float
    role: SegmentRole
    speed: float = 1.0
    has_audio: bool = True
    mix_source: Path | None = None
    loop: bool = False
    gain: float = 1.0

    @property
    def end(self) -> float:
        return self.start + self.duration

    @property
    def output_duration(self) -> float:
        return self.duration / self.speed


class MergeMode(str, Enum):
    SEQUENTIAL = "sequential"
    OVERLAY = "overlay"


def _check_time(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParameters(f"{name} must be a number of seconds, got {value!r}")
    if not math.isfinite(value) or value < 0:
        raise InvalidParameters(f"{name} must be a finite, non-negative number of seconds")


def _check_range(start: float, end: float) -> None:
    _check_time("start", start)
    _check_time("end", end)
    if end <= start:
        raise InvalidParameters(f"end ({end}) must be greater than start ({start})")


@dataclass
class Placement:
    """Where inserted audio plays: from the start, or a custom [start, end) window."""

    start: float | None = None
    end: float | None = None

    @classmethod
    def from_start(cls) -> "Placement":
        return cls()

    @property
    def is_custom(self) -> bool:
        return self.start is not None and self.end is not None

    def validate(self) -> None:
        if self.start is None and self.end is None:
            return
        if self.start is None or self.end is None:
            raise InvalidParameters("custom placement needs both start and end")
        _check_range(self.start, self.end)


@dataclass
class CutRequest:
    path: Path
    start: float
    end: float

    feature = "cut"

    def validate(self) -> None:
        _check_range(self.start, self.end)

    def assets(self) -> list[MediaAsset]:
        return [MediaAsset(Path(self.path), MediaKind.VIDEO)]


@dataclass
class MergeRequest:
    base_path: Path
    insert_path: Path
    insertion_point: float
    mode: MergeMode = MergeMode.SEQUENTIAL

    @property
    def feature(self) -> str:
        return "merge" if self.mode == MergeMode.SEQUENTIAL else "overlay"

    def validate(self) -> None:
        _check_time("insertion_point", self.insertion_point)
        try:
            self.mode = MergeMode(self.mode)
        except ValueError:
            raise InvalidParameters(f"unknown merge mode {self.mode!r}") from None

    def assets(self) -> list[MediaAsset]:
        return [
            MediaAsset(Path(self.base_path), MediaKind.VIDEO),
            MediaAsset(Path(self.insert_path), MediaKind.VIDEO),
        ]


@dataclass
class SpeedChangeRequest:
    path: Path
    start: float
    end: float
    factor: float

    feature = "speed"

    def validate(self) -> None:
        _check_range(self.start, self.end)
        if isinstance(self.factor, bool) or not isinstance(self.factor, (int, float)):
            raise InvalidParameters(f"speed factor must be a number, got {self.factor!r}")
        if not math.isfinite(self.factor) or self.factor <= 0:
            raise InvalidParameters("speed factor must be finite and greater than 0")

    def assets(self) -> list[MediaAsset]:
        return [MediaAsset(Path(self.path), MediaKind.VIDEO)]


@dataclass
class AddAudioRequest:
    video_path: Path
    audio_path: Path
    volume: float = 100.0
    placement: Placement = field(default_factory=Placement.from_start)
    loop: bool = False

    feature = "audio"

    @property
    def gain(self) -> float:
        return self.volume / 100

    def validate(self) -> None:
        if isinstance(self.volume, bool) or not isinstance(self.volume, (int, float)):
            raise InvalidParameters(f"volume must be a number, got {self.volume!r}")
        if not math.isfinite(self.volume) or not 0 <= self.volume <= 100:
            raise InvalidParameters("volume must be between 0 and 100")
        self.placement.validate()

    def assets(self) -> list[MediaAsset]:
        return [
            MediaAsset(Path(self.video_path), MediaKind.VIDEO),
            MediaAsset(Path(self.audio_path), MediaKind.AUDIO),
        ]


EditRequest = CutRequest | MergeRequest | SpeedChangeRequest | AddAudioRequest


@dataclass(frozen=True)
class QualityProfile:
    """Encoder settings applied uniformly to every stage of one job."""

    name: str
    video_codec: str
    preset: str
    crf: int
    audio_codec: str
    audio_bitrate: str
    faststart: bool = False

    @staticmethod
    def named(name: "str | QualityProfile") -> "QualityProfile":
        if isinstance(name, QualityProfile):
            return name
        try:
            return _PROFILES[name.lower()]
        except (KeyError, AttributeError):
            raise InvalidParameters(
                f"unknown quality profile {name!r}; expected 'preview' or 'export'"
            ) from None

    @property
    def is_preview(self) -> bool:
        return self.name == "preview"

    def video_args(self) -> list[str]:
        return [
            "-c:v", self.video_codec,
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-pix_fmt", "yuv420p",
        ]

    def audio_args(self) -> list[str]:
        return ["-c:a", self.audio_codec, "-b:a", self.audio_bitrate]


PREVIEW = QualityProfile(
    name="preview",
    video_codec="libx264",
    preset="ultrafast",
    crf=28,
    audio_codec="aac",
    audio_bitrate="128k",
)

EXPORT = QualityProfile(
    name="export",
    video_codec="libx264",
    preset="medium",
    crf=23,
    audio_codec="aac",
    audio_bitrate="192k",
    faststart=True,
)

_PROFILES = {"preview": PREVIEW, "export": EXPORT}


@dataclass(frozen=True)
class Canvas:
    """Normalization target shared by every segment of a merge."""

    width: int
    height: int
    fps: float


class PlanMode(str, Enum):
    SEGMENTS = "segments"
    AUDIO_TRACK = "audio_track"


@dataclass
class EditPlan:
    """Ordered segments for one job plus what the compiler needs to render them.

    In ``SEGMENTS`` mode each segment becomes its own encoded clip and the clips
    are joined. In ``AUDIO_TRACK`` mode the segments describe a replacement
    audio track laid under the stream-copied video of ``inputs[0]``.
    """

    mode: PlanMode
    segments: list[Segment]
    inputs: list[Path]
    expected_duration: float
    canvas: Canvas | None = None
    total_duration: float = 0.0


def new_job_id(feature: str) -> str:
    """Feature name, timestamp and a random token, unique across concurrent jobs."""
    stamp = time.strftime("%Y%m%d-%H%M%S")
    return f"{feature}-{stamp}-{secrets.token_hex(4)}"


@dataclass
class Job:
    id: str
    request: EditRequest
    profile: QualityProfile
    output_path: Path
    is_ephemeral: bool
    temp_dir: Path
    prefix: str = "clipstudio"

    def scratch_path(self, tag: str, suffix: str = ".mp4") -> Path:
        """Return a job-namespaced path for an intermediate file."""
        return self.temp_dir / f"{self.prefix}-{self.id}-{tag}{suffix}"


@dataclass(frozen=True)
class TempArtifact:
    path: Path
    owner: str
