"""JSON manifest schema: the contract between CLI/API and engine."""

import json
import tempfile
from dataclasses import dataclass, fields
from pathlib import Path

from clipstudio.errors import InvalidParameters
from clipstudio.models import (
    AddAudioRequest,
    CutRequest,
    EditRequest,
    MergeMode,
    MergeRequest,
    Placement,
    SpeedChangeRequest,
)
from clipstudio.planner import SEGMENT_EPSILON
from clipstudio.timecode import parse_timecode


@dataclass
class EditorConfig:
    """Encoder binaries and temp-file settings shared by every job."""

    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    temp_dir: Path | None = None
    prefix: str = "clipstudio"
    segment_epsilon: float = SEGMENT_EPSILON

    @property
    def resolved_temp_dir(self) -> Path:
        return Path(self.temp_dir) if self.temp_dir else Path(tempfile.gettempdir())


def load_config(path: str | Path) -> EditorConfig:
    """Load an EditorConfig from a JSON file."""
    data = json.loads(Path(path).read_text())
    known = {f.name for f in fields(EditorConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
    if data.get("temp_dir"):
        data["temp_dir"] = Path(data["temp_dir"])
    return EditorConfig(**data)


def _require(data: dict, *keys: str):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    raise InvalidParameters(f"missing required field '{keys[0]}'")


def _number(value, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidParameters(f"{name} must be a number, got {value!r}") from None


def _placement(value) -> Placement:
    if value is None or value == "start":
        return Placement.from_start()
    if isinstance(value, dict):
        start, end = value.get("start"), value.get("end")
        return Placement(
            start=None if start is None else parse_timecode(start),
            end=None if end is None else parse_timecode(end),
        )
    raise InvalidParameters(f"invalid placement {value!r}")


def request_from_dict(data: dict) -> EditRequest:
    """Build an edit request from its JSON form.

    ``operation`` selects the variant: ``cut``, ``merge``, ``speed`` or
    ``add_audio``. Times accept seconds or ``HH:MM:SS`` strings.
    """
    operation = data.get("operation")
    if operation == "cut":
        return CutRequest(
            path=Path(_require(data, "input", "path")),
            start=parse_timecode(_require(data, "start")),
            end=parse_timecode(_require(data, "end")),
        )
    if operation == "merge":
        try:
            mode = MergeMode(data.get("mode", MergeMode.SEQUENTIAL.value))
        except ValueError:
            raise InvalidParameters(f"unknown merge mode {data.get('mode')!r}") from None
        return MergeRequest(
            base_path=Path(_require(data, "base", "base_path")),
            insert_path=Path(_require(data, "insert", "insert_path")),
            insertion_point=parse_timecode(_require(data, "point", "insertion_point")),
            mode=mode,
        )
    if operation == "speed":
        return SpeedChangeRequest(
            path=Path(_require(data, "input", "path")),
            start=parse_timecode(_require(data, "start")),
            end=parse_timecode(_require(data, "end")),
            factor=_number(_require(data, "factor", "speed"), "factor"),
        )
    if operation == "add_audio":
        return AddAudioRequest(
            video_path=Path(_require(data, "video", "video_path")),
            audio_path=Path(_require(data, "audio", "audio_path")),
            volume=_number(data.get("volume", 100), "volume"),
            placement=_placement(data.get("placement")),
            loop=bool(data.get("loop", False)),
        )
    raise InvalidParameters(f"unknown operation {operation!r}")


@dataclass
class Manifest:
    """One edit job: the request, its quality profile and output path."""

    request: EditRequest
    profile: str = "preview"
    output: Path | None = None


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a job manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "operation" not in data:
        raise ValueError("Manifest must contain an 'operation' field")

    profile = data.get("profile", "preview")
    output = Path(data["output"]) if data.get("output") else None
    if profile == "export" and output is None:
        raise ValueError("Export manifests must contain an 'output' field")

    return Manifest(request=request_from_dict(data), profile=profile, output=output)
