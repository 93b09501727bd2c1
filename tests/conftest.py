"""Shared test fixtures."""

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from clipstudio.engine import Editor
from clipstudio.manifest import EditorConfig
from clipstudio.models import MediaFacts
from clipstudio.registry import TempArtifactRegistry

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def sample_config_path() -> Path:
    return FIXTURES_DIR / "config.json"


def make_facts(
    duration: float = 30.0,
    has_video: bool = True,
    has_audio: bool = True,
    width: int = 1280,
    height: int = 720,
    fps: float = 30.0,
) -> MediaFacts:
    return MediaFacts(
        duration=duration,
        has_video=has_video,
        has_audio=has_audio,
        width=width if has_video else 0,
        height=height if has_video else 0,
        fps=fps,
    )


def probe_json(
    duration: float = 30.0,
    has_video: bool = True,
    has_audio: bool = True,
    width: int = 1280,
    height: int = 720,
) -> str:
    streams = []
    if has_video:
        streams.append({
            "codec_type": "video",
            "codec_name": "h264",
            "width": width,
            "height": height,
            "r_frame_rate": "30/1",
        })
    if has_audio:
        streams.append({
            "codec_type": "audio",
            "codec_name": "aac",
            "sample_rate": "48000",
            "channels": 2,
        })
    return json.dumps({"format": {"duration": str(duration)}, "streams": streams})


class FakeEncoder:
    """Stands in for subprocess.run: ffprobe answers from a table, ffmpeg writes its output."""

    def __init__(self, media: dict[str, str] | None = None, fail_on: str | None = None):
        self.media = media or {}
        self.fail_on = fail_on
        self.commands: list[list[str]] = []

    @property
    def ffmpeg_commands(self) -> list[list[str]]:
        return [c for c in self.commands if Path(c[0]).name == "ffmpeg"]

    def __call__(self, cmd, *args, **kwargs):
        self.commands.append(list(cmd))
        if Path(cmd[0]).name == "ffprobe":
            stdout = self.media.get(Path(cmd[-1]).name)
            if stdout is None:
                raise subprocess.CalledProcessError(
                    1, cmd, output="", stderr="No such file or directory"
                )
            return MagicMock(returncode=0, stdout=stdout, stderr="")

        if self.fail_on and any(self.fail_on in str(a) for a in cmd):
            return MagicMock(returncode=1, stdout="", stderr="Conversion failed!")
        Path(cmd[-1]).write_bytes(b"\x00fake media\x00")
        return MagicMock(returncode=0, stdout="", stderr="")


@pytest.fixture
def registry() -> TempArtifactRegistry:
    return TempArtifactRegistry()


@pytest.fixture
def editor(tmp_path, registry) -> Editor:
    config = EditorConfig(temp_dir=tmp_path / "tmp")
    config.temp_dir.mkdir()
    return Editor(config, registry=registry)
