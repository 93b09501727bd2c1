"""Tests for the Editor job facade (subprocess mocked end to end)."""

from pathlib import Path
from unittest.mock import patch

import pytest

from clipstudio.errors import (
    FFmpegNotFoundError,
    InvalidParameters,
    ProbeError,
    TranscodeFailure,
)
from clipstudio.models import Placement

from conftest import FakeEncoder, probe_json

MEDIA = {
    "base.mp4": probe_json(30.0),
    "insert.mp4": probe_json(5.0, has_audio=False, width=640, height=480),
    "silent.mp4": probe_json(20.0, has_audio=False),
    "music.mp3": probe_json(4.0, has_video=False),
}


@pytest.fixture(autouse=True)
def ffmpeg_on_path():
    with patch("clipstudio.ffutil.shutil.which", return_value="/usr/bin/ffmpeg"):
        yield


@pytest.fixture
def fake():
    encoder = FakeEncoder(MEDIA)
    with patch("clipstudio.ffutil.subprocess.run", side_effect=encoder):
        yield encoder


def _temp_files(editor):
    return sorted(p.name for p in editor.config.resolved_temp_dir.iterdir())


class TestValidation:
    @pytest.mark.parametrize(
        "call",
        [
            lambda e: e.cut("base.mp4", 10, 5),
            lambda e: e.cut("base.mp4", -1, 5),
            lambda e: e.change_speed("base.mp4", 0, 5, 0),
            lambda e: e.merge_overlay("base.mp4", "insert.mp4", -3),
            lambda e: e.add_audio("base.mp4", "music.mp3", volume=150),
            lambda e: e.add_audio("base.mp4", "music.mp3", placement=Placement(start=3.0)),
            lambda e: e.cut("base.mp4", 0, 5, profile="draft"),
        ],
    )
    def test_invalid_request_spawns_nothing(self, editor, call):
        with patch("clipstudio.ffutil.subprocess.run") as mock_run:
            with pytest.raises(InvalidParameters):
                call(editor)
        mock_run.assert_not_called()
        assert len(editor.registry) == 0
        assert _temp_files(editor) == []

    def test_export_needs_output(self, editor, fake):
        with pytest.raises(InvalidParameters, match="output path"):
            editor.cut("base.mp4", 0, 5, profile="export")
        assert fake.commands == []

    def test_ffmpeg_missing(self, editor, fake):
        with patch("clipstudio.ffutil.shutil.which", return_value=None):
            with pytest.raises(FFmpegNotFoundError):
                editor.cut("base.mp4", 0, 5)
        assert fake.commands == []

    def test_unreadable_input(self, editor, fake):
        with pytest.raises(ProbeError):
            editor.cut("missing.mp4", 0, 5)
        assert fake.ffmpeg_commands == []

    def test_point_past_end_found_after_probe(self, editor, fake):
        with pytest.raises(InvalidParameters, match="past the end"):
            editor.merge_sequential("base.mp4", "insert.mp4", 45)
        assert fake.ffmpeg_commands == []


class TestPreviewJobs:
    def test_cut_preview_is_registered(self, editor, fake):
        result = editor.cut("base.mp4", 5, 10)
        assert result.ephemeral is True
        assert result.profile == "preview"
        assert result.output_path.exists()
        assert result.output_path.name.startswith("clipstudio-cut-preview-")
        assert result.output_path in editor.registry
        assert result.expected_duration == 5.0
        assert len(fake.ffmpeg_commands) == 1

    def test_discard_deletes_preview(self, editor, fake):
        result = editor.cut("base.mp4", 5, 10)
        assert editor.discard(result.output_path) is True
        assert not result.output_path.exists()
        assert result.output_path not in editor.registry

    def test_discard_unknown_path_left_alone(self, editor, tmp_path):
        keep = tmp_path / "mine.mp4"
        keep.write_bytes(b"x")
        assert editor.discard(keep) is True
        assert keep.exists()

    def test_discard_leaves_running_job_intermediate(self, editor):
        part = editor.config.resolved_temp_dir / "clipstudio-speed-20261019-000000-abcd-part1.mp4"
        part.parent.mkdir(parents=True, exist_ok=True)
        part.write_bytes(b"x")
        editor.registry.register(part, "speed-20261019-000000-abcd")
        assert editor.discard(part) is True
        assert part.exists()
        assert part in editor.registry

    def test_discard_deletes_thumbnail(self, editor, fake):
        thumb = editor.thumbnail("base.mp4")
        assert editor.discard(thumb) is True
        assert not thumb.exists()

    def test_shutdown_purges_previews(self, editor, fake):
        editor.cut("base.mp4", 5, 10)
        editor.change_speed("base.mp4", 0, 10, 2.0)
        assert editor.shutdown() == 2
        assert _temp_files(editor) == []

    def test_preview_with_output_is_not_ephemeral(self, editor, fake, tmp_path):
        out = tmp_path / "preview.mp4"
        result = editor.cut("base.mp4", 0, 5, output=out)
        assert result.ephemeral is False
        assert out not in editor.registry
        assert out.exists()


class TestExportJobs:
    def test_merge_sequential(self, editor, fake, tmp_path):
        out = tmp_path / "merged.mp4"
        result = editor.merge_sequential("base.mp4", "insert.mp4", 10, profile="export", output=out)

        assert result.output_path == out
        assert result.ephemeral is False
        assert result.expected_duration == 35.0
        assert result.segment_count == 3
        commands = fake.ffmpeg_commands
        assert len(commands) == 4
        assert "+faststart" in commands[-1]
        assert all("medium" in c for c in commands[:3])
        assert len(editor.registry) == 0
        assert _temp_files(editor) == []

    def test_merge_overlay_keeps_length(self, editor, fake, tmp_path):
        result = editor.merge_overlay(
            "base.mp4", "insert.mp4", 28, profile="export", output=tmp_path / "o.mp4"
        )
        assert result.expected_duration == 30.0
        assert result.segment_count == 2

    def test_speed_change(self, editor, fake, tmp_path):
        result = editor.change_speed(
            "base.mp4", 10, 20, 2.0, profile="export", output=tmp_path / "fast.mp4"
        )
        assert result.expected_duration == pytest.approx(25.0)
        assert any("setpts=0.5*PTS" in " ".join(c) for c in fake.ffmpeg_commands)

    def test_add_audio_single_stage(self, editor, fake, tmp_path):
        result = editor.add_audio(
            "base.mp4", "music.mp3", volume=50, loop=True,
            profile="export", output=tmp_path / "scored.mp4",
        )
        assert len(fake.ffmpeg_commands) == 1
        cmd = fake.ffmpeg_commands[0]
        assert cmd[cmd.index("-c:v") + 1] == "copy"
        assert result.segment_count == 1

    def test_add_audio_to_silent_video(self, editor, fake, tmp_path):
        editor.add_audio(
            "silent.mp4", "music.mp3", placement=Placement(2.0, 10.0),
            profile="export", output=tmp_path / "scored.mp4",
        )
        graph = " ".join(fake.ffmpeg_commands[0])
        assert graph.count("anullsrc") == 2

    def test_failure_leaves_no_temp_files(self, editor, tmp_path):
        failing = FakeEncoder(MEDIA, fail_on="part2")
        with patch("clipstudio.ffutil.subprocess.run", side_effect=failing):
            with pytest.raises(TranscodeFailure) as exc:
                editor.change_speed(
                    "base.mp4", 10, 20, 2.0, profile="export", output=tmp_path / "x.mp4"
                )
        assert "Conversion failed!" in str(exc.value)
        assert len(editor.registry) == 0
        assert _temp_files(editor) == []

    def test_failed_preview_output_released(self, editor):
        failing = FakeEncoder(MEDIA, fail_on="-ss")
        with patch("clipstudio.ffutil.subprocess.run", side_effect=failing):
            with pytest.raises(TranscodeFailure):
                editor.cut("base.mp4", 0, 5)
        assert len(editor.registry) == 0

    def test_progress_monotonic(self, editor, fake, tmp_path):
        events = []
        editor.change_speed(
            "base.mp4", 10, 20, 2.0, profile="export", output=tmp_path / "p.mp4",
            on_progress=lambda stage, frac: events.append(frac),
        )
        assert events == sorted(events)
        assert events[0] == 0.0
        assert events[-1] == pytest.approx(1.0)


class TestSupportingOperations:
    def test_probe(self, editor, fake):
        facts = editor.probe("insert.mp4")
        assert facts.has_audio is False
        assert facts.resolution == "640x480"

    def test_thumbnail_is_ephemeral(self, editor, fake):
        thumb = editor.thumbnail("base.mp4")
        assert thumb.suffix == ".jpg"
        assert thumb.exists()
        assert thumb in editor.registry
        editor.shutdown()
        assert not thumb.exists()

    def test_thumbnail_failure_unregisters(self, editor):
        failing = FakeEncoder(MEDIA, fail_on="-frames:v")
        with patch("clipstudio.ffutil.subprocess.run", side_effect=failing):
            with pytest.raises(TranscodeFailure):
                editor.thumbnail("base.mp4")
        assert len(editor.registry) == 0

    def test_waveform(self, editor, fake):
        values = editor.waveform("music.mp3", samples=10)
        assert len(values) == 10
        assert _temp_files(editor) == []
