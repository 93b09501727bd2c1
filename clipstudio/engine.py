"""Orchestrator — the job facade behind every edit operation.

Each operation validates its request, probes the inputs, plans segments,
compiles them into ffmpeg stages and runs those stages, in that order.
Validation happens before any subprocess is spawned.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from clipstudio import ffutil, planner
from clipstudio.analyzers.waveform import generate_waveform
from clipstudio.compiler import Stage, compile_plan
from clipstudio.errors import InvalidParameters
from clipstudio.executor import PipelineExecutor
from clipstudio.manifest import EditorConfig
from clipstudio.models import (
    AddAudioRequest,
    CutRequest,
    EditRequest,
    Job,
    MediaFacts,
    MergeMode,
    MergeRequest,
    Placement,
    QualityProfile,
    SpeedChangeRequest,
    new_job_id,
)
from clipstudio.registry import TempArtifactRegistry, default_registry

logger = logging.getLogger(__name__)

# Registry owner of finished previews and thumbnails, until discarded.
PREVIEW_OWNER = "preview"

ProfileSelector = str | QualityProfile
ProgressCallback = Callable[[str, float], None]


@dataclass
class JobResult:
    job_id: str
    output_path: Path
    profile: str
    ephemeral: bool
    expected_duration: float = 0.0
    segment_count: int = 0


class Editor:
    """Entry point for cut / merge / speed change / add-audio jobs.

    ``preview`` jobs write to a generated temp path that stays registered
    until :meth:`discard` or :meth:`shutdown`; ``export`` jobs write to the
    caller's path with the fast-start flag.
    """

    def __init__(
        self,
        config: EditorConfig | None = None,
        registry: TempArtifactRegistry | None = None,
    ) -> None:
        self.config = config or EditorConfig()
        self.registry = registry if registry is not None else default_registry
        self.executor = PipelineExecutor(self.registry, ffmpeg=self.config.ffmpeg)

    # --- operations -------------------------------------------------------

    def cut(self, path, start, end, profile: ProfileSelector = "preview",
            output=None, on_progress: ProgressCallback | None = None) -> JobResult:
        return self.run(CutRequest(Path(path), start, end), profile, output, on_progress)

    def merge_sequential(self, base_path, insert_path, point,
                         profile: ProfileSelector = "preview", output=None,
                         on_progress: ProgressCallback | None = None) -> JobResult:
        request = MergeRequest(Path(base_path), Path(insert_path), point, MergeMode.SEQUENTIAL)
        return self.run(request, profile, output, on_progress)

    def merge_overlay(self, base_path, insert_path, point,
                      profile: ProfileSelector = "preview", output=None,
                      on_progress: ProgressCallback | None = None) -> JobResult:
        request = MergeRequest(Path(base_path), Path(insert_path), point, MergeMode.OVERLAY)
        return self.run(request, profile, output, on_progress)

    def change_speed(self, path, start, end, factor,
                     profile: ProfileSelector = "preview", output=None,
                     on_progress: ProgressCallback | None = None) -> JobResult:
        request = SpeedChangeRequest(Path(path), start, end, factor)
        return self.run(request, profile, output, on_progress)

    def add_audio(self, video_path, audio_path, volume=100,
                  placement: Placement | None = None, loop: bool = False,
                  profile: ProfileSelector = "preview", output=None,
                  on_progress: ProgressCallback | None = None) -> JobResult:
        request = AddAudioRequest(
            Path(video_path),
            Path(audio_path),
            volume=volume,
            placement=placement or Placement.from_start(),
            loop=loop,
        )
        return self.run(request, profile, output, on_progress)

    # --- shared job path --------------------------------------------------

    def preview_path(self, feature: str, suffix: str = ".mp4") -> Path:
        stamp = int(time.time() * 1000)
        name = f"{self.config.prefix}-{feature}-preview-{stamp}-{secrets.token_hex(4)}{suffix}"
        return self.config.resolved_temp_dir / name

    def run(
        self,
        request: EditRequest,
        profile: ProfileSelector = "preview",
        output: str | Path | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> JobResult:
        """Validate, probe, plan, compile and execute one edit job."""

        def _progress(stage: str, frac: float) -> None:
            if on_progress:
                on_progress(stage, frac)

        def _sub_progress(base: float, span: float):
            """Map the executor's [0,1] onto [base, base+span]."""
            def cb(stage: str, frac: float) -> None:
                _progress(stage, base + frac * span)
            return cb

        request.validate()
        quality = QualityProfile.named(profile)
        if not quality.is_preview and output is None:
            raise InvalidParameters("export jobs need an output path")

        ffutil.check_ffmpeg(self.config.ffmpeg, self.config.ffprobe)

        _progress("Probing media", 0.0)
        facts = [self.probe(asset.path) for asset in request.assets()]

        _progress("Planning segments", 0.05)
        plan = planner.plan(request, facts, self.config.segment_epsilon)

        ephemeral = quality.is_preview and output is None
        job = Job(
            id=new_job_id(request.feature),
            request=request,
            profile=quality,
            output_path=self.preview_path(request.feature) if ephemeral else Path(output),
            is_ephemeral=ephemeral,
            temp_dir=self.config.resolved_temp_dir,
            prefix=self.config.prefix,
        )
        transcode = compile_plan(plan, quality, job)
        logger.info(
            "Job %s: %s, %d segment(s), %d stage(s), %s profile -> %s",
            job.id, request.feature, len(plan.segments), len(transcode.stages),
            quality.name, job.output_path,
        )

        if ephemeral:
            self.registry.register(job.output_path, job.id)
        output_path = self.executor.run(job, transcode, on_progress=_sub_progress(0.1, 0.9))
        if ephemeral:
            # Survives the job; released by discard() or shutdown().
            self.registry.register(output_path, PREVIEW_OWNER)

        return JobResult(
            job_id=job.id,
            output_path=output_path,
            profile=quality.name,
            ephemeral=ephemeral,
            expected_duration=plan.expected_duration,
            segment_count=len(plan.segments),
        )

    # --- supporting operations -------------------------------------------

    def probe(self, path: str | Path) -> MediaFacts:
        return ffutil.probe(Path(path), ffprobe=self.config.ffprobe)

    def thumbnail(self, path: str | Path) -> Path:
        """Grab the first frame of *path* as an ephemeral JPEG."""
        ffutil.check_ffmpeg(self.config.ffmpeg, self.config.ffprobe)
        output = self.preview_path("thumbnail", ".jpg")
        self.registry.register(output, PREVIEW_OWNER)
        try:
            self.executor.run_stage(
                Stage(label="thumbnail", args=ffutil.thumbnail_args(Path(path), output), output=output)
            )
        except Exception:
            self.registry.unregister_and_delete(output)
            raise
        return output

    def waveform(self, path: str | Path, samples: int = 200) -> list[float]:
        ffutil.check_ffmpeg(self.config.ffmpeg, self.config.ffprobe)
        return generate_waveform(
            Path(path), samples, executor=self.executor, temp_dir=self.config.resolved_temp_dir
        )

    def discard(self, path: str | Path) -> bool:
        """Delete a finished preview or thumbnail.

        Anything else, including the intermediates of jobs still running, is
        left alone.
        """
        if Path(path) not in self.registry.owned_by(PREVIEW_OWNER):
            return True
        return self.registry.unregister_and_delete(Path(path))

    def shutdown(self) -> int:
        return self.registry.purge_all()
