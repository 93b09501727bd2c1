"""Runs a job's ffmpeg stages one after another."""

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Callable

from clipstudio.compiler import Stage, TranscodePlan
from clipstudio.errors import FFmpegNotFoundError, OutputMissing, TranscodeFailure
from clipstudio.models import Job
from clipstudio.registry import TempArtifactRegistry, default_registry

logger = logging.getLogger(__name__)

DIAGNOSTIC_CHARS = 1000

ProgressSink = Callable[[str, float], None]


def _tail(stderr: str | bytes | None) -> str:
    if not stderr:
        return ""
    if isinstance(stderr, bytes):
        stderr = stderr.decode(errors="replace")
    return stderr.strip()[-DIAGNOSTIC_CHARS:]


class PipelineExecutor:
    """Runs transcode plans as blocking ffmpeg calls.

    Stages within a job run strictly in order; separate jobs may call
    :meth:`run` from different threads, sharing only the registry.
    """

    def __init__(
        self,
        registry: TempArtifactRegistry | None = None,
        ffmpeg: str = "ffmpeg",
    ) -> None:
        self.registry = registry if registry is not None else default_registry
        self.ffmpeg = ffmpeg

    def run_stage(self, stage: Stage) -> None:
        """Run one invocation; raise TranscodeFailure on a non-zero exit."""
        cmd = [self.ffmpeg, *stage.args]
        logger.debug("ffmpeg [%s]: %s", stage.label, shlex.join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError:
            raise FFmpegNotFoundError(f"{self.ffmpeg} not found on PATH") from None
        if result.returncode != 0:
            raise TranscodeFailure(stage.label, result.returncode, _tail(result.stderr))

    def run(
        self,
        job: Job,
        plan: TranscodePlan,
        on_progress: ProgressSink | None = None,
    ) -> Path:
        """Execute every stage of *plan* and return the verified output path.

        Whatever happens, the job's temporary files are released before this
        returns; on success the final output is kept.
        """

        def _progress(stage: str, frac: float) -> None:
            if on_progress:
                on_progress(stage, frac)

        succeeded = False
        total = len(plan.stages)
        try:
            for i, stage in enumerate(plan.stages):
                _progress(stage.label, i / total)
                if stage.concat_list is not None:
                    list_path, content = stage.concat_list
                    self.registry.register(list_path, job.id)
                    list_path.write_text(content, encoding="utf-8")
                if stage.temporary:
                    self.registry.register(stage.output, job.id)
                self.run_stage(stage)

            output = Path(plan.output)
            if not output.is_file() or output.stat().st_size == 0:
                raise OutputMissing(plan.stages[-1].label, output)

            succeeded = True
            _progress("done", 1.0)
            logger.info("Job %s finished: %s", job.id, output)
            return output
        except TranscodeFailure as e:
            logger.error("Job %s failed: %s", job.id, e)
            raise
        finally:
            keep = (Path(plan.output),) if succeeded else ()
            removed = self.registry.release(job.id, keep=keep)
            logger.debug("Job %s released %d temp file(s)", job.id, removed)
