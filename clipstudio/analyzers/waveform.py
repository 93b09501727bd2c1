"""Amplitude envelope of a file's audio, for display."""

import tempfile
from pathlib import Path

import numpy as np

from clipstudio import ffutil
from clipstudio.compiler import Stage
from clipstudio.executor import PipelineExecutor
from clipstudio.models import new_job_id

PCM_SAMPLE_RATE = 8000
INT16_SCALE = 32768.0


def rms_envelope(pcm: bytes, samples: int = 200) -> list[float]:
    """Reduce signed 16-bit little-endian mono PCM to *samples* RMS buckets.

    Values are normalized so the loudest bucket is 1.0; silent input yields
    all zeros. Buckets past the end of short input are 0.
    """
    if samples <= 0:
        raise ValueError("samples must be positive")

    data = np.frombuffer(pcm[: len(pcm) // 2 * 2], dtype="<i2").astype(np.float64)
    per_bucket = max(1, data.size // samples)

    envelope = np.zeros(samples)
    for i in range(samples):
        chunk = data[i * per_bucket:(i + 1) * per_bucket]
        if chunk.size:
            envelope[i] = min(1.0, np.sqrt(np.mean(chunk ** 2)) / INT16_SCALE)

    peak = envelope.max()
    if peak > 0:
        envelope /= peak
    return envelope.tolist()


def generate_waveform(
    input_path: Path,
    samples: int = 200,
    executor: PipelineExecutor | None = None,
    temp_dir: Path | None = None,
) -> list[float]:
    """Decode *input_path* to low-rate PCM and return its RMS envelope."""
    executor = executor or PipelineExecutor()
    owner = new_job_id("waveform")
    raw_path = Path(temp_dir or tempfile.gettempdir()) / f"clipstudio-{owner}.raw"

    executor.registry.register(raw_path, owner)
    try:
        executor.run_stage(
            Stage(
                label="waveform",
                args=ffutil.pcm_args(input_path, raw_path, PCM_SAMPLE_RATE),
                output=raw_path,
            )
        )
        return rms_envelope(raw_path.read_bytes(), samples)
    finally:
        executor.registry.release(owner)
