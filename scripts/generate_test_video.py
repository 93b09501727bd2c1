#!/usr/bin/env python3
"""Generate synthetic media for exercising ClipStudio end to end.

Produces three files in the output directory:
  base.mp4      30 s, 640x360 @ 30 fps, 440 Hz tone, color changes every 10 s
  insert.mp4     5 s, 320x240 @ 25 fps, no audio track (exercises silence padding)
  music.wav      4 s, 660 Hz tone (shorter than any video, exercises looping)
"""

import subprocess
import sys
from pathlib import Path


def _ffmpeg(*args: str) -> None:
    subprocess.run(["ffmpeg", "-y", "-v", "error", *args], check=True)


def generate_base(output: Path) -> None:
    video_filter = (
        "color=c=blue:s=640x360:d=10:r=30[v0];"
        "color=c=red:s=640x360:d=10:r=30[v1];"
        "color=c=green:s=640x360:d=10:r=30[v2];"
        "[v0][v1][v2]concat=n=3:v=1:a=0[vout];"
        "sine=f=440:d=30[aout]"
    )
    _ffmpeg(
        "-filter_complex", video_filter,
        "-map", "[vout]",
        "-map", "[aout]",
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-shortest",
        str(output),
    )


def generate_insert(output: Path) -> None:
    _ffmpeg(
        "-f", "lavfi",
        "-i", "testsrc=s=320x240:d=5:r=25",
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        "-an",
        str(output),
    )


def generate_music(output: Path) -> None:
    _ffmpeg("-f", "lavfi", "-i", "sine=f=660:d=4", str(output))


def generate_all(out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    generate_base(out_dir / "base.mp4")
    generate_insert(out_dir / "insert.mp4")
    generate_music(out_dir / "music.wav")
    print(f"Generated fixtures in {out_dir}")


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/media")
    generate_all(out)
