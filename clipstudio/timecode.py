"""Conversions between seconds and HH:MM:SS timecodes."""

import math

from clipstudio.errors import InvalidParameters


def format_duration(seconds: float | None) -> str:
    """Format seconds as ``HH:MM:SS``; missing or NaN values give ``00:00:00``."""
    if not seconds or math.isnan(seconds):
        return "00:00:00"
    h = int(seconds // 3600)
    m = int((seconds % 3600) // 60)
    s = int(seconds % 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def parse_timecode(value: str | float | int) -> float:
    """Parse ``HH:MM:SS``, ``MM:SS`` or plain seconds into seconds.

    Each colon-separated field may carry a fractional part
    (``00:01:02.5`` is 62.5 seconds).
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, str) or not value.strip():
        raise InvalidParameters(f"invalid timecode {value!r}")

    parts = value.strip().split(":")
    if len(parts) > 3:
        raise InvalidParameters(f"invalid timecode {value!r}")
    try:
        fields = [float(p) for p in parts]
    except ValueError:
        raise InvalidParameters(f"invalid timecode {value!r}") from None

    seconds = 0.0
    for f in fields:
        if f < 0:
            raise InvalidParameters(f"invalid timecode {value!r}")
        seconds = seconds * 60 + f
    return seconds
