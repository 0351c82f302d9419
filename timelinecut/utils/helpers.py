"""
Utility functions for Timeline Cut
"""

from __future__ import annotations


def format_duration(seconds: float | int) -> str:
    """
    Format seconds to human readable duration.
    Returns 'H:MM:SS' or 'M:SS' format.
    """
    sec = int(round(seconds))
    m, s = divmod(sec, 60)
    h, m = divmod(m, 60)

    if h:
        return f"{h:d}:{m:02d}:{s:02d}"
    return f"{m:d}:{s:02d}"


def format_timecode(seconds: float) -> str:
    """Format seconds as a ruler label 'HH:MM:SS.mmm'."""
    total_ms = int(round(max(seconds, 0.0) * 1000))
    s, ms = divmod(total_ms, 1000)
    m, s = divmod(s, 60)
    h, m = divmod(m, 60)
    return f"{h:02d}:{m:02d}:{s:02d}.{ms:03d}"


def format_seconds(value: float) -> str:
    """
    Format a time value for an FFmpeg argument.
    Millisecond precision, trailing zeros stripped ('2', '6.5', '0.1').
    """
    text = f"{float(value):.3f}".rstrip("0").rstrip(".")
    if text in ("", "-0"):
        return "0"
    return text


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value between min and max."""
    return max(min_val, min(value, max_val))


def ruler_interval(zoom: float) -> float:
    """Seconds between ruler gridlines at a zoom level (pixels per second)."""
    if zoom < 20:
        return 5.0
    if zoom < 40:
        return 2.0
    return 1.0
