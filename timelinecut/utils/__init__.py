"""
Utility functions
"""

from .helpers import clamp, format_duration, format_seconds, format_timecode, ruler_interval

__all__ = ["clamp", "format_duration", "format_seconds", "format_timecode", "ruler_interval"]
