"""
Gap and overlap analysis over a set of timeline clips
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from .models import TRACKS, Clip, Gap

# Float noise from split/trim arithmetic is not a gap or a collision
EPSILON = 1e-6


def sort_by_start(clips: Iterable[Clip]) -> list[Clip]:
    """Clips in timeline order (stable for equal start times)."""
    return sorted(clips, key=lambda c: c.start_time)


def clips_on_track(clips: Iterable[Clip], track: int) -> list[Clip]:
    """Clips on one track in timeline order."""
    return sort_by_start(c for c in clips if c.track == track)


def total_duration(clips: Iterable[Clip]) -> float:
    """End of the last clip across all tracks."""
    return max((c.end_time for c in clips), default=0.0)


def detect_gaps(clips: Sequence[Clip]) -> list[Gap]:
    """
    Find uncovered intervals on each track.

    A leading gap is reported when a track does not start at 0, and an
    inter-clip gap wherever a clip starts after everything before it ended.
    The end of the timeline is defined by content, so no trailing gap.
    """
    gaps: list[Gap] = []
    for track in TRACKS:
        cursor = 0.0
        for clip in clips_on_track(clips, track):
            if clip.start_time - cursor > EPSILON:
                gaps.append(Gap(track=track, start=cursor, end=clip.start_time))
            cursor = max(cursor, clip.end_time)
    return gaps


def intervals_overlap(a_start: float, a_end: float, b_start: float, b_end: float) -> bool:
    """Half-open interval intersection with float tolerance."""
    return a_start < b_end - EPSILON and b_start < a_end - EPSILON


def has_overlap(
    clips: Iterable[Clip],
    track: int,
    start: float,
    duration: float,
    exclude_id: Optional[str] = None
) -> bool:
    """True if [start, start+duration) collides with another clip on the track."""
    end = start + duration
    for clip in clips:
        if clip.track != track or clip.id == exclude_id:
            continue
        if intervals_overlap(start, end, clip.start_time, clip.end_time):
            return True
    return False


def find_overlaps(clips: Sequence[Clip]) -> list[tuple[Clip, Clip]]:
    """All colliding same-track pairs, for pre-flight warnings."""
    pairs = []
    for track in TRACKS:
        ordered = clips_on_track(clips, track)
        for i, first in enumerate(ordered):
            for second in ordered[i + 1:]:
                if second.start_time >= first.end_time - EPSILON:
                    break
                pairs.append((first, second))
    return pairs
