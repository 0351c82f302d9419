"""
Encode plan: decides how a set of timeline clips becomes one output file
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from ..utils.helpers import format_seconds
from ..utils.logger import get_logger
from .analysis import EPSILON, clips_on_track, detect_gaps, total_duration
from .errors import ExportFatalError
from .models import (
    FALLBACK_RESOLUTION,
    MAIN_TRACK,
    OVERLAY_TRACK,
    RESOLUTION_SOURCE,
    RESOLUTIONS,
    Clip,
    scale_filter_for,
    validate_resolution,
)

SEGMENT_EXTRACT = "extract"
SEGMENT_BLACK = "black"

PLAN_CONCAT = "concat"
PLAN_COMPOSITE = "composite"

ResolutionProbe = Callable[[str], tuple[int, int]]


@dataclass
class SegmentStep:
    """One piece of output: a trimmed source clip, or black filler."""

    kind: str
    index: int
    start: float
    duration: float
    clip: Optional[Clip] = None

    @property
    def is_black(self) -> bool:
        return self.kind == SEGMENT_BLACK


@dataclass
class EncodePlan:
    """Everything the exporter needs to run one export."""

    kind: str
    resolution: str
    multi_track: bool
    total_duration: float
    segments: list[SegmentStep] = field(default_factory=list)
    overlays: list[Clip] = field(default_factory=list)
    canvas: Optional[tuple[int, int]] = None
    skipped: list[Clip] = field(default_factory=list)

    @property
    def copy_first(self) -> bool:
        """Stream copy is attempted only when nothing has to be scaled."""
        return self.resolution == RESOLUTION_SOURCE

    @property
    def scale_filter(self) -> Optional[str]:
        return scale_filter_for(self.resolution)

    @property
    def composition(self) -> str:
        return self.kind

    @property
    def extract_segments(self) -> list[SegmentStep]:
        return [s for s in self.segments if s.kind == SEGMENT_EXTRACT]

    @property
    def black_segments(self) -> list[SegmentStep]:
        return [s for s in self.segments if s.kind == SEGMENT_BLACK]

    @property
    def clips(self) -> list[Clip]:
        """Source clips that produce segments, in output order."""
        return [s.clip for s in self.extract_segments if s.clip is not None]

    def describe(self) -> list[str]:
        """Human-readable list of steps, for logs and dry runs."""
        mode = "copy" if self.copy_first else "encode"
        lines = []
        for step in self.segments:
            if step.is_black:
                lines.append(f"black {format_seconds(step.duration)}s at {format_seconds(step.start)}s")
            else:
                verb = "scale" if self.kind == PLAN_COMPOSITE else mode
                lines.append(f"extract segment {step.index} ({step.clip.name or step.clip.id}) {verb}")
        if self.kind == PLAN_COMPOSITE:
            width, height = self.canvas
            lines.append(f"composite base {width}x{height} + {len(self.overlays)} overlay(s)")
            lines.append("finalize 1 segment")
        else:
            lines.append(f"concat {len(self.segments)} segment(s)")
            lines.append(f"finalize {len(self.segments)} segment(s)")
        return lines


def base_pieces(track1_clips: Sequence[Clip], timeline_end: float) -> list[SegmentStep]:
    """
    Main track pieces for the composite base: clips in time order, black
    wherever detect_gaps reports a gap, and black up to timeline_end.
    """
    ordered = clips_on_track(track1_clips, MAIN_TRACK)
    gaps = {round(g.end, 6): g for g in detect_gaps(ordered)}
    pieces: list[SegmentStep] = []
    cursor = 0.0

    for clip in ordered:
        gap = gaps.get(round(clip.start_time, 6))
        if gap is not None:
            pieces.append(SegmentStep(SEGMENT_BLACK, len(pieces) + 1, gap.start, gap.duration))
        pieces.append(SegmentStep(SEGMENT_EXTRACT, len(pieces) + 1, clip.start_time, clip.effective_duration, clip))
        cursor = max(cursor, clip.end_time)

    if timeline_end - cursor > EPSILON:
        pieces.append(SegmentStep(SEGMENT_BLACK, len(pieces) + 1, cursor, timeline_end - cursor))
    return pieces


def target_canvas(
    resolution: str,
    clips: Sequence[Clip],
    probe: Optional[ResolutionProbe] = None
) -> tuple[int, int]:
    """Canvas size for synthesized video: fixed by policy, or probed from the first clip."""
    if resolution in RESOLUTIONS:
        return RESOLUTIONS[resolution]
    first = next((c for c in clips if c.path), None)
    if first is not None and probe is not None:
        return probe(first.path)
    return FALLBACK_RESOLUTION


def _exportable(clips: Sequence[Clip], plan_skipped: list[Clip]) -> list[Clip]:
    usable = []
    for clip in clips:
        if clip.path:
            usable.append(clip)
        else:
            plan_skipped.append(clip)
    return usable


def build_encode_plan(
    clips: Sequence[Clip],
    resolution: str = RESOLUTION_SOURCE,
    probe: Optional[ResolutionProbe] = None
) -> EncodePlan:
    """
    Build the encode plan for a set of timeline clips.

    Single-track timelines, and two-track timelines with one empty track,
    are a plain concatenation of one track's clips in time order (gaps are
    not filled). Timelines using both tracks are composited: a gap-filled
    base from track 1 with track 2 overlaid picture-in-picture.
    """
    logger = get_logger()
    validate_resolution(resolution)

    multi_track = any(c.track == OVERLAY_TRACK for c in clips)
    skipped: list[Clip] = []
    track1 = _exportable(clips_on_track(clips, MAIN_TRACK), skipped)
    track2 = _exportable(clips_on_track(clips, OVERLAY_TRACK), skipped)
    for clip in skipped:
        logger.warning(f"Clip {clip.id} has no media file yet, skipped")

    if multi_track and track1 and track2:
        timeline_end = total_duration(track1 + track2)
        plan = EncodePlan(
            kind=PLAN_COMPOSITE,
            resolution=resolution,
            multi_track=True,
            total_duration=timeline_end,
            segments=base_pieces(track1, timeline_end),
            overlays=track2,
            canvas=target_canvas(resolution, track1, probe),
            skipped=skipped,
        )
    else:
        selected = track1 or track2
        if not selected:
            raise ExportFatalError("No clips with media on the timeline to export", stage="plan")
        segments = [
            SegmentStep(SEGMENT_EXTRACT, i + 1, clip.start_time, clip.effective_duration, clip)
            for i, clip in enumerate(selected)
        ]
        plan = EncodePlan(
            kind=PLAN_CONCAT,
            resolution=resolution,
            multi_track=multi_track,
            total_duration=sum(s.duration for s in segments),
            segments=segments,
            skipped=skipped,
        )

    logger.debug("Encode plan:\n  " + "\n  ".join(plan.describe()))
    return plan
