"""
Timeline model: clips placed on two tracks over time

All mutations go through Timeline. Derived views (gaps, totals) are computed
from a snapshot by the analysis module, nothing derived is cached here.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional

from ..utils.helpers import clamp, ruler_interval
from ..utils.logger import get_logger
from .analysis import EPSILON, clips_on_track, has_overlap, sort_by_start, total_duration
from .errors import ClipNotSplittable, SplitTooCloseToEdge
from .models import MAIN_TRACK, TRACKS, Clip, new_clip_id

MIN_CLIP_DURATION = 0.1

EDGE_START = "start"
EDGE_END = "end"


def _number_or(value: Optional[float], default: float) -> float:
    if value is None:
        return default
    value = float(value)
    return default if math.isnan(value) else value


class Timeline:
    """Owned, versioned aggregate of the media library and placed clips."""

    DEFAULT_ZOOM = 50  # pixels per second
    MIN_ZOOM = 10
    MAX_ZOOM = 200
    ZOOM_STEP = 10
    DEFAULT_SNAP_THRESHOLD_PX = 8

    def __init__(
        self,
        zoom: float = DEFAULT_ZOOM,
        snap_threshold_px: float = DEFAULT_SNAP_THRESHOLD_PX
    ):
        self._media: dict[str, Clip] = {}
        self._clips: dict[str, Clip] = {}
        self._version = 0
        self.playhead = 0.0
        self.zoom = clamp(zoom, self.MIN_ZOOM, self.MAX_ZOOM)
        self.snap_threshold_px = snap_threshold_px
        self._logger = get_logger()

    # ------------------------------------------------------------------
    # Views

    @property
    def version(self) -> int:
        """Incremented on every committed mutation."""
        return self._version

    @property
    def clips(self) -> list[Clip]:
        """Placed clips ordered by start time."""
        return sort_by_start(self._clips.values())

    @property
    def media(self) -> list[Clip]:
        """Imported library clips, in import order."""
        return list(self._media.values())

    def get(self, clip_id: str) -> Optional[Clip]:
        return self._clips.get(clip_id)

    def get_media(self, clip_id: str) -> Optional[Clip]:
        return self._media.get(clip_id)

    def track_clips(self, track: int) -> list[Clip]:
        return clips_on_track(self._clips.values(), track)

    def track_end(self, track: int) -> float:
        return total_duration(self.track_clips(track))

    @property
    def total_duration(self) -> float:
        return total_duration(self._clips.values())

    def snapshot(self) -> list[Clip]:
        """Independent copies of the placed clips, for export."""
        return [replace(c) for c in self.clips]

    def _commit(self, action: str, clip_id: str = "") -> None:
        self._version += 1
        self._logger.debug(f"Timeline v{self._version}: {action} {clip_id}".rstrip())

    def _other_clips(self, clip: Clip) -> list[Clip]:
        return [c for c in self._clips.values() if c.id != clip.id]

    # ------------------------------------------------------------------
    # Library

    def import_media(
        self,
        path: str,
        duration: float,
        original_path: Optional[str] = None,
        name: Optional[str] = None
    ) -> Clip:
        """Add an imported file to the media library."""
        clip = Clip(
            id=new_clip_id("clip"),
            path=path,
            duration=duration,
            original_path=original_path or path,
            name=name or "",
        )
        self._media[clip.id] = clip
        self._commit("import", clip.id)
        return clip

    def import_live(self, name: str) -> Clip:
        """Register an in-progress recording. It has no file until finalized."""
        clip = Clip(id=new_clip_id("clip"), path=None, duration=0.0, is_live=True, name=name)
        self._media[clip.id] = clip
        self._commit("import-live", clip.id)
        return clip

    def _live_family(self, clip_id: str) -> list[Clip]:
        """A live library clip and all of its placements."""
        source = self._media.get(clip_id)
        if source is None:
            placed = self._clips.get(clip_id)
            if placed is None:
                return []
            source = self._media.get(placed.source_id or "", placed)
        family = [source]
        family.extend(c for c in self._clips.values() if c.source_id == source.id)
        return family

    def _grow(self, clip: Clip, duration: float) -> None:
        """Set a live clip's length. Placements stop at the next clip on their track."""
        out_point = duration
        if clip.id in self._clips:
            next_start = self._next_start(clip)
            if next_start is not None:
                out_point = min(out_point, clip.in_point + next_start - clip.start_time)
            if out_point <= clip.in_point + EPSILON:
                return
        clip.duration = duration
        clip.out_point = out_point

    def update_live_duration(self, clip_id: str, duration: float) -> bool:
        """Grow a live recording. Durations never shrink."""
        family = self._live_family(clip_id)
        if not family or not family[0].is_live:
            return False
        if duration < family[0].duration:
            return False
        for clip in family:
            self._grow(clip, duration)
        self._commit("live-grow", family[0].id)
        return True

    def finalize_live(self, clip_id: str, path: str, duration: float) -> bool:
        """Attach the recorded file and turn the live clip into a normal one."""
        family = self._live_family(clip_id)
        if not family or not family[0].is_live:
            return False
        for clip in family:
            clip.path = path
            clip.original_path = path
            self._grow(clip, max(duration, 0.0))
            clip.is_live = False
        self._commit("live-finalize", family[0].id)
        return True

    # ------------------------------------------------------------------
    # Mutations

    def insert(
        self,
        source_id: str,
        track: int = MAIN_TRACK,
        start_time: Optional[float] = None
    ) -> Optional[Clip]:
        """
        Place a library clip on a track.

        Without a start time the clip goes after the last clip on that track.
        Returns None, leaving the timeline untouched, if the source is
        unknown, the track is invalid, or the position is occupied.
        """
        source = self._media.get(source_id)
        if source is None or track not in TRACKS:
            self._logger.debug(f"Insert ignored: source={source_id}, track={track}")
            return None

        if start_time is None:
            start_time = self.track_end(track)
        start_time = max(float(start_time), 0.0)

        clip = Clip(
            id=new_clip_id("timeline"),
            path=source.path,
            duration=source.duration,
            in_point=0.0,
            out_point=source.duration,
            track=track,
            start_time=start_time,
            is_live=source.is_live,
            name=source.name,
            original_path=source.original_path,
            source_id=source.id,
        )
        if has_overlap(self._clips.values(), track, start_time, clip.effective_duration):
            self._logger.debug(f"Insert rejected, position occupied: track={track}, start={start_time}")
            return None

        self._clips[clip.id] = clip
        self._commit("insert", clip.id)
        return clip

    def trim(
        self,
        clip_id: str,
        in_point: Optional[float] = None,
        out_point: Optional[float] = None
    ) -> bool:
        """
        Set the trim window, correcting out-of-range values instead of rejecting them.

        Returns False only when the clip is unknown or live, or when even the
        shortest corrected window would run into the next clip on the track.
        """
        clip = self._clips.get(clip_id)
        if clip is None or clip.is_live or clip.duration <= 0:
            return False

        duration = clip.duration
        min_length = min(MIN_CLIP_DURATION, duration)

        new_in = clamp(_number_or(in_point, 0.0), 0.0, duration - min_length)
        new_out = _number_or(out_point, duration)
        if new_out - new_in < min_length:
            new_out = new_in + min_length
        if new_out > duration:
            new_out = duration

        next_start = self._next_start(clip)
        if next_start is not None and clip.start_time + (new_out - new_in) > next_start + EPSILON:
            allowed = next_start - clip.start_time
            if allowed < min_length - EPSILON:
                self._logger.debug(f"Trim rejected, no room before next clip: {clip_id}")
                return False
            new_out = new_in + allowed

        clip.in_point, clip.out_point = new_in, new_out
        self._commit("trim", clip_id)
        return True

    def _next_start(self, clip: Clip) -> Optional[float]:
        starts = [
            c.start_time for c in self._other_clips(clip)
            if c.track == clip.track and c.start_time >= clip.start_time - EPSILON
        ]
        return min(starts, default=None)

    def reposition(
        self,
        clip_id: str,
        new_start_time: float,
        track: Optional[int] = None,
        free: bool = False
    ) -> bool:
        """
        Move a clip, optionally to the other track.

        Smart snapping applies unless free positioning is requested. A move
        that would overlap another clip is rejected and the clip stays put.
        """
        clip = self._clips.get(clip_id)
        if clip is None:
            return False
        destination = clip.track if track is None else track
        if destination not in TRACKS:
            return False

        candidate = max(float(new_start_time), 0.0)
        if not free:
            candidate = max(
                self.snap_time(candidate, clip.effective_duration, destination, exclude_id=clip.id),
                0.0
            )

        if has_overlap(
            self._clips.values(), destination, candidate, clip.effective_duration, exclude_id=clip.id
        ):
            self._logger.debug(f"Reposition rejected, overlap: {clip_id} -> {candidate:.3f}s")
            return False

        clip.start_time = candidate
        clip.track = destination
        self._commit("reposition", clip_id)
        return True

    def resize_edge(self, clip_id: str, edge: str, delta: float) -> bool:
        """
        Drag one edge of a clip by delta seconds.

        Moving the start edge trims the head and shifts start_time by the
        same amount. Results under the minimum duration, or overlapping
        another clip, are rejected with the clip unchanged.
        """
        if edge not in (EDGE_START, EDGE_END):
            raise ValueError(f"edge must be '{EDGE_START}' or '{EDGE_END}', got {edge!r}")

        clip = self._clips.get(clip_id)
        if clip is None or clip.is_live:
            return False

        new_in, new_out, new_start = clip.in_point, clip.out_point, clip.start_time
        if edge == EDGE_START:
            new_in = max(clip.in_point + delta, 0.0)
            applied = new_in - clip.in_point
            if clip.start_time + applied < 0:
                applied = -clip.start_time
                new_in = clip.in_point + applied
            new_start = clip.start_time + applied
        else:
            new_out = min(clip.out_point + delta, clip.duration)

        length = new_out - new_in
        if length < MIN_CLIP_DURATION - EPSILON:
            self._logger.debug(f"Resize rejected, {length:.3f}s is below minimum: {clip_id}")
            return False
        if has_overlap(self._clips.values(), clip.track, new_start, length, exclude_id=clip.id):
            self._logger.debug(f"Resize rejected, overlap: {clip_id}")
            return False

        clip.in_point, clip.out_point, clip.start_time = new_in, new_out, new_start
        self._commit(f"resize-{edge}", clip_id)
        return True

    def split(self, clip_id: str, at_time: float) -> tuple[Clip, Clip]:
        """
        Split a clip at a timeline time.

        The original clip keeps the left half; a new clip holding the right
        half is placed immediately after it on the same track.

        Raises:
            ClipNotSplittable: unknown or live clip.
            SplitTooCloseToEdge: a side would be shorter than MIN_CLIP_DURATION.
        """
        clip = self._clips.get(clip_id)
        if clip is None:
            raise ClipNotSplittable(clip_id, "clip is not on the timeline")
        if clip.is_live:
            raise ClipNotSplittable(clip_id, "live recordings cannot be split")

        split_point = clip.in_point + (at_time - clip.start_time)
        if (
            split_point - clip.in_point < MIN_CLIP_DURATION - EPSILON
            or clip.out_point - split_point < MIN_CLIP_DURATION - EPSILON
        ):
            raise SplitTooCloseToEdge(
                clip_id,
                f"split at {split_point:.3f}s leaves a part shorter than {MIN_CLIP_DURATION}s"
            )

        original_out = clip.out_point
        right = Clip(
            id=new_clip_id("timeline"),
            path=clip.path,
            duration=clip.duration,
            in_point=split_point,
            out_point=original_out,
            track=clip.track,
            start_time=clip.start_time + (split_point - clip.in_point),
            muted=clip.muted,
            name=clip.name,
            original_path=clip.original_path,
            source_id=clip.source_id,
        )
        clip.out_point = split_point
        self._clips[right.id] = right
        self._commit("split", clip_id)
        return clip, right

    def delete(self, clip_id: str) -> bool:
        """Remove a clip. Other clips keep their positions (no ripple)."""
        if self._clips.pop(clip_id, None) is None:
            return False
        self._commit("delete", clip_id)
        return True

    def set_muted(self, clip_id: str, muted: bool) -> bool:
        clip = self._clips.get(clip_id)
        if clip is None:
            return False
        clip.muted = bool(muted)
        self._commit("mute" if muted else "unmute", clip_id)
        return True

    def clear(self) -> None:
        """Remove every placed clip. The media library is kept."""
        self._clips.clear()
        self._commit("clear")

    # ------------------------------------------------------------------
    # View state and snapping

    def set_playhead(self, seconds: float) -> None:
        self.playhead = max(float(seconds), 0.0)

    def set_zoom(self, px_per_second: float) -> None:
        self.zoom = clamp(px_per_second, self.MIN_ZOOM, self.MAX_ZOOM)

    def zoom_in(self) -> None:
        self.set_zoom(self.zoom + self.ZOOM_STEP)

    def zoom_out(self) -> None:
        self.set_zoom(self.zoom - self.ZOOM_STEP)

    def snap_time(
        self,
        candidate: float,
        duration: float,
        track: int,
        exclude_id: Optional[str] = None
    ) -> float:
        """
        Snap a clip start time to nearby reference points.

        Sources in priority order: playhead, nearest ruler gridline, edges of
        other clips on the same track. Both edges of the moving clip are
        tested against each source; the first source with a match wins.
        """
        threshold = self.snap_threshold_px / self.zoom
        interval = ruler_interval(self.zoom)
        end = candidate + duration

        edges = []
        for other in self.track_clips(track):
            if other.id != exclude_id:
                edges.extend((other.start_time, other.end_time))

        sources = [
            [self.playhead],
            [round(candidate / interval) * interval, round(end / interval) * interval],
            edges,
        ]
        for points in sources:
            snapped = self._snap_to(candidate, duration, points, threshold)
            if snapped is not None:
                return snapped
        return candidate

    @staticmethod
    def _snap_to(
        start: float,
        duration: float,
        points: list[float],
        threshold: float
    ) -> Optional[float]:
        matches = []
        for point in points:
            for offset in (0.0, duration):
                distance = abs(start + offset - point)
                if distance <= threshold:
                    matches.append((distance, point - offset))
        if not matches:
            return None
        return min(matches, key=lambda m: m[0])[1]

    # ------------------------------------------------------------------
    # Serialization

    def to_dict(self) -> dict:
        """Serialize library and placed clips."""
        return {
            "media": [c.to_dict() for c in self._media.values()],
            "clips": [c.to_dict() for c in self.clips],
            "playhead": self.playhead,
            "zoom": self.zoom,
        }

    @classmethod
    def from_dict(cls, data: dict, **kwargs) -> Timeline:
        """Rebuild a timeline from to_dict() output."""
        timeline = cls(zoom=data.get("zoom", cls.DEFAULT_ZOOM), **kwargs)
        timeline.playhead = max(float(data.get("playhead", 0.0)), 0.0)
        for item in data.get("media", []):
            clip = Clip.from_dict(item)
            timeline._media[clip.id] = clip
        for item in data.get("clips", []):
            clip = Clip.from_dict(item)
            timeline._clips[clip.id] = clip
        return timeline
