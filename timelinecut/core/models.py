"""
Data models for Timeline Cut
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

MAIN_TRACK = 1
OVERLAY_TRACK = 2
TRACKS = (MAIN_TRACK, OVERLAY_TRACK)

# Resolution policies
RESOLUTION_SOURCE = "source"
RESOLUTION_720P = "720p"
RESOLUTION_1080P = "1080p"

RESOLUTIONS = {
    RESOLUTION_720P: (1280, 720),
    RESOLUTION_1080P: (1920, 1080),
}
RESOLUTION_POLICIES = (RESOLUTION_SOURCE, RESOLUTION_720P, RESOLUTION_1080P)
FALLBACK_RESOLUTION = (1920, 1080)


def validate_resolution(policy: str) -> str:
    """Return the policy unchanged, or raise ValueError if unknown."""
    if policy not in RESOLUTION_POLICIES:
        raise ValueError(
            f"Unknown resolution policy {policy!r}, expected one of {RESOLUTION_POLICIES}"
        )
    return policy


def scale_filter_for(policy: str) -> Optional[str]:
    """Width-anchored scale filter for a policy, None for 'source'."""
    validate_resolution(policy)
    if policy == RESOLUTION_SOURCE:
        return None
    width, _ = RESOLUTIONS[policy]
    return f"scale={width}:-2"


def new_clip_id(prefix: str = "clip") -> str:
    """Generate an opaque unique clip id."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@dataclass
class Clip:
    """A source media file, imported or placed on the timeline."""

    id: str
    path: Optional[str]
    duration: float = 0.0
    in_point: float = 0.0
    out_point: Optional[float] = None
    track: int = MAIN_TRACK
    start_time: float = 0.0
    muted: bool = False
    is_live: bool = False
    name: str = ""
    original_path: str = ""
    source_id: Optional[str] = None

    def __post_init__(self):
        self.duration = max(float(self.duration), 0.0)
        if self.out_point is None:
            self.out_point = self.duration
        if not self.original_path:
            self.original_path = self.path or ""
        if not self.name and self.original_path:
            self.name = Path(self.original_path).name

    @property
    def effective_duration(self) -> float:
        """Playable length of the trim window."""
        if self.out_point and self.out_point > 0:
            return max(self.out_point - self.in_point, 0.0)
        return self.duration

    @property
    def end_time(self) -> float:
        """Timeline time where this clip ends (exclusive)."""
        return self.start_time + self.effective_duration

    @property
    def has_trim(self) -> bool:
        return bool(self.out_point) and self.out_point > self.in_point

    def to_dict(self) -> dict:
        """Serialize to dictionary for project saving."""
        return {
            "id": self.id,
            "path": self.path,
            "original_path": self.original_path,
            "name": self.name,
            "duration": self.duration,
            "in_point": self.in_point,
            "out_point": self.out_point,
            "track": self.track,
            "start_time": self.start_time,
            "muted": self.muted,
            "is_live": self.is_live,
            "source_id": self.source_id,
        }

    @classmethod
    def from_dict(cls, data: dict, duration: Optional[float] = None) -> Clip:
        """Create from dictionary. An explicit duration overrides the stored one."""
        if duration is None:
            duration = data.get("duration", 0.0)
        return cls(
            id=data.get("id") or new_clip_id("timeline"),
            path=data.get("path"),
            duration=duration,
            in_point=float(data.get("in_point", 0.0)),
            out_point=data.get("out_point"),
            track=int(data.get("track", MAIN_TRACK)),
            start_time=max(float(data.get("start_time", 0.0)), 0.0),
            muted=bool(data.get("muted", False)),
            is_live=bool(data.get("is_live", False)),
            name=data.get("name", ""),
            original_path=data.get("original_path", ""),
            source_id=data.get("source_id"),
        )


@dataclass(frozen=True)
class Gap:
    """An uncovered interval on one track."""

    track: int
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> dict:
        return {
            "track": self.track,
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
        }
