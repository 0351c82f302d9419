"""
Tests for the timeline model
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from timelinecut.core.analysis import find_overlaps
from timelinecut.core.errors import ClipNotSplittable, SplitTooCloseToEdge
from timelinecut.core.timeline import EDGE_END, EDGE_START, Timeline


@pytest.fixture
def timeline():
    """Timeline with snapping out of the way of explicit positions."""
    tl = Timeline(zoom=200, snap_threshold_px=1)
    tl.set_playhead(500.0)
    return tl


@pytest.fixture
def media(timeline):
    """A 10 second library clip."""
    return timeline.import_media("/media/a.mp4", 10.0)


class TestInsert:
    """Tests for placing clips."""

    def test_insert_creates_placement(self, timeline, media):
        clip = timeline.insert(media.id, 1, 2.0)

        assert clip is not None
        assert clip.id != media.id
        assert clip.source_id == media.id
        assert clip.start_time == 2.0
        assert clip.effective_duration == 10.0
        assert timeline.version == 2

    def test_insert_appends_without_start(self, timeline, media):
        first = timeline.insert(media.id, 1)
        second = timeline.insert(media.id, 1)

        assert first.start_time == 0.0
        assert second.start_time == pytest.approx(10.0)

    def test_insert_unknown_source(self, timeline):
        assert timeline.insert("nope", 1, 0.0) is None
        assert timeline.clips == []

    def test_insert_invalid_track(self, timeline, media):
        assert timeline.insert(media.id, 3, 0.0) is None

    def test_insert_overlap_rejected(self, timeline, media):
        timeline.insert(media.id, 1, 0.0)
        version = timeline.version

        assert timeline.insert(media.id, 1, 5.0) is None
        assert timeline.version == version
        assert len(timeline.clips) == 1

    def test_same_position_other_track(self, timeline, media):
        timeline.insert(media.id, 1, 0.0)
        assert timeline.insert(media.id, 2, 0.0) is not None


class TestTrim:
    """Tests for trim corrections."""

    def test_trim_sets_window(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)

        assert timeline.trim(clip.id, 2.0, 6.0) is True
        assert (clip.in_point, clip.out_point) == (2.0, 6.0)

    def test_out_before_in_corrected(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)

        assert timeline.trim(clip.id, 5.0, 3.0) is True
        assert clip.out_point == pytest.approx(5.1)

    def test_out_past_duration_corrected(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)

        assert timeline.trim(clip.id, 1.0, 50.0) is True
        assert clip.out_point == 10.0

    def test_nan_values_ignored(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)

        assert timeline.trim(clip.id, float("nan"), float("nan")) is True
        assert (clip.in_point, clip.out_point) == (0.0, 10.0)

    def test_trim_limited_by_next_clip(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)
        timeline.trim(clip.id, 0.0, 4.0)
        timeline.insert(media.id, 1, 5.0)

        assert timeline.trim(clip.id, 0.0, 10.0) is True
        assert clip.out_point == pytest.approx(5.0)
        assert find_overlaps(timeline.clips) == []

    def test_trim_live_clip_rejected(self, timeline):
        live = timeline.import_live("Recording")
        placed = timeline.insert(live.id, 1, 0.0)

        assert timeline.trim(placed.id, 0.0, 1.0) is False


class TestReposition:
    """Tests for moving clips."""

    def test_move(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)

        assert timeline.reposition(clip.id, 20.0) is True
        assert clip.start_time == 20.0

    def test_move_to_other_track(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)

        assert timeline.reposition(clip.id, 0.0, track=2) is True
        assert clip.track == 2

    def test_overlap_rejected(self, timeline, media):
        first = timeline.insert(media.id, 1, 0.0)
        second = timeline.insert(media.id, 1, 20.0)

        assert timeline.reposition(second.id, 5.0) is False
        assert second.start_time == 20.0
        assert first.start_time == 0.0

    def test_negative_start_clamped(self, timeline, media):
        clip = timeline.insert(media.id, 1, 5.0)

        assert timeline.reposition(clip.id, -3.0) is True
        assert clip.start_time == 0.0


class TestSnapping:
    """Tests for smart snapping."""

    def test_snap_to_gridline(self):
        timeline = Timeline(zoom=50, snap_threshold_px=8)
        timeline.set_playhead(500.0)

        # 8px at 50px/s is 0.16s; gridlines are 1s apart
        assert timeline.snap_time(10.1, 3.0, 1) == pytest.approx(10.0)

    def test_snap_to_clip_edge(self):
        timeline = Timeline(zoom=50, snap_threshold_px=8)
        timeline.set_playhead(500.0)
        media = timeline.import_media("/media/a.mp4", 10.0)
        timeline.insert(media.id, 1, 0.5)

        assert timeline.snap_time(10.6, 3.0, 1) == pytest.approx(10.5)

    def test_playhead_wins(self):
        timeline = Timeline(zoom=50, snap_threshold_px=8)
        timeline.set_playhead(12.55)

        assert timeline.snap_time(12.45, 2.0, 1) == pytest.approx(12.55)

    def test_end_edge_snaps(self):
        timeline = Timeline(zoom=50, snap_threshold_px=8)
        timeline.set_playhead(6.0)

        # Clip end at 5.9 is pulled to the playhead
        assert timeline.snap_time(3.9, 2.0, 1) == pytest.approx(4.0)

    def test_no_snap_out_of_range(self, timeline):
        assert timeline.snap_time(3.333, 1.0, 1) == pytest.approx(3.333)

    def test_free_reposition_skips_snap(self):
        timeline = Timeline(zoom=50, snap_threshold_px=8)
        media = timeline.import_media("/media/a.mp4", 10.0)
        clip = timeline.insert(media.id, 1, 0.0)

        assert timeline.reposition(clip.id, 20.05, free=True) is True
        assert clip.start_time == pytest.approx(20.05)


class TestResizeEdge:
    """Tests for edge dragging."""

    def test_resize_end(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)

        assert timeline.resize_edge(clip.id, EDGE_END, -4.0) is True
        assert clip.out_point == pytest.approx(6.0)

    def test_resize_start_moves_clip(self, timeline, media):
        clip = timeline.insert(media.id, 1, 5.0)

        assert timeline.resize_edge(clip.id, EDGE_START, 2.0) is True
        assert clip.in_point == pytest.approx(2.0)
        assert clip.start_time == pytest.approx(7.0)
        assert clip.end_time == pytest.approx(15.0)

    def test_below_minimum_rejected(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)

        assert timeline.resize_edge(clip.id, EDGE_END, -9.95) is False
        assert clip.out_point == 10.0

    def test_resize_into_neighbour_rejected(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)
        timeline.trim(clip.id, 0.0, 5.0)
        timeline.insert(media.id, 1, 6.0)

        assert timeline.resize_edge(clip.id, EDGE_END, 3.0) is False
        assert clip.out_point == 5.0

    def test_invalid_edge(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)
        with pytest.raises(ValueError):
            timeline.resize_edge(clip.id, "middle", 1.0)


class TestSplit:
    """Tests for split (Scenario E)."""

    def test_split_round_trip(self, timeline, media):
        """Test the two halves cover exactly the original window."""
        clip = timeline.insert(media.id, 1, 5.0)

        left, right = timeline.split(clip.id, 9.0)

        assert left.id == clip.id
        assert right.id != clip.id
        assert left.out_point == pytest.approx(4.0)
        assert right.in_point == pytest.approx(4.0)
        assert right.out_point == 10.0
        assert right.start_time == pytest.approx(left.end_time)
        assert left.effective_duration + right.effective_duration == pytest.approx(10.0)
        assert find_overlaps(timeline.clips) == []

    def test_split_too_close_to_edge(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)
        version = timeline.version

        with pytest.raises(SplitTooCloseToEdge):
            timeline.split(clip.id, 0.05)
        with pytest.raises(ClipNotSplittable):
            timeline.split(clip.id, 9.99)

        assert len(timeline.clips) == 1
        assert timeline.version == version

    def test_split_unknown_clip(self, timeline):
        with pytest.raises(ClipNotSplittable):
            timeline.split("missing", 1.0)

    def test_split_live_clip(self, timeline):
        live = timeline.import_live("Recording")
        timeline.update_live_duration(live.id, 5.0)
        placed = timeline.insert(live.id, 1, 0.0)

        with pytest.raises(ClipNotSplittable):
            timeline.split(placed.id, 2.0)


class TestLiveRecording:
    """Tests for live recordings."""

    def test_duration_only_grows(self, timeline):
        live = timeline.import_live("Recording")

        assert timeline.update_live_duration(live.id, 3.0) is True
        assert timeline.update_live_duration(live.id, 2.0) is False
        assert timeline.get_media(live.id).duration == 3.0

    def test_finalize_updates_placements(self, timeline):
        live = timeline.import_live("Recording")
        timeline.update_live_duration(live.id, 3.0)
        placed = timeline.insert(live.id, 1, 0.0)

        assert timeline.finalize_live(live.id, "/media/rec.mp4", 4.0) is True

        assert placed.is_live is False
        assert placed.path == "/media/rec.mp4"
        assert placed.effective_duration == 4.0
        assert timeline.update_live_duration(live.id, 6.0) is False

    def test_growth_stops_at_next_clip(self, timeline):
        """Test a placed recording cannot grow over its neighbour."""
        live = timeline.import_live("Recording")
        placed = timeline.insert(live.id, 1, 0.0)
        other = timeline.import_media("/media/b.mp4", 5.0)
        assert timeline.insert(other.id, 1, 3.0) is not None

        assert timeline.update_live_duration(live.id, 10.0) is True

        assert find_overlaps(timeline.clips) == []
        assert placed.end_time == pytest.approx(3.0)
        assert timeline.get_media(live.id).duration == 10.0

    def test_finalize_stops_at_next_clip(self, timeline):
        live = timeline.import_live("Recording")
        timeline.update_live_duration(live.id, 1.0)
        placed = timeline.insert(live.id, 2, 0.0)
        other = timeline.import_media("/media/b.mp4", 5.0)
        timeline.insert(other.id, 2, 2.0)

        timeline.finalize_live(live.id, "/media/rec.mp4", 8.0)

        assert find_overlaps(timeline.clips) == []
        assert placed.effective_duration == pytest.approx(2.0)
        assert placed.is_live is False


class TestMisc:
    """Tests for delete, mute, clear, zoom and serialization."""

    def test_delete_no_ripple(self, timeline, media):
        first = timeline.insert(media.id, 1, 0.0)
        second = timeline.insert(media.id, 1, 10.0)

        assert timeline.delete(first.id) is True
        assert timeline.delete(first.id) is False
        assert second.start_time == 10.0

    def test_mute(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)

        assert timeline.set_muted(clip.id, True) is True
        assert clip.muted is True

    def test_clear_keeps_library(self, timeline, media):
        timeline.insert(media.id, 1, 0.0)
        timeline.clear()

        assert timeline.clips == []
        assert len(timeline.media) == 1

    def test_zoom_limits(self):
        timeline = Timeline()
        for _ in range(30):
            timeline.zoom_in()
        assert timeline.zoom == Timeline.MAX_ZOOM
        for _ in range(30):
            timeline.zoom_out()
        assert timeline.zoom == Timeline.MIN_ZOOM

    def test_snapshot_is_independent(self, timeline, media):
        clip = timeline.insert(media.id, 1, 0.0)
        snapshot = timeline.snapshot()

        timeline.reposition(clip.id, 30.0)

        assert snapshot[0].start_time == 0.0

    def test_round_trip(self, timeline, media):
        timeline.insert(media.id, 1, 0.0)
        timeline.insert(media.id, 2, 3.0)

        restored = Timeline.from_dict(timeline.to_dict())

        assert [c.to_dict() for c in restored.clips] == [c.to_dict() for c in timeline.clips]
        assert restored.total_duration == timeline.total_duration
