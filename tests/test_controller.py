"""
Tests for the background export controller
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from timelinecut.core.controller import ExportController
from timelinecut.core.errors import ExportCanceledByUser
from timelinecut.core.exporter import TimelineExporter
from timelinecut.core.models import Gap
from timelinecut.core.progress import ExportState
from timelinecut.core.timeline import Timeline


@pytest.fixture
def controller(ffmpeg, config):
    ctrl = ExportController(TimelineExporter(ffmpeg, config), config)
    yield ctrl
    ctrl.shutdown()


class TestExportController:
    """Tests for ExportController."""

    def test_export_in_background(self, controller, temp_dir, single_track_clips):
        output = str(temp_dir / "out.mp4")
        received = []

        future = controller.export_timeline(single_track_clips, output, "source", received.append)

        assert future.result(timeout=10) == output
        assert received[-1].state == ExportState.COMPLETE
        assert controller.is_running is False

    def test_events_stream(self, controller, temp_dir, single_track_clips):
        future = controller.export_timeline(single_track_clips, str(temp_dir / "out.mp4"))
        future.result(timeout=10)

        events = list(controller.events(timeout=1))

        assert events[0].message == "Starting export"
        assert events[-1].is_terminal

    def test_default_resolution_from_config(self, controller, config, fake_runner, temp_dir, single_track_clips):
        config.default_resolution = "720p"

        controller.export_timeline(single_track_clips, str(temp_dir / "out.mp4")).result(timeout=10)

        assert "scale=1280:-2" in fake_runner.ffmpeg_calls[0]

    def test_invalid_resolution(self, controller, temp_dir, single_track_clips):
        with pytest.raises(ValueError):
            controller.export_timeline(single_track_clips, str(temp_dir / "out.mp4"), "4k")

    def test_cancel_export(self, controller, fake_runner, temp_dir, single_track_clips):
        fake_runner.on_call = lambda args: controller.cancel_export()

        future = controller.export_timeline(single_track_clips, str(temp_dir / "out.mp4"))

        with pytest.raises(ExportCanceledByUser):
            future.result(timeout=10)
        assert len(fake_runner.ffmpeg_calls) == 1

    def test_cancel_without_export(self, controller):
        # Should not raise
        controller.cancel_export()
        controller.cancel_export()

    def test_snapshot_isolated_from_caller(self, controller, temp_dir, single_track_clips):
        clips = list(single_track_clips)
        future = controller.export_timeline(clips, str(temp_dir / "out.mp4"))
        clips.clear()

        assert future.result(timeout=10)

    def test_detect_gaps(self, controller, two_track_clips):
        assert controller.detect_gaps(two_track_clips) == [Gap(1, 5.0, 8.0), Gap(2, 0.0, 2.0)]

    def test_events_before_export(self, controller):
        assert list(controller.events(timeout=0.01)) == []

    def test_edits_during_export_do_not_reach_plan(self, controller, fake_runner, temp_dir):
        """Test the export works from a copy of the clips it was given."""
        timeline = Timeline()
        first = timeline.insert(timeline.import_media("/media/a.mp4", 10.0).id, 1, 0.0)
        second = timeline.insert(timeline.import_media("/media/b.mp4", 10.0).id, 1, 10.0)

        def trim_during_export(event):
            if event.segment_index == 1:
                timeline.trim(second.id, 2.0, 4.0)

        future = controller.export_timeline(
            timeline.clips, str(temp_dir / "out.mp4"), "source", trim_during_export
        )
        future.result(timeout=10)

        args = fake_runner.ffmpeg_calls[1]
        assert args[args.index("-ss") + 1] == "0"
        assert args[args.index("-to") + 1] == "10"
        assert second.in_point == 2.0
        assert first.start_time == 0.0
