#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Timeline Cut - two-track timeline export from the command line

Entry point of the application.
Compiles a saved timeline (.tlcut) into a single MP4 with FFmpeg.

Usage:
    python main.py export TIMELINE.tlcut OUTPUT.mp4 [--resolution source|720p|1080p]
    python main.py gaps TIMELINE.tlcut

Features:
    - Stream copy when possible, automatic re-encode fallback
    - Track 2 composited picture-in-picture over track 1
    - Gaps on track 1 filled with black in multi-track exports
    - Ctrl-C cancels the export cleanly

Requires:
    - Python 3.10+
    - ffmpeg, ffprobe

(c) 2025 - MIT License
"""

import argparse
import os
import signal
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from timelinecut.core.config import Config, ProjectManager
from timelinecut.core.controller import ExportController
from timelinecut.core.errors import ExportCanceledByUser, ImportFailure, TimelineCutError
from timelinecut.core.exporter import TimelineExporter
from timelinecut.core.ffmpeg import FFmpegProcessor
from timelinecut.core.models import RESOLUTION_POLICIES, Clip
from timelinecut.core.progress import ProgressEvent
from timelinecut.utils.helpers import format_timecode
from timelinecut.utils.logger import get_logger

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELED = 130


def load_timeline_clips(path: str, ffmpeg: FFmpegProcessor) -> list[Clip]:
    """
    Placed clips of a saved timeline, with missing durations probed.

    Raises:
        ImportFailure: The timeline or one of its media files is unreadable.
    """
    data = ProjectManager.load_project_data(path)
    if data is None:
        raise ImportFailure(path, "not a readable timeline file")

    clips = []
    for item in data.get("clips", []):
        media_path = item.get("path")
        if media_path and not os.path.isfile(media_path):
            raise ImportFailure(media_path, "file not found")
        duration = None
        if media_path and not item.get("duration"):
            duration = ffmpeg.get_duration(media_path)
            if duration <= 0:
                raise ImportFailure(media_path, "could not determine duration")
        clips.append(Clip.from_dict(item, duration=duration))
    return clips


def print_progress(event: ProgressEvent) -> None:
    print(f"[{event.percent:3d}%] {event.message}", flush=True)


def run_export(args: argparse.Namespace, config: Config) -> int:
    logger = get_logger()
    ffmpeg = FFmpegProcessor(config)
    if not ffmpeg.has_ffmpeg:
        logger.warning(f"FFmpeg not found on PATH ({ffmpeg.ffmpeg_path})")

    try:
        clips = load_timeline_clips(args.timeline, ffmpeg)
    except ImportFailure as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED

    controller = ExportController(TimelineExporter(ffmpeg, config), config)

    # Ctrl-C requests cooperative cancellation instead of killing the process
    def handle_sigint(signum, frame):
        print("Canceling export...", file=sys.stderr, flush=True)
        controller.cancel_export()

    previous_handler = signal.signal(signal.SIGINT, handle_sigint)
    try:
        future = controller.export_timeline(clips, args.output, args.resolution, print_progress)
        output = future.result()
    except ExportCanceledByUser:
        print("Export canceled", file=sys.stderr)
        return EXIT_CANCELED
    except TimelineCutError as e:
        print(f"Export failed: {e}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        controller.shutdown()

    print(f"Exported {output}")
    return EXIT_OK


def run_gaps(args: argparse.Namespace, config: Config) -> int:
    ffmpeg = FFmpegProcessor(config)
    try:
        clips = load_timeline_clips(args.timeline, ffmpeg)
    except ImportFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED

    controller = ExportController(TimelineExporter(ffmpeg, config), config)
    try:
        gaps = controller.detect_gaps(clips)
    finally:
        controller.shutdown()

    if not gaps:
        print("No gaps")
    for gap in gaps:
        print(
            f"Track {gap.track}: {format_timecode(gap.start)} - {format_timecode(gap.end)}"
            f" ({gap.duration:.2f}s)"
        )
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timelinecut",
        description="Export two-track timelines with FFmpeg"
    )
    parser.add_argument("--config", help="Path to a configuration file")
    parser.add_argument("--log-file", action="store_true", help="Also write logs to a file")
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Compile a timeline into one MP4 file")
    export.add_argument("timeline", help="Timeline file (.tlcut)")
    export.add_argument("output", help="Output MP4 path")
    export.add_argument(
        "--resolution",
        choices=RESOLUTION_POLICIES,
        default=None,
        help="Output resolution policy (default: from config)"
    )
    export.set_defaults(handler=run_export)

    gaps = sub.add_parser("gaps", help="List uncovered intervals on each track")
    gaps.add_argument("timeline", help="Timeline file (.tlcut)")
    gaps.set_defaults(handler=run_gaps)
    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Initialize logging
    logger = get_logger()
    if args.log_file:
        logger.enable_file_logging()
        logger.cleanup_old_logs(max_days=7)
    logger.info("Timeline Cut starting...")

    config = Config(Path(args.config)) if args.config else Config()
    return args.handler(args, config)


if __name__ == "__main__":
    sys.exit(main())
