"""
Segment extraction: one timeline clip (or black filler) to one intermediate file
"""

from __future__ import annotations

import os
from typing import Callable, Optional, Sequence

from ..utils.helpers import format_seconds
from ..utils.logger import get_logger
from .errors import ExportCanceledByUser, SegmentExtractionFailed
from .ffmpeg import FFmpegProcessor
from .models import Clip
from .progress import CancellationToken

MODE_COPY = "copy"
MODE_ENCODE = "encode"

BLACK_FRAME_RATE = 30


def trim_args(clip: Clip) -> list[str]:
    """Input seeking for the clip's trim window, if it has one."""
    if clip.has_trim:
        return ["-ss", format_seconds(clip.in_point), "-to", format_seconds(clip.out_point)]
    return []


def black_source(duration: float, width: int, height: int) -> str:
    """lavfi source description for solid black video."""
    return f"color=c=black:s={width}x{height}:d={format_seconds(duration)}:r={BLACK_FRAME_RATE}"


class SegmentExtractor:
    """Materializes trimmed clips and black gap fillers as intermediate files."""

    def __init__(self, ffmpeg: FFmpegProcessor):
        self.ffmpeg = ffmpeg
        self._logger = get_logger()

    @staticmethod
    def segment_path(work_dir: str, index: int) -> str:
        return os.path.join(work_dir, f"segment_{index}.mp4")

    def build_extract_args(
        self,
        clip: Clip,
        output_path: str,
        mode: str = MODE_COPY,
        scale_filter: Optional[str] = None
    ) -> list[str]:
        if mode not in (MODE_COPY, MODE_ENCODE):
            raise ValueError(f"Unknown extraction mode {mode!r}")
        if not clip.path:
            raise ValueError(f"Clip {clip.id} has no media file")

        args = ["-y", *trim_args(clip), "-i", clip.path]
        if mode == MODE_COPY:
            args.extend(["-c", "copy"])
        else:
            if scale_filter:
                args.extend(["-vf", scale_filter])
            args.extend(self.ffmpeg.encode_args())
        args.append(output_path)
        return args

    def extract_segment(
        self,
        clip: Clip,
        index: int,
        work_dir: str,
        mode: str = MODE_COPY,
        scale_filter: Optional[str] = None
    ) -> str:
        """
        Write one trimmed clip to segment_<index>.mp4 in work_dir.

        Raises:
            SegmentExtractionFailed: ffmpeg exited non-zero.
        """
        output_path = self.segment_path(work_dir, index)
        args = self.build_extract_args(clip, output_path, mode, scale_filter)
        result = self.ffmpeg.run(args)
        if not result.ok:
            raise SegmentExtractionFailed(result.returncode, segment_index=index)
        self._logger.debug(f"Segment {index} extracted ({mode}): {output_path}")
        return output_path

    def synthesize_black_segment(
        self,
        duration: float,
        width: int,
        height: int,
        output_path: str
    ) -> str:
        """Write solid black 30fps video of the given duration and size."""
        args = [
            "-y", "-f", "lavfi",
            "-i", black_source(duration, width, height),
            *self.ffmpeg.encode_args(),
            output_path
        ]
        result = self.ffmpeg.run(args)
        if not result.ok:
            raise SegmentExtractionFailed(result.returncode, stage="black")
        return output_path

    def extract_all(
        self,
        clips: Sequence[Clip],
        work_dir: str,
        mode: str = MODE_COPY,
        scale_filter: Optional[str] = None,
        token: Optional[CancellationToken] = None,
        on_segment: Optional[Callable[[int, int], None]] = None
    ) -> list[str]:
        """
        Extract every clip in order, one ffmpeg run at a time.

        Cancellation is checked before each run. A failure observed while a
        cancellation is pending is reported as ExportCanceledByUser.
        """
        token = token or CancellationToken()
        stage = "extract" if mode == MODE_COPY else "reencode"
        paths: list[str] = []
        total = len(clips)
        for i, clip in enumerate(clips, start=1):
            token.raise_if_cancelled(stage)
            try:
                paths.append(self.extract_segment(clip, i, work_dir, mode, scale_filter))
            except SegmentExtractionFailed as e:
                if token.cancelled:
                    raise ExportCanceledByUser(stage) from e
                e.stage = stage
                raise
            if on_segment is not None:
                on_segment(i, total)
        return paths

    def discard(self, paths: Sequence[str]) -> None:
        """Delete intermediate segments. Failures are logged only."""
        for path in paths:
            try:
                os.remove(path)
                self._logger.log_file_operation("remove", path, success=True)
            except FileNotFoundError:
                pass
            except OSError as e:
                self._logger.warning(f"Could not remove segment {path}: {e}")
