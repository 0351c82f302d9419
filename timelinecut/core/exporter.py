"""
Export pipeline: encode plan, segment extraction, composition and finalize
"""

from __future__ import annotations

import os
import shutil
import tempfile
import time
from typing import Optional, Sequence

from ..utils.logger import get_logger
from .analysis import find_overlaps
from .compositor import TrackCompositor
from .concat import ConcatFinalizer
from .config import Config
from .errors import ExportCanceledByUser, ExportError, ExportFatalError, SegmentExtractionFailed
from .ffmpeg import FFmpegProcessor
from .models import RESOLUTION_SOURCE, Clip
from .plan import PLAN_COMPOSITE, EncodePlan, build_encode_plan
from .progress import (
    LEVEL_CANCELED,
    LEVEL_ERROR,
    LEVEL_INFO,
    LEVEL_SUCCESS,
    CancellationToken,
    ExportState,
    ProgressCallback,
    ProgressChannel,
)
from .segments import MODE_COPY, MODE_ENCODE, SegmentExtractor

# Composite exports report progress on a 0-100 scale
COMPOSITE_TOTAL = 100
COMPOSITE_BASE_DONE = 10
COMPOSITE_OVERLAY_DONE = 60
COMPOSITE_FINALIZING = 90

_STAGE_NAMES = {
    ExportState.IDLE: "plan",
    ExportState.STARTED: "plan",
    ExportState.EXTRACTING_SEGMENTS: "extract",
    ExportState.REENCODING_SEGMENTS: "reencode",
    ExportState.COMPOSITING: "composite",
    ExportState.FINALIZING: "finalize",
}


class TimelineExporter:
    """
    Runs one export at a time from a snapshot of timeline clips.

    The caller blocks until the output file is written. Progress goes to a
    ProgressChannel; cancellation is read from a CancellationToken between
    ffmpeg runs.
    """

    def __init__(
        self,
        ffmpeg: Optional[FFmpegProcessor] = None,
        config: Optional[Config] = None
    ):
        self.config = config or (ffmpeg.config if ffmpeg else Config())
        self.ffmpeg = ffmpeg or FFmpegProcessor(self.config)
        self.extractor = SegmentExtractor(self.ffmpeg)
        self.compositor = TrackCompositor(self.ffmpeg, self.extractor)
        self.finalizer = ConcatFinalizer(self.ffmpeg)
        self.state = ExportState.IDLE
        self._logger = get_logger()
        self._channel: Optional[ProgressChannel] = None
        self._position = (0, 0)

    def _set_state(self, state: ExportState) -> None:
        if state != self.state:
            self._logger.log_state_change(self.state.value, state.value)
            self.state = state

    def _publish(self, index: int, total: int, message: str, level: str = LEVEL_INFO) -> None:
        self._position = (index, total)
        self._channel.publish(index, total, message, self.state, level)

    @property
    def _stage(self) -> str:
        return _STAGE_NAMES.get(self.state, "")

    def _make_work_dir(self) -> str:
        prefix = f"timeline_export_{int(time.time() * 1000)}_"
        work_dir = tempfile.mkdtemp(prefix=prefix, dir=self.config.temp_dir)
        self._logger.debug(f"Work directory: {work_dir}")
        return work_dir

    def _cleanup(self, work_dir: Optional[str]) -> None:
        if not work_dir:
            return
        try:
            shutil.rmtree(work_dir)
            self._logger.log_file_operation("remove", work_dir, success=True)
        except OSError as e:
            self._logger.warning(f"Could not remove work directory {work_dir}: {e}")

    def export_timeline(
        self,
        clips: Sequence[Clip],
        output_path: str,
        resolution: str = RESOLUTION_SOURCE,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
        channel: Optional[ProgressChannel] = None
    ) -> str:
        """
        Compile clips into a single H.264/AAC MP4 at output_path.

        Returns output_path on success.

        Raises:
            ExportCanceledByUser: The token was cancelled.
            ExportFatalError: Any stage failed after its fallbacks.
        """
        token = token or CancellationToken()
        self._channel = channel or ProgressChannel()
        if on_progress is not None:
            self._channel.subscribe(on_progress)
        self._position = (0, 0)
        self.state = ExportState.IDLE
        self._set_state(ExportState.STARTED)

        self._logger.log_export_start(output_path, resolution, len(clips))
        start_time = time.time()
        work_dir = None

        try:
            for first, second in find_overlaps(clips):
                self._logger.warning(
                    f"Clips {first.id} and {second.id} overlap on track {first.track}"
                )
            token.raise_if_cancelled("plan")
            plan = build_encode_plan(clips, resolution, probe=self.ffmpeg.probe_resolution)
            self._logger.log_export_plan(plan.kind, len(plan.segments), plan.canvas)
            work_dir = self._make_work_dir()

            if plan.kind == PLAN_COMPOSITE:
                self._run_composite(plan, output_path, work_dir, token)
            else:
                self._run_concat(plan, output_path, work_dir, token)

        except ExportCanceledByUser as e:
            self._cancelled(e)
            raise
        except (ExportError, OSError) as e:
            if token.cancelled:
                cancel = ExportCanceledByUser(self._stage)
                self._cancelled(cancel)
                raise cancel from e
            fatal = self._fatal(e)
            self._set_state(ExportState.FAILED)
            self._logger.error(f"Export failed: {fatal}")
            self._logger.log_export_complete(
                output_path, time.time() - start_time, success=False,
                stage=fatal.stage, segment_index=fatal.segment_index
            )
            self._publish(*self._position, f"Export failed: {fatal}", LEVEL_ERROR)
            if fatal is e:
                raise
            raise fatal from e
        finally:
            self._cleanup(work_dir)

        self._logger.log_export_complete(output_path, time.time() - start_time, success=True)
        return output_path

    def _cancelled(self, error: ExportCanceledByUser) -> None:
        self._set_state(ExportState.CANCELED)
        self._logger.info(str(error))
        self._publish(*self._position, "Export canceled", LEVEL_CANCELED)

    def _fatal(self, error: Exception) -> ExportFatalError:
        if isinstance(error, ExportFatalError):
            return error
        if isinstance(error, ExportError):
            message = error.args[0] if error.args else "Export failed"
            return ExportFatalError(
                message,
                stage=error.stage or self._stage,
                segment_index=error.segment_index
            )
        return ExportFatalError(str(error), stage=self._stage)

    def _run_concat(
        self,
        plan: EncodePlan,
        output_path: str,
        work_dir: str,
        token: CancellationToken
    ) -> None:
        total = len(plan.segments)
        mode = MODE_COPY if plan.copy_first else MODE_ENCODE
        reached = [0]

        def on_segment(index: int, _count: int) -> None:
            # A re-encode pass holds at the copy pass's high-water mark
            reached[0] = max(reached[0], index)
            self._publish(reached[0], total, f"Exported segment {index}/{total}")

        self._set_state(
            ExportState.EXTRACTING_SEGMENTS if mode == MODE_COPY else ExportState.REENCODING_SEGMENTS
        )
        self._publish(0, total, "Starting export")

        try:
            paths = self.extractor.extract_all(
                plan.clips, work_dir, mode, plan.scale_filter, token, on_segment
            )
        except SegmentExtractionFailed as e:
            if mode != MODE_COPY:
                raise
            self._logger.log_fallback(e.stage or "extract", e)
            self.extractor.discard(
                [self.extractor.segment_path(work_dir, i) for i in range(1, total + 1)]
            )
            self._set_state(ExportState.REENCODING_SEGMENTS)
            self._publish(reached[0], total, "Stream copy failed, re-encoding segments")
            paths = self.extractor.extract_all(
                plan.clips, work_dir, MODE_ENCODE, plan.scale_filter, token, on_segment
            )

        token.raise_if_cancelled("finalize")
        self._set_state(ExportState.FINALIZING)
        self.finalizer.finalize(paths, output_path, work_dir, token)

        self._set_state(ExportState.COMPLETE)
        self._publish(total, total, "Export complete", LEVEL_SUCCESS)

    def _run_composite(
        self,
        plan: EncodePlan,
        output_path: str,
        work_dir: str,
        token: CancellationToken
    ) -> None:
        self._set_state(ExportState.COMPOSITING)
        self._publish(0, COMPOSITE_TOTAL, "Starting multi-track export")

        token.raise_if_cancelled("composite")
        base_path = self.compositor.build_base_with_gaps(
            plan.clips,
            plan.total_duration,
            plan.canvas,
            os.path.join(work_dir, "base.mp4")
        )
        self._publish(COMPOSITE_BASE_DONE, COMPOSITE_TOTAL, "Base track rendered")

        token.raise_if_cancelled("composite")
        composite_path = self.compositor.overlay_track2(
            plan.overlays,
            base_path,
            plan.total_duration,
            plan.canvas,
            plan.resolution,
            os.path.join(work_dir, "composite.mp4")
        )
        self._publish(COMPOSITE_OVERLAY_DONE, COMPOSITE_TOTAL, "Overlay track composited")

        token.raise_if_cancelled("finalize")
        self._set_state(ExportState.FINALIZING)
        self._publish(COMPOSITE_FINALIZING, COMPOSITE_TOTAL, "Finalizing")
        self.finalizer.finalize([composite_path], output_path, work_dir, token)

        self._set_state(ExportState.COMPLETE)
        self._publish(COMPOSITE_TOTAL, COMPOSITE_TOTAL, "Export complete", LEVEL_SUCCESS)
