"""
Background export controller used by the user interface layer
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Iterator, Optional, Sequence

from ..utils.logger import get_logger
from .analysis import detect_gaps
from .config import Config
from .exporter import TimelineExporter
from .models import Clip, Gap, validate_resolution
from .progress import CancellationToken, ProgressCallback, ProgressChannel, ProgressEvent


class ExportController:
    """Runs exports off the calling thread and relays cancel requests."""

    def __init__(
        self,
        exporter: Optional[TimelineExporter] = None,
        config: Optional[Config] = None
    ):
        self.config = config or (exporter.config if exporter else Config())
        self.exporter = exporter or TimelineExporter(config=self.config)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="export")
        self._logger = get_logger()
        self._token: Optional[CancellationToken] = None
        self._channel: Optional[ProgressChannel] = None
        self._future: Optional[Future] = None

    def export_timeline(
        self,
        clips: Sequence[Clip],
        output_path: str,
        resolution: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> Future:
        """
        Start an export in the background.

        Returns a Future resolving to output_path, or raising
        ExportCanceledByUser / ExportFatalError. Progress is delivered to
        on_progress on the export thread and is also available from events().
        """
        resolution = validate_resolution(resolution or self.config.default_resolution)
        snapshot = [replace(c) for c in clips]

        self._token = CancellationToken()
        self._channel = ProgressChannel(on_progress)
        self._logger.info(f"Starting export to {output_path}")
        self._future = self._executor.submit(
            self.exporter.export_timeline,
            snapshot,
            output_path,
            resolution,
            None,
            self._token,
            self._channel
        )
        return self._future

    def cancel_export(self) -> None:
        """Request cancellation of the current export. Safe to call repeatedly."""
        if self._token is not None and not self._token.cancelled:
            self._token.cancel()
            self._logger.info("Export cancellation requested")

    def detect_gaps(self, clips: Sequence[Clip]) -> list[Gap]:
        return detect_gaps(clips)

    def events(self, timeout: Optional[float] = None) -> Iterator[ProgressEvent]:
        """Progress events of the current export, ending with its terminal event."""
        if self._channel is None:
            return iter(())
        return self._channel.events(timeout)

    @property
    def is_running(self) -> bool:
        return self._future is not None and not self._future.done()

    def shutdown(self, wait: bool = True) -> None:
        """Cancel any running export and stop the worker thread."""
        self.cancel_export()
        self._executor.shutdown(wait=wait)
