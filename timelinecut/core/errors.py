"""
Error types for Timeline Cut
"""

from __future__ import annotations

from typing import Optional


class TimelineCutError(Exception):
    """Base class for all Timeline Cut errors."""


class ImportFailure(TimelineCutError):
    """A media file could not be read or located."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        message = f"Cannot import {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ClipNotSplittable(TimelineCutError):
    """Split refused; the timeline is left unchanged."""

    def __init__(self, clip_id: str, reason: str = "clip cannot be split"):
        self.clip_id = clip_id
        self.reason = reason
        super().__init__(f"{clip_id}: {reason}")


class SplitTooCloseToEdge(ClipNotSplittable):
    """One side of the split would be shorter than the minimum clip duration."""


class ExportError(TimelineCutError):
    """An export stage failed."""

    def __init__(
        self,
        message: str,
        stage: str = "",
        segment_index: Optional[int] = None
    ):
        self.stage = stage
        self.segment_index = segment_index
        super().__init__(message)

    @property
    def context(self) -> str:
        """Where the failure happened, for display."""
        parts = []
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.segment_index is not None:
            parts.append(f"segment={self.segment_index}")
        return ", ".join(parts)

    def __str__(self) -> str:
        message = super().__str__()
        context = self.context
        return f"{message} ({context})" if context else message


class SegmentExtractionFailed(ExportError):
    """FFmpeg exited non-zero while producing one segment."""

    def __init__(
        self,
        exit_code: int,
        segment_index: Optional[int] = None,
        stage: str = "extract"
    ):
        self.exit_code = exit_code
        super().__init__(
            f"Segment extraction failed with exit code {exit_code}",
            stage=stage,
            segment_index=segment_index
        )


class ConcatenationFailed(ExportError):
    """Stream-copy concatenation failed."""

    def __init__(self, exit_code: int, stage: str = "finalize"):
        self.exit_code = exit_code
        super().__init__(
            f"Concatenation failed with exit code {exit_code}",
            stage=stage
        )


class ExportFatalError(ExportError):
    """Unrecoverable export failure, after all fallbacks."""


class ExportCanceledByUser(TimelineCutError):
    """Cooperative cancellation was observed. Not a failure."""

    def __init__(self, stage: str = ""):
        self.stage = stage
        message = "Export canceled by user"
        if stage:
            message += f" during {stage}"
        super().__init__(message)
