"""
Core modules - Timeline model, export pipeline, FFmpeg operations, Configuration
"""

from .models import Clip, Gap
from .errors import (
    ClipNotSplittable,
    ExportCanceledByUser,
    ExportError,
    ExportFatalError,
    ImportFailure,
    TimelineCutError,
)
from .timeline import Timeline
from .analysis import detect_gaps
from .config import Config, ProjectManager
from .ffmpeg import FFmpegProcessor
from .plan import build_encode_plan
from .progress import CancellationToken, ExportState, ProgressChannel, ProgressEvent
from .exporter import TimelineExporter
from .controller import ExportController

__all__ = [
    "Clip", "Gap", "Timeline", "detect_gaps", "build_encode_plan",
    "Config", "ProjectManager", "FFmpegProcessor",
    "CancellationToken", "ExportState", "ProgressChannel", "ProgressEvent",
    "TimelineExporter", "ExportController",
    "TimelineCutError", "ImportFailure", "ClipNotSplittable",
    "ExportError", "ExportFatalError", "ExportCanceledByUser",
]
