"""
Final concatenation of intermediate segments into the output file
"""

from __future__ import annotations

import os
import shutil
from typing import Optional, Sequence

from ..utils.logger import get_logger
from .errors import ConcatenationFailed, ExportFatalError
from .ffmpeg import FFmpegProcessor
from .progress import CancellationToken

LIST_FILE_NAME = "segments.txt"


def concat_list_line(path: str) -> str:
    """One concat demuxer line, with forward slashes and single quotes escaped."""
    normalized = path.replace("\\", "/").replace("'", "'\\''")
    return f"file '{normalized}'"


def write_concat_list(segment_paths: Sequence[str], list_path: str) -> str:
    with open(list_path, "w", encoding="utf-8") as f:
        for path in segment_paths:
            f.write(concat_list_line(os.path.abspath(path)) + "\n")
    return list_path


class ConcatFinalizer:
    """Joins segments with stream copy, re-encoding if the copy fails."""

    def __init__(self, ffmpeg: FFmpegProcessor):
        self.ffmpeg = ffmpeg
        self._logger = get_logger()

    def build_concat_args(self, list_path: str, output_path: str, reencode: bool = False) -> list[str]:
        args = ["-y", "-f", "concat", "-safe", "0", "-i", list_path]
        if reencode:
            args.extend(self.ffmpeg.encode_args())
        else:
            args.extend(["-c", "copy"])
        args.append(output_path)
        return args

    def finalize(
        self,
        segment_paths: Sequence[str],
        output_path: str,
        work_dir: str,
        token: Optional[CancellationToken] = None
    ) -> str:
        """
        Produce output_path from the ordered segments.

        Raises:
            ExportFatalError: No segments, or both concat attempts failed.
            ExportCanceledByUser: Cancelled before the re-encode attempt.
        """
        if not segment_paths:
            raise ExportFatalError("No segments to concatenate", stage="finalize")

        if len(segment_paths) == 1:
            shutil.copyfile(segment_paths[0], output_path)
            self._logger.log_file_operation("copy", output_path, success=True)
            return output_path

        list_path = write_concat_list(segment_paths, os.path.join(work_dir, LIST_FILE_NAME))

        result = self.ffmpeg.run(self.build_concat_args(list_path, output_path))
        if result.ok:
            return output_path

        copy_error = ConcatenationFailed(result.returncode)
        self._logger.log_fallback("finalize", copy_error)
        if token is not None:
            token.raise_if_cancelled("finalize")

        result = self.ffmpeg.run(self.build_concat_args(list_path, output_path, reencode=True))
        if not result.ok:
            raise ExportFatalError(
                f"Concatenation re-encode failed with exit code {result.returncode}",
                stage="finalize"
            ) from copy_error
        return output_path
