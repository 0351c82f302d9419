"""
Logging system for Timeline Cut
Provides structured logging with file and console output
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


class Logger:
    """Centralized logging manager for Timeline Cut."""

    _instance: Optional[Logger] = None
    _initialized: bool = False

    # Log levels mapping
    LEVELS = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }

    # Default log directory
    DEFAULT_LOG_DIR = Path.home() / ".timelinecut" / "logs"

    def __new__(cls) -> Logger:
        """Singleton pattern for logger."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize the logger (only once due to singleton)."""
        if Logger._initialized:
            return

        self._logger = logging.getLogger("TimelineCut")
        self._logger.setLevel(logging.DEBUG)
        self._log_file: Optional[Path] = None
        self._log_dir: Path = self.DEFAULT_LOG_DIR

        # Prevent duplicate handlers
        self._logger.handlers.clear()

        self._setup_console_handler()

        Logger._initialized = True

    def _setup_console_handler(self) -> None:
        """Setup console logging handler."""
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only warnings and above to console

        console_format = logging.Formatter(
            "[%(levelname)s] %(message)s"
        )
        console_handler.setFormatter(console_format)
        self._logger.addHandler(console_handler)

    def enable_file_logging(self, log_dir: Optional[Path] = None) -> Path:
        """
        Enable logging to file.

        Args:
            log_dir: Directory for log files. Uses default if not specified.

        Returns:
            Path to the log file.
        """
        log_dir = log_dir or self.DEFAULT_LOG_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        self._log_dir = log_dir

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self._log_file = log_dir / f"timelinecut_{timestamp}.log"

        file_handler = logging.FileHandler(
            self._log_file, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)

        file_format = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_format)
        self._logger.addHandler(file_handler)

        self.info(f"Log file created: {self._log_file}")
        return self._log_file

    def set_level(self, level: str) -> None:
        """
        Set the logging level.

        Args:
            level: One of 'debug', 'info', 'warning', 'error', 'critical'
        """
        log_level = self.LEVELS.get(level.lower(), logging.INFO)
        self._logger.setLevel(log_level)

    def debug(self, message: str, *args, **kwargs) -> None:
        """Log a debug message."""
        self._logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs) -> None:
        """Log an info message."""
        self._logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        """Log a warning message."""
        self._logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> None:
        """Log an error message."""
        self._logger.error(message, *args, **kwargs)

    def critical(self, message: str, *args, **kwargs) -> None:
        """Log a critical message."""
        self._logger.critical(message, *args, **kwargs)

    def exception(self, message: str, *args, **kwargs) -> None:
        """Log an exception with traceback."""
        self._logger.exception(message, *args, **kwargs)

    def log_ffmpeg_command(self, cmd: list[str]) -> None:
        """Log an FFmpeg command for debugging."""
        cmd_str = " ".join(cmd)
        self.debug(f"FFmpeg command: {cmd_str}")

    def log_export_start(self, output_path: str, resolution: str, clip_count: int) -> None:
        """Log export start with settings."""
        self.info(
            f"Export started: output={output_path}, resolution={resolution}, clips={clip_count}"
        )

    def log_export_plan(self, kind: str, steps: int, canvas: Optional[tuple[int, int]] = None) -> None:
        """Log the chosen encode strategy."""
        size = f", canvas={canvas[0]}x{canvas[1]}" if canvas else ""
        self.info(f"Export plan: {kind}, steps={steps}{size}")

    def log_fallback(self, stage: str, reason: object) -> None:
        """Log a stage giving up on stream copy."""
        self.warning(f"Fallback in {stage}: {reason}, re-encoding")

    def log_export_complete(
        self,
        output_path: str,
        duration_seconds: float,
        success: bool,
        stage: Optional[str] = None,
        segment_index: Optional[int] = None
    ) -> None:
        """Log export completion, with the failing stage and segment if any."""
        status = "SUCCESS" if success else "FAILED"
        context = ""
        if stage:
            context += f", stage={stage}"
        if segment_index is not None:
            context += f", segment={segment_index}"
        self.info(
            f"Export {status}: output={output_path}, duration={duration_seconds:.1f}s{context}"
        )

    def log_state_change(self, old_state: str, new_state: str) -> None:
        """Log an export state machine transition."""
        self.debug(f"Export state: {old_state} -> {new_state}")

    def log_file_operation(self, operation: str, path: str, success: bool = True) -> None:
        """Log a file operation."""
        status = "OK" if success else "FAILED"
        self.debug(f"File {operation} [{status}]: {path}")

    def cleanup_old_logs(self, max_days: int = 7, log_dir: Optional[Path] = None) -> int:
        """
        Remove log files older than max_days.

        Args:
            max_days: Maximum age of log files in days.
            log_dir: Directory to clean. Defaults to the active log directory.

        Returns:
            Number of files removed.
        """
        log_dir = log_dir or self._log_dir
        if not log_dir.exists():
            return 0

        removed = 0
        cutoff = datetime.now().timestamp() - (max_days * 24 * 60 * 60)

        for log_file in log_dir.glob("timelinecut_*.log"):
            try:
                if log_file.stat().st_mtime < cutoff:
                    log_file.unlink()
                    removed += 1
            except OSError:
                pass

        if removed > 0:
            self.info(f"Cleaned up {removed} old log file(s)")

        return removed

    @property
    def log_file_path(self) -> Optional[Path]:
        """Get the current log file path."""
        return self._log_file


# Global logger instance
_logger: Optional[Logger] = None


def get_logger() -> Logger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = Logger()
    return _logger
