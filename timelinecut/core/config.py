"""
Configuration management for Timeline Cut
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from ..utils.logger import get_logger
from .models import RESOLUTION_POLICIES, RESOLUTION_SOURCE


class Config:
    """Application configuration manager."""

    DEFAULT_CONFIG_FILE = Path.home() / ".timelinecut_config.json"
    PROJECT_EXTENSION = ".tlcut"

    # Default values
    DEFAULTS = {
        "ffmpeg_path": "ffmpeg",
        "ffprobe_path": "ffprobe",
        "x264_preset": "veryfast",
        "default_resolution": RESOLUTION_SOURCE,
        "snap_threshold_px": 8,
        "timeline_zoom": 50,
        "temp_dir": None,
    }

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or self.DEFAULT_CONFIG_FILE
        self._data: dict[str, Any] = {}
        self._logger = get_logger()
        self.load()

    def load(self) -> None:
        """Load configuration from file."""
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    self._data = json.load(f)
                self._logger.debug(f"Configuration loaded from {self.config_file}")
            except json.JSONDecodeError as e:
                self._logger.warning(f"Invalid JSON in config file: {e}")
                self._data = {}
            except OSError as e:
                self._logger.warning(f"Could not read config file: {e}")
                self._data = {}
        else:
            self._data = {}
            self._logger.debug("No existing config file, using defaults")

    def save(self) -> None:
        """Save configuration to file."""
        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
            self._logger.debug("Configuration saved")
        except OSError as e:
            self._logger.error(f"Could not save config file: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        if default is None:
            default = self.DEFAULTS.get(key)
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value and save."""
        self._data[key] = value
        self.save()

    @property
    def ffmpeg_path(self) -> str:
        return self.get("ffmpeg_path") or self.DEFAULTS["ffmpeg_path"]

    @property
    def ffprobe_path(self) -> str:
        return self.get("ffprobe_path") or self.DEFAULTS["ffprobe_path"]

    @property
    def x264_preset(self) -> str:
        return self.get("x264_preset") or self.DEFAULTS["x264_preset"]

    @property
    def default_resolution(self) -> str:
        """Configured resolution policy, 'source' if the stored value is unknown."""
        value = self.get("default_resolution")
        if value not in RESOLUTION_POLICIES:
            self._logger.warning(f"Unknown resolution policy in config: {value!r}")
            return RESOLUTION_SOURCE
        return value

    @default_resolution.setter
    def default_resolution(self, value: str) -> None:
        if value not in RESOLUTION_POLICIES:
            raise ValueError(f"Unknown resolution policy {value!r}")
        self.set("default_resolution", value)

    @property
    def snap_threshold_px(self) -> float:
        return float(self.get("snap_threshold_px"))

    @property
    def timeline_zoom(self) -> float:
        return float(self.get("timeline_zoom"))

    @property
    def temp_dir(self) -> Optional[str]:
        """Parent directory for export work directories, None for the system default."""
        path = self.get("temp_dir")
        if path and Path(path).is_dir():
            return str(path)
        return None


class ProjectManager:
    """Manages timeline file operations."""

    @staticmethod
    def save_project(timeline, file_path: str) -> bool:
        """
        Save a timeline to file.
        Returns True on success, False on failure.
        """
        logger = get_logger()
        try:
            data = timeline.to_dict()
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            logger.log_file_operation("save", file_path, success=True)
            logger.info(f"Timeline saved: {file_path}")
            return True
        except (OSError, TypeError) as e:
            logger.log_file_operation("save", file_path, success=False)
            logger.error(f"Failed to save timeline: {e}")
            return False

    @staticmethod
    def load_project_data(file_path: str) -> Optional[dict]:
        """
        Load timeline data from file.
        Returns dict on success, None on failure.
        """
        logger = get_logger()
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            logger.log_file_operation("load", file_path, success=True)
            logger.info(f"Timeline loaded: {file_path}")
            return data
        except json.JSONDecodeError as e:
            logger.log_file_operation("load", file_path, success=False)
            logger.error(f"Invalid timeline file format: {e}")
            return None
        except OSError as e:
            logger.log_file_operation("load", file_path, success=False)
            logger.error(f"Failed to load timeline: {e}")
            return None
