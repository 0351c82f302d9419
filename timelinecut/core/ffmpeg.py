"""
FFmpeg process execution and media probing for Timeline Cut
"""

from __future__ import annotations

import contextlib
import json
import os
import shutil
import subprocess
import threading
import wave
from dataclasses import dataclass
from typing import Callable, Optional

from mutagen import File as MutagenFile

from ..utils.logger import get_logger
from .config import Config
from .models import FALLBACK_RESOLUTION


@dataclass
class CommandResult:
    """Exit status and captured output of one external process."""

    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, lines: int = 20) -> str:
        """Last lines of output, for error logs."""
        return "\n".join(self.output.strip().splitlines()[-lines:])


CommandRunner = Callable[[str, list[str]], CommandResult]


def run_command(executable: str, args: list[str]) -> CommandResult:
    """Run a process to completion and capture its output."""
    try:
        result = subprocess.run(
            [executable, *args],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace"
        )
    except FileNotFoundError as e:
        return CommandResult(returncode=127, output=str(e))
    except OSError as e:
        return CommandResult(returncode=126, output=str(e))
    return CommandResult(result.returncode, (result.stdout or "") + (result.stderr or ""))


class FFmpegProcessor:
    """Runs ffmpeg/ffprobe through a command runner and probes media files."""

    SUPPORTED_VIDEO = (".mp4", ".mkv", ".mov", ".avi", ".webm")

    def __init__(
        self,
        config: Optional[Config] = None,
        runner: Optional[CommandRunner] = None
    ):
        self.config = config or Config()
        self.runner = runner or run_command
        self._logger = get_logger()
        self._duration_cache: dict[str, float] = {}
        self._cache_lock = threading.Lock()
        self._check_dependencies()

    def _check_dependencies(self) -> None:
        """Verify FFmpeg tools are available."""
        self.has_ffmpeg = shutil.which(self.config.ffmpeg_path) is not None
        self.has_ffprobe = shutil.which(self.config.ffprobe_path) is not None

    @property
    def ffmpeg_path(self) -> str:
        return self.config.ffmpeg_path

    @property
    def ffprobe_path(self) -> str:
        return self.config.ffprobe_path

    def encode_args(self, audio_codec: str = "aac") -> list[str]:
        """Codec arguments for the re-encode path: H.264 + AAC, broad compatibility."""
        return [
            "-c:v", "libx264",
            "-c:a", audio_codec,
            "-preset", self.config.x264_preset,
            "-pix_fmt", "yuv420p",
        ]

    def run(self, args: list[str]) -> CommandResult:
        """Run ffmpeg with the given arguments."""
        cmd = [self.ffmpeg_path, *args]
        self._logger.log_ffmpeg_command(cmd)
        result = self.runner(self.ffmpeg_path, list(args))
        if not result.ok:
            self._logger.warning(f"FFmpeg exited with code {result.returncode}")
            if result.output:
                self._logger.debug(f"FFmpeg output:\n{result.tail()}")
        return result

    def run_ffprobe(self, args: list[str]) -> CommandResult:
        self._logger.log_ffmpeg_command([self.ffprobe_path, *args])
        return self.runner(self.ffprobe_path, list(args))

    def probe_resolution(self, path: str) -> tuple[int, int]:
        """
        Width and height of the first video stream.
        Returns FALLBACK_RESOLUTION (1920x1080) if probing fails.
        """
        result = self.run_ffprobe([
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "json",
            path
        ])
        if result.ok:
            try:
                streams = json.loads(result.output or "{}").get("streams", [])
                if streams:
                    width, height = int(streams[0]["width"]), int(streams[0]["height"])
                    if width > 0 and height > 0:
                        return width, height
            except (ValueError, KeyError, TypeError, AttributeError):
                pass
        self._logger.warning(f"Could not probe resolution of {path}, using fallback")
        return FALLBACK_RESOLUTION

    @staticmethod
    def _sexagesimal(s: str) -> float:
        """Convert 'HH:MM:SS.xx' to seconds."""
        try:
            h, m, sec = s.split(":")
            return int(h) * 3600 + int(m) * 60 + float(sec)
        except Exception:
            return 0.0

    def _get_cache_key(self, path: str) -> str:
        """Generate cache key based on file path and modification time."""
        try:
            mtime = os.path.getmtime(path)
            return f"{path}:{mtime}"
        except Exception:
            return path

    def get_duration(self, path: str) -> float:
        """
        Get media duration in seconds using multiple fallback methods.
        Results are cached to avoid repeated ffprobe calls.
        Returns 0.0 if duration cannot be determined.
        """
        if not os.path.exists(path):
            return 0.0

        cache_key = self._get_cache_key(path)
        with self._cache_lock:
            if cache_key in self._duration_cache:
                return self._duration_cache[cache_key]

        methods = [self._duration_ffprobe_quick, self._duration_ffprobe_json, self._duration_mutagen]
        if path.lower().endswith(".wav"):
            methods.append(self._duration_wave)

        for method in methods:
            duration = method(path)
            if duration > 0:
                with self._cache_lock:
                    self._duration_cache[cache_key] = duration
                return duration

        return 0.0

    def clear_cache(self) -> None:
        """Clear the duration cache."""
        with self._cache_lock:
            self._duration_cache.clear()

    def _duration_ffprobe_quick(self, path: str) -> float:
        """Quick ffprobe duration check."""
        result = self.run_ffprobe([
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=nw=1:nk=1", path
        ])
        out = result.output.strip()
        if result.ok and out and out != "N/A":
            try:
                return float(out)
            except ValueError:
                pass
        return 0.0

    def _duration_ffprobe_json(self, path: str) -> float:
        """FFprobe JSON duration check."""
        result = self.run_ffprobe([
            "-v", "error", "-print_format", "json",
            "-show_entries", "format=duration,stream=duration,stream_tags",
            path
        ])
        if not result.ok:
            return 0.0
        try:
            js = json.loads(result.output or "{}")
            durations = []

            fdur = js.get("format", {}).get("duration")
            if fdur and fdur != "N/A":
                durations.append(float(fdur))

            for s in js.get("streams", []):
                sd = s.get("duration")
                if sd and sd != "N/A":
                    durations.append(float(sd))
                tag_dur = s.get("tags", {}).get("DURATION")
                if tag_dur:
                    durations.append(self._sexagesimal(tag_dur))

            if durations:
                return max(durations)
        except (ValueError, AttributeError):
            pass
        return 0.0

    def _duration_mutagen(self, path: str) -> float:
        """Get duration using mutagen library."""
        try:
            m = MutagenFile(path)
            if m and m.info and hasattr(m.info, "length"):
                return float(m.info.length)
        except Exception:
            pass
        return 0.0

    def _duration_wave(self, path: str) -> float:
        """Get duration for WAV files."""
        try:
            with contextlib.closing(wave.open(path, "rb")) as w:
                frames, rate = w.getnframes(), w.getframerate()
                if rate:
                    return frames / float(rate)
        except Exception:
            pass
        return 0.0

    @staticmethod
    def is_supported_video(path: str) -> bool:
        return path.lower().endswith(FFmpegProcessor.SUPPORTED_VIDEO)

