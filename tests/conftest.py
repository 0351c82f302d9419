"""
Pytest configuration and fixtures
"""

import pytest
import tempfile
import sys
import os
from pathlib import Path
from typing import Callable, Optional

# Add project root to path for all tests
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from timelinecut.core.ffmpeg import CommandResult


class FakeRunner:
    """
    Stand-in for the ffmpeg/ffprobe process runner.

    Records every invocation, creates the output file (last argument) of
    successful ffmpeg runs, and fails runs matched by fail_when.
    """

    def __init__(self):
        self.calls: list[tuple[str, list[str]]] = []
        self.fail_when: Optional[Callable[[list[str]], bool]] = None
        self.probe_output = '{"streams": [{"width": 1280, "height": 720}]}'
        self.on_call: Optional[Callable[[list[str]], None]] = None

    def __call__(self, executable: str, args: list[str]) -> CommandResult:
        self.calls.append((executable, list(args)))
        if self.on_call is not None:
            self.on_call(args)
        if "ffprobe" in executable:
            return CommandResult(0, self.probe_output)
        if self.fail_when is not None and self.fail_when(args):
            return CommandResult(1, "Error while processing")
        Path(args[-1]).write_bytes(b"fake media")
        return CommandResult(0, "")

    @property
    def ffmpeg_calls(self) -> list[list[str]]:
        return [args for exe, args in self.calls if "ffprobe" not in exe]


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def config(temp_dir):
    """Provide a Config backed by a file inside temp_dir."""
    from timelinecut.core.config import Config
    return Config(config_file=temp_dir / "config.json")


@pytest.fixture
def fake_runner():
    """Provide a recording fake command runner."""
    return FakeRunner()


@pytest.fixture
def ffmpeg(config, fake_runner):
    """Provide an FFmpegProcessor wired to the fake runner."""
    from timelinecut.core.ffmpeg import FFmpegProcessor
    return FFmpegProcessor(config=config, runner=fake_runner)


@pytest.fixture
def make_clip():
    """Factory for placed clips."""
    from timelinecut.core.models import Clip

    def _make(clip_id, start=0.0, duration=10.0, track=1, path=None, **kwargs):
        return Clip(
            id=clip_id,
            path=path if path is not None else f"/media/{clip_id}.mp4",
            duration=duration,
            start_time=start,
            track=track,
            **kwargs
        )

    return _make


@pytest.fixture
def single_track_clips(make_clip):
    """Two adjacent track 1 clips (Scenario A)."""
    return [make_clip("a", 0.0, 10.0), make_clip("b", 10.0, 5.0)]


@pytest.fixture
def two_track_clips(make_clip):
    """Track 1 with a gap plus one overlay (Scenario D)."""
    return [
        make_clip("a", 0.0, 5.0),
        make_clip("b", 8.0, 4.0),
        make_clip("p", 2.0, 3.0, track=2),
    ]


@pytest.fixture(autouse=True)
def reset_logger_singleton():
    """Reset logger singleton between tests to avoid state leakage."""
    from timelinecut.utils import logger
    # Store original state
    original_instance = logger._logger
    original_initialized = logger.Logger._initialized

    yield

    # Reset after test (but keep singleton for efficiency)
    # We don't fully reset to avoid recreating handlers
