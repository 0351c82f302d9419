"""
Two-track composition: gap-filled base from track 1, track 2 overlaid picture-in-picture
"""

from __future__ import annotations

from typing import Optional, Sequence

from ..utils.helpers import format_seconds
from ..utils.logger import get_logger
from .analysis import clips_on_track
from .errors import SegmentExtractionFailed
from .ffmpeg import FFmpegProcessor
from .filtergraph import FilterGraph, Stream, Trim
from .models import MAIN_TRACK, OVERLAY_TRACK, Clip, scale_filter_for
from .plan import base_pieces
from .segments import SegmentExtractor, black_source

# Picture-in-picture width as a fraction of the canvas width
PIP_SCALE = 0.25
PIP_MARGIN = 10

VIDEO_OUT = "vout"
AUDIO_OUT = "aout"


def pip_width(canvas_width: int) -> int:
    """Overlay width: a quarter of the canvas, rounded down to an even number."""
    width = int(canvas_width * PIP_SCALE)
    return max(2, width - width % 2)


def _trim_for(clip: Clip) -> Optional[Trim]:
    if clip.has_trim:
        return Trim(clip.in_point, clip.out_point)
    return None


class TrackCompositor:
    """Builds and runs the base and overlay ffmpeg passes of a composite export."""

    def __init__(self, ffmpeg: FFmpegProcessor, extractor: Optional[SegmentExtractor] = None):
        self.ffmpeg = ffmpeg
        self.extractor = extractor or SegmentExtractor(ffmpeg)
        self._logger = get_logger()

    def build_base_graph(
        self,
        track1_clips: Sequence[Clip],
        total_duration: float,
        canvas: tuple[int, int],
        output_path: str
    ) -> list[str]:
        """ffmpeg arguments for the base pass: clips and black fillers concatenated."""
        width, height = canvas
        graph = FilterGraph()
        videos: list[Stream] = []
        audios: list[Stream] = []

        for piece in base_pieces(track1_clips, total_duration):
            if piece.is_black:
                index = graph.add_input(black_source(piece.duration, width, height), lavfi=True)
                videos.append(graph.setsar(graph.video(index)))
                continue

            clip = piece.clip
            index = graph.add_input(clip.path, trim=_trim_for(clip))
            scaled = graph.scale(graph.video(index), width, height)
            videos.append(graph.setsar(scaled))
            if not clip.muted:
                audios.append(graph.adelay(graph.audio(index), piece.start))

        graph.concat(videos, video=1, audio=0, output=VIDEO_OUT)
        maps = ["-map", Stream(VIDEO_OUT).ref()]
        if audios:
            graph.amix(audios, duration="longest", output=AUDIO_OUT)
            maps.extend(["-map", Stream(AUDIO_OUT).ref()])

        return [
            "-y",
            *graph.input_args(),
            "-filter_complex", graph.render(),
            *maps,
            *self.ffmpeg.encode_args(),
            output_path
        ]

    def build_overlay_graph(
        self,
        track2_clips: Sequence[Clip],
        base_path: str,
        canvas: tuple[int, int],
        resolution: str,
        output_path: str
    ) -> list[str]:
        """
        ffmpeg arguments for the overlay pass.

        Each track 2 clip is shifted to its timeline position, scaled to a
        quarter of the canvas width and shown in the bottom-right corner
        between its start and end. Base audio is copied if present.
        """
        overlays = clips_on_track(track2_clips, OVERLAY_TRACK)
        if not overlays:
            scale_filter = scale_filter_for(resolution)
            if scale_filter:
                return ["-y", "-i", base_path, "-vf", scale_filter,
                        *self.ffmpeg.encode_args(audio_codec="copy"), output_path]
            return ["-y", "-i", base_path, "-c", "copy", output_path]

        graph = FilterGraph()
        base_index = graph.add_input(base_path)
        current = graph.video(base_index)
        overlay_width = pip_width(canvas[0])

        for n, clip in enumerate(overlays, start=1):
            index = graph.add_input(clip.path, trim=_trim_for(clip))
            shifted = graph.setpts(graph.video(index), clip.start_time)
            small = graph.scale(shifted, overlay_width, -2)
            enable = f"gte(t,{format_seconds(clip.start_time)})*lt(t,{format_seconds(clip.end_time)})"
            current = graph.overlay(
                current,
                small,
                x=f"W-w-{PIP_MARGIN}",
                y=f"H-h-{PIP_MARGIN}",
                enable=enable,
                output=VIDEO_OUT if n == len(overlays) else None
            )

        return [
            "-y",
            *graph.input_args(),
            "-filter_complex", graph.render(),
            "-map", Stream(VIDEO_OUT).ref(),
            "-map", f"{base_index}:a?",
            *self.ffmpeg.encode_args(audio_codec="copy"),
            output_path
        ]

    def build_base_with_gaps(
        self,
        track1_clips: Sequence[Clip],
        total_duration: float,
        canvas: tuple[int, int],
        output_path: str
    ) -> str:
        """
        Render track 1 with black filling every gap, spanning total_duration.

        Raises:
            SegmentExtractionFailed: ffmpeg exited non-zero.
        """
        clips = [c for c in clips_on_track(track1_clips, MAIN_TRACK) if c.path]
        if not clips:
            width, height = canvas
            return self.extractor.synthesize_black_segment(total_duration, width, height, output_path)

        args = self.build_base_graph(clips, total_duration, canvas, output_path)
        result = self.ffmpeg.run(args)
        if not result.ok:
            raise SegmentExtractionFailed(result.returncode, stage="composite_base")
        self._logger.debug(f"Base track rendered: {output_path}")
        return output_path

    def overlay_track2(
        self,
        track2_clips: Sequence[Clip],
        base_path: str,
        total_duration: float,
        canvas: tuple[int, int],
        resolution: str,
        output_path: str
    ) -> str:
        """
        Overlay track 2 onto the rendered base.

        Raises:
            SegmentExtractionFailed: ffmpeg exited non-zero.
        """
        clips = [c for c in track2_clips if c.path]
        args = self.build_overlay_graph(clips, base_path, canvas, resolution, output_path)
        result = self.ffmpeg.run(args)
        if not result.ok:
            raise SegmentExtractionFailed(result.returncode, stage="composite_overlay")
        self._logger.debug(
            f"Overlaid {len(clips)} clip(s) over {format_seconds(total_duration)}s base: {output_path}"
        )
        return output_path
