"""
Typed builder for FFmpeg filter graphs

Graphs are assembled from nodes and rendered to -filter_complex syntax only
when a command is built. Quoting of filter arguments happens in render().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

from ..utils.helpers import format_seconds

# Characters that terminate an unquoted filter argument
_SPECIAL_CHARS = set(",;[]' ")


def render_value(value: Any) -> str:
    """Render one filter argument value, quoting it if needed."""
    if isinstance(value, bool):
        text = "1" if value else "0"
    elif isinstance(value, float):
        text = format_seconds(value)
    else:
        text = str(value)
    if any(ch in _SPECIAL_CHARS for ch in text):
        return "'" + text.replace("'", "'\\''") + "'"
    return text


@dataclass(frozen=True)
class Trim:
    """Source window applied with input seeking."""

    start: float
    end: float

    def to_args(self) -> list[str]:
        return ["-ss", format_seconds(self.start), "-to", format_seconds(self.end)]


@dataclass
class InputNode:
    """One -i input of the command."""

    path: str
    trim: Optional[Trim] = None
    lavfi: bool = False

    def to_args(self) -> list[str]:
        args: list[str] = []
        if self.lavfi:
            args.extend(["-f", "lavfi"])
        if self.trim is not None:
            args.extend(self.trim.to_args())
        args.extend(["-i", self.path])
        return args


@dataclass(frozen=True)
class Stream:
    """A pad in the graph: an input stream ('0:v') or a filter output ('v0')."""

    label: str

    def ref(self) -> str:
        return f"[{self.label}]"

    def __str__(self) -> str:
        return self.ref()


Param = tuple[Optional[str], Any]


@dataclass
class FilterNode:
    """One filter with its ordered parameters and connected pads."""

    name: str
    params: list[Param] = field(default_factory=list)
    inputs: list[Stream] = field(default_factory=list)
    outputs: list[Stream] = field(default_factory=list)

    def render(self) -> str:
        args = ":".join(
            render_value(value) if key is None else f"{key}={render_value(value)}"
            for key, value in self.params
        )
        body = f"{self.name}={args}" if args else self.name
        ins = "".join(s.ref() for s in self.inputs)
        outs = "".join(s.ref() for s in self.outputs)
        return f"{ins}{body}{outs}"


ParamsArg = Union[Sequence[Param], dict]


class FilterGraph:
    """Ordered collection of inputs and filter nodes."""

    def __init__(self):
        self.inputs: list[InputNode] = []
        self.nodes: list[FilterNode] = []
        self._label_counts: dict[str, int] = {}

    def add_input(self, path: str, trim: Optional[Trim] = None, lavfi: bool = False) -> int:
        """Register an input, returning its index."""
        self.inputs.append(InputNode(path=path, trim=trim, lavfi=lavfi))
        return len(self.inputs) - 1

    @staticmethod
    def video(index: int) -> Stream:
        return Stream(f"{index}:v")

    @staticmethod
    def audio(index: int) -> Stream:
        return Stream(f"{index}:a")

    def _label(self, prefix: str) -> Stream:
        count = self._label_counts.get(prefix, 0)
        self._label_counts[prefix] = count + 1
        return Stream(f"{prefix}{count}")

    def filter(
        self,
        name: str,
        inputs: Sequence[Stream],
        params: ParamsArg = (),
        prefix: str = "f",
        output: Optional[str] = None
    ) -> Stream:
        """Append a generic single-output filter."""
        if isinstance(params, dict):
            params = list(params.items())
        out = Stream(output) if output else self._label(prefix)
        self.nodes.append(FilterNode(name, list(params), list(inputs), [out]))
        return out

    def scale(self, stream: Stream, width: Any, height: Any, output: Optional[str] = None) -> Stream:
        return self.filter("scale", [stream], [(None, width), (None, height)], "scaled", output)

    def setsar(self, stream: Stream, output: Optional[str] = None) -> Stream:
        return self.filter("setsar", [stream], [(None, 1)], "sar", output)

    def setpts(self, stream: Stream, offset: float = 0.0, output: Optional[str] = None) -> Stream:
        """Reset timestamps to zero, then shift the stream to start at offset seconds."""
        expr = "PTS-STARTPTS"
        if offset > 0:
            expr += f"+{format_seconds(offset)}/TB"
        return self.filter("setpts", [stream], [(None, expr)], "pts", output)

    def overlay(
        self,
        base: Stream,
        top: Stream,
        x: str,
        y: str,
        enable: Optional[str] = None,
        output: Optional[str] = None
    ) -> Stream:
        params: list[Param] = [("x", x), ("y", y)]
        if enable:
            params.append(("enable", enable))
        params.append(("eof_action", "pass"))
        return self.filter("overlay", [base, top], params, "ov", output)

    def concat(
        self,
        streams: Sequence[Stream],
        video: int = 1,
        audio: int = 0,
        output: Optional[str] = None
    ) -> Stream:
        params = [("n", len(streams)), ("v", video), ("a", audio)]
        return self.filter("concat", streams, params, "cat", output)

    def adelay(self, stream: Stream, seconds: float, output: Optional[str] = None) -> Stream:
        """Delay every audio channel by seconds."""
        delay_ms = int(round(seconds * 1000))
        return self.filter("adelay", [stream], [("delays", delay_ms), ("all", 1)], "dly", output)

    def amix(
        self,
        streams: Sequence[Stream],
        duration: str = "longest",
        output: Optional[str] = None
    ) -> Stream:
        params = [("inputs", len(streams)), ("duration", duration)]
        return self.filter("amix", streams, params, "mix", output)

    def input_args(self) -> list[str]:
        args: list[str] = []
        for node in self.inputs:
            args.extend(node.to_args())
        return args

    def render(self) -> str:
        """Render the -filter_complex string."""
        return ";".join(node.render() for node in self.nodes)
