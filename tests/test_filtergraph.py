"""
Tests for the filter graph builder
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from timelinecut.core.filtergraph import FilterGraph, FilterNode, InputNode, Stream, Trim, render_value


class TestRenderValue:
    """Tests for argument rendering."""

    def test_plain_values(self):
        assert render_value(1280) == "1280"
        assert render_value(-2) == "-2"
        assert render_value(2.5) == "2.5"
        assert render_value(True) == "1"
        assert render_value("W-w-10") == "W-w-10"

    def test_quoted_values(self):
        assert render_value("between(t,2,5)") == "'between(t,2,5)'"
        assert render_value("a b") == "'a b'"

    def test_embedded_quote(self):
        assert render_value("it's") == "'it'\\''s'"


class TestNodes:
    """Tests for inputs and filter nodes."""

    def test_trim_args(self):
        assert Trim(1.5, 4.0).to_args() == ["-ss", "1.5", "-to", "4"]

    def test_input_args(self):
        node = InputNode("/media/a.mp4", trim=Trim(0.0, 2.0))
        assert node.to_args() == ["-ss", "0", "-to", "2", "-i", "/media/a.mp4"]

    def test_lavfi_input(self):
        node = InputNode("color=c=black:s=640x360:d=2:r=30", lavfi=True)
        assert node.to_args() == ["-f", "lavfi", "-i", "color=c=black:s=640x360:d=2:r=30"]

    def test_filter_node_render(self):
        node = FilterNode(
            "scale",
            [(None, 320), (None, -2)],
            [Stream("1:v")],
            [Stream("pip")]
        )
        assert node.render() == "[1:v]scale=320:-2[pip]"

    def test_filter_without_params(self):
        node = FilterNode("anull", [], [Stream("0:a")], [Stream("a")])
        assert node.render() == "[0:a]anull[a]"


class TestFilterGraph:
    """Tests for graph assembly."""

    def test_input_indices(self):
        graph = FilterGraph()
        assert graph.add_input("/a.mp4") == 0
        assert graph.add_input("/b.mp4") == 1
        assert graph.input_args() == ["-i", "/a.mp4", "-i", "/b.mp4"]

    def test_labels_are_unique(self):
        graph = FilterGraph()
        first = graph.setsar(graph.video(0))
        second = graph.setsar(graph.video(1))
        assert first != second

    def test_overlay_chain_render(self):
        graph = FilterGraph()
        graph.add_input("/base.mp4")
        graph.add_input("/pip.mp4")
        shifted = graph.setpts(graph.video(1), 2.0)
        small = graph.scale(shifted, 320, -2)
        graph.overlay(graph.video(0), small, "W-w-10", "H-h-10", enable="between(t,2,5)", output="vout")

        assert graph.render() == (
            "[1:v]setpts=PTS-STARTPTS+2/TB[pts0];"
            "[pts0]scale=320:-2[scaled0];"
            "[0:v][scaled0]overlay=x=W-w-10:y=H-h-10:enable='between(t,2,5)':eof_action=pass[vout]"
        )

    def test_setpts_without_offset(self):
        graph = FilterGraph()
        graph.setpts(graph.video(0), output="v")
        assert graph.render() == "[0:v]setpts=PTS-STARTPTS[v]"

    def test_concat_and_audio(self):
        graph = FilterGraph()
        graph.concat([Stream("a"), Stream("b")], output="vout")
        delayed = graph.adelay(graph.audio(1), 2.5)
        graph.amix([graph.audio(0), delayed], output="aout")

        assert graph.render().split(";") == [
            "[a][b]concat=n=2:v=1:a=0[vout]",
            "[1:a]adelay=delays=2500:all=1[dly0]",
            "[0:a][dly0]amix=inputs=2:duration=longest[aout]",
        ]

    def test_generic_filter_dict_params(self):
        graph = FilterGraph()
        out = graph.filter("fps", [graph.video(0)], {"fps": 30})
        assert out.ref() == "[f0]"
        assert graph.render() == "[0:v]fps=fps=30[f0]"
