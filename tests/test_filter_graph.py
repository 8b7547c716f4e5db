"""Tests for the typed filter graph and engine command."""

import pytest

from reelforge.render.filter_graph import (
    EngineCommand,
    EngineInput,
    FilterGraph,
    FilterNode,
    escape_option_value,
    format_number,
)


class TestEscaping:
    def test_colon_is_escaped_for_both_levels(self):
        assert escape_option_value("a:b") == "a\\\\:b"

    def test_quote_is_escaped_for_both_levels(self):
        assert escape_option_value("it's") == "it\\\\\\'s"

    def test_graph_separators_are_escaped(self):
        assert escape_option_value("[x],y;z") == "\\[x\\]\\,y\\;z"

    def test_plain_value_unchanged(self):
        assert escape_option_value("/tmp/job/captions.ass") == "/tmp/job/captions.ass"


class TestFormatNumber:
    @pytest.mark.parametrize(
        "value,expected",
        [(0.4, "0.4"), (2.0, "2"), (3, "3"), (-1, "-1"), (True, "1"), (1 / 3, "0.333333"), (9.0, "9")],
    )
    def test_format_number(self, value, expected):
        assert format_number(value) == expected


class TestFilterNode:
    def test_render_with_params(self):
        node = FilterNode("scale", {"w": 1080, "h": 1920}, ["0:v"], "v0")
        assert node.render() == "[0:v]scale=w=1080:h=1920[v0]"

    def test_render_without_inputs_or_params(self):
        node = FilterNode("anullsrc", {}, [], "a0")
        assert node.render() == "anullsrc[a0]"

    def test_render_multiple_inputs(self):
        node = FilterNode("amix", {"inputs": 2}, ["a0", "a1"], "a2")
        assert node.render() == "[a0][a1]amix=inputs=2[a2]"


class TestFilterGraph:
    def test_labels_are_unique_and_monotonic(self):
        graph = FilterGraph()
        first = graph.add("scale", "0:v", {"w": 10, "h": 10}, prefix="v")
        second = graph.add("setsar", first, {"sar": 1}, prefix="v")
        third = graph.add("volume", "1:a", {"volume": 0.5}, prefix="a")

        assert [first, second, third] == ["v0", "v1", "a2"]

    def test_chain_serializes_in_order(self):
        graph = FilterGraph()
        out = graph.chain("0:v", [("scale", {"w": 2, "h": 2}), ("setsar", {"sar": 1})], prefix="v")
        graph.mark_output(out)

        assert graph.serialize() == "[0:v]scale=w=2:h=2[v0];[v0]setsar=sar=1[v1]"

    def test_topological_order_moves_producers_first(self):
        graph = FilterGraph()
        graph._nodes = [
            FilterNode("overlay", {}, ["0:v", "ovl"], "out"),
            FilterNode("scale", {"w": 2, "h": 2}, ["1:v"], "ovl"),
        ]
        graph.mark_output("out")

        order = [n.output_label for n in graph.topological_order()]

        assert order == ["ovl", "out"]

    def test_unused_output_is_rejected(self):
        graph = FilterGraph()
        graph.add("scale", "0:v", {"w": 2, "h": 2})

        with pytest.raises(ValueError, match="never used"):
            graph.serialize()

    def test_label_consumed_twice_is_rejected(self):
        graph = FilterGraph()
        label = graph.add("scale", "0:v", {"w": 2, "h": 2})
        graph.mark_output(graph.add("setsar", label, {"sar": 1}))
        graph.mark_output(graph.add("format", label, {"pix_fmts": "yuv420p"}))

        with pytest.raises(ValueError, match="consumed more than once"):
            graph.serialize()

    def test_unknown_input_is_rejected(self):
        graph = FilterGraph()
        graph.mark_output(graph.add("scale", "missing", {"w": 2, "h": 2}))

        with pytest.raises(ValueError, match="never produced"):
            graph.serialize()

    def test_cycle_is_rejected(self):
        graph = FilterGraph()
        graph._nodes = [
            FilterNode("a", {}, ["y"], "x"),
            FilterNode("b", {}, ["x"], "y"),
        ]

        with pytest.raises(ValueError):
            graph.topological_order()

    def test_option_values_are_escaped_on_serialize(self):
        graph = FilterGraph()
        graph.mark_output(graph.add("ass", "0:v", {"filename": "/tmp/a:b.ass"}))

        assert graph.serialize() == "[0:v]ass=filename=/tmp/a\\\\:b.ass[s0]"


class TestEngineCommand:
    def test_to_args(self):
        graph = FilterGraph()
        video = graph.mark_output(graph.add("scale", "0:v", {"w": 2, "h": 2}, prefix="v"))
        command = EngineCommand(
            inputs=[EngineInput("in.mp4"), EngineInput("music.mp3", ["-stream_loop", "-1"])],
            graph=graph,
            maps=[video, "1:a?"],
            output_args=["-c:v", "libx264"],
            output_path="out.mp4",
        )

        args = command.to_args("ffmpeg")

        assert args == [
            "ffmpeg", "-y",
            "-i", "in.mp4",
            "-stream_loop", "-1", "-i", "music.mp3",
            "-filter_complex", "[0:v]scale=w=2:h=2[v0]",
            "-map", "[v0]",
            "-map", "1:a?",
            "-c:v", "libx264",
            "out.mp4",
        ]
        assert command.input_paths == ["in.mp4", "music.mp3"]

    def test_no_filter_complex_for_empty_graph(self):
        command = EngineCommand(
            inputs=[EngineInput("in.mp4")],
            graph=FilterGraph(),
            maps=["0:v:0"],
            output_args=[],
            output_path="out.mp4",
        )

        assert "-filter_complex" not in command.to_args()
