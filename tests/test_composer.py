"""Tests for the compose filter graph builder."""

import pytest

from reelforge.exceptions import CompositionError
from reelforge.render.captions import CaptionStyle, WordTimestamp
from reelforge.render.composer import (
    ComposeInputs,
    CompositionRequest,
    ImageWatermark,
    TextWatermark,
    build_compose_command,
    cover_scale,
    fontconfig_pattern,
    hex_to_ffmpeg_color,
)
from reelforge.render.positions import WatermarkPosition


def _request(**overrides) -> CompositionRequest:
    values = dict(
        background_url="https://cdn.example.com/bg.mp4",
        audio_url="https://cdn.example.com/voice.mp3",
        duration=12.5,
    )
    values.update(overrides)
    return CompositionRequest(**values)


def _inputs(**overrides) -> ComposeInputs:
    values = dict(background="/work/background.mp4", narration="/work/audio")
    values.update(overrides)
    return ComposeInputs(**values)


class TestCoverScale:
    """Cover scaling keeps aspect ratio and never under-fills the target."""

    def test_narrow_background_is_governed_by_width(self):
        # 606x1080 is marginally narrower than 9:16, so width governs
        assert cover_scale(606, 1080, 1080, 1920) == (1080, 1925)

    def test_landscape_background_is_governed_by_height(self):
        assert cover_scale(1920, 1080, 1080, 1920) == (3413, 1920)

    def test_same_aspect_ratio_needs_no_crop(self):
        assert cover_scale(720, 1280, 1080, 1920) == (1080, 1920)

    @pytest.mark.parametrize(
        "source",
        [(606, 1080), (1920, 1080), (1080, 1080), (640, 480), (1081, 1921), (3840, 2160), (100, 5000)],
    )
    def test_cover_invariant(self, source):
        target = (1080, 1920)

        scaled_w, scaled_h = cover_scale(*source, *target)

        assert scaled_w >= target[0] and scaled_h >= target[1]
        assert scaled_w == target[0] or scaled_h == target[1]

    @pytest.mark.parametrize("source", [(0, 1080), (1920, 0), (-1, 10)])
    def test_zero_area_geometry_is_rejected(self, source):
        with pytest.raises(CompositionError):
            cover_scale(*source, 1080, 1920)


class TestHelpers:
    def test_hex_to_ffmpeg_color(self):
        assert hex_to_ffmpeg_color("#FFFFFF", 0.85) == "0xFFFFFFD9"
        assert hex_to_ffmpeg_color("#ff0000", 0.5) == "0xFF000080"
        assert hex_to_ffmpeg_color("#000000") == "0x000000FF"

    def test_hex_to_ffmpeg_color_rejects_invalid(self):
        with pytest.raises(CompositionError):
            hex_to_ffmpeg_color("red")

    def test_fontconfig_pattern(self):
        assert fontconfig_pattern("Liberation-Sans-Bold") == "Liberation Sans:style=Bold"
        assert fontconfig_pattern("DejaVu Sans") == "DejaVu Sans"
        assert fontconfig_pattern("Arial:style=Bold") == "Arial:style=Bold"


class TestComposeCommand:
    """Graph structure for each optional stage combination."""

    def test_minimal_compose(self):
        command = build_compose_command(_request(), _inputs(), (1920, 1080), "/work/output.mp4")

        graph = command.graph.serialize()
        assert graph == (
            "[0:v]scale=w=3413:h=1920[v0];"
            "[v0]setsar=sar=1[v1];"
            "[v1]crop=w=1080:h=1920:x=1166:y=0[v2];"
            "[v2]trim=duration=12.5[v3];"
            "[v3]setpts=expr=PTS-STARTPTS[v4]"
        )
        assert command.maps == ["v4", "1:a"]
        assert command.input_paths == ["/work/background.mp4", "/work/audio"]

        args = command.to_args()
        assert args[-1] == "/work/output.mp4"
        for flag, value in [("-c:v", "libx264"), ("-crf", "23"), ("-r", "30"), ("-s", "1080x1920"), ("-b:a", "192k")]:
            assert args[args.index(flag) + 1] == value
        assert "-shortest" in args

    def test_music_bed_is_looped_and_mixed_without_normalization(self):
        command = build_compose_command(
            _request(music_url="https://cdn.example.com/music.mp3", music_volume=0.25),
            _inputs(music="/work/music"),
            (1080, 1920),
            "/work/output.mp4",
        )

        args = command.to_args()
        music_index = args.index("/work/music")
        assert args[music_index - 3:music_index + 1] == ["-stream_loop", "-1", "-i", "/work/music"]

        graph = command.graph.serialize()
        assert "[1:a]volume=volume=1[a5]" in graph
        assert "[2:a]volume=volume=0.25[a6]" in graph
        assert "[a5][a6]amix=inputs=2:duration=first:normalize=0[a7]" in graph
        assert command.maps == ["v4", "a7"]

    def test_captions_precede_text_watermark(self):
        request = _request(
            words=(WordTimestamp("hi", 0.0, 0.5),),
            watermark=TextWatermark(text="@reelforge"),
        )

        command = build_compose_command(
            request, _inputs(subtitles="/work/captions.ass"), (1080, 1920), "/work/output.mp4"
        )

        graph = command.graph.serialize()
        assert graph.index("ass=filename=/work/captions.ass") < graph.index("drawtext=")
        assert "text=@reelforge:expansion=none" in graph
        assert "font=Liberation Sans\\\\:style=Bold" in graph
        assert "fontcolor=0xFFFFFFD9" in graph
        assert "x=(w-text_w)/2:y=h-text_h-475" in graph
        assert "box=" not in graph

    def test_text_watermark_box_plate(self):
        request = _request(watermark=TextWatermark(text="brand", box_enabled=True, box_opacity=0.5))

        graph = build_compose_command(request, _inputs(), (1080, 1920), "/o.mp4").graph.serialize()

        assert "box=1:boxcolor=0x00000080:boxborderw=6" in graph

    def test_text_watermark_special_characters_are_escaped(self):
        request = _request(watermark=TextWatermark(text="it's: [live]"))

        graph = build_compose_command(request, _inputs(), (1080, 1920), "/o.mp4").graph.serialize()

        assert "text=it\\\\\\'s\\\\: \\[live\\]" in graph

    def test_image_watermark(self):
        request = _request(
            watermark=ImageWatermark(url="https://cdn.example.com/wm.png", scale=0.35, opacity=0.85),
            watermark_position=WatermarkPosition.TOP_RIGHT,
            watermark_padding=40,
        )

        command = build_compose_command(
            request, _inputs(watermark_image="/work/watermark.png"), (1080, 1920), "/o.mp4"
        )

        graph = command.graph.serialize()
        assert command.input_paths[2] == "/work/watermark.png"
        assert "[2:v]scale=w=378:h=-1" in graph
        assert "format=pix_fmts=yuva420p" in graph
        assert "colorchannelmixer=aa=0.85" in graph
        assert "overlay=x=main_w-overlay_w-40:y=40" in graph

    def test_image_watermark_and_music_use_distinct_inputs(self):
        request = _request(
            music_url="https://cdn.example.com/m.mp3",
            watermark=ImageWatermark(url="https://cdn.example.com/wm.png"),
        )

        command = build_compose_command(
            request,
            _inputs(music="/work/music", watermark_image="/work/wm.png"),
            (1080, 1920),
            "/o.mp4",
        )

        assert command.input_paths == ["/work/background.mp4", "/work/audio", "/work/wm.png", "/work/music"]
        assert "[3:a]volume" in command.graph.serialize()

    def test_custom_resolution(self):
        request = _request(caption_style=CaptionStyle(resolution="720x1280"))

        command = build_compose_command(request, _inputs(), (1280, 720), "/o.mp4")

        args = command.to_args()
        assert args[args.index("-s") + 1] == "720x1280"
        assert "crop=w=720:h=1280" in command.graph.serialize()

    def test_captions_without_document_are_rejected(self):
        request = _request(words=(WordTimestamp("hi", 0.0, 0.5),))

        with pytest.raises(CompositionError):
            build_compose_command(request, _inputs(), (1080, 1920), "/o.mp4")

    def test_image_watermark_without_file_is_rejected(self):
        request = _request(watermark=ImageWatermark(url="https://cdn.example.com/wm.png"))

        with pytest.raises(CompositionError):
            build_compose_command(request, _inputs(), (1080, 1920), "/o.mp4")

    def test_zero_duration_is_rejected(self):
        with pytest.raises(CompositionError):
            build_compose_command(_request(duration=0), _inputs(), (1080, 1920), "/o.mp4")
