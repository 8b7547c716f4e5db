"""
Filter graph builder for compose jobs.

A compose job turns a background clip, a narration track and optional
music, captions and a watermark into one vertical video. Stages are
appended to a FilterGraph in a fixed order:

    background fit -> captions -> watermark

and the audio branch is either the narration stream or a narration + music
mix. Each optional stage only adds nodes when its input is present, so no
combination can leave a dangling label.
"""

import logging
from dataclasses import dataclass, field
from typing import Union

from reelforge.config import get_settings
from reelforge.exceptions import CompositionError
from reelforge.render.audio_mixer import DEFAULT_MUSIC_VOLUME, AudioMixer
from reelforge.render.captions import CaptionStyle, WordTimestamp, parse_resolution
from reelforge.render.filter_graph import EngineCommand, EngineInput, FilterGraph
from reelforge.render.overlay import round_half_up
from reelforge.render.positions import (
    DEFAULT_WATERMARK_PADDING,
    WatermarkPosition,
    watermark_overlay_position,
    watermark_text_position,
)

logger = logging.getLogger(__name__)

_FONT_STYLES = {"bold", "italic", "regular", "light", "medium", "black", "oblique", "bolditalic"}


def hex_to_ffmpeg_color(hex_color: str, opacity: float = 1.0) -> str:
    """Convert #RRGGBB plus an opacity into ffmpeg's 0xRRGGBBAA form."""
    hex_value = hex_color.lstrip("#")
    if len(hex_value) != 6:
        raise CompositionError(f"Expected a #RRGGBB colour, got {hex_color!r}")
    try:
        int(hex_value, 16)
    except ValueError:
        raise CompositionError(f"Expected a #RRGGBB colour, got {hex_color!r}")
    alpha = round_half_up(min(max(opacity, 0.0), 1.0) * 255)
    return f"0x{hex_value.upper()}{alpha:02X}"


def fontconfig_pattern(font: str) -> str:
    """
    Turn a font name into a fontconfig pattern for drawtext.

    Accepts patterns as-is ("Liberation Sans:style=Bold") and the legacy
    dashed form ("Liberation-Sans-Bold").
    """
    if ":" in font:
        return font
    parts = [p for p in font.split("-") if p]
    if len(parts) > 1 and parts[-1].lower() in _FONT_STYLES:
        return f"{' '.join(parts[:-1])}:style={parts[-1]}"
    return " ".join(parts) or font


@dataclass(frozen=True)
class TextWatermark:
    """Watermark drawn as text with drawtext."""

    text: str
    font_family: str = "Liberation-Sans-Bold"
    font_size: int = 48
    font_color: str = "#FFFFFF"
    border_width: int = 2
    border_color: str = "#000000"
    shadow_color: str = "#000000"
    shadow_x: int = 2
    shadow_y: int = 2
    box_enabled: bool = False
    box_color: str = "#000000"
    box_opacity: float = 0.3
    box_padding: int = 6
    opacity: float = 0.85


@dataclass(frozen=True)
class ImageWatermark:
    """Watermark composited from a PNG, sized relative to the output width."""

    url: str
    scale: float = 0.35
    opacity: float = 0.85


Watermark = Union[TextWatermark, ImageWatermark]


@dataclass(frozen=True)
class CompositionRequest:
    """Validated, immutable description of one compose job."""

    background_url: str
    audio_url: str
    duration: float
    words: tuple[WordTimestamp, ...] = ()
    background_id: str = "default"
    music_url: str | None = None
    music_volume: float = DEFAULT_MUSIC_VOLUME
    watermark: Watermark | None = None
    watermark_position: WatermarkPosition = WatermarkPosition.BOTTOM_CENTER
    watermark_padding: int = DEFAULT_WATERMARK_PADDING
    caption_style: CaptionStyle = field(default_factory=CaptionStyle)
    path_prefix: str | None = None
    public_url: str | None = None

    @property
    def resolution(self) -> tuple[int, int]:
        return parse_resolution(self.caption_style.resolution)

    @property
    def has_captions(self) -> bool:
        return len(self.words) > 0


@dataclass
class ComposeInputs:
    """Local files for a compose job."""

    background: str
    narration: str
    music: str | None = None
    watermark_image: str | None = None
    subtitles: str | None = None


def cover_scale(
    source_width: int,
    source_height: int,
    target_width: int,
    target_height: int,
) -> tuple[int, int]:
    """
    Size that covers the target while keeping the source aspect ratio.

    The governing side matches the target exactly and the other side is
    never smaller than the target, so a centre crop always fits.

    Raises:
        CompositionError: On zero-area geometry
    """
    if min(source_width, source_height, target_width, target_height) <= 0:
        raise CompositionError(
            f"Cannot fit {source_width}x{source_height} into {target_width}x{target_height}"
        )

    # Compare aspect ratios with integers to avoid float ties
    if source_width * target_height >= source_height * target_width:
        scaled_h = target_height
        scaled_w = max(target_width, round_half_up(source_width * target_height / source_height))
    else:
        scaled_w = target_width
        scaled_h = max(target_height, round_half_up(source_height * target_width / source_width))
    return scaled_w, scaled_h


class CompositionBuilder:
    """Plans the ffmpeg invocation for a compose job."""

    def __init__(self, request: CompositionRequest, inputs: ComposeInputs, background_size: tuple[int, int]):
        self.request = request
        self.inputs = inputs
        self.background_size = background_size
        self.settings = get_settings()
        self.mixer = AudioMixer()
        self.graph = FilterGraph()
        self.engine_inputs: list[EngineInput] = []

    def _add_input(self, engine_input: EngineInput) -> int:
        self.engine_inputs.append(engine_input)
        return len(self.engine_inputs) - 1

    def _validate(self) -> None:
        if not self.inputs.background or not self.inputs.narration:
            raise CompositionError("Background and narration inputs are required")
        if self.request.duration <= 0:
            raise CompositionError(f"Duration must be positive, got {self.request.duration}")
        if self.request.has_captions and not self.inputs.subtitles:
            raise CompositionError("Captions requested but no subtitle document was provided")
        if isinstance(self.request.watermark, ImageWatermark) and not self.inputs.watermark_image:
            raise CompositionError("Image watermark requested but no image was provided")

    def _fit_background(self, source: str) -> str:
        target_w, target_h = self.request.resolution
        scaled_w, scaled_h = cover_scale(*self.background_size, target_w, target_h)
        crop_x = (scaled_w - target_w) // 2
        crop_y = (scaled_h - target_h) // 2
        logger.info(
            "[VideoCompose] Background %dx%d -> cover %dx%d, crop %dx%d+%d+%d",
            *self.background_size, scaled_w, scaled_h, target_w, target_h, crop_x, crop_y,
        )
        return self.graph.chain(
            source,
            [
                ("scale", {"w": scaled_w, "h": scaled_h}),
                ("setsar", {"sar": 1}),
                ("crop", {"w": target_w, "h": target_h, "x": crop_x, "y": crop_y}),
                ("trim", {"duration": self.request.duration}),
                ("setpts", {"expr": "PTS-STARTPTS"}),
            ],
            prefix="v",
        )

    def _burn_captions(self, source: str) -> str:
        params = {"filename": self.inputs.subtitles}
        if self.settings.fonts_dir:
            params["fontsdir"] = self.settings.fonts_dir
        return self.graph.add("ass", source, params, prefix="v")

    def _draw_text_watermark(self, source: str, watermark: TextWatermark) -> str:
        x, y = watermark_text_position(self.request.watermark_position, self.request.watermark_padding)
        params = {
            "text": watermark.text,
            "expansion": "none",
            "font": fontconfig_pattern(watermark.font_family),
            "fontsize": watermark.font_size,
            "fontcolor": hex_to_ffmpeg_color(watermark.font_color, watermark.opacity),
            "borderw": watermark.border_width,
            "bordercolor": hex_to_ffmpeg_color(watermark.border_color, watermark.opacity),
            "shadowcolor": hex_to_ffmpeg_color(watermark.shadow_color, watermark.opacity),
            "shadowx": watermark.shadow_x,
            "shadowy": watermark.shadow_y,
        }
        if watermark.box_enabled:
            params.update({
                "box": 1,
                "boxcolor": hex_to_ffmpeg_color(watermark.box_color, watermark.box_opacity),
                "boxborderw": watermark.box_padding,
            })
        params.update({"x": x, "y": y})
        return self.graph.add("drawtext", source, params, prefix="v")

    def _overlay_image_watermark(self, source: str, watermark: ImageWatermark) -> str:
        target_w, _ = self.request.resolution
        width = round_half_up(target_w * watermark.scale)
        if width <= 0:
            raise CompositionError(f"Watermark scale {watermark.scale} gives zero width")

        index = self._add_input(EngineInput(self.inputs.watermark_image))
        image = self.graph.chain(
            f"{index}:v",
            [
                ("scale", {"w": width, "h": -1}),
                ("format", {"pix_fmts": "yuva420p"}),
                ("colorchannelmixer", {"aa": watermark.opacity}),
            ],
            prefix="wm",
        )
        x, y = watermark_overlay_position(self.request.watermark_position, self.request.watermark_padding)
        return self.graph.add("overlay", [source, image], {"x": x, "y": y}, prefix="v")

    def build(self, output_path: str) -> EngineCommand:
        self._validate()
        request = self.request

        background = self._add_input(EngineInput(self.inputs.background))
        narration = self._add_input(EngineInput(self.inputs.narration))

        video = self._fit_background(f"{background}:v")
        if request.has_captions:
            video = self._burn_captions(video)
        if isinstance(request.watermark, TextWatermark):
            video = self._draw_text_watermark(video, request.watermark)
        elif isinstance(request.watermark, ImageWatermark):
            video = self._overlay_image_watermark(video, request.watermark)
        self.graph.mark_output(video)

        if self.inputs.music:
            music = self._add_input(self.mixer.music_input(self.inputs.music))
            audio = self.mixer.add_music_bed(
                self.graph, f"{narration}:a", f"{music}:a", request.music_volume
            )
            self.graph.mark_output(audio)
        else:
            audio = f"{narration}:a"

        target_w, target_h = request.resolution
        settings = self.settings
        return EngineCommand(
            inputs=self.engine_inputs,
            graph=self.graph,
            maps=[video, audio],
            output_args=[
                "-c:v", "libx264",
                "-preset", settings.render_preset,
                "-crf", str(settings.render_crf),
                "-pix_fmt", "yuv420p",
                *self.mixer.encode_args(),
                "-r", str(settings.render_fps),
                "-s", f"{target_w}x{target_h}",
                "-shortest",
            ],
            output_path=output_path,
        )


def build_compose_command(
    request: CompositionRequest,
    inputs: ComposeInputs,
    background_size: tuple[int, int],
    output_path: str,
) -> EngineCommand:
    """Plan the ffmpeg invocation for a compose job."""
    return CompositionBuilder(request, inputs, background_size).build(output_path)
