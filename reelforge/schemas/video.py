"""Request and response models for the video endpoints.

Bodies are accepted in camelCase (as existing clients send them) or
snake_case. Each request model converts itself into the immutable planning
types used by the render layer.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator, model_validator
from pydantic.alias_generators import to_camel

from reelforge.render.audio_mixer import DEFAULT_MUSIC_VOLUME, AudioMergeMode
from reelforge.render.captions import CaptionStyle, WordTimestamp, parse_resolution
from reelforge.render.composer import CompositionRequest, ImageWatermark, TextWatermark
from reelforge.render.convert import X264_PRESETS, ArchiveFormat, FrameFormat
from reelforge.render.merge import DEFAULT_TRANSITION_DURATION, TransitionMode, TrimBounds
from reelforge.render.overlay import DEFAULT_OVERLAY_MARGIN, DEFAULT_OVERLAY_SCALE, OverlaySpec
from reelforge.render.pipeline import MergeClip
from reelforge.render.positions import DEFAULT_WATERMARK_PADDING, OverlayPosition, WatermarkPosition

_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
_BACKGROUND_ID_RE = r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$"


def _check_color(v: str | None) -> str | None:
    if v is not None and not _HEX_COLOR_RE.match(v):
        raise ValueError(f"Color must be a HEX value like #FFD700, got {v!r}")
    return v


def _check_resolution(v: str) -> str:
    width, height = parse_resolution(v)
    # yuv420p subsamples chroma by two in both directions
    if width % 2 or height % 2:
        raise ValueError(f"Resolution must have even width and height, got {v!r}")
    return v.lower()


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WordTimestampIn(CamelModel):
    word: str
    start: float = Field(ge=0)
    end: float = Field(ge=0)


class ToMp4Request(CamelModel):
    """POST /api/video/mp4"""

    video_url: HttpUrl
    crf: int = Field(default=23, ge=0, le=51)
    preset: str = "medium"
    smart_copy: bool = True
    path_prefix: str | None = None
    public_url: HttpUrl | None = None

    @field_validator("preset")
    @classmethod
    def validate_preset(cls, v: str) -> str:
        if v not in X264_PRESETS:
            raise ValueError(f"preset must be one of: {', '.join(X264_PRESETS)}")
        return v


class ExtractAudioRequest(CamelModel):
    """POST /api/video/audio"""

    video_url: HttpUrl
    mono: bool = True
    path_prefix: str | None = None
    public_url: HttpUrl | None = None


class ExtractFramesRequest(CamelModel):
    """POST /api/video/frames"""

    video_url: HttpUrl
    fps: float = Field(default=1.0, gt=0, le=60)
    format: FrameFormat = FrameFormat.PNG
    quality: int | None = Field(default=None, ge=1, le=31)
    compress: ArchiveFormat = ArchiveFormat.ZIP
    path_prefix: str | None = None
    public_url: HttpUrl | None = None


class ComposeRequest(CamelModel):
    """POST /api/video/compose"""

    background_url: HttpUrl
    background_id: str = Field(default="default", pattern=_BACKGROUND_ID_RE)
    audio_url: HttpUrl
    music_url: HttpUrl | None = None
    music_volume: float = Field(default=DEFAULT_MUSIC_VOLUME, ge=0, le=1)
    word_timestamps: list[WordTimestampIn] = Field(default_factory=list)
    duration: float = Field(gt=0)
    resolution: str = "1080x1920"

    # Text watermark (takes priority over the image watermark)
    watermark_text: str | None = Field(default=None, max_length=200)
    watermark_font_family: str = "Liberation-Sans-Bold"
    watermark_font_size: int = Field(default=48, gt=0, le=500)
    watermark_font_color: str = "#FFFFFF"
    watermark_border_width: int = Field(default=2, ge=0)
    watermark_border_color: str = "#000000"
    watermark_shadow_color: str = "#000000"
    watermark_shadow_x: int = 2
    watermark_shadow_y: int = 2
    watermark_box_enabled: bool = False
    watermark_box_color: str = "#000000"
    watermark_box_opacity: float = Field(default=0.3, ge=0, le=1)
    watermark_box_padding: int = Field(default=6, ge=0)

    # Image watermark
    watermark_url: HttpUrl | None = None
    watermark_scale: float = Field(default=0.35, gt=0, le=1)

    # Common watermark settings
    watermark_opacity: float = Field(default=0.85, ge=0, le=1)
    watermark_position: WatermarkPosition = WatermarkPosition.BOTTOM_CENTER
    watermark_padding: int = Field(default=DEFAULT_WATERMARK_PADDING, ge=0)

    # Captions
    font_family: str | None = None
    font_size: int | None = Field(default=None, gt=0, le=500)
    primary_color: str | None = None
    highlight_color: str | None = None
    outline_color: str | None = None
    margin_bottom: int | None = Field(default=None, ge=0)

    # Storage
    path_prefix: str | None = None
    public_url: HttpUrl | None = None

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: str) -> str:
        return _check_resolution(v)

    @field_validator(
        "watermark_font_color",
        "watermark_border_color",
        "watermark_shadow_color",
        "watermark_box_color",
        "primary_color",
        "highlight_color",
        "outline_color",
    )
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        return _check_color(v)

    def caption_style(self) -> CaptionStyle:
        defaults = CaptionStyle()
        return CaptionStyle(
            resolution=self.resolution,
            font_family=self.font_family or defaults.font_family,
            font_size=self.font_size or defaults.font_size,
            primary_color=self.primary_color or defaults.primary_color,
            highlight_color=self.highlight_color or defaults.highlight_color,
            outline_color=self.outline_color or defaults.outline_color,
            margin_bottom=self.margin_bottom if self.margin_bottom is not None else defaults.margin_bottom,
        )

    def watermark(self) -> TextWatermark | ImageWatermark | None:
        """Resolve the watermark variant once; text wins when both are set."""
        if self.watermark_text and self.watermark_text.strip():
            return TextWatermark(
                text=self.watermark_text,
                font_family=self.watermark_font_family,
                font_size=self.watermark_font_size,
                font_color=self.watermark_font_color,
                border_width=self.watermark_border_width,
                border_color=self.watermark_border_color,
                shadow_color=self.watermark_shadow_color,
                shadow_x=self.watermark_shadow_x,
                shadow_y=self.watermark_shadow_y,
                box_enabled=self.watermark_box_enabled,
                box_color=self.watermark_box_color,
                box_opacity=self.watermark_box_opacity,
                box_padding=self.watermark_box_padding,
                opacity=self.watermark_opacity,
            )
        if self.watermark_url:
            return ImageWatermark(
                url=str(self.watermark_url),
                scale=self.watermark_scale,
                opacity=self.watermark_opacity,
            )
        return None

    def to_composition(self) -> CompositionRequest:
        return CompositionRequest(
            background_url=str(self.background_url),
            audio_url=str(self.audio_url),
            duration=self.duration,
            words=tuple(WordTimestamp(w.word, w.start, w.end) for w in self.word_timestamps),
            background_id=self.background_id,
            music_url=str(self.music_url) if self.music_url else None,
            music_volume=self.music_volume,
            watermark=self.watermark(),
            watermark_position=self.watermark_position,
            watermark_padding=self.watermark_padding,
            caption_style=self.caption_style(),
            path_prefix=self.path_prefix,
            public_url=str(self.public_url) if self.public_url else None,
        )


class OverlayRequest(CamelModel):
    """POST /api/video/overlay"""

    video_url: HttpUrl
    overlay_asset: str | None = None
    overlay_url: HttpUrl | None = None
    overlay_position: OverlayPosition = OverlayPosition.TOP_RIGHT
    overlay_scale: float = Field(default=DEFAULT_OVERLAY_SCALE, gt=0, le=1)
    overlay_margin_x: float = Field(default=DEFAULT_OVERLAY_MARGIN, ge=0)
    overlay_margin_y: float = Field(default=DEFAULT_OVERLAY_MARGIN, ge=0)
    path_prefix: str | None = None
    public_url: HttpUrl | None = None

    @model_validator(mode="after")
    def check_overlay_source(self) -> "OverlayRequest":
        if bool(self.overlay_asset) == bool(self.overlay_url):
            raise ValueError("Exactly one of overlayAsset or overlayUrl must be provided")
        return self

    def to_spec(self) -> OverlaySpec:
        return OverlaySpec(
            position=self.overlay_position,
            scale=self.overlay_scale,
            margin_x=self.overlay_margin_x,
            margin_y=self.overlay_margin_y,
        )


class TrimIn(CamelModel):
    start: float | None = Field(default=None, ge=0)
    end: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def check_order(self) -> "TrimIn":
        if self.start is not None and self.end is not None and self.end <= self.start:
            raise ValueError("trim.end must be greater than trim.start")
        return self


class MergeVideoIn(CamelModel):
    url: HttpUrl
    trim: TrimIn | None = None

    def to_clip(self) -> MergeClip:
        trim = TrimBounds(self.trim.start, self.trim.end) if self.trim else TrimBounds()
        return MergeClip(url=str(self.url), trim=trim)


class MergeRequest(CamelModel):
    """POST /api/video/merge"""

    videos: list[MergeVideoIn] = Field(min_length=1, max_length=50)
    transition: TransitionMode = TransitionMode.NONE
    transition_duration: float = Field(default=DEFAULT_TRANSITION_DURATION, gt=0, le=5)
    resolution: str = "1080x1920"
    path_prefix: str | None = None
    public_url: HttpUrl | None = None

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: str) -> str:
        return _check_resolution(v)

    def to_clips(self) -> list[MergeClip]:
        return [v.to_clip() for v in self.videos]

    @property
    def resolution_size(self) -> tuple[int, int]:
        return parse_resolution(self.resolution)


class MergeAudioRequest(CamelModel):
    """POST /api/video/merge-audio"""

    video_url: HttpUrl
    audio_url: HttpUrl
    mode: AudioMergeMode = AudioMergeMode.REPLACE
    volume: float = Field(default=1.0, ge=0, le=2)
    path_prefix: str | None = None
    public_url: HttpUrl | None = None


class VideoUrlResponse(CamelModel):
    url: str


class MergeMetadata(CamelModel):
    duration: float
    video_count: int


class MergeResponse(CamelModel):
    url: str
    metadata: MergeMetadata


class DurationMetadata(CamelModel):
    duration: float


class MergeAudioResponse(CamelModel):
    url: str
    metadata: DurationMetadata


class ConvertResponse(CamelModel):
    url: str
    metadata: DurationMetadata


class FramesMetadata(CamelModel):
    frame_count: int
    fps: float
    format: FrameFormat


class FramesResponse(CamelModel):
    url: str
    metadata: FramesMetadata


class ErrorResponse(BaseModel):
    error: str
    code: str | None = None
    suggested_fix: str | None = None
