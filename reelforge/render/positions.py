"""Position presets for watermarks and corner overlays.

Expressions use ffmpeg variables:
  overlay filter:  main_w/main_h (W/H) = background, overlay_w/overlay_h (w/h) = overlay
  drawtext filter: w/h = frame, text_w/text_h = rendered text
"""

from enum import Enum

from reelforge.render.filter_graph import format_number


class WatermarkPosition(str, Enum):
    """Nine anchor positions for watermarks."""

    TOP_LEFT = "top-left"
    TOP_CENTER = "top-center"
    TOP_RIGHT = "top-right"
    MIDDLE_LEFT = "middle-left"
    MIDDLE_CENTER = "middle-center"
    MIDDLE_RIGHT = "middle-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_CENTER = "bottom-center"
    BOTTOM_RIGHT = "bottom-right"


class OverlayPosition(str, Enum):
    """Four corner anchors for proportional overlays."""

    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"


# Default padding clears TikTok (320px) and Instagram Reels (420px) UI chrome
DEFAULT_WATERMARK_PADDING = 475


def _anchor(
    position: WatermarkPosition,
    padding: int,
    main_w: str,
    main_h: str,
    item_w: str,
    item_h: str,
) -> tuple[str, str]:
    pad = format_number(padding)
    column, row = WatermarkPosition(position).value.split("-")
    x = {
        "left": pad,
        "center": f"({main_w}-{item_w})/2",
        "right": f"{main_w}-{item_w}-{pad}",
    }[column]
    y = {
        "top": pad,
        "middle": f"({main_h}-{item_h})/2",
        "bottom": f"{main_h}-{item_h}-{pad}",
    }[row]
    return x, y


def watermark_overlay_position(
    position: WatermarkPosition = WatermarkPosition.BOTTOM_CENTER,
    padding: int = DEFAULT_WATERMARK_PADDING,
) -> tuple[str, str]:
    """Get (x, y) expressions for an image watermark on the overlay filter."""
    return _anchor(position, padding, "main_w", "main_h", "overlay_w", "overlay_h")


def watermark_text_position(
    position: WatermarkPosition = WatermarkPosition.BOTTOM_CENTER,
    padding: int = DEFAULT_WATERMARK_PADDING,
) -> tuple[str, str]:
    """Get (x, y) expressions for a text watermark on the drawtext filter."""
    return _anchor(position, padding, "w", "h", "text_w", "text_h")


def _margin(value: float, dimension: str) -> str:
    # Values < 1 are fractions of the background dimension, otherwise pixels
    if value < 1:
        return f"{dimension}*{format_number(value)}"
    return format_number(value)


def overlay_position(
    position: OverlayPosition = OverlayPosition.TOP_RIGHT,
    margin_x: float = 20,
    margin_y: float = 20,
) -> tuple[str, str]:
    """Get (x, y) expressions for a corner overlay."""
    mx = _margin(margin_x, "W")
    my = _margin(margin_y, "H")
    positions = {
        OverlayPosition.TOP_LEFT: (mx, my),
        OverlayPosition.TOP_RIGHT: (f"W-w-{mx}", my),
        OverlayPosition.BOTTOM_LEFT: (mx, f"H-h-{my}"),
        OverlayPosition.BOTTOM_RIGHT: (f"W-w-{mx}", f"H-h-{my}"),
    }
    return positions[OverlayPosition(position)]
