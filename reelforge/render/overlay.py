"""Proportional overlay scaler.

Composites a transparent PNG onto a clip at a corner, sized as an exact
fraction of the clip's width with the overlay's aspect ratio preserved.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path

from reelforge.config import get_settings
from reelforge.exceptions import CompositionError, OverlayAssetNotFoundError
from reelforge.render.filter_graph import EngineCommand, EngineInput, FilterGraph
from reelforge.render.positions import OverlayPosition, overlay_position

logger = logging.getLogger(__name__)

DEFAULT_OVERLAY_SCALE = 0.22
DEFAULT_OVERLAY_MARGIN = 20


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class OverlaySpec:
    """Placement options for a corner overlay."""

    position: OverlayPosition = OverlayPosition.TOP_RIGHT
    scale: float = DEFAULT_OVERLAY_SCALE
    margin_x: float = DEFAULT_OVERLAY_MARGIN
    margin_y: float = DEFAULT_OVERLAY_MARGIN


def compute_overlay_size(
    background_width: int,
    overlay_width: int,
    overlay_height: int,
    scale: float,
) -> tuple[int, int]:
    """
    Size an overlay relative to the background width.

    width = round(background_width * scale)
    height = round(width * overlay_height / overlay_width)

    Raises:
        CompositionError: If any dimension is non-positive
    """
    if background_width <= 0 or overlay_width <= 0 or overlay_height <= 0:
        raise CompositionError(
            f"Invalid dimensions: background width {background_width}, "
            f"overlay {overlay_width}x{overlay_height}"
        )
    if scale <= 0:
        raise CompositionError(f"Overlay scale must be positive, got {scale}")

    width = round_half_up(background_width * scale)
    height = round_half_up(width * overlay_height / overlay_width)
    if width <= 0 or height <= 0:
        raise CompositionError(
            f"Overlay would be {width}x{height} on a {background_width}px wide background"
        )
    return width, height


def resolve_overlay_asset(name: str, assets_dir: str) -> Path:
    """
    Look up a bundled overlay by name.

    Raises:
        OverlayAssetNotFoundError: If no ``<name>.png`` exists
    """
    # Names are plain identifiers, never paths
    if not name or Path(name).name != name or name.startswith("."):
        raise OverlayAssetNotFoundError(name, assets_dir)
    path = Path(assets_dir) / f"{name}.png"
    if not path.is_file():
        raise OverlayAssetNotFoundError(name, assets_dir)
    return path


def build_overlay_command(
    video_path: str,
    overlay_path: str,
    output_path: str,
    size: tuple[int, int],
    spec: OverlaySpec = OverlaySpec(),
) -> EngineCommand:
    """Scale the overlay to ``size`` and composite it; audio is copied."""
    width, height = size
    graph = FilterGraph()
    scaled = graph.add("scale", "1:v", {"w": width, "h": height}, prefix="ovl")
    x, y = overlay_position(spec.position, spec.margin_x, spec.margin_y)
    video_out = graph.add("overlay", ["0:v", scaled], {"x": x, "y": y}, prefix="v")
    graph.mark_output(video_out)

    logger.info(
        "[VideoOverlay] Overlay %dx%d at %s (x=%s, y=%s)",
        width, height, OverlayPosition(spec.position).value, x, y,
    )

    settings = get_settings()
    return EngineCommand(
        inputs=[EngineInput(video_path), EngineInput(overlay_path)],
        graph=graph,
        maps=[video_out, "0:a?"],
        output_args=[
            "-c:a", "copy",
            "-c:v", "libx264",
            "-preset", settings.render_preset,
            "-crf", str(settings.render_crf),
        ],
        output_path=output_path,
    )
