"""ASS (Advanced SubStation Alpha) caption compiler.

Turns word-level timestamps into karaoke-style captions:
- Words are grouped into short phrases (segments) that never overlap in time
- Each segment becomes one Dialogue line
- Per-word highlighting uses inline \\t() colour transitions whose offsets
  are relative to the Dialogue start, as libass requires
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Literal

from reelforge.exceptions import InvalidTimestampsError

logger = logging.getLogger(__name__)

DEFAULT_WORDS_PER_SEGMENT = 3
DEFAULT_PAUSE_THRESHOLD_S = 0.3  # 300ms gap = natural phrase break


@dataclass(frozen=True)
class WordTimestamp:
    """A single spoken word with its start/end time in seconds."""

    word: str
    start: float
    end: float


@dataclass(frozen=True)
class CaptionSegment:
    """A time-disjoint phrase rendered as one subtitle entry."""

    start_time: float
    end_time: float
    words: tuple[WordTimestamp, ...]


@dataclass(frozen=True)
class CaptionStyle:
    """Caption styling options."""

    resolution: str = "1080x1920"
    font_family: str = "DejaVu Sans"
    font_size: int = 80
    primary_color: str = "#FFFFFF"
    highlight_color: str = "#FFD700"
    outline_color: str = "#000000"
    margin_bottom: int = 300
    words_per_segment: int = DEFAULT_WORDS_PER_SEGMENT
    pause_threshold: float = DEFAULT_PAUSE_THRESHOLD_S


@dataclass
class CaptionDocument:
    """Compiled subtitle document plus the segments it was built from."""

    text: str
    segments: list[CaptionSegment] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.segments


def color_to_ass(hex_color: str) -> str:
    """Convert #RRGGBB to the ASS &HAABBGGRR colour model (fully opaque)."""
    hex_value = hex_color.lstrip("#")
    if len(hex_value) != 6:
        raise ValueError(f"Expected a #RRGGBB colour, got {hex_color!r}")
    try:
        int(hex_value, 16)
    except ValueError:
        raise ValueError(f"Expected a #RRGGBB colour, got {hex_color!r}")

    r, g, b = hex_value[0:2], hex_value[2:4], hex_value[4:6]
    return f"&H00{b}{g}{r}".upper()


def format_ass_time(seconds: float) -> str:
    """Format seconds as H:MM:SS.CC (hours:minutes:seconds.centiseconds)."""
    total_cs = int(round(max(seconds, 0.0) * 100))
    hours, rem = divmod(total_cs, 360000)
    mins, rem = divmod(rem, 6000)
    secs, cs = divmod(rem, 100)
    return f"{hours}:{mins:02d}:{secs:02d}.{cs:02d}"


def parse_resolution(resolution: str) -> tuple[int, int]:
    """Parse 'WIDTHxHEIGHT' into a (width, height) tuple."""
    try:
        width_s, height_s = resolution.lower().split("x")
        width, height = int(width_s), int(height_s)
    except ValueError:
        raise ValueError(f"Resolution must look like 1080x1920, got {resolution!r}")
    if width <= 0 or height <= 0:
        raise ValueError(f"Resolution must be positive, got {resolution!r}")
    return width, height


def _escape_ass_text(word: str) -> str:
    # Braces open override blocks and backslashes start tags
    return word.replace("\\", "").replace("{", "(").replace("}", ")")


def normalize_timestamps(
    words: Iterable[WordTimestamp],
    policy: Literal["clamp", "reject"] = "clamp",
) -> list[WordTimestamp]:
    """Validate word timestamps before segmentation.

    Words with a negative time or ``end < start`` are always rejected.
    Ordering problems are handled by ``policy``:

    - ``clamp``: stable-sort by start, then clamp each word's end to the
      start of the following word so no two words overlap.
    - ``reject``: raise if words are out of order or overlap.

    Raises:
        InvalidTimestampsError: On malformed input
    """
    items = list(words)
    for idx, w in enumerate(items):
        if not (math.isfinite(w.start) and math.isfinite(w.end)):
            raise InvalidTimestampsError("Timestamps must be finite numbers", index=idx)
        if w.start < 0 or w.end < 0:
            raise InvalidTimestampsError("Timestamps must be non-negative", index=idx)
        if w.end < w.start:
            raise InvalidTimestampsError("Word ends before it starts", index=idx)

    if policy == "reject":
        for idx in range(1, len(items)):
            prev, cur = items[idx - 1], items[idx]
            if cur.start < prev.start:
                raise InvalidTimestampsError("Words are not ordered by start time", index=idx)
            if cur.start < prev.end:
                raise InvalidTimestampsError("Word overlaps the previous word", index=idx)
        return items

    ordered = sorted(items, key=lambda w: w.start)
    result: list[WordTimestamp] = []
    for idx, w in enumerate(ordered):
        if idx + 1 < len(ordered) and w.end > ordered[idx + 1].start:
            w = WordTimestamp(word=w.word, start=w.start, end=ordered[idx + 1].start)
        result.append(w)

    if result != items:
        logger.warning("[Captions] Normalized %d word timestamps (sorted/clamped)", len(items))
    return result


def segment_words(
    words: list[WordTimestamp],
    max_words: int = DEFAULT_WORDS_PER_SEGMENT,
    pause_threshold: float = DEFAULT_PAUSE_THRESHOLD_S,
) -> list[CaptionSegment]:
    """Greedily group words into phrases.

    A segment is closed when it reaches ``max_words``, when the gap to the
    next word exceeds ``pause_threshold`` seconds, or at the last word.
    Given non-overlapping input, segments are time-disjoint.
    """
    if max_words < 1:
        raise ValueError("max_words must be at least 1")

    segments: list[CaptionSegment] = []
    current: list[WordTimestamp] = []

    for idx, word in enumerate(words):
        current.append(word)

        is_last = idx == len(words) - 1
        is_full = len(current) >= max_words
        has_gap = not is_last and words[idx + 1].start - word.end > pause_threshold

        if is_last or is_full or has_gap:
            segments.append(
                CaptionSegment(
                    start_time=current[0].start,
                    end_time=current[-1].end,
                    words=tuple(current),
                )
            )
            current = []

    return segments


def _relative_ms(seconds: float, segment_start: float) -> int:
    return max(0, int(round((seconds - segment_start) * 1000)))


def build_highlight_text(segment: CaptionSegment, primary: str, highlight: str) -> str:
    """Build the Dialogue text with inline per-word colour animation.

    The first word starts highlighted and only transitions back at its end;
    scheduling a transition at offset 0 races the renderer's initial state
    and flashes. Later words go primary -> highlight -> primary.
    """
    parts: list[str] = []
    for idx, word in enumerate(segment.words):
        end_ms = _relative_ms(word.end, segment.start_time)
        text = _escape_ass_text(word.word)
        if idx == 0:
            end_ms = max(end_ms, 1)
            tag = f"{{\\1c{highlight}&\\t({end_ms},{end_ms},\\1c{primary}&)}}"
        else:
            start_ms = _relative_ms(word.start, segment.start_time)
            tag = (
                f"{{\\1c{primary}&"
                f"\\t({start_ms},{start_ms},\\1c{highlight}&)"
                f"\\t({end_ms},{end_ms},\\1c{primary}&)}}"
            )
        parts.append(f"{tag}{text}")
    return " ".join(parts)


def _header(style: CaptionStyle, primary: str, highlight: str, outline: str) -> str:
    width, height = parse_resolution(style.resolution)
    return (
        "[Script Info]\n"
        "Title: Reelforge Captions\n"
        "ScriptType: v4.00+\n"
        "WrapStyle: 0\n"
        f"PlayResX: {width}\n"
        f"PlayResY: {height}\n"
        "ScaledBorderAndShadow: yes\n"
        "\n"
        "[V4+ Styles]\n"
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, "
        "BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, "
        "BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding\n"
        f"Style: Default,{style.font_family},{style.font_size},{primary},{highlight},{outline},"
        f"&H80000000,-1,0,0,0,100,100,0,0,1,4,2,2,10,10,{style.margin_bottom},1\n"
        "\n"
        "[Events]\n"
        "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text\n"
    )


class CaptionCompiler:
    """Compile word timestamps into an ASS document."""

    def __init__(
        self,
        style: CaptionStyle | None = None,
        timestamp_policy: Literal["clamp", "reject"] = "clamp",
    ):
        self.style = style or CaptionStyle()
        self.timestamp_policy = timestamp_policy

    def compile(self, words: Iterable[WordTimestamp]) -> CaptionDocument:
        style = self.style
        primary = color_to_ass(style.primary_color)
        highlight = color_to_ass(style.highlight_color)
        outline = color_to_ass(style.outline_color)

        normalized = normalize_timestamps(words, self.timestamp_policy)
        segments = segment_words(normalized, style.words_per_segment, style.pause_threshold)

        lines = [_header(style, primary, highlight, outline)]
        for segment in segments:
            lines.append(
                f"Dialogue: 0,{format_ass_time(segment.start_time)},{format_ass_time(segment.end_time)},"
                f"Default,,0,0,0,,{build_highlight_text(segment, primary, highlight)}\n"
            )

        logger.info(
            "[Captions] Compiled %d words into %d segments", len(normalized), len(segments)
        )
        return CaptionDocument(text="".join(lines), segments=segments)


def build_ass_document(words: Iterable[WordTimestamp], style: CaptionStyle | None = None) -> str:
    """Convenience wrapper returning only the document text."""
    return CaptionCompiler(style).compile(words).text
