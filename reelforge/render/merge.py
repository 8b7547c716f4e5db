"""Transition/merge compiler.

Concatenates clips either with hard cuts or with a chain of pairwise
crossfades. Every clip is first normalized to the same size, frame rate
and audio format, which ``xfade`` and ``concat`` both require.

Crossfade timing: with effective durations d_0..d_{n-1} and transition t,
transition k starts at sum_{i<k}(d_i - t) and the output lasts
sum(d) - (n-1)*t.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from reelforge.config import get_settings
from reelforge.exceptions import ValidationError
from reelforge.render.audio_mixer import AudioMixer
from reelforge.render.filter_graph import EngineCommand, EngineInput, FilterGraph, format_number

logger = logging.getLogger(__name__)

DEFAULT_TRANSITION_DURATION = 0.5


class TransitionMode(str, Enum):
    NONE = "none"
    CROSSFADE = "crossfade"


@dataclass(frozen=True)
class TrimBounds:
    """Optional in/out points in seconds, relative to the clip start."""

    start: float | None = None
    end: float | None = None

    @property
    def is_set(self) -> bool:
        return bool(self.start) or bool(self.end)

    def input_options(self) -> list[str]:
        options: list[str] = []
        if self.start:
            options.extend(["-ss", format_number(self.start)])
        if self.end:
            options.extend(["-to", format_number(self.end)])
        return options


@dataclass(frozen=True)
class ClipSource:
    """A downloaded clip ready for planning."""

    path: str
    duration: float  # Full probed duration
    has_audio: bool = True
    trim: TrimBounds = TrimBounds()


def effective_duration(full_duration: float, trim: TrimBounds | None = None) -> float:
    """
    Duration of a clip after trimming.

    Raises:
        ValidationError: If nothing is left of the clip
    """
    trim = trim or TrimBounds()
    start = trim.start or 0.0
    end = trim.end or full_duration
    duration = min(end, full_duration) - start
    if duration <= 0:
        raise ValidationError(
            f"Trim leaves no content (full {full_duration:.2f}s, trim {start}-{end})"
        )
    return duration


def crossfade_offsets(durations: list[float], transition: float) -> list[float]:
    """Start time of each transition in the output timeline."""
    offsets: list[float] = []
    cumulative = 0.0
    for duration in durations[:-1]:
        cumulative += duration - transition
        offsets.append(cumulative)
    return offsets


def expected_output_duration(
    durations: list[float],
    mode: TransitionMode,
    transition: float = 0.0,
) -> float:
    total = sum(durations)
    if TransitionMode(mode) == TransitionMode.CROSSFADE and len(durations) > 1:
        total -= (len(durations) - 1) * transition
    return total


def _validate_crossfade(durations: list[float], transition: float) -> None:
    if transition <= 0:
        raise ValidationError("Transition duration must be positive for crossfade")
    for idx, duration in enumerate(durations):
        if duration < transition:
            raise ValidationError(
                f"Clip {idx} is {duration:.2f}s, shorter than the {transition}s transition"
            )


def _fit_video(graph: FilterGraph, source: str, width: int, height: int, crossfade: bool, fps: int) -> str:
    filters: list[tuple[str, dict]] = []
    if crossfade:
        filters.append(("setpts", {"expr": "PTS-STARTPTS"}))
    filters.extend([
        ("scale", {"w": width, "h": height, "force_original_aspect_ratio": "decrease"}),
        ("pad", {"w": width, "h": height, "x": "(ow-iw)/2", "y": "(oh-ih)/2"}),
        ("setsar", {"sar": 1}),
    ])
    if crossfade:
        # xfade needs identical pixel format, constant frame rate and timebase
        filters.extend([
            ("format", {"pix_fmts": "yuv420p"}),
            ("fps", {"fps": fps}),
            ("settb", {"expr": "AVTB"}),
        ])
    return graph.chain(source, filters, prefix="v")


def build_merge_command(
    clips: list[ClipSource],
    output_path: str,
    resolution: tuple[int, int],
    mode: TransitionMode = TransitionMode.NONE,
    transition_duration: float = DEFAULT_TRANSITION_DURATION,
) -> tuple[EngineCommand, float]:
    """
    Plan a merge.

    Returns:
        The engine command and the expected output duration in seconds

    Raises:
        ValidationError: On empty input, empty trims or clips shorter than
            the transition
    """
    if not clips:
        raise ValidationError("At least one clip is required")

    settings = get_settings()
    mode = TransitionMode(mode)
    width, height = resolution
    crossfade = mode == TransitionMode.CROSSFADE and len(clips) > 1
    mixer = AudioMixer()

    durations = [effective_duration(c.duration, c.trim) for c in clips]
    if crossfade:
        _validate_crossfade(durations, transition_duration)

    graph = FilterGraph()
    inputs: list[EngineInput] = []
    video_labels: list[str] = []
    audio_labels: list[str] = []

    for idx, (clip, duration) in enumerate(zip(clips, durations)):
        inputs.append(EngineInput(clip.path, clip.trim.input_options()))
        video_labels.append(
            _fit_video(graph, f"{idx}:v", width, height, crossfade, settings.render_fps)
        )

        if clip.has_audio:
            audio = mixer.normalize_format(graph, f"{idx}:a")
        else:
            audio = mixer.normalize_format(graph, mixer.silence(graph, duration))
        if crossfade:
            audio = graph.add("asetpts", audio, {"expr": "PTS-STARTPTS"}, prefix="a")
        audio_labels.append(audio)

    if len(clips) == 1:
        video_out, audio_out = video_labels[0], audio_labels[0]
    elif crossfade:
        offsets = crossfade_offsets(durations, transition_duration)
        video_out, audio_out = video_labels[0], audio_labels[0]
        for idx in range(1, len(clips)):
            video_out = graph.add(
                "xfade",
                [video_out, video_labels[idx]],
                {
                    "transition": "fade",
                    "duration": transition_duration,
                    "offset": round(offsets[idx - 1], 3),
                },
                prefix="xv",
            )
            audio_out = graph.add(
                "acrossfade",
                [audio_out, audio_labels[idx]],
                {"d": transition_duration},
                prefix="xa",
            )
    else:
        count = len(clips)
        video_out = graph.add("concat", video_labels, {"n": count, "v": 1, "a": 0}, prefix="v")
        audio_out = graph.add("concat", audio_labels, {"n": count, "v": 0, "a": 1}, prefix="a")

    graph.mark_output(video_out)
    graph.mark_output(audio_out)

    expected = expected_output_duration(durations, mode if crossfade else TransitionMode.NONE, transition_duration)
    logger.info(
        "[VideoMerge] %d clips, mode=%s, durations=%s, expected %.2fs",
        len(clips), mode.value, [round(d, 2) for d in durations], expected,
    )

    command = EngineCommand(
        inputs=inputs,
        graph=graph,
        maps=[video_out, audio_out],
        output_args=[
            "-c:v", "libx264",
            "-preset", settings.render_preset,
            "-crf", str(settings.render_crf),
            *mixer.encode_args(),
        ],
        output_path=output_path,
    )
    return command, expected
