"""
Audio mixing stages built on the filter graph.

This module handles:
- Narration + looping music bed for compose jobs
- Replacing or mixing the audio track of an existing clip (merge-audio jobs)
- Volume control per track
"""

import logging
from dataclasses import dataclass
from enum import Enum

from reelforge.config import get_settings
from reelforge.render.filter_graph import EngineCommand, EngineInput, FilterGraph

logger = logging.getLogger(__name__)

DEFAULT_MUSIC_VOLUME = 0.4  # Narration always stays at 1.0

# Codecs that can be stream-copied into an MP4 without re-encoding
COPYABLE_VIDEO_CODECS = frozenset({"h264", "hevc", "h265"})


class AudioMergeMode(str, Enum):
    REPLACE = "replace"
    MIX = "mix"


@dataclass(frozen=True)
class MergeAudioPlan:
    """Resolved decisions for a merge-audio job."""

    mode: AudioMergeMode
    copy_video: bool
    volume: float


class AudioMixer:
    """
    Builds audio stages for ffmpeg invocations.

    Gains are applied with the volume filter and tracks are combined with
    ``amix=normalize=0`` so the requested gains are what ends up in the mix.
    """

    def __init__(self, sample_rate: int | None = None, audio_bitrate: str | None = None):
        settings = get_settings()
        self.sample_rate = sample_rate or settings.render_audio_sample_rate
        self.audio_bitrate = audio_bitrate or settings.render_audio_bitrate

    @staticmethod
    def music_input(path: str) -> EngineInput:
        """Music is looped so it never runs out before the narration."""
        return EngineInput(path=path, options=["-stream_loop", "-1"])

    def add_music_bed(
        self,
        graph: FilterGraph,
        narration: str,
        music: str,
        music_volume: float = DEFAULT_MUSIC_VOLUME,
    ) -> str:
        """
        Mix narration with a music bed.

        The mix lasts as long as the narration (``duration=first``).

        Returns:
            Label of the mixed audio stream
        """
        voice = graph.add("volume", narration, {"volume": 1.0}, prefix="a")
        bed = graph.add("volume", music, {"volume": music_volume}, prefix="a")
        mixed = graph.add(
            "amix",
            [voice, bed],
            {"inputs": 2, "duration": "first", "normalize": 0},
            prefix="a",
        )
        logger.info("[AUDIO MIX] Narration + music bed at volume %s", music_volume)
        return mixed

    def normalize_format(self, graph: FilterGraph, source: str) -> str:
        """Resample to the render sample rate in stereo."""
        return graph.add(
            "aformat",
            source,
            {"sample_rates": self.sample_rate, "channel_layouts": "stereo"},
            prefix="a",
        )

    def silence(self, graph: FilterGraph, duration: float) -> str:
        """Generate a silent stereo track of the given length."""
        source = graph.add(
            "anullsrc",
            None,
            {"channel_layout": "stereo", "sample_rate": self.sample_rate},
            prefix="a",
        )
        return graph.add("atrim", source, {"duration": duration}, prefix="a")

    def encode_args(self) -> list[str]:
        return ["-c:a", "aac", "-b:a", self.audio_bitrate]

    @staticmethod
    def plan_merge_audio(
        mode: AudioMergeMode,
        video_codec: str | None,
        clip_has_audio: bool,
        volume: float = 1.0,
    ) -> MergeAudioPlan:
        """Resolve the effective mode and whether video can be copied."""
        effective = AudioMergeMode(mode)
        if effective == AudioMergeMode.MIX and not clip_has_audio:
            logger.info("[AUDIO MIX] Clip has no audio stream, falling back to replace mode")
            effective = AudioMergeMode.REPLACE
        copy_video = (video_codec or "").lower() in COPYABLE_VIDEO_CODECS
        return MergeAudioPlan(mode=effective, copy_video=copy_video, volume=volume)

    def build_merge_audio_command(
        self,
        video_path: str,
        audio_path: str,
        output_path: str,
        plan: MergeAudioPlan,
    ) -> EngineCommand:
        """
        Build the ffmpeg command that puts new audio under an existing clip.

        Input 0 is the clip, input 1 the new audio. Output is cut to the
        shorter of the two streams.
        """
        settings = get_settings()
        graph = FilterGraph()

        new_audio = graph.add("volume", "1:a", {"volume": plan.volume}, prefix="a")
        if plan.mode == AudioMergeMode.MIX:
            audio_out = graph.add(
                "amix",
                ["0:a", new_audio],
                {"inputs": 2, "duration": "first", "normalize": 0},
                prefix="a",
            )
        else:
            audio_out = new_audio
        graph.mark_output(audio_out)

        if plan.copy_video:
            video_args = ["-c:v", "copy"]
        else:
            video_args = [
                "-c:v", "libx264",
                "-preset", settings.render_preset,
                "-crf", str(settings.render_crf),
            ]

        return EngineCommand(
            inputs=[EngineInput(video_path), EngineInput(audio_path)],
            graph=graph,
            maps=["0:v:0", audio_out],
            output_args=[*video_args, *self.encode_args(), "-shortest"],
            output_path=output_path,
        )
