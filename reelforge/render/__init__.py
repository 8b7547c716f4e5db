from reelforge.render.audio_mixer import AudioMergeMode, AudioMixer
from reelforge.render.captions import CaptionCompiler, CaptionStyle, WordTimestamp, build_ass_document
from reelforge.render.composer import (
    CompositionRequest,
    ImageWatermark,
    TextWatermark,
    build_compose_command,
    cover_scale,
)
from reelforge.render.convert import ArchiveFormat, FrameFormat, build_mp4_command
from reelforge.render.engine import FFmpegEngine
from reelforge.render.filter_graph import EngineCommand, FilterGraph
from reelforge.render.merge import TransitionMode, build_merge_command, crossfade_offsets
from reelforge.render.overlay import OverlaySpec, build_overlay_command, compute_overlay_size
from reelforge.render.pipeline import CompositionPipeline, MergeClip, PipelineOutput

__all__ = [
    "AudioMixer",
    "AudioMergeMode",
    "CaptionCompiler",
    "CaptionStyle",
    "WordTimestamp",
    "build_ass_document",
    "CompositionRequest",
    "TextWatermark",
    "ImageWatermark",
    "build_compose_command",
    "cover_scale",
    "ArchiveFormat",
    "FrameFormat",
    "build_mp4_command",
    "FFmpegEngine",
    "EngineCommand",
    "FilterGraph",
    "TransitionMode",
    "build_merge_command",
    "crossfade_offsets",
    "OverlaySpec",
    "build_overlay_command",
    "compute_overlay_size",
    "CompositionPipeline",
    "MergeClip",
    "PipelineOutput",
]
