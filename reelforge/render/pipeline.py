"""
Per-job media pipeline.

Each job type follows the same sequence inside a job workspace:
1. Fetch inputs (backgrounds through the shared asset cache)
2. Probe what the planner needs (sizes, durations, streams)
3. Plan an EngineCommand
4. Run the engine and check its output

Uploading is left to the caller so the pipeline never touches storage.
"""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from reelforge.config import get_settings
from reelforge.exceptions import EngineFailureError, ProbeFailureError, ValidationError
from reelforge.render.audio_mixer import AudioMergeMode, AudioMixer
from reelforge.render.captions import CaptionCompiler
from reelforge.render.composer import (
    ComposeInputs,
    CompositionRequest,
    ImageWatermark,
    build_compose_command,
)
from reelforge.render.convert import (
    ARCHIVE_CONTENT_TYPES,
    ArchiveFormat,
    FrameFormat,
    build_extract_audio_command,
    build_frames_command,
    build_mp4_command,
    can_copy_streams,
    list_frames,
    package_frames,
)
from reelforge.render.engine import FFmpegEngine
from reelforge.render.merge import ClipSource, TransitionMode, TrimBounds, build_merge_command
from reelforge.render.overlay import (
    OverlaySpec,
    build_overlay_command,
    compute_overlay_size,
    resolve_overlay_asset,
)
from reelforge.services.asset_cache import AssetCache, get_asset_cache
from reelforge.utils.download import download_file
from reelforge.utils.media_info import (
    MediaInfo,
    get_media_duration,
    get_media_info,
    get_video_codec,
    get_video_dimensions,
    has_audio_track,
)

logger = logging.getLogger(__name__)

OUTPUT_FILENAME = "output.mp4"


@dataclass
class PipelineOutput:
    """Result of a successful pipeline run."""

    output_path: str
    metadata: dict[str, Any] = field(default_factory=dict)
    content_type: str = "video/mp4"


@dataclass(frozen=True)
class MergeClip:
    url: str
    trim: TrimBounds = TrimBounds()


def _probe_output_duration(path: str, fallback: float) -> float:
    try:
        return get_media_duration(path)
    except ProbeFailureError as e:
        logger.warning("Could not probe output duration, using planned %.2fs: %s", fallback, e)
        return fallback


def _probe_input(path: str) -> MediaInfo:
    """One ffprobe call for everything the planners need about an input."""
    info = get_media_info(path)
    if not info.duration or info.duration <= 0:
        raise ProbeFailureError(f"Duration not found in: {path}")
    return info


class CompositionPipeline:
    """Runs the download, probe, plan and engine stages for one job."""

    def __init__(
        self,
        work_dir: str | Path,
        engine: FFmpegEngine | None = None,
        asset_cache: AssetCache | None = None,
        downloader: Callable[[str, Path], object] = download_file,
    ):
        self.work_dir = Path(work_dir)
        self.engine = engine or FFmpegEngine()
        self._asset_cache = asset_cache
        self.download = downloader
        self.settings = get_settings()

    @property
    def asset_cache(self) -> AssetCache:
        if self._asset_cache is None:
            self._asset_cache = get_asset_cache()
        return self._asset_cache

    @property
    def output_path(self) -> str:
        return str(self.work_dir / OUTPUT_FILENAME)

    # ------------------------------------------------------------------
    # Compose
    # ------------------------------------------------------------------

    def compose(self, request: CompositionRequest) -> PipelineOutput:
        """Background + narration (+ music, captions, watermark) -> MP4."""
        background = self.asset_cache.materialize(
            request.background_id, request.background_url, self.work_dir / "background.mp4"
        )

        narration = self.work_dir / "audio"
        self.download(request.audio_url, narration)

        music = None
        if request.music_url:
            music = self.work_dir / "music"
            self.download(request.music_url, music)

        watermark_image = None
        if isinstance(request.watermark, ImageWatermark):
            watermark_image = self.work_dir / "watermark.png"
            self.download(request.watermark.url, watermark_image)

        subtitles = None
        if request.has_captions:
            compiler = CaptionCompiler(request.caption_style, self.settings.caption_timestamp_policy)
            document = compiler.compile(request.words)
            subtitles = self.work_dir / "captions.ass"
            subtitles.write_text(document.text, encoding="utf-8")

        background_size = get_video_dimensions(str(background))
        inputs = ComposeInputs(
            background=str(background),
            narration=str(narration),
            music=str(music) if music else None,
            watermark_image=str(watermark_image) if watermark_image else None,
            subtitles=str(subtitles) if subtitles else None,
        )
        command = build_compose_command(request, inputs, background_size, self.output_path)
        self.engine.run(command)
        return PipelineOutput(output_path=self.output_path)

    # ------------------------------------------------------------------
    # Overlay
    # ------------------------------------------------------------------

    def overlay(
        self,
        video_url: str,
        spec: OverlaySpec,
        overlay_asset: str | None = None,
        overlay_url: str | None = None,
    ) -> PipelineOutput:
        """Composite a PNG at a corner, sized relative to the clip width."""
        if bool(overlay_asset) == bool(overlay_url):
            raise ValidationError("Exactly one of overlayAsset or overlayUrl must be provided")

        video = self.work_dir / "input.mp4"
        self.download(video_url, video)

        overlay = self.work_dir / "overlay.png"
        if overlay_asset:
            asset = resolve_overlay_asset(overlay_asset, self.settings.overlay_assets_dir)
            shutil.copyfile(asset, overlay)
            logger.info("[VideoOverlay] Using bundled asset: %s", overlay_asset)
        else:
            self.download(overlay_url, overlay)

        video_width, video_height = get_video_dimensions(str(video))
        overlay_width, overlay_height = get_video_dimensions(str(overlay))
        size = compute_overlay_size(video_width, overlay_width, overlay_height, spec.scale)
        logger.info(
            "[VideoOverlay] Video %dx%d, overlay %dx%d -> %dx%d",
            video_width, video_height, overlay_width, overlay_height, *size,
        )

        command = build_overlay_command(str(video), str(overlay), self.output_path, size, spec)
        self.engine.run(command)
        return PipelineOutput(output_path=self.output_path)

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge(
        self,
        clips: list[MergeClip],
        resolution: tuple[int, int],
        mode: TransitionMode = TransitionMode.NONE,
        transition_duration: float = 0.5,
    ) -> PipelineOutput:
        """Concatenate clips by hard cut or crossfade."""
        sources: list[ClipSource] = []
        for idx, clip in enumerate(clips):
            path = self.work_dir / f"input_{idx}.mp4"
            self.download(clip.url, path)
            info = _probe_input(str(path))
            sources.append(
                ClipSource(
                    path=str(path),
                    duration=info.duration,
                    has_audio=info.has_audio,
                    trim=clip.trim,
                )
            )

        command, expected = build_merge_command(
            sources, self.output_path, resolution, mode, transition_duration
        )
        self.engine.run(command)

        duration = _probe_output_duration(self.output_path, expected)
        return PipelineOutput(
            output_path=self.output_path,
            metadata={"duration": duration, "videoCount": len(clips)},
        )

    # ------------------------------------------------------------------
    # Merge audio
    # ------------------------------------------------------------------

    def merge_audio(
        self,
        video_url: str,
        audio_url: str,
        mode: AudioMergeMode = AudioMergeMode.REPLACE,
        volume: float = 1.0,
    ) -> PipelineOutput:
        """Replace or mix the audio track of a clip."""
        video = self.work_dir / "input.mp4"
        audio = self.work_dir / "audio"
        self.download(video_url, video)
        self.download(audio_url, audio)

        mixer = AudioMixer()
        plan = mixer.plan_merge_audio(
            mode,
            video_codec=get_video_codec(str(video)),
            clip_has_audio=has_audio_track(str(video)),
            volume=volume,
        )
        logger.info(
            "[VideoMergeAudio] Mode: %s, copy video: %s, volume: %s",
            plan.mode.value, plan.copy_video, plan.volume,
        )

        command = mixer.build_merge_audio_command(str(video), str(audio), self.output_path, plan)
        self.engine.run(command)

        duration = _probe_output_duration(self.output_path, 0.0)
        return PipelineOutput(output_path=self.output_path, metadata={"duration": duration})

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    def to_mp4(
        self,
        video_url: str,
        crf: int = 23,
        preset: str = "medium",
        smart_copy: bool = True,
    ) -> PipelineOutput:
        """Convert any container to MP4, remuxing when the codecs already fit."""
        source = self.work_dir / "input"
        self.download(video_url, source)

        info = _probe_input(str(source))
        copy_streams = smart_copy and can_copy_streams(info)
        logger.info(
            "[VideoToMp4] Codecs %s/%s, copy streams: %s",
            info.video_codec, info.audio_codec, copy_streams,
        )

        command = build_mp4_command(
            str(source), self.output_path, copy_streams=copy_streams, crf=crf, preset=preset
        )
        self.engine.run(command)

        duration = _probe_output_duration(self.output_path, info.duration)
        return PipelineOutput(
            output_path=self.output_path,
            metadata={"duration": duration, "copied": copy_streams},
        )

    def extract_audio(self, video_url: str, mono: bool = True) -> PipelineOutput:
        """Extract the audio track as PCM WAV."""
        source = self.work_dir / "input"
        self.download(video_url, source)

        info = _probe_input(str(source))
        if not info.has_audio:
            raise ValidationError("Input video has no audio track")

        output_path = str(self.work_dir / "output.wav")
        command = build_extract_audio_command(str(source), output_path, mono=mono)
        self.engine.run(command)
        return PipelineOutput(
            output_path=output_path,
            metadata={"duration": info.duration, "mono": mono},
            content_type="audio/wav",
        )

    def extract_frames(
        self,
        video_url: str,
        fps: float = 1.0,
        image_format: FrameFormat = FrameFormat.PNG,
        quality: int | None = None,
        archive_format: ArchiveFormat = ArchiveFormat.ZIP,
    ) -> PipelineOutput:
        """Sample frames at ``fps`` and pack them into one archive."""
        source = self.work_dir / "input"
        self.download(video_url, source)

        info = _probe_input(str(source))
        if not info.has_video:
            raise ValidationError("Input has no video stream")

        frames_dir = self.work_dir / "frames"
        frames_dir.mkdir(exist_ok=True)
        command = build_frames_command(str(source), frames_dir, fps, image_format, quality)
        self.engine.run(command, check_output=False)

        frames = list_frames(frames_dir, image_format)
        if not frames:
            raise EngineFailureError("No frames were extracted from the video")
        logger.info("[VideoFrames] Extracted %d frames at %s fps", len(frames), fps)

        archive_format = ArchiveFormat(archive_format)
        archive = package_frames(frames_dir, archive_format)
        return PipelineOutput(
            output_path=str(archive),
            metadata={"frameCount": len(frames), "fps": fps, "format": FrameFormat(image_format).value},
            content_type=ARCHIVE_CONTENT_TYPES[archive_format],
        )
