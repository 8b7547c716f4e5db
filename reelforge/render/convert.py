"""Single-input conversions: MP4 transcode, WAV extraction, frame sampling.

These jobs need no composition, so their plans are short: one input, at
most one filter, and an output encoding.
"""

import logging
import tarfile
import zipfile
from enum import Enum
from pathlib import Path

from reelforge.config import get_settings
from reelforge.exceptions import ValidationError
from reelforge.render.filter_graph import EngineCommand, EngineInput, FilterGraph
from reelforge.utils.media_info import MediaInfo

logger = logging.getLogger(__name__)

X264_PRESETS = (
    "ultrafast", "superfast", "veryfast", "faster", "fast",
    "medium", "slow", "slower", "veryslow",
)
MP4_AUDIO_BITRATE = "128k"
FRAME_PATTERN = "frame_%04d"


class FrameFormat(str, Enum):
    PNG = "png"
    JPG = "jpg"


class ArchiveFormat(str, Enum):
    ZIP = "zip"
    GZIP = "gzip"


ARCHIVE_SUFFIXES = {ArchiveFormat.ZIP: ".zip", ArchiveFormat.GZIP: ".tar.gz"}
ARCHIVE_CONTENT_TYPES = {ArchiveFormat.ZIP: "application/zip", ArchiveFormat.GZIP: "application/gzip"}


def can_copy_streams(info: MediaInfo) -> bool:
    """H.264 video with AAC audio can go into MP4 without re-encoding."""
    return (info.video_codec or "").lower() == "h264" and (info.audio_codec or "").lower() == "aac"


def build_mp4_command(
    input_path: str,
    output_path: str,
    *,
    copy_streams: bool,
    crf: int = 23,
    preset: str = "medium",
) -> EngineCommand:
    """Remux or transcode to MP4 with the moov atom up front."""
    if copy_streams:
        output_args = ["-c", "copy"]
    else:
        if preset not in X264_PRESETS:
            raise ValidationError(f"Unknown x264 preset: {preset}")
        output_args = [
            "-c:v", "libx264",
            "-preset", preset,
            "-crf", str(crf),
            "-c:a", "aac",
            "-b:a", MP4_AUDIO_BITRATE,
        ]
    output_args.extend(["-movflags", "+faststart"])

    return EngineCommand(
        inputs=[EngineInput(input_path)],
        graph=FilterGraph(),
        maps=[],
        output_args=output_args,
        output_path=output_path,
    )


def build_extract_audio_command(input_path: str, output_path: str, mono: bool = True) -> EngineCommand:
    """Drop video and write 16-bit PCM WAV at the render sample rate."""
    output_args = [
        "-vn",
        "-c:a", "pcm_s16le",
        "-ar", str(get_settings().render_audio_sample_rate),
    ]
    if mono:
        output_args.extend(["-ac", "1"])

    return EngineCommand(
        inputs=[EngineInput(input_path)],
        graph=FilterGraph(),
        maps=[],
        output_args=output_args,
        output_path=output_path,
    )


def build_frames_command(
    input_path: str,
    output_dir: str | Path,
    fps: float = 1.0,
    image_format: FrameFormat = FrameFormat.PNG,
    quality: int | None = None,
) -> EngineCommand:
    """
    Sample frames at ``fps`` into numbered images.

    ``quality`` is the JPEG qscale (1 best, 31 worst) and is ignored for PNG.
    """
    if fps <= 0:
        raise ValidationError(f"fps must be positive, got {fps}")
    image_format = FrameFormat(image_format)

    graph = FilterGraph()
    frames = graph.add("fps", "0:v", {"fps": fps}, prefix="v")
    graph.mark_output(frames)

    output_args: list[str] = []
    if image_format == FrameFormat.JPG and quality:
        output_args.extend(["-q:v", str(quality)])

    pattern = Path(output_dir) / f"{FRAME_PATTERN}.{image_format.value}"
    return EngineCommand(
        inputs=[EngineInput(input_path)],
        graph=graph,
        maps=[frames],
        output_args=output_args,
        output_path=str(pattern),
    )


def list_frames(output_dir: str | Path, image_format: FrameFormat) -> list[Path]:
    suffix = f".{FrameFormat(image_format).value}"
    return sorted(p for p in Path(output_dir).iterdir() if p.suffix == suffix)


def package_frames(frames_dir: str | Path, archive_format: ArchiveFormat) -> Path:
    """
    Pack every file in ``frames_dir`` into an archive next to it.

    Zip archives hold the frames at the top level; tarballs keep the
    directory name as the single top-level entry.
    """
    frames_dir = Path(frames_dir)
    archive_format = ArchiveFormat(archive_format)
    archive_path = frames_dir.with_name(frames_dir.name + ARCHIVE_SUFFIXES[archive_format])

    if archive_format == ArchiveFormat.ZIP:
        with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for frame in sorted(frames_dir.iterdir()):
                archive.write(frame, arcname=frame.name)
    else:
        with tarfile.open(archive_path, "w:gz") as archive:
            archive.add(frames_dir, arcname=frames_dir.name)

    logger.info("[VideoFrames] Packed %s (%d bytes)", archive_path.name, archive_path.stat().st_size)
    return archive_path
