"""Media file information utilities using FFprobe."""

import json
import subprocess
from dataclasses import dataclass

from reelforge.config import get_settings
from reelforge.exceptions import ProbeFailureError


def _get_settings():
    """Get settings lazily to avoid import issues in tests."""
    return get_settings()


@dataclass
class MediaInfo:
    """Media file information."""

    duration: float | None = None  # seconds
    width: int | None = None
    height: int | None = None
    fps: float | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    has_video: bool = False
    has_audio: bool = False


def _run_ffprobe(file_path: str, *args) -> dict:
    """Run ffprobe and return parsed JSON."""
    settings = _get_settings()
    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        *args,
        file_path,
    ]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=settings.probe_timeout_seconds,
        )
    except subprocess.TimeoutExpired:
        raise ProbeFailureError(f"ffprobe timed out on: {file_path}")
    except OSError as e:
        raise ProbeFailureError(f"ffprobe could not be started: {e}")

    if result.returncode != 0:
        raise ProbeFailureError(f"ffprobe failed on {file_path}: {result.stderr.strip()}")

    try:
        return json.loads(result.stdout or "{}")
    except json.JSONDecodeError as e:
        raise ProbeFailureError(f"Failed to parse ffprobe output: {e}")


def get_media_duration(file_path: str) -> float:
    """
    Get media file duration in seconds.

    Raises:
        ProbeFailureError: If ffprobe fails or duration not found
    """
    data = _run_ffprobe(file_path, "-show_format")
    format_info = data.get("format", {})

    try:
        duration = float(format_info["duration"])
    except (KeyError, TypeError, ValueError):
        raise ProbeFailureError(f"Duration not found in: {file_path}")

    if duration <= 0:
        raise ProbeFailureError(f"Media has no duration: {file_path}")
    return duration


def get_video_dimensions(file_path: str) -> tuple[int, int]:
    """
    Get width and height of the first video stream.

    Works for still images as well, which ffprobe reports as a video stream.

    Raises:
        ProbeFailureError: If ffprobe fails or video stream not found
    """
    data = _run_ffprobe(file_path, "-show_streams", "-select_streams", "v:0")

    streams = data.get("streams", [])
    if not streams:
        raise ProbeFailureError(f"No video stream found in: {file_path}")

    stream = streams[0]
    width = stream.get("width")
    height = stream.get("height")

    if not width or not height:
        raise ProbeFailureError(f"Video dimensions not found in: {file_path}")

    return int(width), int(height)


def get_video_codec(file_path: str) -> str | None:
    """Get the codec name of the first video stream, or None."""
    data = _run_ffprobe(file_path, "-show_streams", "-select_streams", "v:0")
    streams = data.get("streams", [])
    if not streams:
        return None
    codec = streams[0].get("codec_name")
    return codec.lower() if codec else None


def has_audio_track(file_path: str) -> bool:
    """
    Check if media file has an audio track.

    Returns:
        True if audio track exists, False otherwise
    """
    try:
        data = _run_ffprobe(file_path, "-show_streams", "-select_streams", "a")
        return len(data.get("streams", [])) > 0
    except ProbeFailureError:
        return False


def get_media_info(file_path: str) -> MediaInfo:
    """
    Get complete media file information.

    Raises:
        ProbeFailureError: If ffprobe fails
    """
    data = _run_ffprobe(file_path, "-show_format", "-show_streams")

    info = MediaInfo()

    format_info = data.get("format", {})
    if "duration" in format_info:
        try:
            info.duration = float(format_info["duration"])
        except (TypeError, ValueError):
            info.duration = None

    for stream in data.get("streams", []):
        codec_type = stream.get("codec_type")

        if codec_type == "video" and not info.has_video:
            info.has_video = True
            info.width = stream.get("width")
            info.height = stream.get("height")
            info.video_codec = stream.get("codec_name")

            r_frame_rate = stream.get("r_frame_rate", "0/1")
            if "/" in r_frame_rate:
                num, den = r_frame_rate.split("/")
                if int(den) > 0:
                    info.fps = int(num) / int(den)

        elif codec_type == "audio" and not info.has_audio:
            info.has_audio = True
            info.audio_codec = stream.get("codec_name")

    return info
