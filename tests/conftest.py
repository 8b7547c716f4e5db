"""
Pytest fixtures for reelforge tests.

Most tests exercise the planners directly or mock subprocess, httpx and
storage. Tests that run a real ffmpeg are marked with
@pytest.mark.requires_ffmpeg and skipped when the binary is missing.
"""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path

import pytest

# Point every on-disk location at a scratch directory before settings load
_SCRATCH = Path(tempfile.mkdtemp(prefix="reelforge_test_"))
os.environ.setdefault("TEMP_DIR", str(_SCRATCH / "jobs"))
os.environ.setdefault("CACHE_DIR", str(_SCRATCH / "cache"))
os.environ.setdefault("LOCAL_STORAGE_PATH", str(_SCRATCH / "storage"))
os.environ.setdefault("USE_LOCAL_STORAGE", "true")
os.environ.setdefault("LOCAL_PUBLIC_URL", "http://localhost:8000/files")


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring ffmpeg/ffprobe on PATH (skipped otherwise)"
    )


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="reelforge_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_test_clip(temp_output_dir: Path):
    """Generate a short synthetic clip with ffmpeg's lavfi sources."""
    if not _ffmpeg_available():
        pytest.skip("ffmpeg/ffprobe not available")

    def _make(name: str, duration: float = 2.0, size: str = "320x240", with_audio: bool = True) -> Path:
        output_path = temp_output_dir / f"{name}.mp4"
        cmd = [
            "ffmpeg", "-y",
            "-f", "lavfi", "-i", f"testsrc=size={size}:rate=30:duration={duration}",
        ]
        if with_audio:
            cmd += ["-f", "lavfi", "-i", f"sine=frequency=440:duration={duration}"]
        cmd += ["-c:v", "libx264", "-pix_fmt", "yuv420p"]
        if with_audio:
            cmd += ["-c:a", "aac", "-shortest"]
        cmd.append(str(output_path))
        subprocess.run(cmd, capture_output=True, check=True)
        return output_path
    return _make


@pytest.fixture
def make_test_png(temp_output_dir: Path):
    """Generate a solid-colour PNG with an alpha channel."""
    if not _ffmpeg_available():
        pytest.skip("ffmpeg/ffprobe not available")

    def _make(name: str, size: str = "500x200") -> Path:
        output_path = temp_output_dir / f"{name}.png"
        cmd = [
            "ffmpeg", "-y",
            "-f", "lavfi", "-i", f"color=c=red@0.5:size={size}",
            "-frames:v", "1", "-pix_fmt", "rgba",
            str(output_path),
        ]
        subprocess.run(cmd, capture_output=True, check=True)
        return output_path
    return _make


@pytest.fixture
def local_downloader():
    """Downloader stand-in that copies from a url -> local file mapping."""
    sources: dict[str, Path] = {}

    def _download(url: str, output_path) -> Path:
        output_path = Path(output_path)
        shutil.copyfile(sources[url], output_path)
        return output_path

    _download.sources = sources
    return _download
