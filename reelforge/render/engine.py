"""Synchronous ffmpeg invocation."""

import logging
import os
import subprocess

from reelforge.config import get_settings
from reelforge.exceptions import EngineFailureError
from reelforge.render.filter_graph import EngineCommand

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 2000


def _tail(text: str | bytes | None, limit: int = STDERR_TAIL_CHARS) -> str:
    if not text:
        return ""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    return text[-limit:]


class FFmpegEngine:
    """Runs planned EngineCommands with a timeout and an output check."""

    def __init__(self, ffmpeg_path: str | None = None, timeout: int | None = None):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.timeout = timeout or settings.engine_timeout_seconds

    def run(self, command: EngineCommand, timeout: int | None = None, check_output: bool = True) -> str:
        """
        Execute a command and verify its output.

        Success requires exit code 0 and a non-empty output file. Image
        sequence outputs are patterns, not files, so callers pass
        ``check_output=False`` and count the frames themselves.

        Returns:
            Path to the output file

        Raises:
            EngineFailureError: On non-zero exit, timeout or missing output
        """
        args = command.to_args(self.ffmpeg_path)
        timeout = timeout or self.timeout
        logger.info("[ENGINE] Running: %s", args)

        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            stderr = _tail(e.stderr)
            logger.error("[ENGINE] Timed out after %ss: %s", timeout, stderr)
            raise EngineFailureError(
                f"ffmpeg timed out after {timeout}s", stderr=stderr, timed_out=True
            )
        except OSError as e:
            raise EngineFailureError(f"ffmpeg could not be started: {e}")

        if result.returncode != 0:
            stderr = _tail(result.stderr)
            logger.error("[ENGINE] ffmpeg exited with %d: %s", result.returncode, stderr)
            last_line = stderr.strip().splitlines()[-1] if stderr.strip() else "no error output"
            raise EngineFailureError(
                f"ffmpeg exited with code {result.returncode}: {last_line}",
                returncode=result.returncode,
                stderr=stderr,
            )

        output_path = command.output_path
        if not check_output:
            return output_path
        if not os.path.isfile(output_path) or os.path.getsize(output_path) == 0:
            raise EngineFailureError(
                f"ffmpeg produced no output at {output_path}",
                returncode=result.returncode,
                stderr=_tail(result.stderr),
            )

        logger.info("[ENGINE] Wrote %s (%d bytes)", output_path, os.path.getsize(output_path))
        return output_path
