"""Remote asset downloads over HTTP."""

import logging
import os
from pathlib import Path

import httpx

from reelforge.config import get_settings
from reelforge.exceptions import AssetUnavailableError

logger = logging.getLogger(__name__)


def download_file(url: str, output_path: str | Path, timeout: float | None = None) -> Path:
    """
    Stream a URL to a local file.

    The body is written to ``<output_path>.part`` and renamed into place once
    complete, so a reader never sees a half-written file.

    Raises:
        AssetUnavailableError: On HTTP errors, timeouts or empty bodies
    """
    settings = get_settings()
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    part_path = output_path.with_name(output_path.name + f".{os.getpid()}.part")

    try:
        with httpx.stream(
            "GET",
            url,
            timeout=timeout or settings.download_timeout_seconds,
            follow_redirects=True,
        ) as response:
            if response.status_code != 200:
                raise AssetUnavailableError(url, f"{response.status_code} {response.reason_phrase}")
            with open(part_path, "wb") as f:
                for chunk in response.iter_bytes(settings.download_chunk_size):
                    f.write(chunk)
    except httpx.HTTPError as e:
        part_path.unlink(missing_ok=True)
        raise AssetUnavailableError(url, str(e) or e.__class__.__name__)
    except AssetUnavailableError:
        part_path.unlink(missing_ok=True)
        raise

    if part_path.stat().st_size == 0:
        part_path.unlink(missing_ok=True)
        raise AssetUnavailableError(url, "empty response body")

    os.replace(part_path, output_path)
    logger.info("[Download] %s -> %s (%d bytes)", url, output_path, output_path.stat().st_size)
    return output_path
