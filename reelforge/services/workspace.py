"""Per-job temporary workspaces."""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from reelforge.config import get_settings

logger = logging.getLogger(__name__)


@contextmanager
def job_workspace(job_id: str, base_dir: str | None = None) -> Iterator[Path]:
    """
    Create a uniquely named directory for one job attempt.

    The directory is removed when the block exits, whether it succeeded
    or raised. Retries get a fresh directory.
    """
    root = Path(base_dir or get_settings().temp_dir)
    root.mkdir(parents=True, exist_ok=True)
    safe_id = "".join(c if c.isalnum() or c in "-_" else "_" for c in job_id) or "job"
    work_dir = Path(tempfile.mkdtemp(prefix=f"{safe_id}_", dir=root))
    logger.debug("[Workspace] Created %s", work_dir)
    try:
        yield work_dir
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)
        logger.debug("[Workspace] Removed %s", work_dir)
