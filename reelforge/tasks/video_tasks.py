"""Celery tasks for video jobs.

Each job type has a plain ``run_*_job`` function that does the work inside
a fresh workspace and uploads the result, plus a thin Celery task that adds
retries. Retryable failures are retried with exponential backoff until the
attempt budget is spent; the last error is then returned as a failed
JobResult instead of being raised, so the caller always gets a message.
"""

import logging
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4

import pydantic
from celery import states

from reelforge.celery_app import celery_app
from reelforge.config import get_settings
from reelforge.exceptions import InternalError, ReelforgeError, ValidationError
from reelforge.render.pipeline import CompositionPipeline, PipelineOutput
from reelforge.schemas.video import (
    ComposeRequest,
    ExtractAudioRequest,
    ExtractFramesRequest,
    MergeAudioRequest,
    MergeRequest,
    OverlayRequest,
    ToMp4Request,
)
from reelforge.services.job_queue import JobResult, JobType
from reelforge.services.storage_service import get_storage_service
from reelforge.services.workspace import job_workspace

settings = get_settings()
logger = logging.getLogger(__name__)

ERROR_PREFIXES: dict[JobType, str] = {
    JobType.TO_MP4: "Failed to convert video to MP4",
    JobType.EXTRACT_AUDIO: "Failed to extract audio from video",
    JobType.EXTRACT_FRAMES: "Failed to extract frames from video",
    JobType.COMPOSE: "Failed to compose video",
    JobType.OVERLAY: "Failed to overlay video",
    JobType.MERGE: "Failed to merge videos",
    JobType.MERGE_AUDIO: "Failed to merge audio with video",
}


def backoff_countdown(retries: int, base: float | None = None) -> float:
    """Delay before the next attempt: base * 2**retries seconds."""
    if base is None:
        base = settings.job_backoff_base_seconds
    return base * (2 ** retries)


def _parse(model: type[pydantic.BaseModel], payload: dict[str, Any]):
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid job payload: {e}") from e


def _upload(job_id: str, output: PipelineOutput, path_prefix: str | None, public_url: str | None) -> JobResult:
    # Keep compound suffixes such as .tar.gz
    extension = "".join(Path(output.output_path).suffixes)
    url = get_storage_service().upload_file(
        output.output_path,
        output.content_type,
        f"{job_id}{extension}",
        path_prefix=path_prefix,
        public_url=public_url,
    )
    return JobResult(success=True, output_url=url, metadata=output.metadata)


def run_to_mp4_job(job_id: str, payload: dict[str, Any]) -> JobResult:
    request = _parse(ToMp4Request, payload)
    with job_workspace(job_id) as work_dir:
        output = CompositionPipeline(work_dir).to_mp4(
            str(request.video_url),
            crf=request.crf,
            preset=request.preset,
            smart_copy=request.smart_copy,
        )
        public_url = str(request.public_url) if request.public_url else None
        return _upload(job_id, output, request.path_prefix, public_url)


def run_extract_audio_job(job_id: str, payload: dict[str, Any]) -> JobResult:
    request = _parse(ExtractAudioRequest, payload)
    with job_workspace(job_id) as work_dir:
        output = CompositionPipeline(work_dir).extract_audio(str(request.video_url), mono=request.mono)
        public_url = str(request.public_url) if request.public_url else None
        return _upload(job_id, output, request.path_prefix, public_url)


def run_extract_frames_job(job_id: str, payload: dict[str, Any]) -> JobResult:
    request = _parse(ExtractFramesRequest, payload)
    with job_workspace(job_id) as work_dir:
        output = CompositionPipeline(work_dir).extract_frames(
            str(request.video_url),
            fps=request.fps,
            image_format=request.format,
            quality=request.quality,
            archive_format=request.compress,
        )
        public_url = str(request.public_url) if request.public_url else None
        return _upload(job_id, output, request.path_prefix, public_url)


def run_compose_job(job_id: str, payload: dict[str, Any]) -> JobResult:
    request = _parse(ComposeRequest, payload)
    composition = request.to_composition()
    with job_workspace(job_id) as work_dir:
        output = CompositionPipeline(work_dir).compose(composition)
        return _upload(job_id, output, composition.path_prefix, composition.public_url)


def run_overlay_job(job_id: str, payload: dict[str, Any]) -> JobResult:
    request = _parse(OverlayRequest, payload)
    with job_workspace(job_id) as work_dir:
        output = CompositionPipeline(work_dir).overlay(
            str(request.video_url),
            request.to_spec(),
            overlay_asset=request.overlay_asset,
            overlay_url=str(request.overlay_url) if request.overlay_url else None,
        )
        public_url = str(request.public_url) if request.public_url else None
        return _upload(job_id, output, request.path_prefix, public_url)


def run_merge_job(job_id: str, payload: dict[str, Any]) -> JobResult:
    request = _parse(MergeRequest, payload)
    with job_workspace(job_id) as work_dir:
        output = CompositionPipeline(work_dir).merge(
            request.to_clips(),
            request.resolution_size,
            request.transition,
            request.transition_duration,
        )
        public_url = str(request.public_url) if request.public_url else None
        return _upload(job_id, output, request.path_prefix, public_url)


def run_merge_audio_job(job_id: str, payload: dict[str, Any]) -> JobResult:
    request = _parse(MergeAudioRequest, payload)
    with job_workspace(job_id) as work_dir:
        output = CompositionPipeline(work_dir).merge_audio(
            str(request.video_url),
            str(request.audio_url),
            request.mode,
            request.volume,
        )
        public_url = str(request.public_url) if request.public_url else None
        return _upload(job_id, output, request.path_prefix, public_url)


def execute_job(
    task,
    job_type: JobType,
    runner: Callable[[str, dict[str, Any]], JobResult],
    payload: dict[str, Any],
) -> dict:
    """
    Run one attempt of a job for a bound Celery task.

    Returns:
        JobResult as a dict (success or terminal failure)

    Raises:
        celery.exceptions.Retry: When the failure is retryable and attempts remain
    """
    job_id = task.request.id or uuid4().hex
    retries = task.request.retries
    attempt = retries + 1
    prefix = ERROR_PREFIXES[job_type]

    if not task.request.is_eager:
        task.update_state(state=states.STARTED, meta={"attempt": attempt, "job_type": job_type.value})
    logger.info("[%s] Job %s attempt %d/%d", job_type.value, job_id, attempt, task.max_retries + 1)

    try:
        result = runner(job_id, payload)
        logger.info("[%s] Job %s complete: %s", job_type.value, job_id, result.output_url)
        return result.to_dict()
    except ReelforgeError as e:
        error: Exception = e
        failure: ReelforgeError = e
        retryable = e.retryable
        logger.error("[%s] Job %s failed (%s): %s", job_type.value, job_id, e.code, e.message)
    except Exception as e:
        error = e
        failure = InternalError(str(e))
        retryable = True
        logger.exception("[%s] Job %s failed unexpectedly: %s", job_type.value, job_id, e)

    if retryable and retries < task.max_retries:
        countdown = backoff_countdown(retries)
        logger.info("[%s] Retrying job %s in %.1fs", job_type.value, job_id, countdown)
        raise task.retry(exc=error, countdown=countdown)

    return JobResult(
        success=False,
        error=f"{prefix}: {error}",
        code=failure.code,
        status_code=failure.status_code,
    ).to_dict()


_MAX_RETRIES = max(settings.job_max_attempts - 1, 0)


@celery_app.task(bind=True, name="reelforge.tasks.video_tasks.compose_video_task", max_retries=_MAX_RETRIES)
def compose_video_task(self, payload: dict) -> dict:
    """Compose background, narration, captions and watermark into one MP4."""
    return execute_job(self, JobType.COMPOSE, run_compose_job, payload)


@celery_app.task(bind=True, name="reelforge.tasks.video_tasks.overlay_video_task", max_retries=_MAX_RETRIES)
def overlay_video_task(self, payload: dict) -> dict:
    return execute_job(self, JobType.OVERLAY, run_overlay_job, payload)


@celery_app.task(bind=True, name="reelforge.tasks.video_tasks.merge_videos_task", max_retries=_MAX_RETRIES)
def merge_videos_task(self, payload: dict) -> dict:
    return execute_job(self, JobType.MERGE, run_merge_job, payload)


@celery_app.task(bind=True, name="reelforge.tasks.video_tasks.merge_audio_task", max_retries=_MAX_RETRIES)
def merge_audio_task(self, payload: dict) -> dict:
    return execute_job(self, JobType.MERGE_AUDIO, run_merge_audio_job, payload)


@celery_app.task(bind=True, name="reelforge.tasks.video_tasks.convert_to_mp4_task", max_retries=_MAX_RETRIES)
def convert_to_mp4_task(self, payload: dict) -> dict:
    return execute_job(self, JobType.TO_MP4, run_to_mp4_job, payload)


@celery_app.task(bind=True, name="reelforge.tasks.video_tasks.extract_audio_task", max_retries=_MAX_RETRIES)
def extract_audio_task(self, payload: dict) -> dict:
    return execute_job(self, JobType.EXTRACT_AUDIO, run_extract_audio_job, payload)


@celery_app.task(bind=True, name="reelforge.tasks.video_tasks.extract_frames_task", max_retries=_MAX_RETRIES)
def extract_frames_task(self, payload: dict) -> dict:
    """Sample frames from a clip and upload them as one archive."""
    return execute_job(self, JobType.EXTRACT_FRAMES, run_extract_frames_job, payload)
