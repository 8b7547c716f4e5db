"""Job submission and result retrieval on top of Celery.

The API enqueues a job and blocks (in a worker thread) until it finishes.
Celery task states are mapped onto the job lifecycle:

    queued -> active -> completed
                     -> failed_retryable -> active ...
                     -> failed_terminal
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from celery import states
from celery.exceptions import TimeoutError as CeleryTimeoutError
from celery.result import AsyncResult

from reelforge.celery_app import celery_app
from reelforge.exceptions import JobTimeoutError

logger = logging.getLogger(__name__)


class JobType(str, Enum):
    TO_MP4 = "video:mp4"
    EXTRACT_AUDIO = "video:audio"
    EXTRACT_FRAMES = "video:frames"
    COMPOSE = "video:compose"
    OVERLAY = "video:overlay"
    MERGE = "video:merge"
    MERGE_AUDIO = "video:merge-audio"


class JobState(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_TERMINAL = "failed_terminal"


TASK_NAMES: dict[JobType, str] = {
    JobType.TO_MP4: "reelforge.tasks.video_tasks.convert_to_mp4_task",
    JobType.EXTRACT_AUDIO: "reelforge.tasks.video_tasks.extract_audio_task",
    JobType.EXTRACT_FRAMES: "reelforge.tasks.video_tasks.extract_frames_task",
    JobType.COMPOSE: "reelforge.tasks.video_tasks.compose_video_task",
    JobType.OVERLAY: "reelforge.tasks.video_tasks.overlay_video_task",
    JobType.MERGE: "reelforge.tasks.video_tasks.merge_videos_task",
    JobType.MERGE_AUDIO: "reelforge.tasks.video_tasks.merge_audio_task",
}


@dataclass
class JobResult:
    """Outcome of a job, as stored in the result backend."""

    success: bool
    output_url: str | None = None
    output_path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    # Error code and HTTP status of the failure that ended the job
    code: str | None = None
    status_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobResult":
        return cls(
            success=bool(data.get("success")),
            output_url=data.get("output_url"),
            output_path=data.get("output_path"),
            metadata=data.get("metadata") or {},
            error=data.get("error"),
            code=data.get("code"),
            status_code=data.get("status_code"),
        )


@dataclass
class JobRecord:
    """Snapshot of a job for status reporting."""

    id: str
    type: JobType | None
    state: JobState
    attempts: int = 0
    payload: dict[str, Any] | None = None
    result: JobResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value if self.type else None,
            "state": self.state.value,
            "attempts": self.attempts,
            "payload": self.payload,
            "result": self.result.to_dict() if self.result else None,
        }


def enqueue(job_type: JobType, payload: dict[str, Any]) -> AsyncResult:
    """Submit a job. Returns the Celery handle."""
    job_type = JobType(job_type)
    handle = celery_app.send_task(TASK_NAMES[job_type], args=[payload])
    logger.info("[Queue] Enqueued %s as %s", job_type.value, handle.id)
    return handle


def _coerce_result(value: Any) -> JobResult:
    if isinstance(value, dict):
        return JobResult.from_dict(value)
    if isinstance(value, BaseException):
        return JobResult(success=False, error=str(value) or value.__class__.__name__)
    return JobResult(success=False, error=f"Unexpected job result: {value!r}")


def wait_for_result(handle: AsyncResult, timeout: float | None = None) -> JobResult:
    """
    Block until a job finishes.

    Raises:
        JobTimeoutError: If the job does not finish in time
    """
    try:
        value = handle.get(timeout=timeout, propagate=False)
    except CeleryTimeoutError:
        raise JobTimeoutError(f"Job {handle.id} did not finish within {timeout}s")
    return _coerce_result(value)


def describe_job(
    handle: AsyncResult,
    job_type: JobType | None = None,
    payload: dict[str, Any] | None = None,
) -> JobRecord:
    """Map the Celery state of a job onto JobState."""
    state = handle.state
    info = handle.info if isinstance(handle.info, dict) else {}
    attempts = int(info.get("attempt", 0)) if state in (states.STARTED, states.RETRY) else 0
    result = None

    if state in (states.PENDING, states.RECEIVED):
        job_state = JobState.QUEUED
    elif state == states.STARTED:
        job_state = JobState.ACTIVE
    elif state == states.RETRY:
        job_state = JobState.FAILED_RETRYABLE
    elif state == states.SUCCESS:
        result = _coerce_result(handle.result)
        job_state = JobState.COMPLETED if result.success else JobState.FAILED_TERMINAL
    else:
        result = _coerce_result(handle.result)
        job_state = JobState.FAILED_TERMINAL

    return JobRecord(
        id=handle.id,
        type=JobType(job_type) if job_type else None,
        state=job_state,
        attempts=attempts,
        payload=payload,
        result=result,
    )
