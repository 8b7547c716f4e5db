"""Video job endpoints.

Each endpoint validates the request, enqueues a job and waits for it to
finish. Validation failures are reported before anything is enqueued.
"""

import asyncio
import logging

from fastapi import APIRouter
from pydantic import BaseModel

from reelforge.config import get_settings
from reelforge.exceptions import JobFailedError
from reelforge.render.captions import normalize_timestamps
from reelforge.render.overlay import resolve_overlay_asset
from reelforge.schemas.video import (
    ComposeRequest,
    ConvertResponse,
    DurationMetadata,
    ExtractAudioRequest,
    ExtractFramesRequest,
    FramesMetadata,
    FramesResponse,
    MergeAudioRequest,
    MergeAudioResponse,
    MergeMetadata,
    MergeRequest,
    MergeResponse,
    OverlayRequest,
    ToMp4Request,
    VideoUrlResponse,
)
from reelforge.services.job_queue import JobResult, JobType, enqueue, wait_for_result

router = APIRouter()
logger = logging.getLogger(__name__)


async def _run_job(job_type: JobType, body: BaseModel) -> JobResult:
    settings = get_settings()
    handle = enqueue(job_type, body.model_dump(mode="json"))
    result = await asyncio.to_thread(wait_for_result, handle, settings.job_wait_timeout_seconds)
    if not result.success:
        logger.error("[%s] Job %s failed: %s", job_type.value, handle.id, result.error)
        if result.status_code and result.status_code < 500:
            # Caller input that only turned out bad inside the worker
            raise JobFailedError(result.error, code=result.code, status_code=result.status_code)
        raise JobFailedError(result.error or "Job failed")
    return result


@router.post("/video/mp4", response_model=ConvertResponse)
async def convert_to_mp4(body: ToMp4Request) -> ConvertResponse:
    """Convert a clip to MP4, remuxing H.264/AAC sources without re-encoding."""
    result = await _run_job(JobType.TO_MP4, body)
    return ConvertResponse(
        url=result.output_url,
        metadata=DurationMetadata(duration=result.metadata.get("duration", 0.0)),
    )


@router.post("/video/audio", response_model=ConvertResponse)
async def extract_audio(body: ExtractAudioRequest) -> ConvertResponse:
    """Extract the audio track of a clip as WAV."""
    result = await _run_job(JobType.EXTRACT_AUDIO, body)
    return ConvertResponse(
        url=result.output_url,
        metadata=DurationMetadata(duration=result.metadata.get("duration", 0.0)),
    )


@router.post("/video/frames", response_model=FramesResponse)
async def extract_frames(body: ExtractFramesRequest) -> FramesResponse:
    """Sample frames from a clip and return one archive."""
    result = await _run_job(JobType.EXTRACT_FRAMES, body)
    metadata = result.metadata
    return FramesResponse(
        url=result.output_url,
        metadata=FramesMetadata(
            frame_count=metadata.get("frameCount", 0),
            fps=metadata.get("fps", body.fps),
            format=metadata.get("format", body.format),
        ),
    )


@router.post("/video/compose", response_model=VideoUrlResponse)
async def compose_video(body: ComposeRequest) -> VideoUrlResponse:
    """Compose background, narration, music, captions and watermark into one MP4."""
    composition = body.to_composition()
    normalize_timestamps(composition.words, get_settings().caption_timestamp_policy)

    result = await _run_job(JobType.COMPOSE, body)
    return VideoUrlResponse(url=result.output_url)


@router.post("/video/overlay", response_model=VideoUrlResponse)
async def overlay_video(body: OverlayRequest) -> VideoUrlResponse:
    """Composite a PNG overlay at a corner of a clip."""
    if body.overlay_asset:
        resolve_overlay_asset(body.overlay_asset, get_settings().overlay_assets_dir)

    result = await _run_job(JobType.OVERLAY, body)
    return VideoUrlResponse(url=result.output_url)


@router.post("/video/merge", response_model=MergeResponse)
async def merge_videos(body: MergeRequest) -> MergeResponse:
    """Concatenate clips with hard cuts or crossfades."""
    result = await _run_job(JobType.MERGE, body)
    metadata = result.metadata
    return MergeResponse(
        url=result.output_url,
        metadata=MergeMetadata(
            duration=metadata.get("duration", 0.0),
            video_count=metadata.get("videoCount", len(body.videos)),
        ),
    )


@router.post("/video/merge-audio", response_model=MergeAudioResponse)
async def merge_audio(body: MergeAudioRequest) -> MergeAudioResponse:
    """Replace or mix the audio track of a clip."""
    result = await _run_job(JobType.MERGE_AUDIO, body)
    return MergeAudioResponse(
        url=result.output_url,
        metadata=DurationMetadata(duration=result.metadata.get("duration", 0.0)),
    )
