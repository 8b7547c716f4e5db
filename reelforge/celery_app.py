"""Celery application configuration."""

from celery import Celery

from reelforge.config import get_settings

settings = get_settings()

celery_app = Celery(
    "reelforge",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["reelforge.tasks.video_tasks"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.engine_timeout_seconds * 3,  # Downloads + engine + upload
    task_soft_time_limit=settings.engine_timeout_seconds * 3 - 60,
    worker_concurrency=settings.worker_concurrency,  # Fixed pool size
    worker_prefetch_multiplier=1,  # Process one task at a time
    task_acks_late=True,  # Acknowledge after task completion
    task_reject_on_worker_lost=True,  # Requeue if worker dies
    result_expires=settings.job_result_ttl_seconds,
)
