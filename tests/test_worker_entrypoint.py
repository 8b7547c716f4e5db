"""Tests for the worker container entrypoint."""

from unittest.mock import MagicMock, patch

from reelforge.worker_entrypoint import build_worker_command, run_celery_worker


class TestWorkerCommand:
    def test_fixed_pool_with_single_prefetch(self):
        settings = MagicMock(log_level="INFO", worker_concurrency=4)
        with patch("reelforge.worker_entrypoint.get_settings", return_value=settings):
            command = build_worker_command()

        assert command[:4] == ["celery", "-A", "reelforge.celery_app", "worker"]
        assert "--concurrency=4" in command
        assert "--prefetch-multiplier=1" in command
        assert "--loglevel=info" in command

    def test_exit_code_is_returned(self):
        with patch("reelforge.worker_entrypoint.subprocess.run", return_value=MagicMock(returncode=3)):
            assert run_celery_worker() == 3


class TestCeleryConfig:
    def test_reliability_settings(self):
        from reelforge.celery_app import celery_app

        conf = celery_app.conf
        assert conf.task_acks_late is True
        assert conf.task_reject_on_worker_lost is True
        assert conf.worker_prefetch_multiplier == 1
        assert conf.result_expires == 3600
