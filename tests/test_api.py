"""API tests with the job queue mocked out."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from reelforge.main import app
from reelforge.services.job_queue import JobResult, JobType

COMPOSE_BODY = {
    "backgroundUrl": "https://cdn.example.com/bg.mp4",
    "audioUrl": "https://cdn.example.com/voice.mp3",
    "duration": 5,
    "wordTimestamps": [{"word": "This", "start": 0, "end": 0.2}, {"word": "is", "start": 0.2, "end": 0.4}],
}


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def queue():
    """Patch enqueue/wait so each test sets the job outcome."""
    handle = MagicMock()
    handle.id = "job-1"
    with patch("reelforge.api.video.enqueue", return_value=handle) as mock_enqueue, \
            patch("reelforge.api.video.wait_for_result") as mock_wait:
        mock_wait.return_value = JobResult(success=True, output_url="https://storage.example.com/job-1.mp4")
        yield mock_enqueue, mock_wait


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestConversions:
    def test_mp4(self, client, queue):
        mock_enqueue, mock_wait = queue
        mock_wait.return_value = JobResult(
            success=True, output_url="https://storage.example.com/job-1.mp4", metadata={"duration": 7.5, "copied": True}
        )

        response = client.post("/api/video/mp4", json={"videoUrl": "https://cdn.example.com/in.mov", "crf": 20})

        assert response.status_code == 200
        assert response.json() == {"url": "https://storage.example.com/job-1.mp4", "metadata": {"duration": 7.5}}
        job_type, payload = mock_enqueue.call_args[0]
        assert job_type == JobType.TO_MP4
        assert payload["crf"] == 20
        assert payload["smart_copy"] is True

    def test_unknown_preset_is_400(self, client, queue):
        response = client.post("/api/video/mp4", json={
            "videoUrl": "https://cdn.example.com/in.mov",
            "preset": "warp",
        })

        assert response.status_code == 400

    def test_audio_defaults_to_mono(self, client, queue):
        mock_enqueue, mock_wait = queue
        mock_wait.return_value = JobResult(
            success=True, output_url="https://storage.example.com/job-1.wav", metadata={"duration": 3.0}
        )

        response = client.post("/api/video/audio", json={"videoUrl": "https://cdn.example.com/in.mp4"})

        assert response.status_code == 200
        assert response.json()["url"].endswith(".wav")
        assert mock_enqueue.call_args[0][0] == JobType.EXTRACT_AUDIO
        assert mock_enqueue.call_args[0][1]["mono"] is True

    def test_silent_input_is_400(self, client, queue):
        _, mock_wait = queue
        mock_wait.return_value = JobResult(
            success=False,
            error="Failed to extract audio from video: Input video has no audio track",
            code="VALIDATION_ERROR",
            status_code=400,
        )

        response = client.post("/api/video/audio", json={"videoUrl": "https://cdn.example.com/in.mp4"})

        assert response.status_code == 400

    def test_frames(self, client, queue):
        mock_enqueue, mock_wait = queue
        mock_wait.return_value = JobResult(
            success=True,
            output_url="https://storage.example.com/job-1.zip",
            metadata={"frameCount": 12, "fps": 0.5, "format": "jpg"},
        )

        response = client.post("/api/video/frames", json={
            "videoUrl": "https://cdn.example.com/in.mp4",
            "fps": 0.5,
            "format": "jpg",
            "quality": 3,
        })

        assert response.status_code == 200
        assert response.json() == {
            "url": "https://storage.example.com/job-1.zip",
            "metadata": {"frameCount": 12, "fps": 0.5, "format": "jpg"},
        }
        assert mock_enqueue.call_args[0][1]["compress"] == "zip"

    @pytest.mark.parametrize("body", [{"fps": 0}, {"quality": 40}, {"compress": "rar"}, {"format": "gif"}])
    def test_invalid_frames_options_are_400(self, client, queue, body):
        mock_enqueue, _ = queue

        response = client.post("/api/video/frames", json={"videoUrl": "https://cdn.example.com/in.mp4", **body})

        assert response.status_code == 400
        mock_enqueue.assert_not_called()


class TestCompose:
    def test_success(self, client, queue):
        mock_enqueue, _ = queue

        response = client.post("/api/video/compose", json=COMPOSE_BODY)

        assert response.status_code == 200
        assert response.json() == {"url": "https://storage.example.com/job-1.mp4"}
        job_type, payload = mock_enqueue.call_args[0]
        assert job_type == JobType.COMPOSE
        assert payload["background_url"] == "https://cdn.example.com/bg.mp4"
        assert payload["word_timestamps"][1]["word"] == "is"

    def test_missing_field_is_400(self, client, queue):
        mock_enqueue, _ = queue
        body = {k: v for k, v in COMPOSE_BODY.items() if k != "audioUrl"}

        response = client.post("/api/video/compose", json=body)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert "audioUrl" in response.json()["error"]
        mock_enqueue.assert_not_called()

    def test_inverted_word_timestamps_are_rejected_before_enqueue(self, client, queue):
        mock_enqueue, _ = queue
        body = {**COMPOSE_BODY, "wordTimestamps": [{"word": "x", "start": 1.0, "end": 0.5}]}

        response = client.post("/api/video/compose", json=body)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TIMESTAMPS"
        mock_enqueue.assert_not_called()

    def test_failed_job_is_500_with_message(self, client, queue):
        _, mock_wait = queue
        mock_wait.return_value = JobResult(success=False, error="Failed to compose video: ffmpeg exited with code 1")

        response = client.post("/api/video/compose", json=COMPOSE_BODY)

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to compose video: ffmpeg exited with code 1"
        assert response.json()["code"] == "JOB_FAILED"

    def test_wait_timeout_is_500(self, client, queue):
        from reelforge.exceptions import JobTimeoutError

        _, mock_wait = queue
        mock_wait.side_effect = JobTimeoutError("Job job-1 did not finish within 900s")

        response = client.post("/api/video/compose", json=COMPOSE_BODY)

        assert response.status_code == 500
        assert response.json()["code"] == "JOB_TIMEOUT"

    def test_unexpected_error_is_500_json(self, queue):
        _, mock_wait = queue
        mock_wait.side_effect = RuntimeError("redis went away")

        response = TestClient(app, raise_server_exceptions=False).post("/api/video/compose", json=COMPOSE_BODY)

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "code": "INTERNAL_ERROR"}


class TestOverlay:
    def test_unknown_asset_is_400(self, client, queue):
        mock_enqueue, _ = queue

        response = client.post("/api/video/overlay", json={
            "videoUrl": "https://cdn.example.com/clip.mp4",
            "overlayAsset": "does-not-exist",
        })

        assert response.status_code == 400
        assert response.json()["code"] == "OVERLAY_ASSET_NOT_FOUND"
        mock_enqueue.assert_not_called()

    def test_overlay_url(self, client, queue):
        mock_enqueue, _ = queue

        response = client.post("/api/video/overlay", json={
            "videoUrl": "https://cdn.example.com/clip.mp4",
            "overlayUrl": "https://cdn.example.com/badge.png",
            "overlayPosition": "bottom-right",
        })

        assert response.status_code == 200
        assert mock_enqueue.call_args[0][0] == JobType.OVERLAY

    def test_both_sources_is_400(self, client, queue):
        response = client.post("/api/video/overlay", json={
            "videoUrl": "https://cdn.example.com/clip.mp4",
            "overlayAsset": "subscribe",
            "overlayUrl": "https://cdn.example.com/badge.png",
        })

        assert response.status_code == 400


class TestMerge:
    def test_metadata_in_camel_case(self, client, queue):
        _, mock_wait = queue
        mock_wait.return_value = JobResult(
            success=True,
            output_url="https://storage.example.com/job-1.mp4",
            metadata={"duration": 28.0, "videoCount": 3},
        )

        response = client.post("/api/video/merge", json={
            "videos": [{"url": f"https://cdn.example.com/{n}.mp4"} for n in "abc"],
            "transition": "crossfade",
            "transitionDuration": 1,
        })

        assert response.status_code == 200
        assert response.json() == {
            "url": "https://storage.example.com/job-1.mp4",
            "metadata": {"duration": 28.0, "videoCount": 3},
        }

    def test_clip_shorter_than_transition_is_400(self, client, queue):
        _, mock_wait = queue
        mock_wait.return_value = JobResult(
            success=False,
            error="Failed to merge videos: Clip 1 is 0.30s, shorter than the 1.0s transition",
            code="VALIDATION_ERROR",
            status_code=400,
        )

        response = client.post("/api/video/merge", json={
            "videos": [{"url": "https://cdn.example.com/a.mp4"}, {"url": "https://cdn.example.com/b.mp4"}],
            "transition": "crossfade",
            "transitionDuration": 1,
        })

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert "shorter than the 1.0s transition" in response.json()["error"]

    def test_odd_resolution_is_400(self, client, queue):
        mock_enqueue, _ = queue

        response = client.post("/api/video/merge", json={
            "videos": [{"url": "https://cdn.example.com/a.mp4"}],
            "resolution": "1081x1921",
        })

        assert response.status_code == 400
        assert "even" in response.json()["error"]
        mock_enqueue.assert_not_called()

    def test_empty_video_list_is_400(self, client, queue):
        response = client.post("/api/video/merge", json={"videos": []})

        assert response.status_code == 400


class TestMergeAudio:
    def test_success(self, client, queue):
        mock_enqueue, mock_wait = queue
        mock_wait.return_value = JobResult(
            success=True, output_url="https://storage.example.com/job-1.mp4", metadata={"duration": 12.5}
        )

        response = client.post("/api/video/merge-audio", json={
            "videoUrl": "https://cdn.example.com/clip.mp4",
            "audioUrl": "https://cdn.example.com/song.mp3",
            "mode": "mix",
            "volume": 0.6,
        })

        assert response.status_code == 200
        assert response.json()["metadata"] == {"duration": 12.5}
        assert mock_enqueue.call_args[0][1]["mode"] == "mix"

    def test_invalid_mode_is_400(self, client, queue):
        response = client.post("/api/video/merge-audio", json={
            "videoUrl": "https://cdn.example.com/clip.mp4",
            "audioUrl": "https://cdn.example.com/song.mp3",
            "mode": "overdub",
        })

        assert response.status_code == 400
