"""Tests for HTTP downloads with httpx mocked out."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from reelforge.exceptions import AssetUnavailableError
from reelforge.utils.download import download_file

STREAM = "reelforge.utils.download.httpx.stream"


def _response(status_code: int = 200, chunks: list[bytes] | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.reason_phrase = "Not Found" if status_code == 404 else "OK"
    response.iter_bytes.return_value = chunks if chunks is not None else [b"abc", b"def"]
    return response


def _stream_returning(response: MagicMock) -> MagicMock:
    mock_stream = MagicMock()
    mock_stream.return_value.__enter__.return_value = response
    return mock_stream


class TestDownloadFile:
    def test_writes_body_and_follows_redirects(self, tmp_path):
        target = tmp_path / "nested" / "clip.mp4"

        with patch(STREAM, _stream_returning(_response())) as mock_stream:
            result = download_file("https://cdn.example.com/clip.mp4", target)

        assert result == target
        assert target.read_bytes() == b"abcdef"
        assert mock_stream.call_args.kwargs["follow_redirects"] is True
        assert list(tmp_path.glob("nested/*.part")) == []

    def test_http_error_status(self, tmp_path):
        with patch(STREAM, _stream_returning(_response(404))):
            with pytest.raises(AssetUnavailableError, match="404"):
                download_file("https://cdn.example.com/missing.mp4", tmp_path / "clip.mp4")

        assert list(tmp_path.iterdir()) == []

    def test_transport_error(self, tmp_path):
        with patch(STREAM, side_effect=httpx.ConnectError("connection refused")):
            with pytest.raises(AssetUnavailableError, match="connection refused"):
                download_file("https://cdn.example.com/clip.mp4", tmp_path / "clip.mp4")

    def test_empty_body(self, tmp_path):
        target = tmp_path / "clip.mp4"

        with patch(STREAM, _stream_returning(_response(chunks=[]))):
            with pytest.raises(AssetUnavailableError, match="empty"):
                download_file("https://cdn.example.com/clip.mp4", target)

        assert not target.exists()
        assert list(tmp_path.iterdir()) == []

    def test_error_is_retryable(self, tmp_path):
        with patch(STREAM, side_effect=httpx.ReadTimeout("timed out")):
            with pytest.raises(AssetUnavailableError) as exc_info:
                download_file("https://cdn.example.com/clip.mp4", tmp_path / "clip.mp4")

        assert exc_info.value.retryable
