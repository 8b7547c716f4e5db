import logging
import shutil
from functools import lru_cache
from pathlib import Path

from reelforge.config import get_settings
from reelforge.exceptions import UploadFailureError

logger = logging.getLogger(__name__)


def build_storage_key(filename: str, path_prefix: str | None = None) -> str:
    """Join the global prefix, the per-request prefix and the file name."""
    settings = get_settings()
    parts = [settings.storage_path_prefix, path_prefix or "", filename]
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def _join_url(base: str, storage_key: str) -> str:
    return f"{base.rstrip('/')}/{storage_key}"


class LocalStorageService:
    """Local file storage for development without GCS."""

    def __init__(self, base_path: str | None = None) -> None:
        settings = get_settings()
        self.base_path = Path(base_path or settings.local_storage_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = settings.local_public_url

    def _get_full_path(self, storage_key: str) -> Path:
        full_path = self.base_path / storage_key
        full_path.parent.mkdir(parents=True, exist_ok=True)
        return full_path

    def get_public_url(self, storage_key: str, public_url: str | None = None) -> str:
        """Get URL for accessing the file."""
        return _join_url(public_url or self.public_base_url, storage_key)

    def upload_file(
        self,
        local_path: str,
        content_type: str,
        filename: str,
        path_prefix: str | None = None,
        public_url: str | None = None,
    ) -> str:
        """Copy a local file into the storage directory."""
        storage_key = build_storage_key(filename, path_prefix)
        try:
            shutil.copy(local_path, str(self._get_full_path(storage_key)))
        except OSError as e:
            raise UploadFailureError(f"Failed to store {storage_key}: {e}") from e
        logger.info("[Storage] Stored %s (%s)", storage_key, content_type)
        return self.get_public_url(storage_key, public_url)

    def file_exists(self, storage_key: str) -> bool:
        """Check if file exists."""
        return (self.base_path / storage_key).exists()


class GCSStorageService:
    """Google Cloud Storage service for production."""

    def __init__(self) -> None:
        from google.cloud import storage

        self._storage = storage
        self._client: storage.Client | None = None
        self._bucket: storage.Bucket | None = None
        self.settings = get_settings()

    @property
    def client(self):
        if self._client is None:
            if self.settings.gcs_project_id:
                self._client = self._storage.Client(project=self.settings.gcs_project_id)
            else:
                self._client = self._storage.Client()
        return self._client

    @property
    def bucket(self):
        if self._bucket is None:
            self._bucket = self.client.bucket(self.settings.gcs_bucket_name)
        return self._bucket

    def get_public_url(self, storage_key: str, public_url: str | None = None) -> str:
        """Get the public URL for a stored file."""
        if public_url:
            return _join_url(public_url, storage_key)
        return f"https://storage.googleapis.com/{self.settings.gcs_bucket_name}/{storage_key}"

    def upload_file(
        self,
        local_path: str,
        content_type: str,
        filename: str,
        path_prefix: str | None = None,
        public_url: str | None = None,
    ) -> str:
        """Upload a local file to GCS."""
        storage_key = build_storage_key(filename, path_prefix)
        blob = self.bucket.blob(storage_key)
        try:
            blob.upload_from_filename(local_path, content_type=content_type)
        except Exception as e:
            raise UploadFailureError(f"Failed to upload {storage_key} to GCS: {e}") from e
        logger.info("[Storage] Uploaded gs://%s/%s", self.settings.gcs_bucket_name, storage_key)
        return self.get_public_url(storage_key, public_url)

    def file_exists(self, storage_key: str) -> bool:
        """Check if a file exists in GCS."""
        return self.bucket.blob(storage_key).exists()


StorageService = LocalStorageService | GCSStorageService


@lru_cache
def get_storage_service() -> StorageService:
    # Use LocalStorageService or GCSStorageService based on config
    if get_settings().use_local_storage:
        return LocalStorageService()
    return GCSStorageService()
