from pathlib import Path
from typing import Protocol

from scene_composer.config import Settings, get_settings


class StorageService(Protocol):
    """Durable storage for rendered artifacts: upload bytes, get a URL."""

    def upload(self, data: bytes, storage_key: str, content_type: str) -> str: ...

    def delete(self, storage_key: str) -> None: ...


def _public_url(settings: Settings, storage_key: str, fallback: str) -> str:
    if settings.public_base_url:
        return f"{settings.public_base_url.rstrip('/')}/{storage_key}"
    return fallback


class LocalStorageService:
    """Local file storage for development without GCS."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.base_path = Path(self.settings.local_storage_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, storage_key: str) -> Path:
        full_path = (self.base_path / storage_key).resolve()
        if self.base_path.resolve() not in full_path.parents:
            raise ValueError(f"Storage key escapes storage root: {storage_key}")
        full_path.parent.mkdir(parents=True, exist_ok=True)
        return full_path

    def get_public_url(self, storage_key: str) -> str:
        base = self.settings.local_storage_base_url.rstrip("/")
        return _public_url(self.settings, storage_key, f"{base}/{storage_key}")

    def upload(self, data: bytes, storage_key: str, content_type: str) -> str:
        full_path = self._get_full_path(storage_key)
        full_path.write_bytes(data)
        return self.get_public_url(storage_key)

    def delete(self, storage_key: str) -> None:
        full_path = self._get_full_path(storage_key)
        if full_path.exists():
            full_path.unlink()

    def get_file_path(self, storage_key: str) -> Path:
        """Get the actual file path for serving."""
        return self._get_full_path(storage_key)


class GCSStorageService:
    """Google Cloud Storage service for production."""

    def __init__(self, settings: Settings | None = None) -> None:
        from google.cloud import storage

        self.settings = settings or get_settings()
        self._storage = storage
        self._client: storage.Client | None = None
        self._bucket: storage.Bucket | None = None

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

    def get_public_url(self, storage_key: str) -> str:
        return _public_url(
            self.settings,
            storage_key,
            f"https://storage.googleapis.com/{self.settings.gcs_bucket_name}/{storage_key}",
        )

    def upload(self, data: bytes, storage_key: str, content_type: str) -> str:
        blob = self.bucket.blob(storage_key)
        blob.upload_from_string(data, content_type=content_type)
        return self.get_public_url(storage_key)

    def delete(self, storage_key: str) -> None:
        blob = self.bucket.blob(storage_key)
        if blob.exists():
            blob.delete()


def create_storage_service(settings: Settings | None = None) -> StorageService:
    """Use LocalStorageService or GCSStorageService based on config."""
    settings = settings or get_settings()
    if settings.use_local_storage:
        return LocalStorageService(settings)
    return GCSStorageService(settings)
