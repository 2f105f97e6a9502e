"""Tests for artifact publishing and local storage."""

from pathlib import Path

import pytest

from scene_composer.exceptions import PublishError
from scene_composer.services.publisher import ArtifactPublisher, build_storage_keys
from scene_composer.services.storage_service import LocalStorageService

from fakes import FakeStorage


@pytest.fixture
def artifacts(temp_output_dir: Path) -> tuple[str, str]:
    video = temp_output_dir / "composite.mp4"
    thumb = temp_output_dir / "thumbnail.jpg"
    video.write_bytes(b"video")
    thumb.write_bytes(b"jpeg")
    return str(video), str(thumb)


class TestStorageKeys:
    def test_keys_are_scoped_to_project_and_scene(self):
        video_key, thumb_key = build_storage_keys("p1", "s1", 1700000000000)

        assert video_key == "projects/p1/scenes/s1/composite-1700000000000.mp4"
        assert thumb_key == "projects/p1/scenes/s1/composite-thumb-1700000000000.jpg"


class TestArtifactPublisher:
    @pytest.mark.asyncio
    async def test_uploads_video_then_thumbnail(self, artifacts):
        storage = FakeStorage()

        published = await ArtifactPublisher(storage).publish(
            *artifacts, project_id="p1", scene_id="s1", timestamp_ms=42
        )

        assert list(storage.objects) == [
            "projects/p1/scenes/s1/composite-42.mp4",
            "projects/p1/scenes/s1/composite-thumb-42.jpg",
        ]
        assert storage.objects[published.video_key] == (b"video", "video/mp4")
        assert storage.objects[published.thumbnail_key] == (b"jpeg", "image/jpeg")
        assert published.video_url == "https://storage.example.com/projects/p1/scenes/s1/composite-42.mp4"

    @pytest.mark.asyncio
    async def test_thumbnail_failure_removes_uploaded_video(self, artifacts):
        storage = FakeStorage(fail_suffix=".jpg")

        with pytest.raises(PublishError, match="Thumbnail upload failed") as exc_info:
            await ArtifactPublisher(storage).publish(
                *artifacts, project_id="p1", scene_id="s1", timestamp_ms=42
            )

        assert exc_info.value.code == "PUBLISH_FAILED"
        assert storage.deleted == ["projects/p1/scenes/s1/composite-42.mp4"]
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_video_failure_skips_thumbnail(self, artifacts):
        storage = FakeStorage(fail_suffix=".mp4")

        with pytest.raises(PublishError, match="Video upload failed"):
            await ArtifactPublisher(storage).publish(*artifacts, project_id="p1", scene_id="s1")

        assert storage.objects == {}
        assert storage.deleted == []


class TestLocalStorageService:
    def test_upload_writes_file_and_returns_url(self, settings):
        storage = LocalStorageService(settings)

        url = storage.upload(b"data", "projects/p1/a.mp4", "video/mp4")

        assert url == "http://localhost:3001/files/projects/p1/a.mp4"
        assert storage.get_file_path("projects/p1/a.mp4").read_bytes() == b"data"

    def test_public_base_url_overrides_local_url(self, settings):
        settings.public_base_url = "https://cdn.example.com/media/"

        url = LocalStorageService(settings).upload(b"data", "a.mp4", "video/mp4")

        assert url == "https://cdn.example.com/media/a.mp4"

    def test_delete_is_idempotent(self, settings):
        storage = LocalStorageService(settings)
        storage.upload(b"data", "a.mp4", "video/mp4")

        storage.delete("a.mp4")
        storage.delete("a.mp4")

        assert not storage.get_file_path("a.mp4").exists()

    def test_key_cannot_escape_root(self, settings):
        with pytest.raises(ValueError):
            LocalStorageService(settings).get_file_path("../../etc/passwd")
