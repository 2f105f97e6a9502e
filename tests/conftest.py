"""
Pytest fixtures for scene composer tests.

Tests that need a real ffmpeg binary are marked with @pytest.mark.requires_ffmpeg
and skipped when it is not on PATH.
Run `pytest -m "not requires_ffmpeg"` to skip them explicitly.
"""

import shutil
from pathlib import Path

import pytest

from scene_composer.config import Settings
from scene_composer.jobs.registry import JobRegistry

from fakes import FakeRenderer, FakeStorage


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring ffmpeg/ffprobe on PATH"
    )


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


requires_ffmpeg = pytest.mark.skipif(
    not _ffmpeg_available(),
    reason="ffmpeg/ffprobe not available",
)


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Temporary directory for test outputs."""
    out = tmp_path / "output"
    out.mkdir()
    return out


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated to the test's tmp dir, with instant webhook retries."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return Settings(
        api_secret="test-secret",
        scratch_root=str(scratch),
        local_storage_path=str(tmp_path / "storage"),
        worker_pool_size=1,
        max_queued_jobs=4,
        webhook_max_attempts=3,
        webhook_backoff_min_seconds=0,
        webhook_backoff_max_seconds=0,
        render_output_width=320,
        render_output_height=240,
        render_fps=25,
    )


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry(retention_seconds=3600)


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": "Bearer test-secret"}
