"""Composition task: runs one job through fetch, render, publish and notify."""

import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from urllib.parse import urlparse

from scene_composer.config import Settings, get_settings
from scene_composer.exceptions import ComposerError
from scene_composer.jobs.registry import JobRegistry, JobState
from scene_composer.render.engine import RenderEngine
from scene_composer.render.timeline import AudioPlan, VideoTimeline
from scene_composer.schemas.composition import CompositionRequest, CompositionResult
from scene_composer.services.asset_fetcher import AssetFetcher
from scene_composer.services.notifier import Notifier
from scene_composer.services.publisher import ArtifactPublisher

logger = logging.getLogger(__name__)

# Overall progress at the start of each stage
DOWNLOAD_START, PROCESSING_START, UPLOAD_START = 0, 20, 80


@dataclass
class ComposeJob:
    """A validated request plus its normalized timeline, ready for a worker."""

    request: CompositionRequest
    video: VideoTimeline
    audio: AudioPlan

    @property
    def job_id(self) -> str:
        return self.request.job_id


def _safe_name(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", value)


def _extension(url: str, default: str) -> str:
    ext = os.path.splitext(urlparse(url).path)[1]
    return ext if re.fullmatch(r"\.[A-Za-z0-9]{1,5}", ext) else default


def cleanup_stale_scratch(settings: Settings | None = None) -> int:
    """Delete scratch directories left behind by a previous process.

    Only safe at startup, before any worker has created its own directory.
    """
    settings = settings or get_settings()
    root = settings.scratch_root
    if not os.path.isdir(root):
        return 0

    removed = 0
    for name in os.listdir(root):
        path = os.path.join(root, name)
        if name.startswith(settings.scratch_prefix) and os.path.isdir(path):
            shutil.rmtree(path, ignore_errors=True)
            removed += 1
    if removed:
        logger.warning(f"[COMPOSE] Removed {removed} stale scratch directories from {root}")
    return removed


class ComposeTask:
    """Executes ComposeJobs. One instance is shared by all workers."""

    def __init__(
        self,
        registry: JobRegistry,
        fetcher: AssetFetcher,
        engine: RenderEngine,
        publisher: ArtifactPublisher,
        notifier: Notifier,
        settings: Settings | None = None,
    ):
        self.registry = registry
        self.fetcher = fetcher
        self.engine = engine
        self.publisher = publisher
        self.notifier = notifier
        self.settings = settings or get_settings()

    async def __call__(self, job: ComposeJob) -> CompositionResult:
        return await self.run(job)

    async def run(self, job: ComposeJob) -> CompositionResult:
        """
        Run a job to a terminal state and deliver its result exactly once.

        Never raises: every failure is recorded on the job and reported.
        """
        job_id = job.job_id
        request = job.request
        work_dir: str | None = None

        try:
            work_dir = tempfile.mkdtemp(
                prefix=f"{self.settings.scratch_prefix}{_safe_name(job_id)}-",
                dir=self.settings.scratch_root,
            )
            logger.info(f"[COMPOSE] Starting job {job_id} in {work_dir}")

            shot_paths, track_paths = await self._download(job, work_dir)

            self.registry.advance(
                job_id, JobState.PROCESSING, progress=PROCESSING_START, stage="Rendering"
            )

            def progress_callback(progress: int, stage: str) -> None:
                # Map engine progress (0-100) to our progress (20-80)
                mapped = PROCESSING_START + int(progress * (UPLOAD_START - PROCESSING_START) / 100)
                self.registry.update_progress(job_id, mapped, stage)

            output = await self.engine.render(
                job.video,
                job.audio,
                shot_paths,
                track_paths,
                work_dir,
                master_volume=request.master_volume,
                progress_callback=progress_callback,
            )

            self.registry.advance(
                job_id, JobState.UPLOADING, progress=UPLOAD_START, stage="Uploading"
            )
            published = await self.publisher.publish(
                output.video_path,
                output.thumbnail_path,
                project_id=request.project_id,
                scene_id=request.scene_id,
            )

            self.registry.complete(job_id)
            result = CompositionResult(
                job_id=job_id,
                status="completed",
                video_url=published.video_url,
                thumbnail_url=published.thumbnail_url,
                duration_ms=output.duration_ms,
            )
            logger.info(f"[COMPOSE] Job {job_id} completed ({output.duration_ms}ms)")

        except ComposerError as e:
            logger.error(
                f"[COMPOSE] Job {job_id} failed [{e.code}]: {e.message} "
                f"(retryable={e.retryable})"
            )
            result = self._fail(job_id, e.message, e.code)

        except Exception as e:
            logger.exception(f"[COMPOSE] Job {job_id} crashed")
            result = self._fail(job_id, str(e) or type(e).__name__, "INTERNAL_ERROR")

        finally:
            if work_dir:
                shutil.rmtree(work_dir, ignore_errors=True)

        await self.notifier.notify(request.webhook_url, result)
        return result

    async def _download(
        self, job: ComposeJob, work_dir: str
    ) -> tuple[list[str], dict[int, str]]:
        """Fetch every shot and every audible track. Progress 0-20."""
        job_id = job.job_id
        downloads: list[tuple[str, str]] = []
        shot_paths: list[str] = []
        track_paths: dict[int, str] = {}

        for i, entry in enumerate(job.video.entries):
            shot = entry.shot
            path = os.path.join(work_dir, f"shot-{i:03d}{_extension(shot.video_url, '.mp4')}")
            shot_paths.append(path)
            downloads.append((shot.video_url, path))

        for i, placement in enumerate(job.audio.placements):
            if not placement.audible:
                continue
            track = placement.track
            path = os.path.join(work_dir, f"audio-{i:03d}{_extension(track.source_url, '.mp3')}")
            track_paths[i] = path
            downloads.append((track.source_url, path))

        total = len(downloads)
        self.registry.advance(
            job_id,
            JobState.DOWNLOADING,
            progress=DOWNLOAD_START,
            stage=f"Downloading files (0/{total})",
        )

        def on_progress(done: int, total: int) -> None:
            self.registry.update_progress(
                job_id,
                DOWNLOAD_START + int((PROCESSING_START - DOWNLOAD_START) * done / total),
                f"Downloading files ({done}/{total})",
            )

        await self.fetcher.fetch_all(downloads, on_progress=on_progress)
        return shot_paths, track_paths

    def _fail(self, job_id: str, message: str, code: str) -> CompositionResult:
        try:
            self.registry.fail(job_id, message, code)
        except ComposerError as e:
            # Entry swept or already terminal; the webhook still reports the failure
            logger.warning(f"[COMPOSE] Could not record failure for job {job_id}: {e.message}")
        return CompositionResult(job_id=job_id, status="failed", error=message)
