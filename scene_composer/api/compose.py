import logging

from fastapi import APIRouter, Depends, status

from scene_composer.api.deps import AppSettings, Pool, Registry, require_api_secret
from scene_composer.exceptions import QueueFullError
from scene_composer.render.timeline import normalize_timeline
from scene_composer.schemas.composition import (
    ComposeAccepted,
    CompositionRequest,
    JobStatusResponse,
)
from scene_composer.tasks.compose_task import ComposeJob

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_api_secret)])


@router.post("/compose", response_model=ComposeAccepted, status_code=status.HTTP_202_ACCEPTED)
async def compose(
    request: CompositionRequest,
    settings: AppSettings,
    registry: Registry,
    pool: Pool,
) -> ComposeAccepted:
    """Accept a scene for composition and return immediately.

    The timeline is validated here, so a bad request is rejected before any
    job exists or any asset is downloaded.
    """
    video, audio = normalize_timeline(
        request.shots, request.audio_tracks, settings.default_fade_duration_ms
    )

    registry.create(request.job_id)
    try:
        pool.submit(ComposeJob(request=request, video=video, audio=audio))
    except QueueFullError:
        registry.discard(request.job_id)
        raise

    logger.info(
        f"[COMPOSE] Accepted job {request.job_id}: scene {request.scene_id}, "
        f"{len(video)} shots, {len(audio.placements)} audio tracks"
    )
    return ComposeAccepted(job_id=request.job_id)


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatusResponse,
    response_model_exclude_none=True,
)
async def get_job_status(job_id: str, registry: Registry) -> JobStatusResponse:
    return registry.require(job_id).to_response()
