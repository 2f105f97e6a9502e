"""Render module for scene composition."""

from scene_composer.render.engine import RenderEngine, RenderOutput
from scene_composer.render.media_backend import (
    MEDIA_BACKENDS,
    FFmpegRenderer,
    MediaRenderer,
    create_media_renderer,
)
from scene_composer.render.timeline import AudioPlan, VideoTimeline, normalize_timeline

__all__ = [
    "AudioPlan",
    "FFmpegRenderer",
    "MEDIA_BACKENDS",
    "MediaRenderer",
    "RenderEngine",
    "RenderOutput",
    "VideoTimeline",
    "create_media_renderer",
    "normalize_timeline",
]
