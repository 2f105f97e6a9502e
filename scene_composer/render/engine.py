"""
Render engine for scene composition.

Drives a MediaRenderer through the fixed stage sequence:
1. Cut and conform each shot (with fades, silence for muted shots)
2. Concatenate the clips in timeline order
3. Prepare each audible overlay track
4. Mix tracks onto the concatenated video, apply master volume
5. Capture a thumbnail from the midpoint of the first shot

Every renderer failure is re-raised as RenderError naming the stage.
Intermediates are written under the caller's job-private work directory,
which the caller removes.
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional

from scene_composer.config import Settings, get_settings
from scene_composer.exceptions import RenderError
from scene_composer.render.audio_mixer import MixTrack
from scene_composer.render.media_backend import MediaRenderer
from scene_composer.render.timeline import AudioPlan, VideoTimeline

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

# Percent of the processing stage at which each render stage starts
STAGE_PROGRESS = {
    "shots": 0,
    "concat": 60,
    "tracks": 70,
    "mix": 80,
    "thumbnail": 95,
}


@dataclass
class RenderOutput:
    video_path: str
    thumbnail_path: str
    duration_ms: int


class RenderEngine:
    """Turns a normalized timeline plus local assets into a video and thumbnail."""

    def __init__(self, renderer: MediaRenderer, settings: Settings | None = None):
        self.renderer = renderer
        self.settings = settings or get_settings()

    async def render(
        self,
        video: VideoTimeline,
        audio: AudioPlan,
        shot_paths: list[str],
        track_paths: dict[int, str],
        work_dir: str,
        master_volume: float = 1.0,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> RenderOutput:
        """
        Render the scene.

        Args:
            video: Normalized shot timeline
            audio: Clamped audio plan
            shot_paths: Local source file per timeline entry, in timeline order
            track_paths: Local source file per audible placement, keyed by its
                index in ``audio.placements``
            work_dir: Job-private directory for intermediates and outputs
            master_volume: Global multiplier applied after mixing
            progress_callback: Called with (0-100, stage) as stages start

        Returns:
            RenderOutput with paths inside ``work_dir``

        Raises:
            RenderError: If any stage fails
        """
        def update_progress(progress: int, stage: str) -> None:
            if progress_callback:
                progress_callback(progress, stage)

        total_ms = video.total_duration_ms
        logger.info(
            f"[RENDER] Rendering {len(video)} shots ({total_ms}ms), "
            f"{len(audio.audible)} audible tracks"
        )

        # 1. Shots
        clip_paths: list[str] = []
        for i, entry in enumerate(video.entries):
            shot = entry.shot
            update_progress(
                STAGE_PROGRESS["shots"] + int(STAGE_PROGRESS["concat"] * i / len(video)),
                f"Rendering shot {i + 1}/{len(video)}",
            )
            clip_path = os.path.join(work_dir, f"clip-{i:03d}.mp4")
            try:
                await self.renderer.render_shot(
                    shot_paths[i],
                    clip_path,
                    trim_start_ms=shot.trim_start_ms,
                    duration_ms=entry.effective_duration_ms,
                    fade_in=shot.fade_in_type,
                    fade_out=shot.fade_out_type,
                    fade_duration_ms=entry.fade_duration_ms,
                    mute_audio=shot.audio_muted,
                )
            except Exception as e:
                raise RenderError(f"shot {shot.id}", str(e)) from e
            clip_paths.append(clip_path)

        # 2. Concat
        update_progress(STAGE_PROGRESS["concat"], "Concatenating shots")
        concat_path = os.path.join(work_dir, "concat.mp4")
        try:
            await self.renderer.concat(clip_paths, concat_path)
        except Exception as e:
            raise RenderError("concat", str(e)) from e

        # 3. Tracks
        update_progress(STAGE_PROGRESS["tracks"], "Preparing audio tracks")
        mix_tracks: list[MixTrack] = []
        for j, placement in enumerate(audio.placements):
            track = placement.track
            if not placement.audible:
                logger.info(f"[RENDER] Skipping audio track {track.id} (muted or empty)")
                continue
            prepared_path = os.path.join(work_dir, f"track-{j:03d}.wav")
            try:
                await self.renderer.prepare_track(
                    track_paths[j],
                    prepared_path,
                    trim_start_ms=track.trim_start_ms,
                    duration_ms=placement.effective_duration_ms,
                    volume=track.volume,
                )
            except Exception as e:
                raise RenderError(f"track {track.id}", str(e)) from e
            mix_tracks.append(MixTrack(file_path=prepared_path, start_ms=placement.start_ms))

        # 4. Mix
        update_progress(STAGE_PROGRESS["mix"], "Mixing audio")
        output_path = os.path.join(work_dir, "composite.mp4")
        try:
            await self.renderer.mix(
                concat_path,
                mix_tracks,
                output_path,
                master_volume=master_volume,
                duration_ms=total_ms,
            )
        except Exception as e:
            raise RenderError("mix", str(e)) from e

        # 5. Thumbnail
        update_progress(STAGE_PROGRESS["thumbnail"], "Capturing thumbnail")
        thumbnail_path = os.path.join(work_dir, "thumbnail.jpg")
        try:
            await self.renderer.extract_frame(
                output_path,
                thumbnail_path,
                at_ms=video.entries[0].effective_duration_ms // 2,
                width=self.settings.thumbnail_width,
            )
        except Exception as e:
            raise RenderError("thumbnail", str(e)) from e

        update_progress(100, "Render complete")
        return RenderOutput(video_path=output_path, thumbnail_path=thumbnail_path, duration_ms=total_ms)
