"""
Media rendering backends.

A ``MediaRenderer`` exposes the handful of declarative operations the render
engine needs. Backends are registered in ``MEDIA_BACKENDS`` and one is picked
at startup from ``settings.media_backend``.
"""

import asyncio
import logging
import os
import shutil
from abc import ABC, abstractmethod
from typing import Literal

from scene_composer.config import Settings, get_settings
from scene_composer.exceptions import ConfigError
from scene_composer.render.audio_mixer import AudioMixer, MixTrack, seconds
from scene_composer.utils.media_info import has_audio_track

logger = logging.getLogger(__name__)

FadeColor = Literal["none", "black", "white"]


class MediaRenderer(ABC):
    """Declarative media operations used by the render engine.

    Implementations raise on failure; the engine attributes the failure to
    a stage.
    """

    @abstractmethod
    async def render_shot(
        self,
        source_path: str,
        output_path: str,
        *,
        trim_start_ms: int,
        duration_ms: int,
        fade_in: FadeColor = "none",
        fade_out: FadeColor = "none",
        fade_duration_ms: int = 0,
        mute_audio: bool = False,
    ) -> str:
        """Cut ``duration_ms`` starting at ``trim_start_ms`` into a conformed clip."""

    @abstractmethod
    async def concat(self, clip_paths: list[str], output_path: str) -> str:
        """Join conformed clips end to end."""

    @abstractmethod
    async def prepare_track(
        self,
        source_path: str,
        output_path: str,
        *,
        trim_start_ms: int,
        duration_ms: int,
        volume: float,
    ) -> str:
        """Trim an audio source and apply its volume multiplier."""

    @abstractmethod
    async def mix(
        self,
        video_path: str,
        tracks: list[MixTrack],
        output_path: str,
        *,
        master_volume: float,
        duration_ms: int,
    ) -> str:
        """Mix prepared tracks over the video's own audio at their offsets."""

    @abstractmethod
    async def extract_frame(
        self, video_path: str, output_path: str, *, at_ms: int, width: int
    ) -> str:
        """Write a single scaled JPEG frame."""


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        proc.kill()
        await proc.wait()


def _write_concat_list(list_path: str, clip_paths: list[str]) -> None:
    with open(list_path, "w") as f:
        for clip_path in clip_paths:
            # FFmpeg concat requires escaped paths
            escaped = clip_path.replace("'", "'\\''")
            f.write(f"file '{escaped}'\n")


class FFmpegRenderer(MediaRenderer):
    """MediaRenderer backed by the ffmpeg/ffprobe executables."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.ffmpeg_path = self.settings.ffmpeg_path
        self.width = self.settings.render_output_width
        self.height = self.settings.render_output_height
        self.fps = self.settings.render_fps
        self.sample_rate = self.settings.render_audio_sample_rate
        self.timeout = self.settings.ffmpeg_timeout_seconds
        self.audio_mixer = AudioMixer(self.settings)

    # ------------------------------------------------------------------
    # Command builders
    # ------------------------------------------------------------------

    def _conform_filter(self) -> str:
        w, h = self.width, self.height
        return (
            f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
            f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,setsar=1,fps={self.fps},format=yuv420p"
        )

    @staticmethod
    def _fade_filter(direction: str, color: FadeColor, start_ms: int, fade_ms: int) -> str:
        fade = f"fade=t={direction}:st={seconds(start_ms)}:d={seconds(fade_ms)}"
        if color == "white":
            fade += ":c=white"
        return fade

    def build_shot_command(
        self,
        source_path: str,
        output_path: str,
        *,
        trim_start_ms: int,
        duration_ms: int,
        fade_in: FadeColor = "none",
        fade_out: FadeColor = "none",
        fade_duration_ms: int = 0,
        use_silence: bool = False,
    ) -> list[str]:
        """Build the per-shot trim/conform/fade command without executing it."""
        start, duration = seconds(trim_start_ms), seconds(duration_ms)

        video_chain = [
            f"trim=start={start}:duration={duration}",
            "setpts=PTS-STARTPTS",
            self._conform_filter(),
        ]
        if fade_in != "none" and fade_duration_ms > 0:
            video_chain.append(self._fade_filter("in", fade_in, 0, fade_duration_ms))
        if fade_out != "none" and fade_duration_ms > 0:
            video_chain.append(
                self._fade_filter("out", fade_out, duration_ms - fade_duration_ms, fade_duration_ms)
            )

        inputs = ["-i", source_path]
        if use_silence:
            inputs += [
                "-f", "lavfi",
                "-t", duration,
                "-i", f"anullsrc=channel_layout=stereo:sample_rate={self.sample_rate}",
            ]
            audio_chain = "[1:a]asetpts=PTS-STARTPTS[a]"
        else:
            audio_chain = (
                f"[0:a]atrim=start={start}:duration={duration},asetpts=PTS-STARTPTS,"
                f"aresample={self.sample_rate},aformat=channel_layouts=stereo,apad[a]"
            )

        filter_complex = f"[0:v]{','.join(video_chain)}[v];{audio_chain}"

        return [
            self.ffmpeg_path,
            "-y",
            *inputs,
            "-filter_complex", filter_complex,
            "-map", "[v]",
            "-map", "[a]",
            "-c:v", self.settings.render_video_codec,
            "-preset", self.settings.render_preset,
            "-crf", str(self.settings.render_crf),
            "-c:a", self.settings.render_audio_codec,
            "-b:a", self.settings.render_audio_bitrate,
            "-ar", str(self.sample_rate),
            "-ac", "2",
            "-t", duration,
            output_path,
        ]

    def build_concat_command(self, list_path: str, output_path: str) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", list_path,
            "-c", "copy",
            "-movflags", "+faststart",
            output_path,
        ]

    def build_frame_command(
        self, video_path: str, output_path: str, *, at_ms: int, width: int
    ) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-ss", seconds(at_ms),
            "-i", video_path,
            "-frames:v", "1",
            "-vf", f"scale={width}:-2",
            "-q:v", "2",
            output_path,
        ]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run(self, cmd: list[str], what: str) -> None:
        logger.debug(f"[FFMPEG] {what}: {' '.join(cmd)}")
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await _kill(proc)
            raise RuntimeError(f"FFmpeg {what} timed out after {self.timeout}s")
        except BaseException:
            # Cancelled, e.g. worker shutdown: the scratch dir is about to go away
            await _kill(proc)
            raise

        if proc.returncode != 0:
            stderr_text = stderr.decode("utf-8", errors="replace")
            logger.error(f"[FFMPEG] {what} failed: {stderr_text[-2000:]}")
            raise RuntimeError(f"FFmpeg {what} failed (exit {proc.returncode}): {stderr_text[-500:]}")

    async def render_shot(
        self,
        source_path: str,
        output_path: str,
        *,
        trim_start_ms: int,
        duration_ms: int,
        fade_in: FadeColor = "none",
        fade_out: FadeColor = "none",
        fade_duration_ms: int = 0,
        mute_audio: bool = False,
    ) -> str:
        use_silence = mute_audio
        if not use_silence:
            has_audio = await asyncio.to_thread(
                has_audio_track, source_path, self.settings.ffprobe_path
            )
            if not has_audio:
                logger.info(f"[FFMPEG] {os.path.basename(source_path)} has no audio, using silence")
                use_silence = True

        cmd = self.build_shot_command(
            source_path,
            output_path,
            trim_start_ms=trim_start_ms,
            duration_ms=duration_ms,
            fade_in=fade_in,
            fade_out=fade_out,
            fade_duration_ms=fade_duration_ms,
            use_silence=use_silence,
        )
        await self._run(cmd, "shot render")
        return output_path

    async def concat(self, clip_paths: list[str], output_path: str) -> str:
        if len(clip_paths) == 1:
            await asyncio.to_thread(shutil.copy2, clip_paths[0], output_path)
            return output_path

        list_path = os.path.join(os.path.dirname(output_path), "concat_list.txt")
        await asyncio.to_thread(_write_concat_list, list_path, clip_paths)

        await self._run(self.build_concat_command(list_path, output_path), "concat")
        return output_path

    async def prepare_track(
        self,
        source_path: str,
        output_path: str,
        *,
        trim_start_ms: int,
        duration_ms: int,
        volume: float,
    ) -> str:
        cmd = self.audio_mixer.build_prepare_command(
            source_path,
            output_path,
            trim_start_ms=trim_start_ms,
            duration_ms=duration_ms,
            volume=volume,
        )
        await self._run(cmd, "track prepare")
        return output_path

    async def mix(
        self,
        video_path: str,
        tracks: list[MixTrack],
        output_path: str,
        *,
        master_volume: float,
        duration_ms: int,
    ) -> str:
        cmd = self.audio_mixer.build_mix_command(
            video_path,
            tracks,
            output_path,
            master_volume=master_volume,
            duration_ms=duration_ms,
        )
        await self._run(cmd, "mix")
        return output_path

    async def extract_frame(
        self, video_path: str, output_path: str, *, at_ms: int, width: int
    ) -> str:
        cmd = self.build_frame_command(video_path, output_path, at_ms=at_ms, width=width)
        await self._run(cmd, "thumbnail")
        return output_path


MEDIA_BACKENDS: dict[str, type[MediaRenderer]] = {
    "ffmpeg": FFmpegRenderer,
}


def create_media_renderer(settings: Settings | None = None) -> MediaRenderer:
    """Instantiate the configured backend.

    Raises:
        ConfigError: Unknown backend, or its executables are not on PATH.
    """
    settings = settings or get_settings()
    backend_cls = MEDIA_BACKENDS.get(settings.media_backend)
    if backend_cls is None:
        raise ConfigError(f"Unknown media backend: {settings.media_backend}")

    for executable in (settings.ffmpeg_path, settings.ffprobe_path):
        if shutil.which(executable) is None:
            raise ConfigError(f"Media backend '{settings.media_backend}' needs {executable}, not found")

    logger.info(f"[RENDER] Using media backend: {settings.media_backend}")
    return backend_cls(settings)
