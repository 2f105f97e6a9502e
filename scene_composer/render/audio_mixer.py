"""
Audio mixing for scene composition using FFmpeg.

This module handles:
- Preparing an overlay track (trim to its window, per-track volume)
- Mixing prepared tracks over the concatenated shot audio at their offsets
- Master volume on the final mix

Command builders are pure so they can be tested without FFmpeg installed.
"""

from dataclasses import dataclass

from scene_composer.config import Settings, get_settings


@dataclass
class MixTrack:
    """A prepared audio file and its placement on the timeline."""

    file_path: str
    start_ms: int


def seconds(ms: int) -> str:
    """Milliseconds as an FFmpeg seconds literal."""
    return f"{ms / 1000:.3f}"


def build_track_filter(trim_start_ms: int, duration_ms: int, volume: float) -> str:
    """Filter chain cutting ``duration_ms`` from ``trim_start_ms`` of a source."""
    parts = [
        f"atrim=start={seconds(trim_start_ms)}:duration={seconds(duration_ms)}",
        "asetpts=PTS-STARTPTS",
    ]
    if volume != 1.0:
        parts.append(f"volume={volume}")
    return ",".join(parts)


def build_mix_filter(tracks: list[MixTrack], master_volume: float) -> str:
    """
    Build the filter_complex mixing overlay tracks over input 0's audio.

    Input 0 is the concatenated shot video; overlay track ``i`` is input
    ``i + 1``. The mix runs for the duration of the shot audio, so overlays
    can never extend the output.
    """
    if not tracks:
        return f"[0:a]volume={master_volume}[aout]"

    filter_parts: list[str] = []
    labels = ["[0:a]"]
    for i, track in enumerate(tracks, start=1):
        label = f"t{i}"
        delay = f",adelay={track.start_ms}:all=1" if track.start_ms > 0 else ""
        filter_parts.append(f"[{i}:a]asetpts=PTS-STARTPTS{delay}[{label}]")
        labels.append(f"[{label}]")

    filter_parts.append(
        f"{''.join(labels)}amix=inputs={len(labels)}:duration=first"
        f":dropout_transition=0:normalize=0,volume={master_volume}[aout]"
    )
    return ";".join(filter_parts)


class AudioMixer:
    """Builds FFmpeg commands for the audio half of a composition."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.ffmpeg_path = self.settings.ffmpeg_path
        self.sample_rate = self.settings.render_audio_sample_rate

    def build_prepare_command(
        self,
        source_path: str,
        output_path: str,
        *,
        trim_start_ms: int,
        duration_ms: int,
        volume: float,
    ) -> list[str]:
        """Command writing a trimmed, volume-adjusted stereo WAV of a track."""
        return [
            self.ffmpeg_path,
            "-y",
            "-i", source_path,
            "-vn",
            "-af", build_track_filter(trim_start_ms, duration_ms, volume),
            "-ar", str(self.sample_rate),
            "-ac", "2",
            "-c:a", "pcm_s16le",
            output_path,
        ]

    def build_mix_command(
        self,
        video_path: str,
        tracks: list[MixTrack],
        output_path: str,
        *,
        master_volume: float,
        duration_ms: int,
    ) -> list[str]:
        """Command muxing the mixed audio with the untouched video stream."""
        inputs = ["-i", video_path]
        for track in tracks:
            inputs.extend(["-i", track.file_path])

        return [
            self.ffmpeg_path,
            "-y",
            *inputs,
            "-filter_complex", build_mix_filter(tracks, master_volume),
            "-map", "0:v:0",
            "-map", "[aout]",
            "-c:v", "copy",
            "-c:a", self.settings.render_audio_codec,
            "-b:a", self.settings.render_audio_bitrate,
            "-ar", str(self.sample_rate),
            "-t", seconds(duration_ms),
            "-movflags", "+faststart",
            output_path,
        ]
