"""Media file information utilities using FFprobe."""

import json
import subprocess
from dataclasses import dataclass

from scene_composer.config import get_settings


def _get_settings():
    """Get settings lazily to avoid import issues in tests."""
    return get_settings()


@dataclass
class MediaInfo:
    """Properties of a downloaded asset."""

    duration_ms: int | None = None
    width: int | None = None
    height: int | None = None
    has_video: bool = False
    has_audio: bool = False


def _run_ffprobe(file_path: str, *args, ffprobe_path: str | None = None) -> dict:
    """Run ffprobe and return parsed JSON."""
    cmd = [
        ffprobe_path or _get_settings().ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        *args,
        file_path,
    ]

    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise RuntimeError(f"ffprobe failed: {result.stderr}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse ffprobe output: {e}")


def get_media_duration(file_path: str, ffprobe_path: str | None = None) -> int:
    """
    Get media file duration in milliseconds.

    Raises:
        RuntimeError: If ffprobe fails or duration not found
    """
    data = _run_ffprobe(file_path, "-show_format", ffprobe_path=ffprobe_path)
    format_info = data.get("format", {})

    if "duration" not in format_info:
        raise RuntimeError(f"Duration not found in: {file_path}")

    return int(float(format_info["duration"]) * 1000)


def has_audio_track(file_path: str, ffprobe_path: str | None = None) -> bool:
    """Check if a media file has at least one audio stream."""
    try:
        data = _run_ffprobe(
            file_path, "-show_streams", "-select_streams", "a", ffprobe_path=ffprobe_path
        )
        return len(data.get("streams", [])) > 0
    except RuntimeError:
        return False


def get_media_info(file_path: str, ffprobe_path: str | None = None) -> MediaInfo:
    """
    Read duration, video dimensions and stream presence in one call.

    Raises:
        RuntimeError: If ffprobe fails
    """
    data = _run_ffprobe(file_path, "-show_format", "-show_streams", ffprobe_path=ffprobe_path)
    info = MediaInfo()

    format_info = data.get("format", {})
    if "duration" in format_info:
        info.duration_ms = int(float(format_info["duration"]) * 1000)

    for stream in data.get("streams", []):
        codec_type = stream.get("codec_type")
        if codec_type == "video" and not info.has_video:
            info.has_video = True
            info.width = stream.get("width")
            info.height = stream.get("height")
        elif codec_type == "audio":
            info.has_audio = True

    return info
