"""Timeline normalization.

Turns the raw shot and audio-track declarations of a composition request into
a canonical absolute-time timeline:

- Shots are ordered by ``order`` and laid end to end, never overlapping.
- Each shot contributes ``duration - trim_start - trim_end`` milliseconds.
- Audio tracks are clamped into ``[0, total_video_duration]``; tracks that
  start at or after the end of the video are dropped with a warning.

All range checks live here so that an invalid request is rejected at intake,
before any asset is downloaded.
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence

from scene_composer.exceptions import InvalidTimelineError
from scene_composer.schemas.composition import AudioTrack, Shot

logger = logging.getLogger(__name__)

DEFAULT_FADE_DURATION_MS = 500


@dataclass(frozen=True)
class TimelineEntry:
    """A shot placed on the video timeline."""

    shot: Shot
    effective_duration_ms: int
    start_ms: int
    fade_duration_ms: int = 0

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.effective_duration_ms


@dataclass(frozen=True)
class AudioPlacement:
    """An audio track clamped to the video timeline."""

    track: AudioTrack
    start_ms: int
    effective_duration_ms: int

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.effective_duration_ms

    @property
    def audible(self) -> bool:
        """Whether this placement contributes anything to the mix."""
        return not self.track.muted and self.effective_duration_ms > 0


@dataclass
class VideoTimeline:
    entries: list[TimelineEntry] = field(default_factory=list)

    @property
    def total_duration_ms(self) -> int:
        return sum(e.effective_duration_ms for e in self.entries)

    @property
    def start_times_ms(self) -> list[int]:
        return [e.start_ms for e in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class AudioPlan:
    placements: list[AudioPlacement] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def audible(self) -> list[AudioPlacement]:
        return [p for p in self.placements if p.audible]


def _check_non_negative(owner: str, values: dict[str, float | int | None]) -> None:
    for name, value in values.items():
        if value is not None and value < 0:
            raise InvalidTimelineError(f"{owner}: {name} must be >= 0 (got {value})")


def _resolve_fade_duration(shot: Shot, effective_ms: int, default_ms: int) -> int:
    """Fade length for a shot, or 0 when the shot has no fade.

    An explicit fade duration longer than half the shot is an error; the
    default is shortened to fit instead.
    """
    if not shot.has_fade:
        return 0
    if shot.fade_duration_ms is None:
        return min(default_ms, effective_ms // 2)
    if shot.fade_duration_ms * 2 > effective_ms:
        raise InvalidTimelineError(
            f"Shot {shot.id}: fade duration {shot.fade_duration_ms}ms exceeds half "
            f"of its trimmed duration ({effective_ms}ms)"
        )
    return shot.fade_duration_ms


def build_video_timeline(
    shots: Sequence[Shot],
    default_fade_duration_ms: int = DEFAULT_FADE_DURATION_MS,
) -> VideoTimeline:
    """Validate shots and lay them out sequentially by ascending ``order``.

    Raises:
        InvalidTimelineError: On empty input, negative values, duplicate
            orders, non-positive trimmed duration or an oversized fade.
    """
    if not shots:
        raise InvalidTimelineError("At least one shot is required")

    for shot in shots:
        _check_non_negative(
            f"Shot {shot.id}",
            {
                "order": shot.order,
                "durationMs": shot.duration_ms,
                "trimStartMs": shot.trim_start_ms,
                "trimEndMs": shot.trim_end_ms,
                "fadeDurationMs": shot.fade_duration_ms,
            },
        )

    seen: dict[int, str] = {}
    for shot in shots:
        if shot.order in seen:
            raise InvalidTimelineError(
                f"Shots {seen[shot.order]} and {shot.id} share order {shot.order}"
            )
        seen[shot.order] = shot.id

    # sorted() is stable, so input position breaks any tie
    ordered = sorted(shots, key=lambda s: s.order)

    entries: list[TimelineEntry] = []
    cursor_ms = 0
    for shot in ordered:
        effective_ms = shot.duration_ms - shot.trim_start_ms - shot.trim_end_ms
        if effective_ms <= 0:
            raise InvalidTimelineError(
                f"Shot {shot.id}: trims ({shot.trim_start_ms}ms + {shot.trim_end_ms}ms) "
                f"leave nothing of its {shot.duration_ms}ms duration"
            )
        fade_ms = _resolve_fade_duration(shot, effective_ms, default_fade_duration_ms)
        entries.append(
            TimelineEntry(
                shot=shot,
                effective_duration_ms=effective_ms,
                start_ms=cursor_ms,
                fade_duration_ms=fade_ms,
            )
        )
        cursor_ms += effective_ms

    return VideoTimeline(entries=entries)


def build_audio_plan(tracks: Sequence[AudioTrack], total_duration_ms: int) -> AudioPlan:
    """Clamp audio tracks into the video's time range.

    Raises:
        InvalidTimelineError: On negative start, duration, trim or volume.
    """
    plan = AudioPlan()

    for track in tracks:
        _check_non_negative(
            f"Audio track {track.id}",
            {
                "startTimeMs": track.start_time_ms,
                "durationMs": track.duration_ms,
                "trimStartMs": track.trim_start_ms,
                "volume": track.volume,
            },
        )

    for track in tracks:
        start_ms = track.start_time_ms
        if start_ms >= total_duration_ms:
            warning = (
                f"Audio track {track.id} starts at {start_ms}ms, at or after the end of "
                f"the video ({total_duration_ms}ms); dropped"
            )
            logger.warning(f"[TIMELINE] {warning}")
            plan.warnings.append(warning)
            continue

        end_ms = min(start_ms + track.duration_ms, total_duration_ms)
        if end_ms < start_ms + track.duration_ms:
            logger.info(
                f"[TIMELINE] Audio track {track.id} truncated from {track.duration_ms}ms "
                f"to {end_ms - start_ms}ms"
            )

        plan.placements.append(
            AudioPlacement(track=track, start_ms=start_ms, effective_duration_ms=end_ms - start_ms)
        )

    return plan


def normalize_timeline(
    shots: Sequence[Shot],
    audio_tracks: Sequence[AudioTrack],
    default_fade_duration_ms: int = DEFAULT_FADE_DURATION_MS,
) -> tuple[VideoTimeline, AudioPlan]:
    """Produce the canonical video timeline and audio plan for a scene."""
    video = build_video_timeline(shots, default_fade_duration_ms)
    audio = build_audio_plan(audio_tracks, video.total_duration_ms)
    logger.debug(
        f"[TIMELINE] {len(video)} shots, total {video.total_duration_ms}ms, "
        f"{len(audio.placements)} audio placements, {len(audio.warnings)} warnings"
    )
    return video, audio
