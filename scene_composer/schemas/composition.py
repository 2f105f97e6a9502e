from datetime import datetime
from typing import Literal

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

FadeKind = Literal["none", "black", "white"]

_http_url = TypeAdapter(AnyHttpUrl)


def _require_http_url(value: str) -> str:
    """Reject anything that is not an absolute http(s) URL; keep the string as sent."""
    try:
        _http_url.validate_python(value)
    except PydanticValidationError:
        raise ValueError(f"must be an absolute http(s) URL, got {value!r}")
    return value


class CamelModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# Intake
# =============================================================================


class Shot(CamelModel):
    """A single ordered video clip of a scene.

    Numeric fields are deliberately unconstrained here; the timeline
    normalizer owns the range checks so they surface as InvalidTimelineError.
    """

    id: str
    order: int
    video_url: str = Field(min_length=1)
    duration_ms: int
    trim_start_ms: int = 0
    trim_end_ms: int = 0
    audio_muted: bool = False
    fade_in_type: FadeKind = "none"
    fade_out_type: FadeKind = "none"
    fade_duration_ms: int | None = None

    @field_validator("video_url")
    @classmethod
    def validate_video_url(cls, v: str) -> str:
        return _require_http_url(v)

    @property
    def has_fade(self) -> bool:
        return self.fade_in_type != "none" or self.fade_out_type != "none"


class AudioTrack(CamelModel):
    """An audio source placed at an offset on the scene timeline."""

    id: str
    source_url: str = Field(min_length=1)
    start_time_ms: int = 0
    duration_ms: int
    trim_start_ms: int = 0
    volume: float = 1.0
    muted: bool = False

    @field_validator("source_url")
    @classmethod
    def validate_source_url(cls, v: str) -> str:
        return _require_http_url(v)


class CompositionRequest(CamelModel):
    job_id: str = Field(min_length=1)
    scene_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    webhook_url: str | None = None  # None = poll-only job
    shots: list[Shot] = Field(min_length=1)
    audio_tracks: list[AudioTrack] = Field(default_factory=list)
    master_volume: float = Field(default=1.0, ge=0.0, le=2.0)

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: str | None) -> str | None:
        return v if v is None else _require_http_url(v)


class ComposeAccepted(CamelModel):
    job_id: str
    status: Literal["processing"] = "processing"


# =============================================================================
# Results
# =============================================================================


class CompositionResult(CamelModel):
    """Terminal outcome of a job, delivered once via webhook."""

    job_id: str
    status: Literal["completed", "failed"]
    video_url: str | None = None
    thumbnail_url: str | None = None
    duration_ms: int | None = None
    error: str | None = None

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class JobStatusResponse(CamelModel):
    job_id: str
    status: Literal["queued", "downloading", "processing", "uploading", "completed", "failed"]
    progress: int
    stage: str
    created_at: datetime
    updated_at: datetime
    error: str | None = None
    error_code: str | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: datetime
    version: str | None = None
