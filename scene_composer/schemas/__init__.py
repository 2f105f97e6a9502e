from scene_composer.schemas.composition import (
    AudioTrack,
    ComposeAccepted,
    CompositionRequest,
    CompositionResult,
    FadeKind,
    HealthResponse,
    JobStatusResponse,
    Shot,
)

__all__ = [
    "AudioTrack",
    "ComposeAccepted",
    "CompositionRequest",
    "CompositionResult",
    "FadeKind",
    "HealthResponse",
    "JobStatusResponse",
    "Shot",
]
