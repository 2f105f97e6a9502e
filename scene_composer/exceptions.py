"""Custom exceptions for the scene composer.

Every error carries a machine-readable code from
``scene_composer.constants.error_codes`` and the HTTP status used when it
surfaces at the intake boundary. Errors raised inside a worker never reach an
HTTP response; they are recorded on the job status instead.
"""

from scene_composer.constants.error_codes import get_error_spec


class ComposerError(Exception):
    """Base exception for all scene composer errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return get_error_spec(self.code).get("retryable", False)

    def to_dict(self) -> dict[str, str]:
        """Serialize for an HTTP error body.

        ``suggestedFix`` comes from the exception, or else from the error code
        table, and is omitted when neither has one.
        """
        body = {"error": self.message, "code": self.code}
        suggested_fix = self.suggested_fix or get_error_spec(self.code).get("suggested_fix")
        if suggested_fix:
            body["suggestedFix"] = suggested_fix
        return body


# =============================================================================
# Intake Errors (4xx, job never created)
# =============================================================================


class ValidationError(ComposerError):
    """Malformed or missing required request fields."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid composition request"


class InvalidTimelineError(ValidationError):
    """Shots or audio tracks do not form a valid timeline."""

    code = "INVALID_TIMELINE"
    message = "Invalid timeline"


class AuthError(ComposerError):
    code = "UNAUTHORIZED"
    status_code = 401
    message = "Unauthorized"


class DuplicateJobError(ComposerError):
    code = "DUPLICATE_JOB"
    status_code = 409
    message = "Job already exists"

    def __init__(self, job_id: str | None = None):
        message = f"Job already exists: {job_id}" if job_id else self.message
        super().__init__(message)


class QueueFullError(ComposerError):
    code = "QUEUE_FULL"
    status_code = 503
    message = "Composition queue is full"


class JobNotFoundError(ComposerError):
    code = "JOB_NOT_FOUND"
    status_code = 404
    message = "Job not found"

    def __init__(self, job_id: str | None = None):
        message = f"Job not found: {job_id}" if job_id else self.message
        super().__init__(message)


# =============================================================================
# Job Errors (fatal to a single job)
# =============================================================================


class FetchError(ComposerError):
    """Asset download failed (network error, non-2xx or empty body)."""

    code = "FETCH_FAILED"
    status_code = 502
    message = "Asset download failed"

    def __init__(self, message: str | None = None, *, url: str | None = None):
        self.url = url
        super().__init__(message)


class RenderError(ComposerError):
    """The media renderer failed; ``stage`` names the failing step."""

    code = "RENDER_FAILED"
    status_code = 500
    message = "Render failed"

    def __init__(self, stage: str, message: str | None = None):
        self.stage = stage
        self.detail = message or self.__class__.message
        super().__init__(f"Render failed at {stage}: {self.detail}")


class PublishError(ComposerError):
    code = "PUBLISH_FAILED"
    status_code = 502
    message = "Upload of rendered output failed"


class NotifyError(ComposerError):
    """Webhook delivery failed after all retries. Never fatal to the job."""

    code = "NOTIFY_FAILED"
    status_code = 502
    message = "Webhook delivery failed"


# =============================================================================
# Internal Errors
# =============================================================================


class JobStateError(ComposerError):
    """An illegal lifecycle transition was attempted."""

    code = "INVALID_STATE_TRANSITION"
    status_code = 500
    message = "Invalid job state transition"


class ConfigError(ComposerError):
    code = "CONFIG_ERROR"
    status_code = 500
    message = "Invalid configuration"
