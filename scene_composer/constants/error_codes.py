"""Error codes dictionary for the composer API.

Single source of truth for error codes, their retryability, and suggested
recovery hints. HTTP error bodies carry the suggested fix as ``suggestedFix``;
the worker logs the retryable flag when it records a failure on a job.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Retry hint and suggested fix for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Intake errors (job never created)
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
        "suggested_fix": "Provide jobId, sceneId, projectId and at least one shot",
    },
    "INVALID_TIMELINE": {
        "retryable": False,
        "suggested_fix": "Use unique shot orders, non-negative values and trims shorter than the shot",
    },
    "UNAUTHORIZED": {
        "retryable": False,
        "suggested_fix": "Send 'Authorization: Bearer <API_SECRET>'",
    },
    "DUPLICATE_JOB": {
        "retryable": False,
        "suggested_fix": "Use a fresh jobId or poll GET /jobs/{jobId}",
    },
    "QUEUE_FULL": {
        "retryable": True,
        "suggested_fix": "Retry after running jobs finish",
    },
    "JOB_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "The job never existed or was purged after the retention window",
    },
    # ==========================================================================
    # Job errors (recorded on the job status)
    # ==========================================================================
    "FETCH_FAILED": {
        "retryable": True,
        "suggested_fix": "Check that every videoUrl and sourceUrl is reachable",
    },
    "RENDER_FAILED": {
        "retryable": False,
        "suggested_fix": "Check the source media is a decodable video/audio file",
    },
    "PUBLISH_FAILED": {
        "retryable": True,
    },
    "NOTIFY_FAILED": {
        "retryable": True,
    },
    # ==========================================================================
    # Internal errors
    # ==========================================================================
    "INVALID_STATE_TRANSITION": {
        "retryable": False,
    },
    "CONFIG_ERROR": {
        "retryable": False,
    },
    "INTERNAL_ERROR": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Look up an error code.

    Unknown codes are treated as non-retryable.
    """
    return ERROR_CODES.get(code, {"retryable": False})
