"""In-memory job registry.

Holds one JobStatus per job id for the lifetime of the process. The map is
guarded by one lock and every entry by its own lock, so updates to different
jobs only contend on the brief map lookup. Readers always get a copy.

Lifecycle: queued -> downloading -> processing -> uploading -> completed.
``failed`` is reachable from any non-terminal state. Terminal entries are
immutable and are only removed by ``sweep`` once older than the retention
window.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum

from scene_composer.exceptions import DuplicateJobError, JobNotFoundError, JobStateError
from scene_composer.schemas.composition import JobStatusResponse

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    PROCESSING = "processing"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


_STATE_ORDER = {
    JobState.QUEUED: 0,
    JobState.DOWNLOADING: 1,
    JobState.PROCESSING: 2,
    JobState.UPLOADING: 3,
    JobState.COMPLETED: 4,
    JobState.FAILED: 4,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobStatus:
    job_id: str
    state: JobState
    progress: int
    stage: str
    created_at: datetime
    updated_at: datetime
    error: str | None = None
    error_code: str | None = None

    def to_response(self) -> JobStatusResponse:
        return JobStatusResponse(
            job_id=self.job_id,
            status=self.state.value,
            progress=self.progress,
            stage=self.stage,
            created_at=self.created_at,
            updated_at=self.updated_at,
            error=self.error,
            error_code=self.error_code,
        )


class _Entry:
    __slots__ = ("status", "lock")

    def __init__(self, status: JobStatus) -> None:
        self.status = status
        self.lock = threading.Lock()


class JobRegistry:
    """Thread-safe map from job id to lifecycle state."""

    def __init__(self, retention_seconds: int = 3600) -> None:
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self.retention = timedelta(seconds=retention_seconds)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._entries

    def _entry(self, job_id: str) -> _Entry:
        with self._lock:
            entry = self._entries.get(job_id)
        if entry is None:
            raise JobNotFoundError(job_id)
        return entry

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, job_id: str) -> JobStatus | None:
        """Snapshot of a job's status, or None if unknown or swept."""
        with self._lock:
            entry = self._entries.get(job_id)
        if entry is None:
            return None
        with entry.lock:
            return replace(entry.status)

    def require(self, job_id: str) -> JobStatus:
        status = self.get(job_id)
        if status is None:
            raise JobNotFoundError(job_id)
        return status

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, job_id: str) -> JobStatus:
        """Register a new job in ``queued``.

        Raises:
            DuplicateJobError: If the id is already registered
        """
        now = _utcnow()
        status = JobStatus(
            job_id=job_id,
            state=JobState.QUEUED,
            progress=0,
            stage="Queued",
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            if job_id in self._entries:
                raise DuplicateJobError(job_id)
            self._entries[job_id] = _Entry(status)
        logger.info(f"[JOBS] Registered job {job_id}")
        return replace(status)

    def discard(self, job_id: str) -> None:
        """Remove a job that was registered but never handed to a worker."""
        with self._lock:
            self._entries.pop(job_id, None)

    def advance(
        self,
        job_id: str,
        state: JobState,
        *,
        progress: int | None = None,
        stage: str | None = None,
    ) -> JobStatus:
        """Move a job forward to ``state``.

        Raises:
            JobNotFoundError: Unknown job
            JobStateError: Backward move, re-entry, or the job is terminal
        """
        entry = self._entry(job_id)
        with entry.lock:
            current = entry.status
            if current.state.is_terminal:
                raise JobStateError(
                    f"Job {job_id} is {current.state.value}; cannot move to {state.value}"
                )
            if state is not JobState.FAILED and _STATE_ORDER[state] <= _STATE_ORDER[current.state]:
                raise JobStateError(
                    f"Job {job_id} cannot move from {current.state.value} to {state.value}"
                )
            current.state = state
            self._apply(current, progress, stage)
            return replace(current)

    def update_progress(self, job_id: str, progress: int, stage: str | None = None) -> JobStatus:
        """Update progress within the current state. Never decreases progress.

        Raises:
            JobStateError: If the job is terminal
        """
        entry = self._entry(job_id)
        with entry.lock:
            current = entry.status
            if current.state.is_terminal:
                raise JobStateError(f"Job {job_id} is {current.state.value}; progress is frozen")
            self._apply(current, progress, stage)
            return replace(current)

    def complete(self, job_id: str, stage: str = "Completed") -> JobStatus:
        return self.advance(job_id, JobState.COMPLETED, progress=100, stage=stage)

    def fail(self, job_id: str, error: str, error_code: str = "INTERNAL_ERROR") -> JobStatus:
        entry = self._entry(job_id)
        with entry.lock:
            current = entry.status
            if current.state.is_terminal:
                raise JobStateError(f"Job {job_id} is already {current.state.value}")
            current.state = JobState.FAILED
            current.error = error
            current.error_code = error_code
            self._apply(current, None, "Failed")
            return replace(current)

    @staticmethod
    def _apply(status: JobStatus, progress: int | None, stage: str | None) -> None:
        """Apply progress/stage and bump updated_at (entry lock held)."""
        if progress is not None:
            status.progress = max(status.progress, min(100, int(progress)))
        if stage is not None:
            status.stage = stage
        status.updated_at = _utcnow()

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def sweep(self, now: datetime | None = None) -> int:
        """Evict entries not updated within the retention window.

        Returns:
            Number of evicted entries
        """
        cutoff = (now or _utcnow()) - self.retention
        evicted: list[str] = []
        with self._lock:
            for job_id, entry in list(self._entries.items()):
                with entry.lock:
                    stale = entry.status.updated_at < cutoff
                if stale:
                    del self._entries[job_id]
                    evicted.append(job_id)
        if evicted:
            logger.info(f"[JOBS] Swept {len(evicted)} stale jobs")
        return len(evicted)
