from scene_composer.jobs.registry import JobRegistry, JobState, JobStatus
from scene_composer.jobs.sweeper import JobSweeper

__all__ = ["JobRegistry", "JobState", "JobStatus", "JobSweeper"]
