"""
Exception hierarchy for the lecture processing pipeline.

Pipeline stages raise these so that the orchestrator can record a readable
message on the failed job, and the HTTP layer can map them to status codes.
"""


class LectureNotesError(Exception):
    """Base class for all lecture pipeline errors."""


class ValidationError(LectureNotesError):
    """Raised when an uploaded recording is rejected before processing."""


class FileTooLarge(ValidationError):
    """Raised when a recording exceeds the maximum file size."""


class DurationTooLong(ValidationError):
    """Raised when a recording exceeds the maximum duration."""


class ProbeError(LectureNotesError):
    """Raised when a file cannot be read as a media container."""


class SplitError(LectureNotesError):
    """Raised when a recording cannot be cut into chunks."""


class TranscriptionError(LectureNotesError):
    """Raised when speech-to-text fails after all retry attempts."""


class GenerationError(LectureNotesError):
    """Raised when notes, flashcards or quiz generation fails."""


class JobNotFound(LectureNotesError):
    """Raised when a job id is unknown to the job store."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class JobNotReady(LectureNotesError):
    """Raised when a job's results are requested before it completed."""

    def __init__(self, job_id: str, status: str):
        super().__init__(f"Job {job_id} is not completed (status: {status})")
        self.job_id = job_id
        self.status = status


class JobStoreError(LectureNotesError):
    """Raised when job state cannot be written to or read from disk."""


class InvalidJobTransition(JobStoreError):
    """Raised when an update would move a job backwards or out of a terminal state."""


class PipelineUnavailable(LectureNotesError):
    """Raised when the background runner refuses to start a pipeline run."""
