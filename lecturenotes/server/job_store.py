"""
Durable registry of lecture processing jobs.

Each job gets a dedicated directory under the jobs directory:
- metadata.json: the job record, rewritten whole on every change
- transcript.txt / notes.json: pipeline results, kept out of the metadata
- flashcards.json / quiz.json: study material generated on demand
- chunks/: scratch space for in-flight audio chunks

An in-memory index of job snapshots serves all reads; it is rebuilt from
disk on startup. Jobs older than the time-to-live are purged periodically.
"""

import json
import logging
import os
import shutil
import threading
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..errors import InvalidJobTransition, JobNotFound, JobStoreError
from ..models import ContentKind, Job, JobStatus, LectureNotes

logger = logging.getLogger(__name__)

JOB_TTL = timedelta(hours=24)
CLEANUP_INTERVAL_SECONDS = 60 * 60


class JobStore:
    """Manages lecture jobs with a thread-safe in-memory index backed by job directories."""

    # File names for different assets
    FILES = {
        "metadata": "metadata.json",
        "transcript": "transcript.txt",
        "notes": "notes.json",
        "chunks": "chunks",
    }

    def __init__(
        self,
        jobs_dir: str = "lectures",
        ttl: timedelta = JOB_TTL,
        cleanup_interval: float = CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the job store.

        Args:
            jobs_dir: Directory to store all job directories
            ttl: Age after which a job is deleted by the cleanup sweep
            cleanup_interval: Seconds between cleanup sweeps
            clock: Source of the current time
        """
        self.jobs_dir = Path(jobs_dir)
        self.ttl = ttl
        self.cleanup_interval = cleanup_interval
        self._clock = clock

        try:
            self.jobs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise JobStoreError(f"Cannot create jobs directory {self.jobs_dir}: {e}") from e

        self._jobs: Dict[str, Job] = {}
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._cleanup_thread: Optional[threading.Thread] = None

    # Lifecycle

    def start(self) -> None:
        """Load jobs from disk, purge expired ones, and start the hourly cleanup thread."""
        if self._cleanup_thread and self._cleanup_thread.is_alive():
            logger.warning("Job store is already started")
            return

        self.load_existing_jobs()
        self.sweep_expired()

        self._stop_event.clear()
        self._cleanup_thread = threading.Thread(target=self._cleanup_worker, daemon=True)
        self._cleanup_thread.start()
        logger.info(f"Job store started at {self.jobs_dir} with {len(self._jobs)} jobs")

    def stop(self) -> None:
        """Stop the cleanup thread."""
        self._stop_event.set()
        if self._cleanup_thread:
            self._cleanup_thread.join(timeout=5.0)
            self._cleanup_thread = None

    def load_existing_jobs(self) -> int:
        """
        Rebuild the in-memory index from the job directories.

        Directories whose metadata cannot be parsed are skipped with a warning.
        Jobs left mid-run by a previous process are marked failed, since no
        run will ever resume them.

        Returns:
            Number of jobs loaded
        """
        loaded = 0
        for job_dir in sorted(self.jobs_dir.iterdir()):
            if not job_dir.is_dir():
                continue

            try:
                job = self._read_job(job_dir)
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Could not load job {job_dir.name}: {e}")
                continue

            with self._lock:
                self._jobs[job.job_id] = job

            if not job.status.is_terminal:
                logger.warning(f"Job {job.job_id} was interrupted while {job.status.value}")
                self.fail(job.job_id, "Processing was interrupted by a server restart")

            loaded += 1

        logger.info(f"Loaded {loaded} existing jobs")
        return loaded

    # Job records

    def create(self, file_name: Optional[str] = None, file_size: Optional[int] = None) -> str:
        """
        Create a new pending job.

        Args:
            file_name: Original name of the uploaded file
            file_size: Size of the uploaded file in bytes

        Returns:
            Job ID (UUID string)

        Raises:
            JobStoreError: If the job directory or metadata cannot be written
        """
        job_id = str(uuid.uuid4())
        now = self._clock()
        job = Job(
            job_id=job_id,
            status=JobStatus.PENDING,
            progress=0,
            stage="Initializing",
            created_at=now,
            updated_at=now,
            file_name=file_name,
            file_size=file_size,
        )

        try:
            self.get_chunks_dir(job_id).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise JobStoreError(f"Cannot create directory for job {job_id}: {e}") from e

        with self._lock:
            self._write_metadata(job)
            self._jobs[job_id] = job

        logger.info(f"Created job: {job_id}")
        return job_id

    def get(self, job_id: str) -> Optional[Job]:
        """Get the current snapshot of a job, or None if the id is unknown."""
        with self._lock:
            return self._jobs.get(job_id)

    def job_exists(self, job_id: str) -> bool:
        return self.get(job_id) is not None

    def list_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        """List job snapshots, newest first, optionally filtered by status."""
        with self._lock:
            jobs = list(self._jobs.values())

        if status is not None:
            jobs = [job for job in jobs if job.status == status]

        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs

    def update_progress(self, job_id: str, status: JobStatus, progress: int, stage: str) -> Job:
        """
        Move a job to ``status`` and record its progress.

        Progress never goes backwards: a lower value than the current one is
        kept at the current value.

        Raises:
            JobNotFound: If the id is unknown
            InvalidJobTransition: If the job is terminal or ``status`` is behind its current status
        """

        def apply(job: Job) -> Job:
            if status.is_terminal:
                raise InvalidJobTransition(f"Use complete() or fail() to finish job {job_id}")
            self._check_transition(job, status)
            clamped = max(job.progress, min(100, max(0, int(progress))))
            return job.evolve(status=status, progress=clamped, stage=stage, updated_at=self._clock())

        return self._replace(job_id, apply)

    def record_media_info(self, job_id: str, duration: Optional[float] = None, file_size: Optional[int] = None) -> Job:
        """Store probe results on the job."""

        def apply(job: Job) -> Job:
            return job.evolve(
                duration=duration if duration is not None else job.duration,
                file_size=file_size if file_size is not None else job.file_size,
                updated_at=self._clock(),
            )

        return self._replace(job_id, apply)

    def complete(self, job_id: str, transcript: str, notes: LectureNotes) -> Job:
        """
        Mark a job as completed with its results.

        Raises:
            JobNotFound: If the id is unknown
            InvalidJobTransition: If the job already finished
        """

        def apply(job: Job) -> Job:
            self._check_transition(job, JobStatus.COMPLETED)
            now = self._clock()
            return job.evolve(
                status=JobStatus.COMPLETED,
                progress=100,
                stage="Completed successfully",
                error=None,
                updated_at=now,
                completed_at=now,
                transcript=transcript,
                notes=notes,
            )

        job = self._replace(job_id, apply)
        logger.info(f"Job completed: {job_id}")
        return job

    def fail(self, job_id: str, error: str) -> Job:
        """
        Mark a job as failed.

        Raises:
            JobNotFound: If the id is unknown
            InvalidJobTransition: If the job already finished
        """

        def apply(job: Job) -> Job:
            self._check_transition(job, JobStatus.FAILED)
            return job.evolve(
                status=JobStatus.FAILED,
                error=error or "Unknown error",
                updated_at=self._clock(),
                transcript=None,
                notes=None,
            )

        job = self._replace(job_id, apply)
        logger.error(f"Job failed: {job_id} - {job.error}")
        return job

    def delete(self, job_id: str) -> bool:
        """
        Delete a job and all its files.

        Returns:
            True if the job was deleted, False if it didn't exist

        Raises:
            JobStoreError: If the job directory cannot be removed
        """
        with self._lock:
            job_dir = self.get_job_dir(job_id)
            existed = job_id in self._jobs or job_dir.exists()

            if job_dir.exists():
                try:
                    shutil.rmtree(job_dir)
                except OSError as e:
                    raise JobStoreError(f"Failed to delete job {job_id}: {e}") from e

            self._jobs.pop(job_id, None)

        if existed:
            logger.info(f"Deleted job: {job_id}")
        return existed

    def sweep_expired(self, now: Optional[datetime] = None) -> List[str]:
        """
        Delete every job older than the time-to-live.

        Failures for individual jobs are logged and do not stop the sweep.

        Returns:
            IDs of the deleted jobs
        """
        now = now or self._clock()
        with self._lock:
            expired = [job.job_id for job in self._jobs.values() if now - job.created_at > self.ttl]

        if expired:
            logger.info(f"Cleaning up {len(expired)} old jobs")

        deleted = []
        for job_id in expired:
            try:
                self.delete(job_id)
                deleted.append(job_id)
            except Exception as e:
                logger.error(f"Failed to cleanup job {job_id}: {e}")
        return deleted

    # Paths and artifacts

    def get_job_dir(self, job_id: str) -> Path:
        """Get the directory path for a job."""
        return self.jobs_dir / job_id

    def get_chunks_dir(self, job_id: str) -> Path:
        return self.get_job_dir(job_id) / self.FILES["chunks"]

    def save_audio_file(self, job_id: str, source_path: str) -> Path:
        """
        Copy a recording into the job directory.

        Returns:
            Path of the copy inside the job directory
        """
        self._require(job_id)
        suffix = Path(source_path).suffix.lower() or ".webm"
        target_path = self.get_job_dir(job_id) / f"audio{suffix}"

        try:
            shutil.copy2(source_path, target_path)
        except OSError as e:
            raise JobStoreError(f"Failed to copy audio for job {job_id}: {e}") from e
        return target_path

    def save_transcript(self, job_id: str, transcript: str) -> None:
        self._require(job_id)
        self._write_file(self.get_job_dir(job_id) / self.FILES["transcript"], transcript)

    def load_transcript(self, job_id: str) -> Optional[str]:
        """Load the transcript, or None if it has not been written."""
        self._require(job_id)
        path = self.get_job_dir(job_id) / self.FILES["transcript"]
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise JobStoreError(f"Failed to read transcript for job {job_id}: {e}") from e

    def save_notes(self, job_id: str, notes: LectureNotes) -> None:
        self._require(job_id)
        self._write_json(self.get_job_dir(job_id) / self.FILES["notes"], notes.to_dict())

    def load_notes(self, job_id: str) -> Optional[LectureNotes]:
        """Load the notes, or None if they have not been written."""
        self._require(job_id)
        data = self._read_json(self.get_job_dir(job_id) / self.FILES["notes"])
        if data is None:
            return None
        try:
            return LectureNotes.from_dict(data)
        except ValueError as e:
            raise JobStoreError(f"Stored notes for job {job_id} are invalid: {e}") from e

    def save_generated_content(self, job_id: str, kind: ContentKind, content: List[Dict[str, Any]]) -> None:
        """Cache generated study material for a job."""
        self._require(job_id)
        self._write_json(self._content_path(job_id, kind), content)

    def load_generated_content(self, job_id: str, kind: ContentKind) -> Optional[List[Dict[str, Any]]]:
        """
        Load cached study material.

        Returns:
            The cached items, or None if not generated yet
        """
        self._require(job_id)
        path = self._content_path(job_id, kind)
        try:
            return self._read_json(path)
        except JobStoreError as e:
            logger.warning(f"Ignoring unreadable {kind.value} cache for job {job_id}: {e}")
            return None

    # Internals

    def _cleanup_worker(self) -> None:
        logger.info("Job cleanup thread started")
        while not self._stop_event.wait(self.cleanup_interval):
            try:
                self.sweep_expired()
            except Exception as e:
                logger.error(f"Error in job cleanup sweep: {e}")
        logger.info("Job cleanup thread stopped")

    def _require(self, job_id: str) -> Job:
        job = self.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def _replace(self, job_id: str, apply: Callable[[Job], Job]) -> Job:
        """Swap in a new snapshot, writing it to disk before it becomes visible."""
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise JobNotFound(job_id)

            updated = apply(current)
            self._write_metadata(updated)
            self._jobs[job_id] = updated
            return updated

    @staticmethod
    def _check_transition(job: Job, status: JobStatus) -> None:
        if job.status.is_terminal:
            raise InvalidJobTransition(f"Job {job.job_id} is already {job.status.value}")
        if not status.is_terminal and status.rank < job.status.rank:
            raise InvalidJobTransition(f"Job {job.job_id} cannot move from {job.status.value} to {status.value}")

    def _content_path(self, job_id: str, kind: ContentKind) -> Path:
        return self.get_job_dir(job_id) / f"{kind.value}.json"

    def _read_job(self, job_dir: Path) -> Job:
        with open(job_dir / self.FILES["metadata"], "r", encoding="utf-8") as f:
            job = Job.from_metadata(json.load(f))

        if job.status == JobStatus.COMPLETED:
            transcript = (job_dir / self.FILES["transcript"]).read_text(encoding="utf-8")
            with open(job_dir / self.FILES["notes"], "r", encoding="utf-8") as f:
                notes = LectureNotes.from_dict(json.load(f))
            job = job.evolve(transcript=transcript, notes=notes)
        return job

    def _write_metadata(self, job: Job) -> None:
        self._write_json(self.get_job_dir(job.job_id) / self.FILES["metadata"], job.to_metadata())

    def _write_json(self, path: Path, data: Any) -> None:
        self._write_file(path, json.dumps(data, ensure_ascii=False, indent=2))

    def _write_file(self, path: Path, text: str) -> None:
        """Replace a file's contents in one step via a temporary sibling."""
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, path)
        except OSError as e:
            raise JobStoreError(f"Failed to write {path}: {e}") from e

    def _read_json(self, path: Path) -> Optional[Any]:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise JobStoreError(f"Failed to read {path}: {e}") from e
