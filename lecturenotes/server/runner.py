"""
Background execution of lecture pipeline runs using ThreadPoolExecutor.

Callers submit a recording and get control back immediately; the run
proceeds on a worker thread and its progress is observed by polling the
job store.
"""

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional

from .processor import LectureProcessor

logger = logging.getLogger(__name__)


class PipelineRunner:
    """Runs LectureProcessor.process on a thread pool, one future per job."""

    def __init__(self, processor: LectureProcessor, max_workers: Optional[int] = None):
        """
        Initialize the runner.

        Args:
            processor: Pipeline to run
            max_workers: Maximum number of concurrent runs (executor default if None)
        """
        self.processor = processor
        self.max_workers = max_workers
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="lecture-pipeline")
        self.running_jobs: Dict[str, Future] = {}
        self.is_running = True

        # Lock for thread safety
        self._lock = threading.Lock()

    def submit(self, audio_path: str, file_name: Optional[str], job_id: str, remove_source: bool = False) -> bool:
        """
        Start a pipeline run in the background.

        Args:
            audio_path: Path to the uploaded recording
            file_name: Original name of the recording
            job_id: Pre-created job identifier
            remove_source: Delete ``audio_path`` once the run finishes

        Returns:
            True if the run was started, False if the job is already running
            or the runner is stopped
        """
        if not self.is_running:
            logger.error("Cannot start job: pipeline runner is stopped")
            return False

        with self._lock:
            if job_id in self.running_jobs:
                logger.warning(f"Job {job_id} is already running")
                return False

            future = self.executor.submit(self.processor.process, audio_path, file_name, job_id)
            self.running_jobs[job_id] = future

        future.add_done_callback(lambda f, jid=job_id: self._job_completed(jid, f, audio_path, remove_source))
        logger.info(f"Job {job_id} started")
        return True

    def get_status(self) -> Dict[str, Any]:
        """Get status information about the runner."""
        with self._lock:
            running_jobs = list(self.running_jobs.keys())

        return {
            "is_running": self.is_running,
            "running_jobs": running_jobs,
            "max_workers": self.max_workers,
        }

    def wait(self, job_id: str, timeout: Optional[float] = None) -> None:
        """Block until a job's run finishes; returns immediately if it is not running."""
        with self._lock:
            future = self.running_jobs.get(job_id)
        if future is not None:
            future.result(timeout=timeout)

    def stop(self, wait: bool = True) -> None:
        """Stop accepting runs and shut down the executor. Runs in flight are not cancelled."""
        if not self.is_running:
            return

        logger.info("Stopping pipeline runner...")
        self.is_running = False
        self.executor.shutdown(wait=wait)
        logger.info("Pipeline runner stopped")

    def _job_completed(self, job_id: str, future: Future, audio_path: str, remove_source: bool) -> None:
        """Callback called when a run finishes."""
        with self._lock:
            self.running_jobs.pop(job_id, None)

        if future.cancelled():
            logger.info(f"Job {job_id} was cancelled")
        elif future.exception():
            # process() records failures itself; reaching this is a bug in the pipeline
            logger.error(f"Job {job_id} run raised unexpectedly: {future.exception()}")
        else:
            logger.info(f"Job {job_id} run finished")

        if remove_source and os.path.exists(audio_path):
            try:
                os.unlink(audio_path)
            except OSError as e:
                logger.warning(f"Failed to remove uploaded file {audio_path}: {e}")
