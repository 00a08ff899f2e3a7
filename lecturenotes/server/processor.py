"""
Lecture processing pipeline.

Drives a recording through validation, optional chunking, transcription and
notes generation, writing progress to the job store after every step:

    pending -> [splitting_audio] -> transcribing -> generating_notes -> completed

Any error moves the job to ``failed`` with the error message. A run never
raises past ``process``; it is launched in the background and observed only
through the job store.
"""

import logging
import os
import time
from pathlib import Path
from typing import List, Optional

from ..audio import AudioChunk, ChunkSplitter, MediaInspector, TranscriptionClient
from ..errors import JobNotFound, JobStoreError
from ..models import JobStatus
from ..study import LectureNotesGenerator
from .job_store import JobStore

logger = logging.getLogger(__name__)

# Chunked transcription reports progress across this band
CHUNK_PROGRESS_START = 20
CHUNK_PROGRESS_RANGE = 50


class LectureProcessor:
    """Runs the lecture pipeline for one recording at a time per call."""

    def __init__(
        self,
        job_store: JobStore,
        inspector: MediaInspector,
        splitter: ChunkSplitter,
        transcriber: TranscriptionClient,
        notes_generator: LectureNotesGenerator,
    ):
        """
        Initialize the processor.

        Args:
            job_store: JobStore for state management
            inspector: Probes and validates recordings
            splitter: Cuts long recordings into chunks
            transcriber: Retrying speech-to-text client
            notes_generator: Builds study notes from the transcript
        """
        self.job_store = job_store
        self.inspector = inspector
        self.splitter = splitter
        self.transcriber = transcriber
        self.notes_generator = notes_generator

    def process(self, audio_path: str, file_name: Optional[str] = None, job_id: Optional[str] = None) -> Optional[str]:
        """
        Process a lecture recording end-to-end.

        Args:
            audio_path: Path to the uploaded recording
            file_name: Original name of the recording
            job_id: Pre-created job to run under; a new job is created if omitted

        Returns:
            The job ID, or None if no job could be created
        """
        start_time = time.time()

        if job_id is None:
            try:
                size = os.path.getsize(audio_path) if os.path.exists(audio_path) else None
                job_id = self.job_store.create(file_name=file_name, file_size=size)
            except Exception as e:
                logger.exception(f"Could not create a job for {audio_path}: {e}")
                return None

        try:
            logger.info(f"Processing lecture: {job_id}")
            self._run(job_id, audio_path)
            logger.info(f"Job {job_id} completed in {time.time() - start_time:.2f} seconds")
        except Exception as e:
            logger.error(f"Lecture processing failed for job {job_id}: {e}", exc_info=True)
            self._record_failure(job_id, e)
        finally:
            self._remove_working_audio(job_id)

        return job_id

    def _run(self, job_id: str, audio_path: str) -> None:
        # Validation
        self._update(job_id, JobStatus.PENDING, 5, "Validating audio file")
        info = self.inspector.probe(audio_path)
        self.job_store.record_media_info(job_id, duration=info.duration, file_size=info.size)
        self.inspector.validate(audio_path, info)

        # Work on a copy the caller cannot delete underneath us
        job_audio = self.job_store.save_audio_file(job_id, audio_path)

        if self.splitter.needs_chunking(str(job_audio)):
            logger.info(f"Audio file for job {job_id} needs chunking")
            transcript = self._transcribe_chunked(job_id, job_audio)
        else:
            logger.info(f"Audio file for job {job_id} can be processed directly")
            transcript = self._transcribe_whole(job_id, job_audio)

        # Notes
        self._update(job_id, JobStatus.GENERATING_NOTES, 70, "Generating lecture notes")
        notes = self.notes_generator.generate(transcript)

        self.job_store.save_transcript(job_id, transcript)
        self.job_store.save_notes(job_id, notes)
        self.job_store.complete(job_id, transcript, notes)

    def _transcribe_whole(self, job_id: str, audio_path: Path) -> str:
        self._update(job_id, JobStatus.TRANSCRIBING, 30, "Transcribing audio")
        transcript = self.transcriber.transcribe_file(audio_path)
        self._update(job_id, JobStatus.TRANSCRIBING, 60, "Transcription complete")
        return transcript

    def _transcribe_chunked(self, job_id: str, audio_path: Path) -> str:
        self._update(job_id, JobStatus.SPLITTING_AUDIO, 10, "Splitting audio into chunks")

        try:
            chunks: List[AudioChunk] = self.splitter.split(job_id, str(audio_path))
            logger.info(f"Split job {job_id} into {len(chunks)} chunks")

            transcripts = []
            total = len(chunks)
            for i, chunk in enumerate(chunks):
                progress = CHUNK_PROGRESS_START + (CHUNK_PROGRESS_RANGE * (i + 1)) // total
                self._update(job_id, JobStatus.TRANSCRIBING, progress, f"Transcribing chunk {i + 1}/{total}")

                text = self.transcriber.transcribe_file(chunk.path)
                transcripts.append(text)
                logger.info(f"Chunk {i + 1}/{total} transcribed ({len(text)} chars)")

            return " ".join(transcripts)
        finally:
            self.splitter.cleanup(job_id)

    def _update(self, job_id: str, status: JobStatus, progress: int, stage: str) -> None:
        self.job_store.update_progress(job_id, status, progress, stage)

    def _record_failure(self, job_id: str, error: Exception) -> None:
        message = str(error) or error.__class__.__name__
        try:
            self.job_store.fail(job_id, message)
        except JobNotFound:
            # Deleted while the run was in flight
            logger.warning(f"Job {job_id} was deleted before its failure could be recorded")
        except JobStoreError as e:
            logger.error(f"Could not record failure for job {job_id}: {e}")

    def _remove_working_audio(self, job_id: str) -> None:
        """Best-effort removal of the job's copy of the recording."""
        job_dir = self.job_store.get_job_dir(job_id)
        if not job_dir.exists():
            return
        for path in job_dir.glob("audio.*"):
            try:
                path.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove working audio {path}: {e}")
