"""
Lecture service: the operations exposed to the HTTP layer and scripts.

Wires the job store, pipeline runner and study material generators together.
One instance is constructed at process start and handed to whatever needs it.
"""

import logging
import os
import threading
from typing import Dict, List, Optional, Tuple

from ..audio import ChunkSplitter, LocalWhisperBackend, MediaInspector, OpenAIWhisperBackend, TranscriptionClient
from ..config import ConfigManager
from ..errors import JobNotFound, JobNotReady, PipelineUnavailable
from ..models import ContentKind, Flashcard, Job, JobStatus, LectureNotes, QuizQuestion
from ..study import ChatClient, ContentGenerator, LectureNotesGenerator, StudyAssistant
from ..study.content import DEFAULT_FLASHCARD_COUNT, DEFAULT_QUIZ_COUNT
from .job_store import JobStore
from .processor import LectureProcessor
from .runner import PipelineRunner

logger = logging.getLogger(__name__)


def build_transcription_backend(config: ConfigManager):
    """Create the speech-to-text backend selected by TRANSCRIPTION_BACKEND."""
    backend = config.get("TRANSCRIPTION_BACKEND").lower()
    language = config.get("TRANSCRIPTION_LANGUAGE")

    if backend == "local":
        return LocalWhisperBackend(model_name=config.get("WHISPER_MODEL"), language=language)
    if backend == "openai":
        return OpenAIWhisperBackend(
            api_key=config.get("OPENAI_API_KEY"),
            model=config.get("TRANSCRIPTION_MODEL"),
            language=language,
            base_url=config.get("LLM_API_BASE_URL") or None,
        )
    raise ValueError(f"Unknown TRANSCRIPTION_BACKEND: {backend!r} (expected 'openai' or 'local')")


class LectureService:
    """Job lifecycle plus cached on-demand flashcards and quizzes."""

    def __init__(
        self,
        job_store: JobStore,
        runner: PipelineRunner,
        content_generator: ContentGenerator,
        assistant: Optional[StudyAssistant] = None,
    ):
        self.job_store = job_store
        self.runner = runner
        self.content_generator = content_generator
        self.assistant = assistant or StudyAssistant(content_generator.chat_client)

        self._content_locks: Dict[Tuple[str, ContentKind], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, config: Optional[ConfigManager] = None) -> "LectureService":
        """Build the full component graph from configuration."""
        config = config or ConfigManager()

        job_store = JobStore(config.get("JOBS_DIR"))
        inspector = MediaInspector(ffprobe_path=config.get("FFPROBE_PATH"))
        splitter = ChunkSplitter(job_store, inspector, ffmpeg_path=config.get("FFMPEG_PATH"))
        transcriber = TranscriptionClient(build_transcription_backend(config))
        chat_client = ChatClient(
            api_key=config.get("OPENAI_API_KEY"),
            model=config.get("LLM_MODEL"),
            base_url=config.get("LLM_API_BASE_URL") or None,
        )

        processor = LectureProcessor(job_store, inspector, splitter, transcriber, LectureNotesGenerator(chat_client))
        runner = PipelineRunner(processor, max_workers=config.get_int("PIPELINE_WORKERS"))

        logger.info(
            f"Lecture service configured: jobs_dir={job_store.jobs_dir}, "
            f"transcription={config.get('TRANSCRIPTION_BACKEND')} ({config.get_source('TRANSCRIPTION_BACKEND')}), "
            f"llm_model={chat_client.model}"
        )
        return cls(job_store, runner, ContentGenerator(chat_client), StudyAssistant(chat_client))

    def start(self) -> None:
        self.job_store.start()

    def shutdown(self) -> None:
        self.runner.stop()
        self.job_store.stop()

    # Jobs

    def create_job(self, file_name: Optional[str] = None, file_size: Optional[int] = None) -> str:
        return self.job_store.create(file_name=file_name, file_size=file_size)

    def run_pipeline(self, audio_path: str, file_name: Optional[str], job_id: str, remove_source: bool = False) -> str:
        """
        Start processing a recording in the background and return immediately.

        Raises:
            JobNotFound: If the id is unknown
            PipelineUnavailable: If the runner refused the run. A stopped runner
                also fails the job; ``audio_path`` is removed when ``remove_source`` is set.
        """
        self._require_job(job_id)
        if self.runner.submit(audio_path, file_name, job_id, remove_source=remove_source):
            return job_id

        if remove_source and os.path.exists(audio_path):
            try:
                os.unlink(audio_path)
            except OSError as e:
                logger.warning(f"Failed to remove uploaded file {audio_path}: {e}")

        if not self.runner.is_running:
            self.job_store.fail(job_id, "Pipeline runner is not accepting work")
            raise PipelineUnavailable("Pipeline runner is not accepting work")
        raise PipelineUnavailable(f"Job {job_id} is already running")

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.job_store.get(job_id)

    def list_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        return self.job_store.list_jobs(status)

    def delete_job(self, job_id: str) -> None:
        """
        Delete a job and its files.

        Raises:
            JobNotFound: If the id is unknown
        """
        self._require_job(job_id)
        self.job_store.delete(job_id)

        with self._locks_guard:
            for kind in ContentKind:
                self._content_locks.pop((job_id, kind), None)

    # Results

    def load_transcript(self, job_id: str) -> str:
        self._require_completed(job_id)
        return self.job_store.load_transcript(job_id)

    def load_notes(self, job_id: str) -> LectureNotes:
        self._require_completed(job_id)
        return self.job_store.load_notes(job_id)

    def get_flashcards(self, job_id: str, count: int = DEFAULT_FLASHCARD_COUNT) -> List[Flashcard]:
        """
        Return the job's flashcards, generating and caching them on first request.

        Raises:
            JobNotFound: If the id is unknown
            JobNotReady: If the job has not completed
            GenerationError: If generation fails; nothing is cached in that case
        """
        return self._get_or_generate(
            job_id,
            ContentKind.FLASHCARDS,
            Flashcard.from_dict,
            lambda transcript: self.content_generator.generate_flashcards(transcript, count),
        )

    def get_quiz(self, job_id: str, count: int = DEFAULT_QUIZ_COUNT) -> List[QuizQuestion]:
        """
        Return the job's quiz, generating and caching it on first request.

        Raises:
            JobNotFound: If the id is unknown
            JobNotReady: If the job has not completed
            GenerationError: If generation fails; nothing is cached in that case
        """
        return self._get_or_generate(
            job_id,
            ContentKind.QUIZ,
            QuizQuestion.from_dict,
            lambda transcript: self.content_generator.generate_quiz(transcript, count),
        )

    def chat(self, messages: List[Dict[str, str]], context: Optional[str] = None, job_id: Optional[str] = None) -> str:
        """
        Answer a study-assistant conversation.

        Args:
            messages: Conversation so far, oldest first
            context: Free-text description of what the user is studying
            job_id: Completed lecture whose transcript grounds the answer

        Raises:
            JobNotFound: If ``job_id`` is unknown
            JobNotReady: If ``job_id`` has not completed
            GenerationError: If the chat model fails
        """
        transcript = None
        if job_id:
            job = self._require_completed(job_id)
            transcript = self.job_store.load_transcript(job_id) or ""
            context = context or f'the lecture "{job.file_name or job_id}"'

        return self.assistant.reply(messages, context=context, transcript=transcript)

    def _get_or_generate(self, job_id: str, kind: ContentKind, parse, generate) -> list:
        self._require_completed(job_id)

        with self._content_lock(job_id, kind):
            cached = self.job_store.load_generated_content(job_id, kind)
            if cached is not None:
                try:
                    return [parse(item) for item in cached]
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Regenerating {kind.value} for job {job_id}, cache is invalid: {e}")

            logger.info(f"Generating {kind.value} for job {job_id}")
            transcript = self.job_store.load_transcript(job_id) or ""
            items = generate(transcript)
            self.job_store.save_generated_content(job_id, kind, [item.to_dict() for item in items])
            return items

    def _content_lock(self, job_id: str, kind: ContentKind) -> threading.Lock:
        with self._locks_guard:
            return self._content_locks.setdefault((job_id, kind), threading.Lock())

    def _require_job(self, job_id: str) -> Job:
        job = self.job_store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def _require_completed(self, job_id: str) -> Job:
        job = self._require_job(job_id)
        if job.status != JobStatus.COMPLETED:
            raise JobNotReady(job_id, job.status.value)
        return job
