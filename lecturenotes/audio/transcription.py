"""
Speech-to-text for lecture audio.

This module wraps the external speech-to-text capability. Two backends are
provided:
- OpenAIWhisperBackend: the hosted Whisper API (default)
- LocalWhisperBackend: a local OpenAI Whisper model

Both take raw encoded audio bytes plus a display name and return plain text.
TranscriptionClient adds a bounded retry policy on top of any backend, since
transient network/provider errors are common on long uploads.
"""

import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

from tenacity import RetryCallState, Retrying, retry_if_not_exception_type, stop_after_attempt, wait_fixed

from ..errors import TranscriptionError

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_DELAY_SECONDS = 2.0


class TranscriptionBackend(Protocol):
    """Anything that can turn encoded audio bytes into text."""

    def transcribe(self, audio_bytes: bytes, name: str) -> str: ...


class OpenAIWhisperBackend:
    """
    Transcription through the OpenAI audio API.

    The OpenAI client is created on first use so that importing this module
    never requires credentials.
    """

    def __init__(self, api_key: str, model: str = "whisper-1", language: str = "en", base_url: Optional[str] = None):
        """
        Initialize the backend.

        Args:
            api_key: OpenAI API authentication key
            model: Transcription model name
            language: Fixed spoken language passed to the API
            base_url: Optional custom API endpoint
        """
        self.api_key = api_key
        self.model = model
        self.language = language
        self.base_url = base_url
        self.client = None

    def _load_client(self):
        if self.client is not None:
            return self.client

        if not self.api_key:
            raise TranscriptionError("OPENAI_API_KEY is not configured")

        from openai import OpenAI

        if self.base_url:
            self.client = OpenAI(api_key=self.api_key, base_url=self.base_url)
        else:
            self.client = OpenAI(api_key=self.api_key)
        logger.info(f"OpenAI transcription client loaded (model: {self.model})")
        return self.client

    def transcribe(self, audio_bytes: bytes, name: str) -> str:
        client = self._load_client()
        response = client.audio.transcriptions.create(
            file=(name, audio_bytes),
            model=self.model,
            language=self.language,
        )
        return response.text


class LocalWhisperBackend:
    """
    Transcription with a local OpenAI Whisper model.

    Whisper decodes from a file path, so the audio bytes are spooled to a
    temporary file carrying the display name's extension.
    """

    def __init__(self, model_name: str = "base", language: str = "en"):
        """
        Initialize the backend.

        Args:
            model_name: Whisper model size (tiny, base, small, medium, large)
            language: Fixed spoken language
        """
        self.model_name = model_name
        self.language = language
        self.model = None

    def load_model(self):
        """Load the Whisper model."""
        if self.model is None:
            import whisper

            self.model = whisper.load_model(self.model_name)
            logger.info(f"Loaded Whisper model: {self.model_name}")

    def transcribe(self, audio_bytes: bytes, name: str) -> str:
        self.load_model()

        suffix = Path(name).suffix or ".webm"
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp_file:
            tmp_file.write(audio_bytes)
            tmp_path = tmp_file.name

        try:
            result = self.model.transcribe(tmp_path, language=self.language)
            return result.get("text", "").strip()
        finally:
            os.unlink(tmp_path)


class TranscriptionClient:
    """Transcribes audio through a backend with a fixed-delay retry policy."""

    def __init__(
        self,
        backend: TranscriptionBackend,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the client.

        Args:
            backend: Speech-to-text backend
            max_retries: Additional attempts after the first failure
            retry_delay: Seconds to wait between attempts
            sleep: Sleep function used between attempts
        """
        self.backend = backend
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    def transcribe(self, audio_bytes: bytes, name: str) -> str:
        """
        Transcribe audio bytes, retrying on failure.

        A TranscriptionError raised by the backend (e.g. a missing API key)
        is not retried.

        Args:
            audio_bytes: Encoded audio
            name: Display name (file name) of the audio

        Returns:
            Transcribed text

        Raises:
            TranscriptionError: If every attempt failed
        """
        retryer = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_not_exception_type(TranscriptionError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            return retryer(self.backend.transcribe, audio_bytes, name)
        except TranscriptionError:
            raise
        except Exception as e:
            logger.error(f"Transcription of {name} failed after {self.max_retries + 1} attempts: {e}")
            raise TranscriptionError(f"Transcription error: {e}") from e

    def transcribe_file(self, path) -> str:
        """Read a file and transcribe its contents."""
        path = Path(path)
        return self.transcribe(path.read_bytes(), path.name)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Transcription failed, retrying ({retry_state.attempt_number}/{self.max_retries}): {error}"
        )
