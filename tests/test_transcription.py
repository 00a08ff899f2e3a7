import pytest

from lecturenotes.audio import TranscriptionClient
from lecturenotes.errors import TranscriptionError


class FlakyBackend:
    def __init__(self, failures, error=ConnectionError("connection reset")):
        self.failures = failures
        self.error = error
        self.attempts = 0

    def transcribe(self, audio_bytes, name):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error
        return f"transcript of {name}"


def test_transcribe_retries_until_success():
    backend = FlakyBackend(failures=2)
    sleeps = []
    client = TranscriptionClient(backend, sleep=sleeps.append)

    assert client.transcribe(b"audio", "chunk-000.webm") == "transcript of chunk-000.webm"
    assert backend.attempts == 3
    assert sleeps == [2.0, 2.0]


def test_transcribe_gives_up_after_max_retries():
    backend = FlakyBackend(failures=10)
    client = TranscriptionClient(backend, sleep=lambda seconds: None)

    with pytest.raises(TranscriptionError, match="connection reset"):
        client.transcribe(b"audio", "lecture.mp3")
    assert backend.attempts == 3


def test_transcription_errors_are_not_rewrapped():
    backend = FlakyBackend(failures=10, error=TranscriptionError("OPENAI_API_KEY is not configured"))
    client = TranscriptionClient(backend, max_retries=0, sleep=lambda seconds: None)

    with pytest.raises(TranscriptionError, match="^OPENAI_API_KEY is not configured$"):
        client.transcribe(b"audio", "lecture.mp3")
    assert backend.attempts == 1


def test_transcribe_file_sends_name_and_bytes(tmp_path):
    path = tmp_path / "chunk-002.webm"
    path.write_bytes(b"opus")

    received = {}

    class Backend:
        def transcribe(self, audio_bytes, name):
            received.update(audio_bytes=audio_bytes, name=name)
            return "text"

    assert TranscriptionClient(Backend()).transcribe_file(path) == "text"
    assert received == {"audio_bytes": b"opus", "name": "chunk-002.webm"}


def test_backend_transcription_errors_fail_fast():
    backend = FlakyBackend(failures=10, error=TranscriptionError("OPENAI_API_KEY is not configured"))
    sleeps = []
    client = TranscriptionClient(backend, sleep=sleeps.append)

    with pytest.raises(TranscriptionError, match="OPENAI_API_KEY"):
        client.transcribe(b"audio", "lecture.mp3")
    assert backend.attempts == 1
    assert sleeps == []
