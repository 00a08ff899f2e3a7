import json
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import pytest

from lecturenotes.audio import AudioChunk, MediaInfo, TranscriptionClient
from lecturenotes.models import JobStatus, LectureNotes
from lecturenotes.server.job_store import JobStore

NOTES_PAYLOAD = {
    "summary": "An introduction to graph search.",
    "keyPoints": ["BFS explores level by level", "DFS uses a stack"],
    "detailedNotes": "Breadth-first search visits neighbours first...",
    "topics": ["Graphs", "Search"],
    "actionItems": ["Implement BFS"],
}


class FakeClock:
    """Settable clock for the job store."""

    def __init__(self, now: datetime = datetime(2024, 3, 1, 9, 0, 0)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeChatClient:
    """Returns canned JSON responses in order and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def complete_json(self, system: str, prompt: str, temperature: float = 0.5) -> str:
        self.calls.append({"system": system, "prompt": prompt, "temperature": temperature})
        return self._next_response()

    def complete(self, messages, temperature: float = 0.7) -> str:
        self.calls.append({"messages": messages, "temperature": temperature})
        return self._next_response()

    def _next_response(self) -> str:
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response if isinstance(response, str) else json.dumps(response)


class EchoBackend:
    """Transcribes audio by decoding its bytes as text."""

    def __init__(self, on_transcribe=None):
        self.names = []
        self.on_transcribe = on_transcribe

    def transcribe(self, audio_bytes: bytes, name: str) -> str:
        self.names.append(name)
        if self.on_transcribe:
            self.on_transcribe()
        return audio_bytes.decode("utf-8")


class FakeInspector:
    """Reports fixed media info; ``error`` is raised from validate when set."""

    def __init__(self, duration: float = 600, size: int = 5 * 1024 * 1024, error: Exception = None):
        self.info = MediaInfo(duration=duration, size=size, format_name="mp3")
        self.error = error

    def probe(self, path: str) -> MediaInfo:
        return self.info

    def validate(self, path: str, info: Optional[MediaInfo] = None) -> MediaInfo:
        if self.error:
            raise self.error
        return self.info


class FakeSplitter:
    """Writes one chunk per entry of ``texts`` into the job's chunks directory."""

    def __init__(self, job_store: JobStore, texts: List[str] = None, chunk_duration: float = 1200):
        self.job_store = job_store
        self.texts = texts or []
        self.chunk_duration = chunk_duration
        self.cleaned = []

    def needs_chunking(self, path: str) -> bool:
        return bool(self.texts)

    def split(self, job_id: str, path: str) -> List[AudioChunk]:
        chunks_dir = self.job_store.get_chunks_dir(job_id)
        chunks_dir.mkdir(parents=True, exist_ok=True)
        chunks = []
        for index, text in enumerate(self.texts):
            chunk_path = chunks_dir / f"chunk-{index:03d}.webm"
            chunk_path.write_text(text, encoding="utf-8")
            chunks.append(AudioChunk(chunk_path, index, index * self.chunk_duration, self.chunk_duration))
        return chunks

    def cleanup(self, job_id: str) -> None:
        self.cleaned.append(job_id)
        for chunk_file in self.job_store.get_chunks_dir(job_id).glob("*"):
            chunk_file.unlink()


class RecordingJobStore(JobStore):
    """JobStore that remembers every progress update."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.updates = []

    def update_progress(self, job_id, status, progress, stage):
        job = super().update_progress(job_id, status, progress, stage)
        self.updates.append((job.status, job.progress))
        return job


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def job_store(tmp_path: Path, clock: FakeClock) -> RecordingJobStore:
    return RecordingJobStore(str(tmp_path / "lectures"), clock=clock)


@pytest.fixture()
def transcriber() -> TranscriptionClient:
    return TranscriptionClient(EchoBackend(), sleep=lambda seconds: None)


@pytest.fixture()
def notes() -> LectureNotes:
    return LectureNotes.from_dict(NOTES_PAYLOAD)


@pytest.fixture()
def completed_job(job_store: JobStore, notes: LectureNotes) -> str:
    job_id = job_store.create(file_name="graphs.mp3", file_size=1024)
    transcript = "Today we look at breadth-first and depth-first search."
    job_store.save_transcript(job_id, transcript)
    job_store.save_notes(job_id, notes)
    job_store.complete(job_id, transcript, notes)
    assert job_store.get(job_id).status == JobStatus.COMPLETED
    return job_id


@pytest.fixture()
def lecture_file(tmp_path: Path) -> Path:
    path = tmp_path / "lecture.mp3"
    path.write_text("hello from the lecture hall", encoding="utf-8")
    return path
