from unittest.mock import MagicMock

import pytest

from conftest import FakeChatClient
from lecturenotes.audio import LocalWhisperBackend, OpenAIWhisperBackend
from lecturenotes.config import ConfigManager
from lecturenotes.errors import GenerationError, JobNotFound, JobNotReady, PipelineUnavailable
from lecturenotes.models import ContentKind, JobStatus
from lecturenotes.server.runner import PipelineRunner
from lecturenotes.server.service import LectureService, build_transcription_backend
from lecturenotes.study import ContentGenerator

FLASHCARDS = {
    "flashcards": [
        {"type": "basic", "front": "BFS", "back": "Breadth-first search"},
        {"type": "qa", "front": "What does DFS use?", "back": "A stack"},
    ]
}

QUIZ = {"questions": [{"type": "true_false", "question": "BFS uses a queue.", "correctAnswer": "True"}]}


def make_service(job_store, *responses):
    chat = FakeChatClient(*responses) if responses else FakeChatClient(FLASHCARDS)
    return LectureService(job_store, MagicMock(), ContentGenerator(chat)), chat


def test_flashcards_are_generated_once_and_cached(job_store, completed_job):
    service, chat = make_service(job_store, FLASHCARDS)

    first = service.get_flashcards(completed_job)
    second = service.get_flashcards(completed_job)

    assert len(chat.calls) == 1
    assert [card.to_dict() for card in first] == [card.to_dict() for card in second]
    assert job_store.load_generated_content(completed_job, ContentKind.FLASHCARDS) == [c.to_dict() for c in first]
    assert "breadth-first and depth-first" in chat.calls[0]["prompt"]


def test_cached_content_survives_a_new_service(job_store, completed_job):
    service, _ = make_service(job_store, QUIZ)
    questions = service.get_quiz(completed_job, count=1)

    restarted, chat = make_service(job_store, QUIZ)
    assert [q.to_dict() for q in restarted.get_quiz(completed_job)] == [q.to_dict() for q in questions]
    assert chat.calls == []


def test_invalid_cache_is_regenerated(job_store, completed_job):
    job_store.save_generated_content(completed_job, ContentKind.FLASHCARDS, [{"front": "no id"}])
    service, chat = make_service(job_store, FLASHCARDS)

    cards = service.get_flashcards(completed_job)

    assert len(cards) == 2
    assert len(chat.calls) == 1


def test_generation_failure_is_not_cached(job_store, completed_job):
    service, _ = make_service(job_store, {"flashcards": []})

    with pytest.raises(GenerationError):
        service.get_flashcards(completed_job)
    assert job_store.load_generated_content(completed_job, ContentKind.FLASHCARDS) is None


def test_results_require_completed_job(job_store):
    service, chat = make_service(job_store)
    job_id = job_store.create()

    with pytest.raises(JobNotReady):
        service.load_transcript(job_id)
    with pytest.raises(JobNotReady):
        service.get_flashcards(job_id)
    assert chat.calls == []


def test_unknown_job_raises_not_found(job_store):
    service, _ = make_service(job_store)

    with pytest.raises(JobNotFound):
        service.load_notes("missing")
    with pytest.raises(JobNotFound):
        service.delete_job("missing")
    with pytest.raises(JobNotFound):
        service.run_pipeline("/tmp/lecture.mp3", "lecture.mp3", "missing")


def test_run_pipeline_submits_to_runner(job_store):
    service, _ = make_service(job_store)
    job_id = service.create_job(file_name="lecture.mp3", file_size=10)

    assert service.run_pipeline("/tmp/upload.mp3", "lecture.mp3", job_id, remove_source=True) == job_id
    service.runner.submit.assert_called_once_with("/tmp/upload.mp3", "lecture.mp3", job_id, remove_source=True)


def test_delete_job(job_store, completed_job):
    service, _ = make_service(job_store)
    service.delete_job(completed_job)
    assert service.get_job(completed_job) is None


def test_build_transcription_backend_selects_backend(monkeypatch):
    for key in ("TRANSCRIPTION_BACKEND", "TRANSCRIPTION_MODEL", "TRANSCRIPTION_LANGUAGE"):
        monkeypatch.delenv(key, raising=False)

    openai_backend = build_transcription_backend(ConfigManager({"OPENAI_API_KEY": "sk-test"}))
    assert isinstance(openai_backend, OpenAIWhisperBackend)
    assert openai_backend.model == "whisper-1"
    assert openai_backend.language == "en"

    local_backend = build_transcription_backend(ConfigManager({"TRANSCRIPTION_BACKEND": "local"}))
    assert isinstance(local_backend, LocalWhisperBackend)
    assert local_backend.model is None

    with pytest.raises(ValueError):
        build_transcription_backend(ConfigManager({"TRANSCRIPTION_BACKEND": "carrier-pigeon"}))


def test_from_config_builds_service(tmp_path):
    config = ConfigManager({"JOBS_DIR": str(tmp_path / "jobs"), "PIPELINE_WORKERS": "2"})
    service = LectureService.from_config(config)
    try:
        assert service.job_store.jobs_dir == tmp_path / "jobs"
        assert service.runner.max_workers == 2
    finally:
        service.runner.stop()


def test_stopped_runner_fails_job_and_removes_upload(job_store, tmp_path):
    runner = PipelineRunner(MagicMock())
    runner.stop()
    service = LectureService(job_store, runner, ContentGenerator(FakeChatClient(FLASHCARDS)))
    upload = tmp_path / "upload.mp3"
    upload.write_bytes(b"audio")
    job_id = service.create_job(file_name="upload.mp3", file_size=5)

    with pytest.raises(PipelineUnavailable):
        service.run_pipeline(str(upload), "upload.mp3", job_id, remove_source=True)

    job = job_store.get(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "Pipeline runner is not accepting work"
    assert not upload.exists()


def test_duplicate_submission_leaves_running_job_alone(job_store, tmp_path):
    service, _ = make_service(job_store)
    service.runner.submit.return_value = False
    service.runner.is_running = True
    upload = tmp_path / "second-upload.mp3"
    upload.write_bytes(b"audio")
    job_id = service.create_job()

    with pytest.raises(PipelineUnavailable, match="already running"):
        service.run_pipeline(str(upload), None, job_id, remove_source=True)

    assert job_store.get(job_id).status == JobStatus.PENDING
    assert not upload.exists()


def test_delete_job_releases_content_locks(job_store, completed_job):
    service, _ = make_service(job_store, FLASHCARDS)
    service.get_flashcards(completed_job)
    assert (completed_job, ContentKind.FLASHCARDS) in service._content_locks

    service.delete_job(completed_job)

    assert service._content_locks == {}


def test_chat_about_completed_lecture(job_store, completed_job):
    service, chat = make_service(job_store, "BFS explores neighbours level by level.")

    reply = service.chat([{"role": "user", "content": "How does BFS work?"}], job_id=completed_job)

    assert reply == "BFS explores neighbours level by level."
    system = chat.calls[0]["messages"][0]
    assert system["role"] == "system"
    assert 'working with the lecture "graphs.mp3"' in system["content"]
    assert "breadth-first and depth-first search" in system["content"]
    assert chat.calls[0]["messages"][1] == {"role": "user", "content": "How does BFS work?"}


def test_chat_requires_completed_lecture(job_store):
    service, chat = make_service(job_store, "unused")
    job_id = job_store.create()

    with pytest.raises(JobNotReady):
        service.chat([{"role": "user", "content": "Summarise it"}], job_id=job_id)
    assert chat.calls == []
