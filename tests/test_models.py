from datetime import datetime

import pytest

from conftest import NOTES_PAYLOAD
from lecturenotes.models import Job, JobStatus, LectureNotes


def test_status_ordering():
    assert JobStatus.PENDING.rank < JobStatus.SPLITTING_AUDIO.rank < JobStatus.TRANSCRIBING.rank
    assert JobStatus.GENERATING_NOTES.rank < JobStatus.COMPLETED.rank
    assert JobStatus.FAILED.is_terminal
    assert not JobStatus.GENERATING_NOTES.is_terminal


def test_notes_use_camel_case_keys():
    notes = LectureNotes.from_dict(NOTES_PAYLOAD)
    assert notes.key_points == NOTES_PAYLOAD["keyPoints"]
    assert notes.to_dict() == NOTES_PAYLOAD


def test_notes_reject_wrong_types():
    with pytest.raises(ValueError, match="must be lists"):
        LectureNotes.from_dict({**NOTES_PAYLOAD, "topics": "Graphs"})


def test_job_metadata_excludes_results():
    now = datetime(2024, 3, 1, 9, 30)
    job = Job(
        job_id="abc",
        status=JobStatus.COMPLETED,
        progress=100,
        stage="Completed successfully",
        created_at=now,
        updated_at=now,
        completed_at=now,
        transcript="secret transcript",
        notes=LectureNotes.from_dict(NOTES_PAYLOAD),
    )

    metadata = job.to_metadata()
    assert "transcript" not in metadata
    assert metadata["completed_at"] == "2024-03-01T09:30:00"

    restored = Job.from_metadata(metadata)
    assert restored.status == JobStatus.COMPLETED
    assert restored.transcript is None
    assert restored.completed_at == now
