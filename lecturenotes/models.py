"""
Data models for lecture processing jobs and the study material they produce.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class JobStatus(Enum):
    """Processing status of a lecture job."""

    PENDING = "pending"
    SPLITTING_AUDIO = "splitting_audio"
    TRANSCRIBING = "transcribing"
    GENERATING_NOTES = "generating_notes"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def rank(self) -> int:
        """Position along the forward path; terminal states rank last."""
        return _STATUS_ORDER.index(self) if self in _STATUS_ORDER else len(_STATUS_ORDER)


_STATUS_ORDER = [
    JobStatus.PENDING,
    JobStatus.SPLITTING_AUDIO,
    JobStatus.TRANSCRIBING,
    JobStatus.GENERATING_NOTES,
]


class ContentKind(Enum):
    """Kinds of on-demand study material cached per job."""

    FLASHCARDS = "flashcards"
    QUIZ = "quiz"


class FlashcardType(Enum):
    BASIC = "basic"
    CONCEPT = "concept"
    QA = "qa"


class QuestionType(Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


@dataclass
class LectureNotes:
    """Structured study notes generated from a transcript."""

    summary: str
    key_points: List[str]
    detailed_notes: str
    topics: List[str]
    action_items: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "summary": self.summary,
            "keyPoints": list(self.key_points),
            "detailedNotes": self.detailed_notes,
            "topics": list(self.topics),
        }
        if self.action_items is not None:
            data["actionItems"] = list(self.action_items)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LectureNotes":
        """
        Build notes from the JSON payload returned by the note generator.

        Raises:
            ValueError: If a required field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("Notes payload must be a JSON object")

        missing = [key for key in ("summary", "keyPoints", "detailedNotes", "topics") if key not in data]
        if missing:
            raise ValueError(f"Notes payload is missing fields: {', '.join(missing)}")

        key_points = data["keyPoints"]
        topics = data["topics"]
        action_items = data.get("actionItems")
        if not isinstance(key_points, list) or not isinstance(topics, list):
            raise ValueError("keyPoints and topics must be lists")
        if action_items is not None and not isinstance(action_items, list):
            raise ValueError("actionItems must be a list")

        return cls(
            summary=str(data["summary"]),
            key_points=[str(point) for point in key_points],
            detailed_notes=str(data["detailedNotes"]),
            topics=[str(topic) for topic in topics],
            action_items=[str(item) for item in action_items] if action_items is not None else None,
        )


@dataclass
class Flashcard:
    id: str
    type: FlashcardType
    front: str
    back: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type.value, "front": self.front, "back": self.back}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Flashcard":
        return cls(id=data["id"], type=FlashcardType(data["type"]), front=data["front"], back=data["back"])


@dataclass
class QuizQuestion:
    id: str
    type: QuestionType
    question: str
    correct_answer: Union[int, str]
    options: Optional[List[str]] = None
    explanation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "type": self.type.value,
            "question": self.question,
            "correctAnswer": self.correct_answer,
        }
        if self.options is not None:
            data["options"] = list(self.options)
        if self.explanation:
            data["explanation"] = self.explanation
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuizQuestion":
        return cls(
            id=data["id"],
            type=QuestionType(data["type"]),
            question=data["question"],
            correct_answer=data["correctAnswer"],
            options=data.get("options"),
            explanation=data.get("explanation"),
        )


@dataclass(frozen=True)
class Job:
    """
    Snapshot of a lecture processing job.

    Instances are never mutated in place; the job store swaps in a new
    snapshot (see ``Job.evolve``) on every update so readers always see a
    consistent record.
    """

    job_id: str
    status: JobStatus
    progress: int
    stage: str
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    duration: Optional[float] = None
    transcript: Optional[str] = field(default=None, repr=False)
    notes: Optional[LectureNotes] = field(default=None, repr=False)

    def evolve(self, **changes: Any) -> "Job":
        return replace(self, **changes)

    def to_metadata(self) -> Dict[str, Any]:
        """Serializable metadata record; transcript and notes are stored separately."""
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "progress": self.progress,
            "stage": self.stage,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "duration": self.duration,
        }

    @classmethod
    def from_metadata(cls, data: Dict[str, Any]) -> "Job":
        completed_at = data.get("completed_at")
        return cls(
            job_id=data["job_id"],
            status=JobStatus(data["status"]),
            progress=int(data["progress"]),
            stage=data.get("stage", ""),
            error=data.get("error"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            file_name=data.get("file_name"),
            file_size=data.get("file_size"),
            duration=data.get("duration"),
        )

    def to_dict(self, include_results: bool = False) -> Dict[str, Any]:
        """Public representation used by the HTTP layer."""
        data = self.to_metadata()
        if include_results and self.status == JobStatus.COMPLETED:
            data["data"] = {
                "transcript": self.transcript,
                "notes": self.notes.to_dict() if self.notes else None,
            }
        return data
