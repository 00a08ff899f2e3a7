"""
Study material generation (notes, flashcards, quizzes) and the study assistant
chat, using OpenAI chat models.
"""

from .assistant import StudyAssistant
from .content import ContentGenerator
from .llm import ChatClient
from .summarizer import LectureNotesGenerator

__all__ = ["ChatClient", "ContentGenerator", "LectureNotesGenerator", "StudyAssistant"]
