"""
Flashcard and quiz generation from lecture transcripts.

Both generators ask the chat model for JSON, drop items missing required
fields, and fail loudly when nothing usable is left: an empty set must never
be cached as if it were a valid result.
"""

import json
import logging
import time
from typing import Any, List

from ..errors import GenerationError
from ..models import Flashcard, FlashcardType, QuestionType, QuizQuestion
from .summarizer import truncate_transcript

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 12000
DEFAULT_FLASHCARD_COUNT = 15
DEFAULT_QUIZ_COUNT = 10

FLASHCARD_SYSTEM_PROMPT = (
    "You are an expert educational content creator. "
    "Always return valid JSON only, with no additional text."
)

FLASHCARD_PROMPT = """You are an educational content creator. Based on the following lecture transcript, create {count} flashcards to help students learn and remember the key concepts.

Create a mix of three types of flashcards:
1. **Basic** (term/definition): Simple vocabulary or concept definitions
2. **Concept** (concept/explanation): Deeper explanations of ideas or processes
3. **QA** (question/answer): Questions that test understanding

Distribute them roughly equally among the three types.

Transcript:
{transcript}

Return ONLY a valid JSON object with this exact structure:
{{
  "flashcards": [
    {{"type": "basic", "front": "Term or concept", "back": "Definition or explanation"}},
    {{"type": "concept", "front": "Concept name", "back": "Detailed explanation"}},
    {{"type": "qa", "front": "Question about the content", "back": "Answer to the question"}}
  ]
}}

Make sure flashcards cover the most important topics from the lecture comprehensively."""

QUIZ_SYSTEM_PROMPT = (
    "You are an expert educational assessment creator. "
    "Always return valid JSON only, with no additional text."
)

QUIZ_PROMPT = """You are an educational assessment creator. Based on the following lecture transcript, create {count} quiz questions to test student understanding.

Create a mix of three question types:
1. **Multiple Choice**: 4 options, only one correct
2. **True/False**: Statement that is either true or false
3. **Short Answer**: Open-ended question requiring a brief written response

Distribute questions roughly equally among types (but ensure good variety).

Transcript:
{transcript}

Return ONLY a valid JSON object with this exact structure:
{{
  "questions": [
    {{
      "type": "multiple_choice",
      "question": "What is the main concept?",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctAnswer": 0,
      "explanation": "Brief explanation of why this is correct"
    }},
    {{
      "type": "true_false",
      "question": "Statement to evaluate",
      "options": ["True", "False"],
      "correctAnswer": "True",
      "explanation": "Why this statement is true/false"
    }},
    {{
      "type": "short_answer",
      "question": "Explain the concept",
      "correctAnswer": "Expected answer or key points",
      "explanation": "What a good answer should include"
    }}
  ]
}}

For multiple_choice, correctAnswer should be the index (0-3).
For true_false, correctAnswer should be "True" or "False".
For short_answer, correctAnswer should be an example of a good answer.

Focus on important concepts and ensure questions test real understanding, not just memorization."""


class ContentGenerator:
    """Generates flashcards and quiz questions through a chat client."""

    def __init__(self, chat_client, max_chars: int = MAX_TRANSCRIPT_CHARS):
        self.chat_client = chat_client
        self.max_chars = max_chars

    def generate_flashcards(self, transcript: str, count: int = DEFAULT_FLASHCARD_COUNT) -> List[Flashcard]:
        """
        Generate flashcards for a transcript.

        Args:
            transcript: Lecture transcript
            count: Number of flashcards to request

        Returns:
            Flashcards in the order the model returned them

        Raises:
            GenerationError: If the response cannot be parsed or holds no valid cards
        """
        prompt = FLASHCARD_PROMPT.format(count=count, transcript=truncate_transcript(transcript, self.max_chars))
        items = self._request_items(FLASHCARD_SYSTEM_PROMPT, prompt, "flashcards")

        batch = int(time.time() * 1000)
        flashcards = []
        for item in items:
            if not isinstance(item, dict) or not _has_text(item, "front") or not _has_text(item, "back"):
                continue
            flashcards.append(
                Flashcard(
                    id=f"flashcard-{batch}-{len(flashcards)}",
                    type=_enum_or_default(FlashcardType, item.get("type"), FlashcardType.BASIC),
                    front=item["front"].strip(),
                    back=item["back"].strip(),
                )
            )

        if not flashcards:
            raise GenerationError(
                "Failed to generate valid flashcards. Please ensure your content has sufficient information."
            )

        logger.info(f"Generated {len(flashcards)} flashcards ({len(items) - len(flashcards)} discarded)")
        return flashcards

    def generate_quiz(self, transcript: str, count: int = DEFAULT_QUIZ_COUNT) -> List[QuizQuestion]:
        """
        Generate quiz questions for a transcript.

        Args:
            transcript: Lecture transcript
            count: Number of questions to request

        Returns:
            Quiz questions in the order the model returned them

        Raises:
            GenerationError: If the response cannot be parsed or holds no valid questions
        """
        prompt = QUIZ_PROMPT.format(count=count, transcript=truncate_transcript(transcript, self.max_chars))
        items = self._request_items(QUIZ_SYSTEM_PROMPT, prompt, "questions")

        batch = int(time.time() * 1000)
        questions = []
        for item in items:
            if not isinstance(item, dict) or not _has_text(item, "question") or item.get("correctAnswer") is None:
                continue

            answer = item["correctAnswer"]
            if not isinstance(answer, (int, str)) or isinstance(answer, bool):
                continue

            options = item.get("options")
            questions.append(
                QuizQuestion(
                    id=f"quiz-{batch}-{len(questions)}",
                    type=_enum_or_default(QuestionType, item.get("type"), QuestionType.MULTIPLE_CHOICE),
                    question=item["question"].strip(),
                    correct_answer=answer,
                    options=[str(option) for option in options] if isinstance(options, list) else None,
                    explanation=str(item.get("explanation") or "") or None,
                )
            )

        if not questions:
            raise GenerationError(
                "Failed to generate valid quiz questions. Please ensure your content has sufficient information."
            )

        logger.info(f"Generated {len(questions)} quiz questions ({len(items) - len(questions)} discarded)")
        return questions

    def _request_items(self, system: str, prompt: str, key: str) -> List[Any]:
        """Call the model and return the list of raw items, bare or wrapped under ``key``."""
        content = self.chat_client.complete_json(system, prompt, temperature=0.7)

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise GenerationError("Failed to parse OpenAI response as JSON") from e

        items = parsed if isinstance(parsed, list) else parsed.get(key) if isinstance(parsed, dict) else None
        if not isinstance(items, list) or not items:
            raise GenerationError(f"No {key} generated. The content may be too short or unclear.")
        return items


def _has_text(item: dict, key: str) -> bool:
    value = item.get(key)
    return isinstance(value, str) and bool(value.strip())


def _enum_or_default(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default
