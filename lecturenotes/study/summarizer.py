"""
Lecture notes generation from transcripts.

Turns a lecture transcript into structured study notes: a summary, key
points, detailed notes, the topics covered and suggested follow-up actions.
The chat model is asked for a single JSON object; a missing or malformed
payload is a hard failure for the pipeline run.
"""

import json
import logging

from ..errors import GenerationError
from ..models import LectureNotes

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 50000

SYSTEM_PROMPT = "You are an expert educational note-taker. Always return valid JSON objects only, with no additional text."

NOTES_PROMPT = """You are an expert educational note-taker. Analyze the following lecture transcript and create comprehensive study notes.

Transcript:
{transcript}

Create structured notes with:
1. A concise summary (2-3 paragraphs) of the entire lecture
2. 5-10 key points or takeaways
3. Detailed notes organized by topics/sections
4. List of main topics covered
5. Action items or recommended follow-up activities

Return ONLY a valid JSON object with this structure:
{{
  "summary": "Comprehensive overview of the lecture...",
  "keyPoints": ["Key point 1", "Key point 2", ...],
  "detailedNotes": "Detailed notes with sections and explanations...",
  "topics": ["Topic 1", "Topic 2", ...],
  "actionItems": ["Action 1", "Action 2", ...]
}}"""


def truncate_transcript(transcript: str, limit: int) -> str:
    """Cut a transcript to ``limit`` characters, marking the cut."""
    if len(transcript) <= limit:
        return transcript
    return transcript[:limit] + " ...(truncated for length)"


class LectureNotesGenerator:
    """Generates LectureNotes through a chat client."""

    def __init__(self, chat_client, max_chars: int = MAX_TRANSCRIPT_CHARS):
        """
        Initialize the generator.

        Args:
            chat_client: Object exposing ``complete_json(system, prompt, temperature)``
            max_chars: Transcript characters sent to the model
        """
        self.chat_client = chat_client
        self.max_chars = max_chars

    def generate(self, transcript: str) -> LectureNotes:
        """
        Generate study notes for a transcript.

        Args:
            transcript: Full lecture transcript

        Returns:
            Parsed LectureNotes

        Raises:
            GenerationError: If the transcript is empty or the response is unusable
        """
        if not transcript or not transcript.strip():
            raise GenerationError("Cannot generate notes from an empty transcript")

        if len(transcript) > self.max_chars:
            logger.info(f"Transcript truncated from {len(transcript)} to {self.max_chars} characters for notes")

        prompt = NOTES_PROMPT.format(transcript=truncate_transcript(transcript, self.max_chars))
        content = self.chat_client.complete_json(SYSTEM_PROMPT, prompt, temperature=0.5)

        try:
            notes = LectureNotes.from_dict(json.loads(content))
        except (json.JSONDecodeError, ValueError) as e:
            raise GenerationError(f"Failed to generate lecture notes: {e}") from e

        logger.info(f"Generated notes: {len(notes.key_points)} key points, {len(notes.topics)} topics")
        return notes
