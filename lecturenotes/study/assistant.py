"""
Study assistant chat.

Answers free-form questions about what the user is studying. When the
conversation is tied to a completed lecture, its transcript is added to the
system message so answers stay grounded in the lecture.
"""

import logging
from typing import Dict, List, Optional

from .summarizer import truncate_transcript

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 12000
CHAT_ROLES = {"user", "assistant"}

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI study assistant. Help users with their questions and provide educational support."
)

CONTEXT_SYSTEM_PROMPT = (
    "You are a helpful AI study assistant. The user is working with {context}. "
    "Help them understand the content, answer questions, and assist with their studies."
)


def valid_messages(messages) -> bool:
    """True if ``messages`` is a non-empty list of user/assistant turns with text content."""
    if not isinstance(messages, list) or not messages:
        return False
    return all(
        isinstance(message, dict)
        and message.get("role") in CHAT_ROLES
        and isinstance(message.get("content"), str)
        for message in messages
    )


class StudyAssistant:
    """Holds study conversations through a chat client."""

    def __init__(self, chat_client, max_chars: int = MAX_TRANSCRIPT_CHARS):
        self.chat_client = chat_client
        self.max_chars = max_chars

    def reply(
        self,
        messages: List[Dict[str, str]],
        context: Optional[str] = None,
        transcript: Optional[str] = None,
    ) -> str:
        """
        Produce the assistant's next turn.

        Args:
            messages: Conversation so far, oldest first
            context: What the user is working with, e.g. "a lecture on graph search"
            transcript: Lecture transcript to ground answers in

        Returns:
            The reply text

        Raises:
            ValueError: If ``messages`` is empty or malformed
            GenerationError: If the chat model fails
        """
        if not valid_messages(messages):
            raise ValueError("Messages array is required")

        system = CONTEXT_SYSTEM_PROMPT.format(context=context) if context else DEFAULT_SYSTEM_PROMPT
        if transcript:
            system += f"\n\nLecture transcript:\n{truncate_transcript(transcript, self.max_chars)}"

        conversation = [{"role": "system", "content": system}]
        conversation += [{"role": message["role"], "content": message["content"]} for message in messages]

        logger.info(f"Answering study chat ({len(messages)} messages, context: {'yes' if context else 'no'})")
        return self.chat_client.complete(conversation)
