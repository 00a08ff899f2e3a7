"""
Chat completion client for study material generation.

Uses lazy loading of the OpenAI client so that importing this module never
initializes the API, and so a missing key only fails the request that needs it.
"""

import logging
from typing import Dict, List, Optional

from ..errors import GenerationError

logger = logging.getLogger(__name__)


class ChatClient:
    """
    Thin wrapper around OpenAI chat completions.

    Generators ask for a single JSON object through ``complete_json``; the
    study assistant holds free-form conversations through ``complete``.
    """

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", base_url: Optional[str] = None):
        """
        Initialize the chat client.

        Args:
            api_key: OpenAI API authentication key
            model: Chat model to use (default: "gpt-4o-mini")
            base_url: Optional custom API endpoint
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.client = None
        self._client_loaded = False

    def _load_client(self):
        """
        Lazy load the OpenAI client.

        Imports OpenAI only when needed to avoid conflicts during module import.
        """
        if self._client_loaded:
            return

        if not self.api_key:
            raise GenerationError("OPENAI_API_KEY is not configured")

        from openai import OpenAI

        if self.base_url:
            self.client = OpenAI(api_key=self.api_key, base_url=self.base_url)
        else:
            self.client = OpenAI(api_key=self.api_key)
        self._client_loaded = True
        logger.info(f"OpenAI chat client loaded (model: {self.model})")

    def complete_json(self, system: str, prompt: str, temperature: float = 0.5) -> str:
        """
        Request a JSON object from the chat model.

        Args:
            system: System message
            prompt: User message
            temperature: Sampling temperature

        Returns:
            Raw JSON text returned by the model

        Raises:
            GenerationError: If the API call fails or returns no content
        """
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]
        return self._create(messages, temperature, response_format={"type": "json_object"})

    def complete(self, messages: List[Dict[str, str]], temperature: float = 0.7) -> str:
        """
        Continue a conversation and return the assistant's plain-text reply.

        Raises:
            GenerationError: If the API call fails or returns no content
        """
        return self._create(messages, temperature)

    def _create(self, messages: List[Dict[str, str]], temperature: float, **kwargs) -> str:
        self._load_client()

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                **kwargs,
            )
        except Exception as e:
            logger.error(f"OpenAI chat completion failed: {e}")
            raise GenerationError(f"OpenAI API error: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationError("No response from OpenAI")

        return content
