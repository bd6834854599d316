"""
AI Service Module

This module handles language-model calls using Google's Gemini API.
It provides a buffered completion and a streamed completion, both taking a
system instruction, a user message and an output token limit.
"""

from typing import Optional, List, Iterator

import google.generativeai as genai

from config import settings
from utils.exceptions import AIServiceError, ConfigurationError, DigestParseError
from utils.logger import get_logger

logger = get_logger(__name__)


class AIService:
    """Service for AI operations with Google's Gemini API."""

    def __init__(self, api_key: Optional[str] = None, preferred_models: Optional[List[str]] = None):
        """
        Initialize the AI service with the Gemini API.

        Configures the API key and selects an appropriate model based on availability.

        Args:
            api_key: Gemini API key; defaults to settings.GOOGLE_AI_API_KEY.
            preferred_models: Model names in preference order; defaults to settings.DEFAULT_AI_MODELS.

        Raises:
            ConfigurationError: If no API key is configured.
            AIServiceError: If no model can be selected.
        """
        api_key = api_key or settings.GOOGLE_AI_API_KEY
        if not api_key:
            raise ConfigurationError("Missing required GOOGLE_AI_API_KEY")

        genai.configure(api_key=api_key)
        self.model_name = self._select_model(preferred_models or settings.DEFAULT_AI_MODELS)
        logger.info(f"Selected AI model: {self.model_name}")

    @staticmethod
    def _select_model(preferred_models: List[str]) -> str:
        try:
            available_models = [
                m.name for m in genai.list_models()
                if 'generateContent' in (getattr(m, 'supported_generation_methods', None) or ['generateContent'])
            ]
        except Exception as e:
            logger.error(f"Error listing Gemini models: {e}")
            raise AIServiceError(f"Could not list Gemini models: {e}") from e

        # Select a model based on preference order
        for preferred in preferred_models:
            for available in available_models:
                if available == preferred or available.endswith(f"/{preferred}"):
                    return available

        if available_models:
            # If none of our preferred models are available, just use the first one
            logger.warning(f"No preferred model available, falling back to {available_models[0]}")
            return available_models[0]

        raise AIServiceError("No Gemini models available")

    def _model(self, system_instructions: str):
        return genai.GenerativeModel(model_name=self.model_name, system_instruction=system_instructions)

    def complete(self, system_instructions: str, user_message: str, max_tokens: int) -> str:
        """
        Generate a complete response.

        Args:
            system_instructions: System prompt for the model.
            user_message: The user turn.
            max_tokens: Maximum output tokens.

        Returns:
            str: The response text.

        Raises:
            AIServiceError: If the API call fails.
            DigestParseError: If the response carries no text.
        """
        try:
            response = self._model(system_instructions).generate_content(
                user_message,
                generation_config=genai.GenerationConfig(max_output_tokens=max_tokens),
            )
        except Exception as e:
            logger.error(f"Error generating completion: {e}")
            raise AIServiceError(f"Completion request failed: {e}") from e

        try:
            text = response.text
        except ValueError as e:
            # Raised when the candidate has no text parts (blocked or empty)
            raise DigestParseError(f"Model returned no text content: {e}") from e

        if not text or not text.strip():
            raise DigestParseError("Model returned empty text content")
        return text

    def stream(self, system_instructions: str, user_message: str, max_tokens: int) -> Iterator[str]:
        """
        Generate a response, yielding text chunks as they arrive.

        Args:
            system_instructions: System prompt for the model.
            user_message: The user turn.
            max_tokens: Maximum output tokens.

        Yields:
            str: Text chunks in arrival order.

        Raises:
            AIServiceError: If the API call fails.
        """
        try:
            response = self._model(system_instructions).generate_content(
                user_message,
                generation_config=genai.GenerationConfig(max_output_tokens=max_tokens),
                stream=True,
            )
            for chunk in response:
                try:
                    text = chunk.text
                except ValueError:
                    # Chunks without text parts (e.g. the final finish-reason chunk)
                    continue
                if text:
                    yield text
        except Exception as e:
            logger.error(f"Error streaming completion: {e}")
            raise AIServiceError(f"Streaming request failed: {e}") from e
