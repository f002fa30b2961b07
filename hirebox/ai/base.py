"""
Base Model Client - Interface for the language model behind résumé scoring

Scoring code only needs "send a prompt, get text back"; the provider
specifics (SDK, model names, rate limits) live in the implementations.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ModelClient(ABC):
    """
    Abstract base class for language model clients.

    Implementations raise ModelUnavailableError when the model cannot be
    reached or rejects the request (auth, quota, network).
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of this AI provider.

        Returns:
            str: Provider name (e.g., 'claude')
        """
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """
        Return the model being used.

        Returns:
            str: Model identifier (e.g., 'claude-sonnet-4-20250514')
        """
        pass

    @abstractmethod
    def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """
        Send a single-turn prompt and return the model's text reply.

        Args:
            prompt: Full prompt text
            max_tokens: Optional cap on the reply length

        Returns:
            str: Reply text, stripped
        """
        pass


def parse_json_response(text: str) -> Any:
    """
    Extract JSON from a model reply that might include markdown fences or preamble.

    Models often wrap JSON in code blocks or add explanatory text around it.

    Args:
        text: Raw reply text

    Returns:
        The parsed JSON value

    Raises:
        ValueError: If no valid JSON can be extracted

    Example:
        >>> parse_json_response('```json\\n{"score": 7}\\n```')
        {'score': 7}
        >>> parse_json_response('Here is the result: {"score": 7}')
        {'score': 7}
    """
    if not text:
        raise ValueError("Empty response text")

    text = text.strip()

    # Try 1: Direct parse (ideal case)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Try 2: Extract from markdown code fence (```json or bare ```)
    match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            pass

    # Try 3: Outermost braces
    match = re.search(r"\{[\s\S]*\}", text)
    if match:
        try:
            return json.loads(match.group())
        except json.JSONDecodeError:
            pass

    raise ValueError(
        f"Could not extract valid JSON from response. "
        f"Raw text (first 500 chars): {text[:500]}"
    )
