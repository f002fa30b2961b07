"""
Claude Model Client - Anthropic Claude implementation

This module provides the Claude-specific model client.
"""

import logging
import os
from typing import Optional

import anthropic

from hirebox.errors import ModelUnavailableError
from hirebox.resilience import APIRateLimiters, RateLimiter

from .base import ModelClient

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 300


class ClaudeClient(ModelClient):
    """Model client using the Anthropic API."""

    def __init__(
        self,
        model: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client=None,
        rate_limiter: Optional[RateLimiter] = APIRateLimiters.claude,
    ):
        """
        Initialize Claude client.

        Args:
            model: Model identifier (defaults to DEFAULT_MODEL)
            max_tokens: Default reply length cap
            client: Pre-built anthropic.Anthropic instance (tests)
            rate_limiter: Limiter acquired before every request

        Raises:
            ValueError: ANTHROPIC_API_KEY is not set and no client was given
        """
        self._model = model or DEFAULT_MODEL
        self._max_tokens = max_tokens
        self._rate_limiter = rate_limiter

        if client is None:
            api_key = os.environ.get("ANTHROPIC_API_KEY")
            if not api_key:
                raise ValueError(
                    "ANTHROPIC_API_KEY not found. " "Set it in .env or environment variables."
                )
            client = anthropic.Anthropic(api_key=api_key)
        self._client = client

    @property
    def provider_name(self) -> str:
        return "claude"

    @property
    def model_name(self) -> str:
        return self._model

    def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Generate a response using Claude."""
        if self._rate_limiter:
            self._rate_limiter.acquire()

        try:
            response = self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens or self._max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            logger.error(f"Claude generation error: {e}")
            raise ModelUnavailableError(f"Claude request failed: {e}")

        if not response.content:
            return ""
        return response.content[0].text.strip()
