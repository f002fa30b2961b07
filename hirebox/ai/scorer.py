"""
Résumé Scorer - Rates candidates against a job with the configured model

Scoring never raises: the ingestion cycle always gets a ScoreResult, with
fixed fallbacks when there is nothing to score, the reply is unusable or
the model cannot be reached.
"""

import logging
import math
from typing import Optional

from hirebox.models import ScoreResult

from .base import ModelClient, parse_json_response
from .prompts import build_score_resume_prompt

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 10

INSUFFICIENT_DATA = ScoreResult(score=0, summary="insufficient data")
UNPARSEABLE = ScoreResult(score=5, summary="unable to parse AI response")


def _unavailable(reason) -> ScoreResult:
    return ScoreResult(score=0, summary=f"scoring unavailable: {reason}")


def normalize_score(value) -> Optional[int]:
    """Round half up and clamp to 0-10; None if the value is not a finite number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(MIN_SCORE, min(MAX_SCORE, int(math.floor(value + 0.5))))


def parse_score_response(text: str) -> Optional[ScoreResult]:
    """Validate a model reply; None unless it is {"score": number, "summary": str}."""
    if not isinstance(text, str):
        return None
    try:
        data = parse_json_response(text)
    except ValueError:
        return None

    if not isinstance(data, dict):
        return None
    score = normalize_score(data.get("score"))
    summary = data.get("summary")
    if score is None or not isinstance(summary, str):
        return None
    return ScoreResult(score=score, summary=summary.strip())


class ResumeScorer:
    """
    Scores résumé text against a job description.

    Args:
        client: ModelClient to use. When omitted one is created from the
            config on first use, so a missing API key only degrades scoring.
        config: Config passed to the client factory
    """

    def __init__(self, client: Optional[ModelClient] = None, config=None):
        self._client = client
        self._config = config

    def _get_client(self) -> ModelClient:
        if self._client is None:
            from .factory import get_model_client

            self._client = get_model_client(self._config)
        return self._client

    def score(self, resume_text: str, job_description: str) -> ScoreResult:
        """
        Score a candidate.

        Returns:
            ScoreResult with an integer score in 0-10. Blank input gives
            (0, "insufficient data") without calling the model; an unusable
            reply gives (5, "unable to parse AI response"); a model that
            cannot be reached gives (0, "scoring unavailable: <reason>").
        """
        if not (resume_text or "").strip() or not (job_description or "").strip():
            return INSUFFICIENT_DATA

        try:
            client = self._get_client()
            reply = client.complete(build_score_resume_prompt(resume_text, job_description))
        except Exception as e:
            logger.warning(f"Résumé scoring unavailable: {e}")
            return _unavailable(e)

        result = parse_score_response(reply)
        if result is None:
            logger.warning(f"Unparseable scoring reply: {str(reply)[:200]!r}")
            return UNPARSEABLE
        return result
