"""
AI scoring for HireBox.

Usage:
    from hirebox.ai import ResumeScorer

    scorer = ResumeScorer()
    result = scorer.score(resume_text, job.description)
"""

from .base import ModelClient, parse_json_response
from .factory import get_model_client
from .scorer import ResumeScorer

__all__ = [
    "ModelClient",
    "ResumeScorer",
    "get_model_client",
    "parse_json_response",
]
