"""
Prompt templates for the scoring model.
"""

from .score_resume import build_score_resume_prompt

__all__ = [
    "build_score_resume_prompt",
]
