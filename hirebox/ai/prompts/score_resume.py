"""
Résumé Scoring Prompt Template

Asks the model to rate a candidate against a job description and answer
with a small JSON object.
"""

# Keep prompts bounded; long résumés rarely change the verdict
MAX_RESUME_CHARS = 12000
MAX_DESCRIPTION_CHARS = 4000


def build_score_resume_prompt(resume_text: str, job_description: str) -> str:
    """
    Build the prompt for scoring one résumé.

    Args:
        resume_text: Plain text extracted from the candidate's résumé
        job_description: Description of the job applied for

    Returns:
        str: Formatted prompt string
    """
    return f"""You are an experienced technical recruiter screening job applications.

Rate how well the candidate fits the job on a scale from 0 to 10, where
0 means no relevant fit and 10 means an outstanding match for every
requirement.

JOB DESCRIPTION:
{(job_description or 'No description provided')[:MAX_DESCRIPTION_CHARS]}

CANDIDATE'S RESUME:
{resume_text[:MAX_RESUME_CHARS]}

Return ONLY valid JSON, no other text:
{{
    "score": <integer 0-10>,
    "summary": "<2-3 sentences on strengths and gaps relevant to this job>"
}}"""
