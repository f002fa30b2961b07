"""
Models - Records shared by the store, the providers and the pipeline
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class JobStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    ON_HOLD = "OnHold"


class Provider(str, Enum):
    MICROSOFT = "microsoft"
    GMAIL = "gmail"

    @classmethod
    def parse(cls, value) -> "Provider":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            available = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown provider: '{value}'. Available providers: {available}")


@dataclass
class Job:
    id: str
    title: str
    description: str
    status: JobStatus = JobStatus.OPEN
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class TokenSet:
    """Tokens returned by a provider's token endpoint."""

    access_token: str
    expires_at: datetime
    refresh_token: Optional[str] = None
    email: Optional[str] = None


@dataclass
class OAuthCredential:
    id: int
    user_id: str
    provider: Provider
    email: str
    access_token: str
    refresh_token: Optional[str]
    expires_at: datetime
    is_default: bool = False

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        # Tokens never leave the store
        return {
            "id": self.id,
            "userId": self.user_id,
            "provider": self.provider.value,
            "email": self.email,
            "expiresAt": self.expires_at.isoformat(),
            "isDefault": self.is_default,
        }


@dataclass
class Attachment:
    filename: str
    content_type: Optional[str]
    data: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "contentType": self.content_type,
            "size": len(self.data),
        }


@dataclass
class EmailMetadata:
    message_id: str
    thread_id: Optional[str] = None


@dataclass
class Application:
    job_id: str
    processed_by: str
    applicant_name: str
    applicant_email: str
    email_subject: str
    email_body: str
    email_metadata: EmailMetadata
    attachments: List[Attachment] = field(default_factory=list)
    resume_text: str = ""
    ai_score: int = 0
    ai_summary: str = ""
    is_shortlisted: bool = False
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job": self.job_id,
            "processedBy": self.processed_by,
            "applicantName": self.applicant_name,
            "applicantEmail": self.applicant_email,
            "emailSubject": self.email_subject,
            "emailBody": self.email_body,
            "attachments": [a.to_dict() for a in self.attachments],
            "resumeText": self.resume_text,
            "aiScore": self.ai_score,
            "aiSummary": self.ai_summary,
            "isShortlisted": self.is_shortlisted,
            "sentAt": self.sent_at.isoformat() if self.sent_at else None,
            "emailMetadata": {
                "messageId": self.email_metadata.message_id,
                "threadId": self.email_metadata.thread_id,
            },
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class ScoreResult:
    score: int
    summary: str


# ---------------------------------------------------------------------------
# Provider-neutral message shapes
# ---------------------------------------------------------------------------


@dataclass
class MessageRef:
    id: str
    thread_id: Optional[str] = None


@dataclass
class AttachmentRef:
    id: str
    filename: str
    content_type: Optional[str] = None


@dataclass
class MessageDetail:
    id: str
    subject: str
    from_address: str
    from_name: str
    body_html: str
    attachments: List[AttachmentRef] = field(default_factory=list)
    thread_id: Optional[str] = None


@dataclass
class OutgoingMail:
    to: str
    subject: str
    html_body: str
    attachments: List[Attachment] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


@dataclass
class FetchResult:
    job_id: str
    total_candidates: int = 0
    applications: List[Application] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    timed_out: bool = False

    @property
    def processed(self) -> int:
        return len(self.applications)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "processed": self.processed,
            "totalCandidates": self.total_candidates,
            "skipped": list(self.skipped),
            "failed": dict(self.failed),
            "timedOut": self.timed_out,
            "applications": [a.to_dict() for a in self.applications],
        }


@dataclass
class DispatchResult:
    job_id: str
    sent_at: datetime
    application_ids: List[int] = field(default_factory=list)

    @property
    def sent_count(self) -> int:
        return len(self.application_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "sentCount": self.sent_count,
            "sentAt": self.sent_at.isoformat(),
            "applicationIds": list(self.application_ids),
        }
