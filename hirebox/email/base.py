"""
Mail provider capability interface and shared helpers.
"""

import re
from typing import List, Optional, Protocol

from hirebox.errors import ProviderError, TransientProviderError
from hirebox.models import MessageDetail, MessageRef, OAuthCredential, OutgoingMail


class MailProvider(Protocol):
    """
    What the ingestion pipeline and the dispatcher need from a mailbox.

    Implementations refresh the credential before every call, retry
    idempotent reads on transient failures and never retry send_mail.
    """

    def list_candidate_messages(
        self, credential: OAuthCredential, job_title: str
    ) -> List[MessageRef]: ...

    def get_message(self, credential: OAuthCredential, message_id: str) -> MessageDetail: ...

    def get_attachment_bytes(
        self, credential: OAuthCredential, message_id: str, attachment_id: str
    ) -> bytes: ...

    def mark_read(self, credential: OAuthCredential, message_id: str) -> None: ...

    def send_mail(self, credential: OAuthCredential, mail: OutgoingMail) -> None: ...


def parse_retry_after(value) -> Optional[float]:
    """Seconds from a Retry-After header; HTTP-date values are ignored."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def error_for_status(status: int, message: str, retry_after=None) -> ProviderError:
    """Map an HTTP status from a provider API to the matching error type."""
    if status == 429 or status >= 500:
        return TransientProviderError(
            message, status=status, retry_after=parse_retry_after(retry_after)
        )
    return ProviderError(message, status=status)


# ---------------------------------------------------------------------------
# Sender parsing
# ---------------------------------------------------------------------------


def normalize_sender(sender_raw: str) -> str:
    """
    Extract clean email address from sender string.

    "Jane Doe <jane@example.com>" -> "jane@example.com"
    """
    match = re.search(r"<([^>]+)>", sender_raw or "")
    if match:
        return match.group(1).strip().lower()
    return (sender_raw or "").strip().lower()


def extract_sender_name(sender_raw: str) -> Optional[str]:
    """
    Extract display name from sender string.

    "Jane Doe <jane@example.com>" -> "Jane Doe"
    """
    match = re.match(r"^([^<]+)<", sender_raw or "")
    if match:
        name = match.group(1).strip().strip('"')
        return name or None
    return None
