"""
Attachment collection for application emails.
"""

import logging
from typing import Callable, List, Tuple

from hirebox.models import Attachment, MessageDetail, OAuthCredential
from hirebox.resumes import is_supported

logger = logging.getLogger(__name__)


def collect_attachments(
    adapter,
    credential: OAuthCredential,
    message: MessageDetail,
    extract_text: Callable[[bytes, str], str],
) -> Tuple[List[Attachment], str]:
    """
    Download every résumé-type attachment of a message.

    Attachments that are not .pdf/.doc/.docx are ignored. All qualifying
    files are kept, in message order; résumé text comes from the first one
    only.

    Returns:
        (attachments, resume_text). An empty list means the message has no
        résumé and should be skipped.
    """
    attachments: List[Attachment] = []
    for ref in message.attachments:
        if not is_supported(ref.filename):
            logger.debug(f"Ignoring attachment {ref.filename!r} on message {message.id}")
            continue
        data = adapter.get_attachment_bytes(credential, message.id, ref.id)
        attachments.append(
            Attachment(filename=ref.filename, content_type=ref.content_type, data=data)
        )

    if not attachments:
        return [], ""

    first = attachments[0]
    return attachments, extract_text(first.data, first.filename)
