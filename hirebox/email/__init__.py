"""
Email Package - Mailbox integration for HireBox

Gmail and Microsoft Graph adapters behind one provider interface, plus the
ingestion pipeline that turns application emails into scored applications.

Usage:
    from hirebox.email import IngestionPipeline, get_adapter

    pipeline = IngestionPipeline(store, scorer)
    result = pipeline.run(user_id, "gmail", "Backend Engineer")
"""

from .base import MailProvider, extract_sender_name, normalize_sender
from .gmail import GmailAdapter
from .microsoft import GraphAdapter
from .registry import get_adapter
from .scanner import IngestionPipeline, strip_html

__all__ = [
    "MailProvider",
    "GmailAdapter",
    "GraphAdapter",
    "get_adapter",
    "IngestionPipeline",
    "strip_html",
    "normalize_sender",
    "extract_sender_name",
]
