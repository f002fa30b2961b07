"""
Pytest configuration and shared fixtures for HireBox tests.
"""

import io
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hirebox.models import AttachmentRef, MessageDetail, MessageRef, ScoreResult, TokenSet


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """
    Point hirebox.database at a fresh SQLite file for one test.

    Yields:
        Path: Database file path
    """
    from hirebox import database

    db_path = tmp_path / "hirebox_test.db"
    monkeypatch.setattr(database, "DB_PATH", db_path)
    database.init_db()
    yield db_path


@pytest.fixture
def job(temp_db):
    """A stored 'Backend Engineer' job."""
    from hirebox import database

    return database.create_job(
        "Backend Engineer",
        "Python, PostgreSQL and AWS. 3+ years building REST APIs.",
        created_by="recruiter-1",
    )


def future(hours=1):
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def past(hours=1):
    return datetime.now(timezone.utc) - timedelta(hours=hours)


@pytest.fixture
def store(temp_db):
    """CredentialStore with a refresher that always succeeds."""
    from hirebox.credentials import CredentialStore
    from hirebox.models import Provider

    def refresh(token):
        return TokenSet(access_token="refreshed-token", expires_at=future(), refresh_token=token)

    return CredentialStore(refreshers={Provider.GMAIL: refresh, Provider.MICROSOFT: refresh})


@pytest.fixture
def gmail_credential(store):
    """A fresh Gmail credential for recruiter-1."""
    return store.upsert(
        "recruiter-1",
        "gmail",
        TokenSet(
            access_token="access-1",
            refresh_token="refresh-1",
            expires_at=future(),
            email="recruiter@example.com",
        ),
    )


@pytest.fixture
def docx_bytes():
    """A small Word résumé."""
    from docx import Document

    document = Document()
    document.add_paragraph("Jane Doe")
    document.add_paragraph("Senior Python developer,   6 years of Flask and AWS.")
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def make_message(message_id, attachments=(), subject="Application: Backend Engineer",
                 sender="Jane Doe <Jane@Example.com>", body="<p>Hello, please find my CV.</p>"):
    """Build a MessageDetail with (attachment_id, filename) pairs."""
    name, _, address = sender.partition("<")
    return MessageDetail(
        id=message_id,
        thread_id=f"thread-{message_id}",
        subject=subject,
        from_address=address.rstrip(">").strip().lower(),
        from_name=name.strip(),
        body_html=body,
        attachments=[
            AttachmentRef(id=attachment_id, filename=filename, content_type="application/pdf")
            for attachment_id, filename in attachments
        ],
    )


class FakeMailProvider:
    """
    In-memory mailbox implementing the MailProvider methods.

    messages: list of (MessageDetail, {attachment_id: bytes}) in provider order
    """

    def __init__(self, messages=(), fail_get=None, fail_mark_read=(), fail_send=None):
        self.messages = {m.id: (m, data) for m, data in messages}
        self.order = [m.id for m, _ in messages]
        self.fail_get = dict(fail_get or {})
        self.fail_mark_read = set(fail_mark_read)
        self.fail_send = fail_send
        self.read = []
        self.sent = []
        self.listed_titles = []

    def list_candidate_messages(self, credential, job_title):
        self.listed_titles.append(job_title)
        return [MessageRef(id=i, thread_id=f"thread-{i}") for i in self.order if i not in self.read]

    def get_message(self, credential, message_id):
        if message_id in self.fail_get:
            raise self.fail_get[message_id]
        return self.messages[message_id][0]

    def get_attachment_bytes(self, credential, message_id, attachment_id):
        return self.messages[message_id][1][attachment_id]

    def mark_read(self, credential, message_id):
        if message_id in self.fail_mark_read:
            raise RuntimeError("mark read failed")
        self.read.append(message_id)

    def send_mail(self, credential, mail):
        if self.fail_send:
            raise self.fail_send
        self.sent.append(mail)


class FakeScorer:
    """Returns a fixed score and records calls."""

    def __init__(self, result=None):
        self.result = result or ScoreResult(score=8, summary="Strong Python and AWS background")
        self.calls = []

    def score(self, resume_text, job_description):
        self.calls.append((resume_text, job_description))
        return self.result


class FakeModelClient:
    """ModelClient returning a canned reply."""

    provider_name = "fake"
    model_name = "fake-model"

    def __init__(self, reply='{"score": 7, "summary": "Good fit"}', error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def complete(self, prompt, max_tokens=None):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def fake_scorer():
    return FakeScorer()


@pytest.fixture
def mailbox():
    return FakeMailProvider()
