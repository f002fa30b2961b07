"""
Shortlist - Shortlist toggling and the batched candidate digest

A recruiter shortlists applications for a job, then sends every shortlisted
application that has not gone out yet as one HTML digest with all résumés
attached. Once an application is sent its shortlist status is final.
"""

import html
import logging
import time
from typing import Callable, List, Optional

from hirebox import database
from hirebox.email.registry import get_adapter
from hirebox.errors import (
    ApplicationNotFoundError,
    JobNotFoundError,
    NoPendingApplicationsError,
    ShortlistLockedError,
)
from hirebox.logging_config import OperationLogger
from hirebox.models import Application, DispatchResult, Job, OutgoingMail, utcnow

logger = logging.getLogger(__name__)


def _apply_shortlist(application_id: int, value: Optional[bool]) -> bool:
    new_value = database.update_shortlist(application_id, value)
    if new_value is not None:
        return new_value

    application = database.get_application(application_id)
    if application is None:
        raise ApplicationNotFoundError(f"Application {application_id} not found")
    raise ShortlistLockedError(
        f"Application {application_id} was sent on {application.sent_at.isoformat()}; "
        f"its shortlist status can no longer change"
    )


def toggle_shortlist(application_id: int) -> bool:
    """
    Flip the shortlist flag of an unsent application.

    Returns:
        The new flag

    Raises:
        ApplicationNotFoundError: Unknown application
        ShortlistLockedError: The application was already sent
    """
    return _apply_shortlist(application_id, None)


def set_shortlisted(application_id: int, value: bool) -> bool:
    """Set the shortlist flag explicitly; same errors as toggle_shortlist."""
    return _apply_shortlist(application_id, bool(value))


# ---------------------------------------------------------------------------
# Digest
# ---------------------------------------------------------------------------


def digest_subject(job: Job) -> str:
    return f"Shortlisted Applications for {job.title}"


def _application_block(application: Application) -> str:
    esc = html.escape
    received = application.created_at.strftime("%Y-%m-%d") if application.created_at else "unknown"
    attachment_items = "".join(
        f"<li>{esc(a.filename)}</li>" for a in application.attachments
    ) or "<li>none</li>"
    body = esc(application.email_body).replace("\n", "<br>")

    return f"""
<div style="margin-bottom: 20px; padding: 10px; border: 1px solid #ccc;">
  <h3>{esc(application.applicant_name)}</h3>
  <p><strong>Email:</strong> {esc(application.applicant_email)}</p>
  <p><strong>AI Score:</strong> {application.ai_score}/10</p>
  <p><strong>AI Summary:</strong> {esc(application.ai_summary)}</p>
  <p><strong>Date Received:</strong> {received}</p>
  <p><strong>Attachments:</strong></p>
  <ul style="margin-left: 20px;">{attachment_items}</ul>
  <p><strong>Email Body:</strong></p>
  <div style="margin-left: 20px;">{body}</div>
</div>"""


def build_digest(job: Job, applications: List[Application], recipient: str) -> OutgoingMail:
    """One HTML email covering all applications, with every stored file attached."""
    blocks = "".join(_application_block(a) for a in applications)
    html_body = f"<h2>{html.escape(digest_subject(job))}</h2>{blocks}"

    attachments = [a for application in applications for a in application.attachments]
    return OutgoingMail(
        to=recipient,
        subject=digest_subject(job),
        html_body=html_body,
        attachments=attachments,
    )


class ShortlistDispatcher:
    """
    Sends a job's pending shortlist through the recruiter's own mailbox.

    Args:
        store: CredentialStore
        adapter_factory: (provider, store) -> MailProvider
        clock: Returns the current UTC time used for sent_at
        operation_log_dir: Directory for per-dispatch operation logs
    """

    def __init__(
        self,
        store,
        adapter_factory: Optional[Callable] = None,
        clock: Callable = utcnow,
        operation_log_dir=None,
    ):
        self.store = store
        self.adapter_factory = adapter_factory or get_adapter
        self.clock = clock
        self.operation_log_dir = operation_log_dir

    def dispatch(
        self, job_id: str, user_id: str, provider, recipient: Optional[str] = None
    ) -> DispatchResult:
        """
        Send every shortlisted, unsent application for the job.

        The digest goes to ``recipient`` or, by default, to the mailbox the
        recruiter's credential belongs to. If sending fails nothing is
        stamped; after a successful send each application gets sent_at, and
        a failure stamping one application is logged without undoing the rest.

        Raises:
            JobNotFoundError: Unknown job
            NoPendingApplicationsError: Nothing shortlisted and unsent
            NotFoundError / ReauthRequiredError: Credential problems
            ProviderError: The send failed
        """
        job = database.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job '{job_id}' not found")

        pending = database.list_pending_shortlist(job.id)
        if not pending:
            raise NoPendingApplicationsError(
                f"No unsent shortlisted applications found for '{job.title}'"
            )

        credential = self.store.get_credentials(user_id, provider)
        adapter = self.adapter_factory(credential.provider, self.store)

        op = OperationLogger(
            "dispatch",
            log_dir=self.operation_log_dir,
            user_id=str(user_id),
            provider=credential.provider.value,
            job_id=job.id,
        )
        start = time.time()

        mail = build_digest(job, pending, recipient or credential.email)
        adapter.send_mail(credential, mail)

        sent_at = self.clock()
        stamped = []
        for application in pending:
            try:
                if database.mark_application_sent(application.id, sent_at):
                    stamped.append(application.id)
                else:
                    op.warning(f"Application {application.id} was already stamped as sent")
            except Exception as e:
                op.error(f"Could not stamp application {application.id} as sent", error=str(e))

        op.success(
            f"Sent {len(pending)} shortlisted application(s) for '{job.title}' to {mail.to}",
            attachments=len(mail.attachments),
            stamped=len(stamped),
            duration_seconds=round(time.time() - start, 2),
        )

        return DispatchResult(
            job_id=job.id,
            sent_at=sent_at,
            application_ids=[a.id for a in pending],
        )
