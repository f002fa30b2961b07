"""
Email Scanner - Application ingestion pipeline

One fetch cycle for (recruiter, provider, job title):

1. Resolve the job by title
2. Resolve the recruiter's mail credential
3. List unread candidate messages for the job
4. For each message not ingested yet: fetch it, collect résumé attachments,
   score the résumé, store the application, then mark the message read

Per-message failures are logged and reported; they never abort the batch.
"""

import html as html_mod
import logging
import re
import time
from typing import Callable, Optional

from hirebox import database
from hirebox.email.attachments import collect_attachments
from hirebox.email.registry import get_adapter
from hirebox.errors import JobNotFoundError, NotFoundError, ReauthRequiredError
from hirebox.logging_config import OperationLogger
from hirebox.models import Application, EmailMetadata, FetchResult, Job, MessageRef, OAuthCredential
from hirebox.resumes import extract_text as default_extract_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helper: strip HTML to plain text
# ---------------------------------------------------------------------------


def strip_html(html: str) -> str:
    """Lossy tag stripping for email bodies; not a full HTML parser."""
    if not html:
        return ""
    text = re.sub(r"<style[^>]*>.*?</style>", "", html, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<script[^>]*>.*?</script>", "", text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"</?[^>]+(>|$)", "", text)
    text = html_mod.unescape(text)
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r" ?\n\s*", "\n", text)
    return text.strip()


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class IngestionPipeline:
    """
    Turns application emails into scored Application records.

    Args:
        store: CredentialStore
        scorer: Object with score(resume_text, job_description) -> ScoreResult
        extract_text: (bytes, filename) -> text
        adapter_factory: (provider, store) -> MailProvider
        timeout: Default overall time budget per cycle in seconds (None = unbounded)
        clock: Monotonic seconds, used for the timeout
        operation_log_dir: Directory for per-cycle operation logs
    """

    def __init__(
        self,
        store,
        scorer,
        extract_text: Callable[[bytes, str], str] = default_extract_text,
        adapter_factory: Optional[Callable] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        operation_log_dir=None,
    ):
        self.store = store
        self.scorer = scorer
        self.extract_text = extract_text
        self.adapter_factory = adapter_factory or get_adapter
        self.timeout = timeout
        self.clock = clock
        self.operation_log_dir = operation_log_dir

    def run(
        self, user_id: str, provider, job_title: str, timeout: Optional[float] = None
    ) -> FetchResult:
        """
        Run one fetch cycle.

        Raises:
            JobNotFoundError: No job matches the title
            NotFoundError: No credential for the recruiter (and no default)
            ReauthRequiredError: The stored refresh token was rejected
            ProviderError: Listing candidates failed
        """
        timeout = self.timeout if timeout is None else timeout
        started = self.clock()
        op = OperationLogger("fetch", log_dir=self.operation_log_dir, user_id=str(user_id))

        job = database.find_job_by_title(job_title)
        if job is None:
            raise JobNotFoundError(f"No job found with title '{job_title}'")

        credential = self.store.get_credentials(user_id, provider)
        adapter = self.adapter_factory(credential.provider, self.store)

        candidates = adapter.list_candidate_messages(credential, job.title)
        ingested = database.get_ingested_message_ids(job.id)

        result = FetchResult(job_id=job.id, total_candidates=len(candidates))
        op.bind(job_id=job.id, provider=credential.provider.value)
        op.info(
            f"Fetching applications for '{job.title}'",
            candidates=len(candidates),
            already_ingested=len(ingested),
        )

        for position, ref in enumerate(candidates):
            if ref.id in ingested:
                result.skipped.append(ref.id)
                continue

            if timeout is not None and self.clock() - started >= timeout:
                result.timed_out = True
                op.warning(
                    f"Time budget of {timeout}s used up; stopping before message {ref.id}",
                    remaining=len(candidates) - position,
                )
                break

            try:
                application = self._ingest_message(adapter, credential, job, str(user_id), ref)
            except (ReauthRequiredError, NotFoundError):
                raise
            except Exception as e:
                logger.error(f"Failed to ingest message {ref.id}: {e}")
                op.error(f"Message {ref.id} failed", error=str(e))
                result.failed[ref.id] = str(e)
                continue

            if application is None:
                result.skipped.append(ref.id)
                continue

            result.applications.append(application)
            self._mark_read(adapter, credential, ref.id)

        op.success(
            f"Fetch cycle for '{job.title}' finished",
            processed=result.processed,
            skipped=len(result.skipped),
            failed=len(result.failed),
            timed_out=result.timed_out,
        )
        logger.debug(f"Fetch summary: {op.get_summary()}")
        return result

    def _ingest_message(
        self,
        adapter,
        credential: OAuthCredential,
        job: Job,
        user_id: str,
        ref: MessageRef,
    ) -> Optional[Application]:
        """Store one message as an application; None when it is skipped."""
        message = adapter.get_message(credential, ref.id)

        attachments, resume_text = collect_attachments(
            adapter, credential, message, self.extract_text
        )
        if not attachments:
            logger.info(f"Skipping message {ref.id}: no résumé attachment")
            return None

        score = self.scorer.score(resume_text, job.description)

        application = Application(
            job_id=job.id,
            processed_by=user_id,
            applicant_name=message.from_name or message.from_address,
            applicant_email=message.from_address,
            email_subject=message.subject,
            email_body=strip_html(message.body_html),
            email_metadata=EmailMetadata(
                message_id=ref.id, thread_id=message.thread_id or ref.thread_id
            ),
            attachments=attachments,
            resume_text=resume_text,
            ai_score=score.score,
            ai_summary=score.summary,
        )

        stored = database.insert_application(application)
        if stored is None:
            logger.info(f"Message {ref.id} was already stored for job {job.id} by another cycle")
            return None

        logger.info(
            f"Stored application {stored.id} from {stored.applicant_email} "
            f"(score {stored.ai_score}/10)"
        )
        return stored

    def _mark_read(self, adapter, credential: OAuthCredential, message_id: str) -> None:
        try:
            adapter.mark_read(credential, message_id)
        except (ReauthRequiredError, NotFoundError):
            raise
        except Exception as e:
            logger.warning(f"Could not mark message {message_id} as read: {e}")
