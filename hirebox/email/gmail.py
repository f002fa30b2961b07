"""
Gmail Adapter - Gmail API access for one recruiter mailbox

This module implements the mail provider interface on top of the Gmail v1
API and the Google OAuth2 flow used to connect an account. A Gmail service
is built for every call from the credential's current access token; nothing
is cached between recruiters.
"""

import base64
import logging
import os
from datetime import timedelta, timezone
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Dict, List, Optional

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from hirebox.email.base import error_for_status, extract_sender_name, normalize_sender
from hirebox.errors import (
    CredentialRefreshError,
    ProviderError,
    ReauthRequiredError,
    TransientProviderError,
)
from hirebox.models import (
    AttachmentRef,
    MessageDetail,
    MessageRef,
    OAuthCredential,
    OutgoingMail,
    TokenSet,
    utcnow,
)
from hirebox.resilience import APIRateLimiters, RateLimiter, resilient_call

logger = logging.getLogger(__name__)

# Read + mark-as-read, send, and the account address
SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",
]

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


def build_gmail_service(access_token: str):
    """Gmail v1 service authorised with a bare access token."""
    return build(
        "gmail", "v1", credentials=Credentials(token=access_token), cache_discovery=False
    )


def _decode(data: str) -> bytes:
    # Gmail uses base64url and may drop the padding
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _get_headers(message: dict) -> Dict[str, str]:
    """Extract common headers from a Gmail message."""
    headers = {}
    for header in message.get("payload", {}).get("headers", []):
        name = header["name"].lower()
        if name in ("subject", "from", "to", "date"):
            headers[name] = header["value"]
    return headers


def _find_part_text(part: dict, mime_type: str) -> str:
    """Depth-first search for the first inline part of the given type."""
    if part.get("mimeType") == mime_type and not part.get("filename"):
        data = part.get("body", {}).get("data")
        if data:
            return _decode(data).decode("utf-8", errors="replace")
    for sub in part.get("parts", []) or []:
        text = _find_part_text(sub, mime_type)
        if text:
            return text
    return ""


def get_email_body(payload: dict) -> str:
    """
    Extract the message body from a Gmail payload.

    Prefers the first text/html part, falls back to text/plain, and walks
    nested multiparts.
    """
    return _find_part_text(payload, "text/html") or _find_part_text(payload, "text/plain")


def _collect_attachments(part: dict, found: List[AttachmentRef]) -> List[AttachmentRef]:
    body = part.get("body", {})
    if part.get("filename") and body.get("attachmentId"):
        found.append(
            AttachmentRef(
                id=body["attachmentId"],
                filename=part["filename"],
                content_type=part.get("mimeType"),
            )
        )
    for sub in part.get("parts", []) or []:
        _collect_attachments(sub, found)
    return found


def build_mime_message(mail: OutgoingMail, sender: Optional[str] = None) -> MIMEMultipart:
    """Assemble an HTML email with attachments."""
    message = MIMEMultipart("mixed")
    message["To"] = mail.to
    message["Subject"] = mail.subject
    if sender:
        message["From"] = sender
    message.attach(MIMEText(mail.html_body, "html", "utf-8"))

    for attachment in mail.attachments:
        content_type = attachment.content_type or "application/octet-stream"
        maintype, _, subtype = content_type.partition("/")
        part = MIMEBase(maintype, subtype or "octet-stream")
        part.set_payload(attachment.data)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
        message.attach(part)

    return message


class GmailAdapter:
    """
    Mail provider backed by the Gmail API.

    Args:
        store: CredentialStore used to refresh expired tokens
        service_factory: access token -> Gmail service (injectable for tests)
        max_retries: Retries for idempotent reads on transient failures
        base_delay: Initial backoff delay in seconds
        max_messages: Upper bound on candidates listed per call
        rate_limiter: Limiter acquired before every API request
    """

    def __init__(
        self,
        store,
        service_factory: Optional[Callable] = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_messages: int = 100,
        rate_limiter: Optional[RateLimiter] = APIRateLimiters.gmail,
    ):
        self.store = store
        self.service_factory = service_factory or build_gmail_service
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_messages = max_messages
        self.rate_limiter = rate_limiter

    # ---------------------------------------------------------------------------
    # Plumbing
    # ---------------------------------------------------------------------------

    def _service(self, credential: OAuthCredential):
        self.store.ensure_fresh(credential)
        return self.service_factory(credential.access_token)

    def _execute(self, request):
        """Run a prepared API request, translating failures to provider errors."""
        try:
            return request.execute()
        except HttpError as e:
            raise error_for_status(
                e.resp.status, f"Gmail API error: {e}", retry_after=e.resp.get("retry-after")
            )
        except (OSError, httplib2.HttpLib2Error) as e:
            raise TransientProviderError(f"Gmail connection failed: {e}")

    def _read(self, make_request: Callable):
        """Execute an idempotent request with retry on transient failures."""
        return resilient_call(
            lambda: self._execute(make_request()),
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            retryable_exceptions=(TransientProviderError,),
            rate_limiter=self.rate_limiter,
        )

    # ---------------------------------------------------------------------------
    # MailProvider
    # ---------------------------------------------------------------------------

    def list_candidate_messages(
        self, credential: OAuthCredential, job_title: str
    ) -> List[MessageRef]:
        """Unread messages with attachments whose subject contains the job title."""
        service = self._service(credential)
        title = (job_title or "").replace('"', " ").strip()
        query = f'is:unread has:attachment subject:"{title}"'

        refs: List[MessageRef] = []
        page_token = None
        while len(refs) < self.max_messages:
            params = {
                "userId": "me",
                "q": query,
                "maxResults": min(500, self.max_messages - len(refs)),
            }
            if page_token:
                params["pageToken"] = page_token

            results = self._read(lambda: service.users().messages().list(**params))
            for item in results.get("messages", []):
                refs.append(MessageRef(id=item["id"], thread_id=item.get("threadId")))

            page_token = results.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Gmail query '{query}' matched {len(refs)} message(s)")
        return refs[: self.max_messages]

    def get_message(self, credential: OAuthCredential, message_id: str) -> MessageDetail:
        service = self._service(credential)
        message = self._read(
            lambda: service.users().messages().get(userId="me", id=message_id, format="full")
        )

        headers = _get_headers(message)
        sender = headers.get("from", "")
        payload = message.get("payload", {})

        return MessageDetail(
            id=message["id"],
            thread_id=message.get("threadId"),
            subject=headers.get("subject", ""),
            from_address=normalize_sender(sender),
            from_name=extract_sender_name(sender) or "",
            body_html=get_email_body(payload),
            attachments=_collect_attachments(payload, []),
        )

    def get_attachment_bytes(
        self, credential: OAuthCredential, message_id: str, attachment_id: str
    ) -> bytes:
        service = self._service(credential)
        result = self._read(
            lambda: service.users()
            .messages()
            .attachments()
            .get(userId="me", messageId=message_id, id=attachment_id)
        )
        return _decode(result.get("data", ""))

    def mark_read(self, credential: OAuthCredential, message_id: str) -> None:
        service = self._service(credential)
        self._read(
            lambda: service.users()
            .messages()
            .modify(userId="me", id=message_id, body={"removeLabelIds": ["UNREAD"]})
        )

    def send_mail(self, credential: OAuthCredential, mail: OutgoingMail) -> None:
        """Send once; a failure is raised to the caller and never retried."""
        service = self._service(credential)
        message = build_mime_message(mail, sender=credential.email or None)
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")

        if self.rate_limiter:
            self.rate_limiter.acquire()
        self._execute(service.users().messages().send(userId="me", body={"raw": raw}))
        logger.info(f"Sent '{mail.subject}' to {mail.to} via Gmail")


# ===================================================================
# OAuth
# ===================================================================


def _client_config(settings: Dict[str, str]) -> dict:
    return {
        "web": {
            "client_id": settings.get("client_id"),
            "client_secret": settings.get("client_secret"),
            "auth_uri": AUTH_URI,
            "token_uri": TOKEN_URI,
            "redirect_uris": [settings.get("redirect_uri")],
        }
    }


def _flow(settings: Dict[str, str], state: Optional[str] = None) -> Flow:
    if not settings.get("client_id") or not settings.get("client_secret"):
        raise ValueError("Gmail OAuth client is not configured (GMAIL_CLIENT_ID / GMAIL_CLIENT_SECRET)")
    return Flow.from_client_config(
        _client_config(settings),
        scopes=SCOPES,
        state=state,
        redirect_uri=settings.get("redirect_uri"),
        autogenerate_code_verifier=False,
    )


def _expiry(credentials: Credentials):
    # google-auth keeps expiry as naive UTC
    if credentials.expiry is None:
        return utcnow() + timedelta(hours=1)
    return credentials.expiry.replace(tzinfo=timezone.utc)


def authorization_url(settings: Dict[str, str], state: str) -> str:
    """Google consent URL requesting offline access."""
    url, _ = _flow(settings, state).authorization_url(
        access_type="offline", prompt="consent", include_granted_scopes="true"
    )
    return url


def exchange_code(settings: Dict[str, str], code: str) -> TokenSet:
    """Exchange an authorization code for tokens and the account address."""
    # Google adds scopes it granted earlier; don't treat that as an error
    os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

    flow = _flow(settings)
    try:
        flow.fetch_token(code=code)
        credentials = flow.credentials
        profile = (
            build("oauth2", "v2", credentials=credentials, cache_discovery=False)
            .userinfo()
            .get()
            .execute()
        )
    except HttpError as e:
        raise error_for_status(e.resp.status, f"Gmail profile lookup failed: {e}")
    except Exception as e:
        raise ProviderError(f"Gmail authorization code exchange failed: {e}")

    return TokenSet(
        access_token=credentials.token,
        refresh_token=credentials.refresh_token,
        expires_at=_expiry(credentials),
        email=profile.get("email"),
    )


def refresh_tokens(settings: Dict[str, str], refresh_token: str) -> TokenSet:
    """
    Exchange a refresh token at Google's token endpoint.

    Raises:
        ReauthRequiredError: Google answered invalid_grant
        TransientProviderError: Token endpoint unreachable
        CredentialRefreshError: Any other refusal
    """
    credentials = Credentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=TOKEN_URI,
        client_id=settings.get("client_id"),
        client_secret=settings.get("client_secret"),
    )
    try:
        credentials.refresh(Request())
    except RefreshError as e:
        if "invalid_grant" in str(e):
            raise ReauthRequiredError(f"Gmail refresh token rejected: {e}")
        raise CredentialRefreshError(f"Gmail token refresh failed: {e}")
    except TransportError as e:
        raise TransientProviderError(f"Gmail token endpoint unreachable: {e}")

    return TokenSet(
        access_token=credentials.token,
        refresh_token=credentials.refresh_token,
        expires_at=_expiry(credentials),
    )
