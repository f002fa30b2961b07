"""
Microsoft Graph Adapter - Outlook / Microsoft 365 mailbox access

Implements the mail provider interface over the Graph v1.0 REST API with
``requests`` and the account connect / token refresh flow with ``msal``.
"""

import base64
import logging
from datetime import timedelta
from typing import Dict, List, Optional

import msal
import requests

from hirebox.email.base import error_for_status
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

GRAPH_BASE = "https://graph.microsoft.com/v1.0"

# msal adds openid/profile/offline_access itself and refuses them here
SCOPES = [
    "https://graph.microsoft.com/Mail.ReadWrite",
    "https://graph.microsoft.com/Mail.Send",
    "https://graph.microsoft.com/User.Read",
]

FILE_ATTACHMENT = "#microsoft.graph.fileAttachment"


def build_filter(job_title: str) -> str:
    """OData filter for unread messages with attachments matching the title."""
    title = (job_title or "").strip().replace("'", "''")
    return f"isRead eq false and hasAttachments eq true and contains(subject, '{title}')"


class GraphAdapter:
    """
    Mail provider backed by Microsoft Graph.

    Args:
        store: CredentialStore used to refresh expired tokens
        session: requests.Session to send calls through (injectable for tests)
        max_retries: Retries for idempotent reads on transient failures
        base_delay: Initial backoff delay in seconds
        max_messages: Upper bound on candidates listed per call
        rate_limiter: Limiter acquired before every API request
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        store,
        session: Optional[requests.Session] = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_messages: int = 100,
        rate_limiter: Optional[RateLimiter] = APIRateLimiters.graph,
        timeout: float = 30.0,
    ):
        self.store = store
        self.session = session or requests.Session()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_messages = max_messages
        self.rate_limiter = rate_limiter
        self.timeout = timeout

    # ---------------------------------------------------------------------------
    # Plumbing
    # ---------------------------------------------------------------------------

    def _request(self, credential: OAuthCredential, method: str, url: str, **kwargs):
        if not url.startswith("http"):
            url = f"{GRAPH_BASE}{url}"
        headers = {"Authorization": f"Bearer {credential.access_token}"}

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientProviderError(f"Graph connection failed: {e}")

        if response.status_code >= 400:
            raise error_for_status(
                response.status_code,
                f"Graph API error {response.status_code} on {method} {url}: {response.text[:300]}",
                retry_after=response.headers.get("Retry-After"),
            )
        return response

    def _read(self, credential: OAuthCredential, method: str, url: str, **kwargs):
        """Idempotent request, retried on transient failures."""
        return resilient_call(
            self._request,
            credential,
            method,
            url,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            retryable_exceptions=(TransientProviderError,),
            rate_limiter=self.rate_limiter,
            **kwargs,
        )

    # ---------------------------------------------------------------------------
    # MailProvider
    # ---------------------------------------------------------------------------

    def list_candidate_messages(
        self, credential: OAuthCredential, job_title: str
    ) -> List[MessageRef]:
        self.store.ensure_fresh(credential)

        refs: List[MessageRef] = []
        url = "/me/messages"
        params = {
            "$filter": build_filter(job_title),
            "$select": "id,conversationId",
            "$top": min(50, self.max_messages),
        }
        while url and len(refs) < self.max_messages:
            data = self._read(credential, "GET", url, params=params).json()
            for item in data.get("value", []):
                refs.append(MessageRef(id=item["id"], thread_id=item.get("conversationId")))
            # nextLink already carries the query
            url = data.get("@odata.nextLink")
            params = None

        logger.debug(f"Graph filter for '{job_title}' matched {len(refs)} message(s)")
        return refs[: self.max_messages]

    def get_message(self, credential: OAuthCredential, message_id: str) -> MessageDetail:
        self.store.ensure_fresh(credential)

        message = self._read(
            credential,
            "GET",
            f"/me/messages/{message_id}",
            params={"$select": "id,conversationId,subject,from,body,hasAttachments"},
        ).json()

        attachments: List[AttachmentRef] = []
        if message.get("hasAttachments", True):
            listing = self._read(
                credential,
                "GET",
                f"/me/messages/{message_id}/attachments",
                params={"$select": "id,name,contentType,isInline"},
            ).json()
            for item in listing.get("value", []):
                if item.get("@odata.type", FILE_ATTACHMENT) != FILE_ATTACHMENT:
                    continue
                if item.get("isInline"):
                    continue
                attachments.append(
                    AttachmentRef(
                        id=item["id"],
                        filename=item.get("name") or "",
                        content_type=item.get("contentType"),
                    )
                )

        sender = (message.get("from") or {}).get("emailAddress") or {}
        return MessageDetail(
            id=message["id"],
            thread_id=message.get("conversationId"),
            subject=message.get("subject") or "",
            from_address=(sender.get("address") or "").lower(),
            from_name=sender.get("name") or "",
            body_html=(message.get("body") or {}).get("content") or "",
            attachments=attachments,
        )

    def get_attachment_bytes(
        self, credential: OAuthCredential, message_id: str, attachment_id: str
    ) -> bytes:
        self.store.ensure_fresh(credential)
        response = self._read(
            credential, "GET", f"/me/messages/{message_id}/attachments/{attachment_id}/$value"
        )
        return response.content

    def mark_read(self, credential: OAuthCredential, message_id: str) -> None:
        self.store.ensure_fresh(credential)
        self._read(credential, "PATCH", f"/me/messages/{message_id}", json={"isRead": True})

    def send_mail(self, credential: OAuthCredential, mail: OutgoingMail) -> None:
        """Send once; a failure is raised to the caller and never retried."""
        self.store.ensure_fresh(credential)

        payload = {
            "message": {
                "subject": mail.subject,
                "body": {"contentType": "HTML", "content": mail.html_body},
                "toRecipients": [{"emailAddress": {"address": mail.to}}],
                "attachments": [
                    {
                        "@odata.type": FILE_ATTACHMENT,
                        "name": a.filename,
                        "contentType": a.content_type or "application/octet-stream",
                        "contentBytes": base64.b64encode(a.data).decode("ascii"),
                    }
                    for a in mail.attachments
                ],
            },
            "saveToSentItems": True,
        }

        if self.rate_limiter:
            self.rate_limiter.acquire()
        self._request(credential, "POST", "/me/sendMail", json=payload)
        logger.info(f"Sent '{mail.subject}' to {mail.to} via Microsoft Graph")


# ===================================================================
# OAuth (msal)
# ===================================================================


def _msal_app(settings: Dict[str, str]) -> msal.ConfidentialClientApplication:
    if not settings.get("client_id") or not settings.get("client_secret"):
        raise ValueError(
            "Microsoft OAuth client is not configured (MICROSOFT_CLIENT_ID / MICROSOFT_CLIENT_SECRET)"
        )
    return msal.ConfidentialClientApplication(
        settings["client_id"],
        client_credential=settings["client_secret"],
        authority=settings.get("authority"),
    )


def _token_set(result: dict, email: Optional[str] = None) -> TokenSet:
    return TokenSet(
        access_token=result["access_token"],
        refresh_token=result.get("refresh_token"),
        expires_at=utcnow() + timedelta(seconds=int(result.get("expires_in", 3600))),
        email=email,
    )


def authorization_url(settings: Dict[str, str], state: str) -> str:
    """Microsoft identity platform consent URL."""
    return _msal_app(settings).get_authorization_request_url(
        SCOPES,
        state=state,
        redirect_uri=settings.get("redirect_uri"),
        prompt="select_account",
    )


def _mailbox_address(access_token: str) -> Optional[str]:
    response = requests.get(
        f"{GRAPH_BASE}/me",
        headers={"Authorization": f"Bearer {access_token}"},
        params={"$select": "mail,userPrincipalName"},
        timeout=30,
    )
    if response.status_code >= 400:
        raise error_for_status(response.status_code, f"Graph profile lookup failed: {response.text[:300]}")
    profile = response.json()
    return profile.get("mail") or profile.get("userPrincipalName")


def exchange_code(settings: Dict[str, str], code: str) -> TokenSet:
    """Exchange an authorization code for tokens and the mailbox address."""
    try:
        result = _msal_app(settings).acquire_token_by_authorization_code(
            code, scopes=SCOPES, redirect_uri=settings.get("redirect_uri")
        )
    except requests.RequestException as e:
        raise TransientProviderError(f"Microsoft token endpoint unreachable: {e}")

    if "access_token" not in result:
        raise ProviderError(
            f"Microsoft authorization code exchange failed: "
            f"{result.get('error')}: {result.get('error_description')}"
        )

    claims = result.get("id_token_claims") or {}
    email = claims.get("preferred_username") or claims.get("email")
    if not email:
        email = _mailbox_address(result["access_token"])
    return _token_set(result, email=email)


def refresh_tokens(settings: Dict[str, str], refresh_token: str) -> TokenSet:
    """
    Exchange a refresh token with the Microsoft identity platform.

    Raises:
        ReauthRequiredError: The refresh token was rejected (invalid_grant)
        TransientProviderError: Token endpoint unreachable
        CredentialRefreshError: Any other refusal
    """
    try:
        result = _msal_app(settings).acquire_token_by_refresh_token(refresh_token, scopes=SCOPES)
    except requests.RequestException as e:
        raise TransientProviderError(f"Microsoft token endpoint unreachable: {e}")

    if "access_token" in result:
        return _token_set(result)

    error = result.get("error")
    description = result.get("error_description")
    if error == "invalid_grant":
        raise ReauthRequiredError(f"Microsoft refresh token rejected: {description}")
    raise CredentialRefreshError(f"Microsoft token refresh failed: {error}: {description}")
