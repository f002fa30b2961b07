"""
Tests for the Microsoft Graph adapter using a mocked requests session.
"""

from unittest.mock import Mock, patch

import pytest

from conftest import future


def _credential():
    from hirebox.models import OAuthCredential, Provider

    return OAuthCredential(
        id=2,
        user_id="recruiter-1",
        provider=Provider.MICROSOFT,
        email="recruiter@contoso.com",
        access_token="graph-token",
        refresh_token="refresh-1",
        expires_at=future(),
    )


def _response(status=200, json_data=None, content=b"", headers=None):
    response = Mock(status_code=status, content=content, text=str(json_data), headers=headers or {})
    response.json.return_value = json_data or {}
    return response


def _adapter(session, store=None, **kwargs):
    from hirebox.email.microsoft import GraphAdapter

    kwargs.setdefault("rate_limiter", None)
    kwargs.setdefault("base_delay", 0)
    return GraphAdapter(store or Mock(), session=session, **kwargs)


def test_build_filter_escapes_quotes():
    from hirebox.email.microsoft import build_filter

    assert build_filter("Senior Dev's Role") == (
        "isRead eq false and hasAttachments eq true and contains(subject, 'Senior Dev''s Role')"
    )


def test_list_candidates_follows_next_link():
    session = Mock()
    session.request.side_effect = [
        _response(
            json_data={
                "value": [{"id": "m1", "conversationId": "c1"}],
                "@odata.nextLink": "https://graph.microsoft.com/v1.0/me/messages?$skip=1",
            }
        ),
        _response(json_data={"value": [{"id": "m2", "conversationId": "c2"}]}),
    ]

    refs = _adapter(session).list_candidate_messages(_credential(), "Backend Engineer")

    assert [(r.id, r.thread_id) for r in refs] == [("m1", "c1"), ("m2", "c2")]
    first, second = session.request.call_args_list
    assert first.args == ("GET", "https://graph.microsoft.com/v1.0/me/messages")
    assert "contains(subject, 'Backend Engineer')" in first.kwargs["params"]["$filter"]
    assert first.kwargs["headers"]["Authorization"] == "Bearer graph-token"
    assert second.args[1] == "https://graph.microsoft.com/v1.0/me/messages?$skip=1"
    assert second.kwargs["params"] is None


def test_get_message_keeps_only_file_attachments():
    session = Mock()
    session.request.side_effect = [
        _response(
            json_data={
                "id": "m1",
                "conversationId": "c1",
                "subject": "Backend Engineer application",
                "from": {"emailAddress": {"name": "Jane Doe", "address": "Jane@Contoso.com"}},
                "body": {"contentType": "html", "content": "<p>Hello</p>"},
                "hasAttachments": True,
            }
        ),
        _response(
            json_data={
                "value": [
                    {"@odata.type": "#microsoft.graph.fileAttachment", "id": "a1", "name": "cv.pdf"},
                    {
                        "@odata.type": "#microsoft.graph.fileAttachment",
                        "id": "a2",
                        "name": "signature.png",
                        "isInline": True,
                    },
                    {"@odata.type": "#microsoft.graph.itemAttachment", "id": "a3", "name": "Fwd"},
                ]
            }
        ),
    ]

    message = _adapter(session).get_message(_credential(), "m1")

    assert message.from_address == "jane@contoso.com"
    assert message.from_name == "Jane Doe"
    assert message.body_html == "<p>Hello</p>"
    assert [(a.id, a.filename) for a in message.attachments] == [("a1", "cv.pdf")]


def test_get_attachment_bytes_reads_raw_value():
    session = Mock()
    session.request.return_value = _response(content=b"%PDF-raw")

    data = _adapter(session).get_attachment_bytes(_credential(), "m1", "a1")

    assert data == b"%PDF-raw"
    assert session.request.call_args.args[1].endswith("/me/messages/m1/attachments/a1/$value")


def test_mark_read_patches_message():
    session = Mock()
    session.request.return_value = _response()

    _adapter(session).mark_read(_credential(), "m1")

    call = session.request.call_args
    assert call.args == ("PATCH", "https://graph.microsoft.com/v1.0/me/messages/m1")
    assert call.kwargs["json"] == {"isRead": True}


def test_send_mail_payload():
    import base64

    from hirebox.models import Attachment, OutgoingMail

    session = Mock()
    session.request.return_value = _response(status=202)

    mail = OutgoingMail(
        to="boss@contoso.com",
        subject="Shortlisted Applications for Backend Engineer",
        html_body="<p>Hi</p>",
        attachments=[Attachment("cv.pdf", None, b"%PDF")],
    )
    _adapter(session).send_mail(_credential(), mail)

    call = session.request.call_args
    assert call.args == ("POST", "https://graph.microsoft.com/v1.0/me/sendMail")
    payload = call.kwargs["json"]
    assert payload["saveToSentItems"] is True
    message = payload["message"]
    assert message["toRecipients"] == [{"emailAddress": {"address": "boss@contoso.com"}}]
    assert message["body"] == {"contentType": "HTML", "content": "<p>Hi</p>"}
    attachment = message["attachments"][0]
    assert attachment["contentType"] == "application/octet-stream"
    assert base64.b64decode(attachment["contentBytes"]) == b"%PDF"


def test_throttled_read_is_retried():
    session = Mock()
    session.request.side_effect = [_response(status=429), _response(content=b"data")]

    assert _adapter(session).get_attachment_bytes(_credential(), "m1", "a1") == b"data"
    assert session.request.call_count == 2


def test_retry_after_header_is_carried_on_the_error():
    from hirebox.errors import TransientProviderError
    from hirebox.resilience import RetryError

    session = Mock()
    session.request.return_value = _response(status=429, headers={"Retry-After": "0"})

    with pytest.raises(RetryError) as exc_info:
        _adapter(session, max_retries=1).mark_read(_credential(), "m1")

    error = exc_info.value.last_exception
    assert isinstance(error, TransientProviderError)
    assert error.retry_after == 0.0
    assert session.request.call_count == 2


def test_unauthorized_read_is_not_retried():
    from hirebox.errors import ProviderError, TransientProviderError

    session = Mock()
    session.request.return_value = _response(status=401)

    with pytest.raises(ProviderError) as exc_info:
        _adapter(session).mark_read(_credential(), "m1")

    assert not isinstance(exc_info.value, TransientProviderError)
    assert session.request.call_count == 1


def test_connection_errors_are_transient():
    import requests

    from hirebox.errors import TransientProviderError

    session = Mock()
    session.request.side_effect = requests.ConnectionError("reset")

    with pytest.raises(TransientProviderError):
        _adapter(session).send_mail(
            _credential(), Mock(to="a@b.c", subject="s", html_body="", attachments=[])
        )
    assert session.request.call_count == 1


def test_refresh_tokens_invalid_grant_requires_reauth():
    from hirebox.email.microsoft import refresh_tokens
    from hirebox.errors import ReauthRequiredError

    settings = {"client_id": "id", "client_secret": "secret", "authority": "https://login"}
    with patch("hirebox.email.microsoft.msal.ConfidentialClientApplication") as app_cls:
        app_cls.return_value.acquire_token_by_refresh_token.return_value = {
            "error": "invalid_grant",
            "error_description": "AADSTS70008: The refresh token has expired",
        }
        with pytest.raises(ReauthRequiredError):
            refresh_tokens(settings, "refresh-1")


def test_refresh_tokens_other_failure():
    from hirebox.email.microsoft import refresh_tokens
    from hirebox.errors import CredentialRefreshError

    settings = {"client_id": "id", "client_secret": "secret", "authority": "https://login"}
    with patch("hirebox.email.microsoft.msal.ConfidentialClientApplication") as app_cls:
        app_cls.return_value.acquire_token_by_refresh_token.return_value = {
            "error": "temporarily_unavailable"
        }
        with pytest.raises(CredentialRefreshError):
            refresh_tokens(settings, "refresh-1")


def test_refresh_tokens_success():
    from hirebox.email.microsoft import refresh_tokens
    from hirebox.models import utcnow

    settings = {"client_id": "id", "client_secret": "secret", "authority": "https://login"}
    with patch("hirebox.email.microsoft.msal.ConfidentialClientApplication") as app_cls:
        app_cls.return_value.acquire_token_by_refresh_token.return_value = {
            "access_token": "new-access",
            "refresh_token": "rotated",
            "expires_in": 3600,
        }
        tokens = refresh_tokens(settings, "refresh-1")

    assert tokens.access_token == "new-access"
    assert tokens.refresh_token == "rotated"
    assert tokens.expires_at > utcnow()


def test_unconfigured_client_is_rejected():
    from hirebox.email.microsoft import authorization_url

    with pytest.raises(ValueError, match="MICROSOFT_CLIENT_ID"):
        authorization_url({}, "state")
