"""
Tests for the Flask API routes.
"""

import pytest

from conftest import FakeMailProvider, FakeScorer, make_message

HEADERS = {"X-User-Id": "recruiter-1"}


@pytest.fixture
def app_mailbox():
    return FakeMailProvider(
        [
            (make_message("m1", [("a1", "cv.pdf")]), {"a1": b"%PDF-1.4 resume"}),
            (make_message("m2", [("a2", "photo.png")]), {"a2": b"png"}),
        ]
    )


@pytest.fixture
def client(store, gmail_credential, app_mailbox, monkeypatch):
    """Test client wired to the temp database, the fake mailbox and a fake scorer."""
    from hirebox import create_app
    from hirebox.config import Config

    monkeypatch.delenv("HIREBOX_DB_PATH", raising=False)
    app = create_app(
        config=Config(data={}),
        store=store,
        scorer=FakeScorer(),
        adapter_factory=lambda provider, credential_store: app_mailbox,
    )
    app.config["TESTING"] = True
    return app.test_client()


def _create_job(client, title="Backend Engineer"):
    response = client.post(
        "/api/jobs", json={"title": title, "description": "Python and AWS"}, headers=HEADERS
    )
    assert response.status_code == 201
    return response.get_json()


def _fetch(client, title="Backend Engineer"):
    return client.post(
        "/api/applications/fetch",
        json={"provider": "gmail", "jobTitle": title},
        headers=HEADERS,
    )


def test_missing_user_header_is_bad_request(client):
    response = client.post("/api/jobs", json={"title": "Backend Engineer"})

    assert response.status_code == 400
    assert "X-User-Id" in response.get_json()["error"]["message"]


def test_job_crud(client):
    job = _create_job(client)
    assert job["createdBy"] == "recruiter-1"
    assert job["status"] == "Open"

    response = client.patch(f"/api/jobs/{job['id']}", json={"status": "Closed"}, headers=HEADERS)
    assert response.get_json()["status"] == "Closed"

    listed = client.get("/api/jobs?mine=true", headers=HEADERS).get_json()
    assert [j["id"] for j in listed] == [job["id"]]

    assert client.delete(f"/api/jobs/{job['id']}", headers=HEADERS).status_code == 200
    assert client.get(f"/api/jobs/{job['id']}", headers=HEADERS).status_code == 404


def test_invalid_job_status_is_bad_request(client):
    response = client.post(
        "/api/jobs", json={"title": "Backend Engineer", "status": "Paused"}, headers=HEADERS
    )

    assert response.status_code == 400


def test_fetch_ingests_resume_messages(client, app_mailbox):
    """Only the message with a résumé attachment becomes an application."""
    job = _create_job(client)

    body = _fetch(client).get_json()

    assert body["processed"] == 1
    assert body["skipped"] == ["m2"]
    application = body["applications"][0]
    assert application["job"] == job["id"]
    assert application["aiScore"] == 8
    assert application["applicantEmail"] == "jane@example.com"
    assert "m1" in app_mailbox.read

    listed = client.get(f"/api/applications?jobId={job['id']}", headers=HEADERS).get_json()
    assert [a["id"] for a in listed] == [application["id"]]


def test_fetch_unknown_job_is_not_found(client):
    response = _fetch(client, title="Astronaut")

    assert response.status_code == 404
    assert response.get_json()["error"]["type"] == "JobNotFoundError"


def test_fetch_unknown_provider_is_bad_request(client):
    _create_job(client)

    response = client.post(
        "/api/applications/fetch",
        json={"provider": "yahoo", "jobTitle": "Backend Engineer"},
        headers=HEADERS,
    )

    assert response.status_code == 400


def test_attachment_download(client):
    _create_job(client)
    application = _fetch(client).get_json()["applications"][0]

    response = client.get(f"/api/applications/{application['id']}/attachments/0")

    assert response.status_code == 200
    assert response.data == b"%PDF-1.4 resume"
    assert "cv.pdf" in response.headers["Content-Disposition"]
    assert client.get(f"/api/applications/{application['id']}/attachments/5").status_code == 404


def test_shortlist_and_send(client, app_mailbox):
    """Shortlisting locks once the digest has gone out."""
    job = _create_job(client)
    application = _fetch(client).get_json()["applications"][0]
    url = f"/api/applications/{application['id']}/shortlist"

    assert client.patch(url, headers=HEADERS).get_json()["isShortlisted"] is True

    response = client.post(
        "/api/applications/send-shortlisted",
        json={"jobId": job["id"], "provider": "gmail", "recipient": "boss@example.com"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert response.get_json()["applicationIds"] == [application["id"]]
    assert app_mailbox.sent[0].to == "boss@example.com"

    assert client.patch(url, json={"isShortlisted": False}, headers=HEADERS).status_code == 409

    again = client.post(
        "/api/applications/send-shortlisted",
        json={"jobId": job["id"], "provider": "gmail"},
        headers=HEADERS,
    )
    assert again.status_code == 409


def test_shortlist_flag_must_be_boolean(client):
    """A quoted "false" is rejected rather than read as a truthy string."""
    _create_job(client)
    application = _fetch(client).get_json()["applications"][0]
    url = f"/api/applications/{application['id']}/shortlist"

    for value in ("false", "0", 1, None):
        response = client.patch(url, json={"isShortlisted": value}, headers=HEADERS)
        assert response.status_code == 400
        assert "isShortlisted" in response.get_json()["error"]["message"]

    stored = client.get(f"/api/applications/{application['id']}").get_json()
    assert stored["isShortlisted"] is False

    response = client.patch(url, json={"isShortlisted": True}, headers=HEADERS)
    assert response.get_json()["isShortlisted"] is True


@pytest.mark.parametrize("timeout", [0, -5, "soon", True])
def test_fetch_rejects_invalid_timeout(client, app_mailbox, timeout):
    _create_job(client)

    response = client.post(
        "/api/applications/fetch",
        json={"provider": "gmail", "jobTitle": "Backend Engineer", "timeout": timeout},
        headers=HEADERS,
    )

    assert response.status_code == 400
    assert "timeout" in response.get_json()["error"]["message"]
    assert app_mailbox.read == []


def test_fetch_with_explicit_timeout(client):
    _create_job(client)

    response = client.post(
        "/api/applications/fetch",
        json={"provider": "gmail", "jobTitle": "Backend Engineer", "timeout": 30},
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.get_json()["processed"] == 1
    assert response.get_json()["timedOut"] is False


def test_delete_job_without_cascade_conflicts(client):
    job = _create_job(client)
    _fetch(client)

    response = client.delete(f"/api/jobs/{job['id']}?deleteApplications=false", headers=HEADERS)

    assert response.status_code == 409
    assert client.get(f"/api/jobs/{job['id']}").status_code == 200


def test_bulk_delete(client):
    _create_job(client)
    application = _fetch(client).get_json()["applications"][0]

    response = client.post(
        "/api/applications/bulk-delete", json={"ids": [application["id"], 999]}, headers=HEADERS
    )

    assert response.get_json()["deleted"] == 1
    assert client.get(f"/api/applications/{application['id']}").status_code == 404


def test_connected_accounts_hide_tokens(client):
    accounts = client.get("/api/auth/accounts", headers=HEADERS).get_json()

    assert [a["email"] for a in accounts] == ["recruiter@example.com"]
    assert "accessToken" not in accounts[0]


def test_disconnect_account(client):
    assert client.delete("/api/auth/gmail", headers=HEADERS).get_json() == {"success": True}
    assert client.get("/api/auth/accounts", headers=HEADERS).get_json() == []
