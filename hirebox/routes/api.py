"""
Flask API Routes for HireBox

JSON endpoints for jobs, application ingestion, shortlisting and mailbox
connection. The caller identifies the recruiter with the X-User-Id header;
authenticating that header is left to the deployment in front of the app.
"""

import io
import logging
import secrets

from flask import Blueprint, current_app, jsonify, request, send_file

from hirebox import database, oauth
from hirebox.errors import ApplicationNotFoundError, HireBoxError, JobNotFoundError
from hirebox.models import JobStatus, Provider
from hirebox.shortlist import set_shortlisted, toggle_shortlist
from hirebox.startup import get_health_status

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")


def _services() -> dict:
    return current_app.extensions["hirebox"]


def _current_user() -> str:
    user_id = request.headers.get("X-User-Id", "").strip()
    if not user_id:
        raise ValueError("X-User-Id header is required")
    return user_id


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _require(data: dict, field: str):
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"'{field}' is required")
    return value


def _flag(value) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes")


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


@api_bp.errorhandler(HireBoxError)
def handle_hirebox_error(e: HireBoxError):
    if e.status_code >= 500:
        logger.error(f"{e.__class__.__name__}: {e.message}")
    else:
        logger.info(f"{e.__class__.__name__}: {e.message}")
    return jsonify(e.to_dict()), e.status_code


@api_bp.errorhandler(ValueError)
def handle_bad_request(e: ValueError):
    return jsonify({"error": {"type": "BadRequest", "message": str(e), "status": 400}}), 400


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@api_bp.route("/health")
def health():
    status = get_health_status()
    return jsonify(status), 200 if status["status"] == "healthy" else 503


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


@api_bp.route("/jobs", methods=["GET"])
def list_jobs():
    """
    List jobs, newest first.

    Route: GET /api/jobs?mine=true
    """
    created_by = _current_user() if _flag(request.args.get("mine")) else None
    return jsonify([job.to_dict() for job in database.list_jobs(created_by=created_by)])


@api_bp.route("/jobs", methods=["POST"])
def create_job():
    """
    Create a job.

    Route: POST /api/jobs

    Request Body (JSON):
        {"title": "Backend Engineer", "description": "...", "status": "Open"}
    """
    data = _json_body()
    title = _require(data, "title")
    status = JobStatus(data.get("status", JobStatus.OPEN.value))
    job = database.create_job(
        title, data.get("description", ""), created_by=_current_user(), status=status
    )
    return jsonify(job.to_dict()), 201


@api_bp.route("/jobs/<job_id>", methods=["GET"])
def get_job(job_id):
    job = database.get_job(job_id)
    if job is None:
        raise JobNotFoundError(f"Job '{job_id}' not found")
    return jsonify(job.to_dict())


@api_bp.route("/jobs/<job_id>", methods=["PATCH"])
def update_job(job_id):
    """
    Update title, description or status.

    Route: PATCH /api/jobs/{job_id}
    """
    data = _json_body()
    status = JobStatus(data["status"]) if "status" in data else None
    job = database.update_job(
        job_id, title=data.get("title"), description=data.get("description"), status=status
    )
    return jsonify(job.to_dict())


@api_bp.route("/jobs/<job_id>", methods=["DELETE"])
def delete_job(job_id):
    """
    Delete a job.

    Route: DELETE /api/jobs/{job_id}?deleteApplications=false

    Applications are deleted with the job unless deleteApplications is
    false, in which case a job that still has applications is refused.
    """
    cascade = _flag(request.args.get("deleteApplications", "true"))
    removed = database.delete_job(job_id, cascade=cascade)
    return jsonify({"success": True, "deletedApplications": removed})


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


@api_bp.route("/applications/fetch", methods=["POST"])
def fetch_applications():
    """
    Run one ingestion cycle for the calling recruiter.

    Route: POST /api/applications/fetch

    Request Body (JSON):
        {"provider": "gmail", "jobTitle": "Backend Engineer", "timeout": 60}
    """
    data = _json_body()
    provider = Provider.parse(_require(data, "provider"))
    job_title = _require(data, "jobTitle")
    timeout = data.get("timeout")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("'timeout' must be a positive number of seconds")
        timeout = float(timeout)

    result = _services()["pipeline"].run(_current_user(), provider, job_title, timeout=timeout)
    return jsonify(result.to_dict())


@api_bp.route("/applications", methods=["GET"])
def list_applications():
    """
    Route: GET /api/applications?jobId=<id>&mine=true
    """
    processed_by = _current_user() if _flag(request.args.get("mine")) else None
    applications = database.list_applications(
        job_id=request.args.get("jobId"), processed_by=processed_by
    )
    return jsonify([a.to_dict() for a in applications])


@api_bp.route("/applications/<int:application_id>", methods=["GET"])
def get_application(application_id):
    application = database.get_application(application_id)
    if application is None:
        raise ApplicationNotFoundError(f"Application {application_id} not found")
    return jsonify(application.to_dict())


@api_bp.route("/applications/<int:application_id>", methods=["DELETE"])
def delete_application(application_id):
    if not database.delete_application(application_id):
        raise ApplicationNotFoundError(f"Application {application_id} not found")
    return jsonify({"success": True})


@api_bp.route("/applications/bulk-delete", methods=["POST"])
def delete_applications():
    """
    Route: POST /api/applications/bulk-delete

    Request Body (JSON):
        {"ids": [1, 2, 3]}
    """
    ids = _require(_json_body(), "ids")
    if not isinstance(ids, list):
        raise ValueError("'ids' must be a list")
    return jsonify({"success": True, "deleted": database.delete_applications(ids)})


@api_bp.route("/applications/<int:application_id>/attachments/<int:index>", methods=["GET"])
def download_attachment(application_id, index):
    application = database.get_application(application_id)
    if application is None:
        raise ApplicationNotFoundError(f"Application {application_id} not found")
    if index >= len(application.attachments):
        raise ApplicationNotFoundError(
            f"Application {application_id} has no attachment #{index}"
        )

    attachment = application.attachments[index]
    return send_file(
        io.BytesIO(attachment.data),
        mimetype=attachment.content_type or "application/octet-stream",
        as_attachment=True,
        download_name=attachment.filename,
    )


@api_bp.route("/applications/<int:application_id>/shortlist", methods=["PATCH"])
def shortlist_application(application_id):
    """
    Toggle the shortlist flag, or set it with {"isShortlisted": true|false}.

    Route: PATCH /api/applications/{id}/shortlist
    """
    data = _json_body()
    if "isShortlisted" in data:
        if not isinstance(data["isShortlisted"], bool):
            raise ValueError("'isShortlisted' must be true or false")
        value = set_shortlisted(application_id, data["isShortlisted"])
    else:
        value = toggle_shortlist(application_id)

    return jsonify(
        {
            "isShortlisted": value,
            "message": f"Application {'shortlisted' if value else 'removed from shortlist'}",
        }
    )


@api_bp.route("/applications/send-shortlisted", methods=["POST"])
def send_shortlisted():
    """
    Send the job's pending shortlist as one digest email.

    Route: POST /api/applications/send-shortlisted

    Request Body (JSON):
        {"jobId": "...", "provider": "microsoft", "recipient": "optional@example.com"}
    """
    data = _json_body()
    result = _services()["dispatcher"].dispatch(
        _require(data, "jobId"),
        _current_user(),
        Provider.parse(_require(data, "provider")),
        recipient=data.get("recipient"),
    )
    return jsonify(result.to_dict())


# ---------------------------------------------------------------------------
# Mailbox connection
# ---------------------------------------------------------------------------


@api_bp.route("/auth/<provider>/url", methods=["GET"])
def authorization_url(provider):
    state = request.args.get("state") or secrets.token_urlsafe(16)
    url = oauth.start_authorization(provider, state, _services()["config"])
    return jsonify({"url": url, "state": state})


@api_bp.route("/auth/<provider>/callback", methods=["POST"])
def authorization_callback(provider):
    """
    Complete the connect flow with the code the provider returned.

    Route: POST /api/auth/{provider}/callback

    Request Body (JSON):
        {"code": "..."}
    """
    code = _require(_json_body(), "code")
    credential = oauth.complete_authorization(
        _services()["store"], _current_user(), provider, code, _services()["config"]
    )
    return jsonify(credential.to_dict())


@api_bp.route("/auth/accounts", methods=["GET"])
def connected_accounts():
    store = _services()["store"]
    return jsonify([c.to_dict() for c in store.list_for_user(_current_user())])


@api_bp.route("/auth/<provider>", methods=["DELETE"])
def disconnect_account(provider):
    removed = _services()["store"].delete(_current_user(), provider)
    return jsonify({"success": removed})
