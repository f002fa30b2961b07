"""
Database - Database operations for HireBox

This module handles database initialization, connection management,
migrations and the record-level operations for jobs, OAuth credentials
and applications in the SQLite database.
"""

import sqlite3
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Set

from hirebox.errors import JobHasApplicationsError, JobNotFoundError, NotFoundError
from hirebox.models import (
    Application,
    Attachment,
    EmailMetadata,
    Job,
    JobStatus,
    OAuthCredential,
    Provider,
    parse_timestamp,
    utcnow,
)

logger = logging.getLogger(__name__)

# Database path (relative to app root)
DB_PATH = Path(__file__).parent.parent / "hirebox.db"


def configure_database(path) -> None:
    """Point the module at a different SQLite file."""
    global DB_PATH
    DB_PATH = Path(path)


def init_db():
    """
    Initialize SQLite database with required tables.

    Creates tables for:
    - jobs: Open positions whose titles are matched against email subjects
    - oauth_credentials: One token set per (user, provider), plus one
      optional shared default per provider
    - applications: One row per ingested application email, unique per
      (job, message id)
    - application_attachments: Stored résumé files for each application

    Uses WAL (Write-Ahead Logging) mode for better concurrency.
    """
    conn = sqlite3.connect(DB_PATH, timeout=30.0)

    # Enable WAL mode for better concurrency
    conn.execute("PRAGMA journal_mode=WAL")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS jobs (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT DEFAULT '',
            status TEXT DEFAULT 'Open',
            created_by TEXT,
            created_at TEXT
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS oauth_credentials (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            provider TEXT NOT NULL,
            email TEXT NOT NULL,
            access_token TEXT,
            refresh_token TEXT,
            expires_at TEXT,
            is_default INTEGER DEFAULT 0,
            created_at TEXT,
            updated_at TEXT,
            UNIQUE (user_id, provider)
        )
    """)

    # Only one shared fallback account per provider
    conn.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_oauth_credentials_default
        ON oauth_credentials (provider) WHERE is_default = 1
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS applications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            job_id TEXT NOT NULL,
            processed_by TEXT NOT NULL,
            applicant_name TEXT,
            applicant_email TEXT,
            email_subject TEXT,
            email_body TEXT,
            resume_text TEXT,
            ai_score INTEGER DEFAULT 0,
            ai_summary TEXT,
            is_shortlisted INTEGER DEFAULT 0,
            sent_at TEXT,
            message_id TEXT NOT NULL,
            thread_id TEXT,
            created_at TEXT,
            UNIQUE (job_id, message_id),
            FOREIGN KEY (job_id) REFERENCES jobs(id)
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS application_attachments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            application_id INTEGER NOT NULL,
            position INTEGER NOT NULL,
            filename TEXT,
            content_type TEXT,
            data BLOB,
            FOREIGN KEY (application_id) REFERENCES applications(id) ON DELETE CASCADE
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_applications_shortlist "
        "ON applications (job_id, is_shortlisted, sent_at)"
    )

    run_migrations(conn)

    conn.commit()
    conn.close()


def run_migrations(conn):
    """
    Run database migrations to add new columns as needed.

    Uses PRAGMA table_info() to check for missing columns and adds them
    with ALTER TABLE.

    Args:
        conn: SQLite connection
    """
    applications_columns = {
        row[1] for row in conn.execute("PRAGMA table_info(applications)").fetchall()
    }

    # Migration: conversation/thread id from the provider
    if "thread_id" not in applications_columns:
        logger.info("Migrating database: adding 'thread_id' column to applications...")
        conn.execute("ALTER TABLE applications ADD COLUMN thread_id TEXT")


def get_db():
    """
    Create and return a database connection with Row factory.

    Establishes a SQLite connection with a 30-second timeout to handle
    concurrent access and foreign keys enforced.

    Returns:
        sqlite3.Connection: Database connection with Row factory enabled

    Examples:
        >>> conn = get_db()
        >>> job = conn.execute("SELECT * FROM jobs WHERE id = ?", (id,)).fetchone()
        >>> print(job['title'])  # Access by column name
    """
    conn = sqlite3.connect(DB_PATH, timeout=30.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ===================================================================
# Jobs
# ===================================================================


def _row_to_job(row) -> Job:
    return Job(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        status=JobStatus(row["status"] or JobStatus.OPEN.value),
        created_by=row["created_by"],
        created_at=parse_timestamp(row["created_at"]),
    )


def create_job(
    title: str,
    description: str = "",
    created_by: Optional[str] = None,
    status: JobStatus = JobStatus.OPEN,
) -> Job:
    """
    Create a job.

    Args:
        title: Job title; matched against incoming email subjects
        description: Job description used in the scoring prompt
        created_by: Recruiter user id
        status: Initial status

    Returns:
        The stored Job
    """
    job = Job(
        id=str(uuid.uuid4())[:16],
        title=title.strip(),
        description=description or "",
        status=JobStatus(status),
        created_by=created_by,
        created_at=utcnow(),
    )

    conn = get_db()
    try:
        conn.execute(
            """
            INSERT INTO jobs (id, title, description, status, created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """,
            (job.id, job.title, job.description, job.status.value, created_by, _ts(job.created_at)),
        )
        conn.commit()
        logger.info(f"Created job: {job.title} (id: {job.id})")
    finally:
        conn.close()

    return job


def get_job(job_id: str) -> Optional[Job]:
    conn = get_db()
    try:
        row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return _row_to_job(row) if row else None
    finally:
        conn.close()


def find_job_by_title(title: str) -> Optional[Job]:
    """
    Find a job by title.

    An exact match wins; otherwise the oldest case-insensitive match is used.
    """
    title = (title or "").strip()
    if not title:
        return None

    conn = get_db()
    try:
        row = conn.execute(
            "SELECT * FROM jobs WHERE title = ? ORDER BY created_at LIMIT 1", (title,)
        ).fetchone()
        if row is None:
            row = conn.execute(
                "SELECT * FROM jobs WHERE lower(title) = lower(?) ORDER BY created_at LIMIT 1",
                (title,),
            ).fetchone()
        return _row_to_job(row) if row else None
    finally:
        conn.close()


def list_jobs(created_by: Optional[str] = None) -> List[Job]:
    conn = get_db()
    try:
        if created_by:
            rows = conn.execute(
                "SELECT * FROM jobs WHERE created_by = ? ORDER BY created_at DESC", (created_by,)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM jobs ORDER BY created_at DESC").fetchall()
        return [_row_to_job(r) for r in rows]
    finally:
        conn.close()


def update_job(
    job_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    status: Optional[JobStatus] = None,
) -> Job:
    """Update the given fields of a job; raises JobNotFoundError."""
    updates = {}
    if title is not None:
        updates["title"] = title.strip()
    if description is not None:
        updates["description"] = description
    if status is not None:
        updates["status"] = JobStatus(status).value

    conn = get_db()
    try:
        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            cursor = conn.execute(
                f"UPDATE jobs SET {assignments} WHERE id = ?", (*updates.values(), job_id)
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise JobNotFoundError(f"Job '{job_id}' not found")
        row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        if row is None:
            raise JobNotFoundError(f"Job '{job_id}' not found")
        return _row_to_job(row)
    finally:
        conn.close()


def delete_job(job_id: str, cascade: bool = True) -> int:
    """
    Delete a job in a single transaction.

    Args:
        job_id: Job to delete
        cascade: Also delete the job's applications (and their attachments).
            Without it, a job that still has applications is refused.

    Returns:
        Number of applications deleted with the job

    Raises:
        JobNotFoundError: Unknown job
        JobHasApplicationsError: cascade=False and applications exist
    """
    conn = get_db()
    try:
        with conn:
            removed = 0
            if cascade:
                removed = conn.execute(
                    "DELETE FROM applications WHERE job_id = ?", (job_id,)
                ).rowcount
            try:
                deleted = conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,)).rowcount
            except sqlite3.IntegrityError:
                raise JobHasApplicationsError(
                    f"Job '{job_id}' still has applications; delete them first"
                )
            if deleted == 0:
                raise JobNotFoundError(f"Job '{job_id}' not found")
        logger.info(f"Deleted job {job_id} with {removed} application(s)")
        return removed
    finally:
        conn.close()


# ===================================================================
# OAuth credentials
# ===================================================================


def _row_to_credential(row) -> OAuthCredential:
    return OAuthCredential(
        id=row["id"],
        user_id=row["user_id"],
        provider=Provider(row["provider"]),
        email=row["email"],
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        expires_at=parse_timestamp(row["expires_at"]) or utcnow(),
        is_default=bool(row["is_default"]),
    )


def get_credential(user_id: str, provider: Provider) -> Optional[OAuthCredential]:
    conn = get_db()
    try:
        row = conn.execute(
            "SELECT * FROM oauth_credentials WHERE user_id = ? AND provider = ?",
            (str(user_id), Provider(provider).value),
        ).fetchone()
        return _row_to_credential(row) if row else None
    finally:
        conn.close()


def get_default_credential(provider: Provider) -> Optional[OAuthCredential]:
    conn = get_db()
    try:
        row = conn.execute(
            "SELECT * FROM oauth_credentials WHERE provider = ? AND is_default = 1",
            (Provider(provider).value,),
        ).fetchone()
        return _row_to_credential(row) if row else None
    finally:
        conn.close()


def list_credentials(user_id: str) -> List[OAuthCredential]:
    conn = get_db()
    try:
        rows = conn.execute(
            "SELECT * FROM oauth_credentials WHERE user_id = ? ORDER BY provider",
            (str(user_id),),
        ).fetchall()
        return [_row_to_credential(r) for r in rows]
    finally:
        conn.close()


def upsert_credential(
    user_id: str,
    provider: Provider,
    email: str,
    access_token: str,
    refresh_token: Optional[str],
    expires_at: datetime,
) -> OAuthCredential:
    """
    Create or replace the credential row for (user_id, provider).

    A missing refresh token keeps the one already stored.
    """
    now = utcnow().isoformat()
    conn = get_db()
    try:
        conn.execute(
            """
            INSERT INTO oauth_credentials (
                user_id, provider, email, access_token, refresh_token,
                expires_at, is_default, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?)
            ON CONFLICT (user_id, provider) DO UPDATE SET
                email = excluded.email,
                access_token = excluded.access_token,
                refresh_token = COALESCE(excluded.refresh_token, oauth_credentials.refresh_token),
                expires_at = excluded.expires_at,
                updated_at = excluded.updated_at
        """,
            (
                str(user_id),
                Provider(provider).value,
                email,
                access_token,
                refresh_token,
                _ts(expires_at),
                now,
                now,
            ),
        )
        conn.commit()
        row = conn.execute(
            "SELECT * FROM oauth_credentials WHERE user_id = ? AND provider = ?",
            (str(user_id), Provider(provider).value),
        ).fetchone()
        return _row_to_credential(row)
    finally:
        conn.close()


def update_credential_tokens(
    credential_id: int,
    access_token: str,
    expires_at: datetime,
    refresh_token: Optional[str] = None,
) -> Optional[OAuthCredential]:
    """Write a refreshed token pair in place. Returns None if the row is gone."""
    conn = get_db()
    try:
        conn.execute(
            """
            UPDATE oauth_credentials
            SET access_token = ?, expires_at = ?,
                refresh_token = COALESCE(?, refresh_token), updated_at = ?
            WHERE id = ?
        """,
            (access_token, _ts(expires_at), refresh_token, utcnow().isoformat(), credential_id),
        )
        conn.commit()
        row = conn.execute(
            "SELECT * FROM oauth_credentials WHERE id = ?", (credential_id,)
        ).fetchone()
        return _row_to_credential(row) if row else None
    finally:
        conn.close()


def delete_credential(credential_id: int) -> bool:
    conn = get_db()
    try:
        cursor = conn.execute("DELETE FROM oauth_credentials WHERE id = ?", (credential_id,))
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def set_default_credential(user_id: str, provider: Provider) -> OAuthCredential:
    """Flag the (user_id, provider) row as the shared fallback account."""
    provider = Provider(provider)
    conn = get_db()
    try:
        with conn:
            conn.execute(
                "UPDATE oauth_credentials SET is_default = 0 WHERE provider = ? AND is_default = 1",
                (provider.value,),
            )
            cursor = conn.execute(
                "UPDATE oauth_credentials SET is_default = 1, updated_at = ? "
                "WHERE user_id = ? AND provider = ?",
                (utcnow().isoformat(), str(user_id), provider.value),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(
                    f"No {provider.value} credentials stored for user '{user_id}'"
                )
        row = conn.execute(
            "SELECT * FROM oauth_credentials WHERE user_id = ? AND provider = ?",
            (str(user_id), provider.value),
        ).fetchone()
        return _row_to_credential(row)
    finally:
        conn.close()


# ===================================================================
# Applications
# ===================================================================


def _load_attachments(conn, application_id: int) -> List[Attachment]:
    rows = conn.execute(
        """
        SELECT filename, content_type, data FROM application_attachments
        WHERE application_id = ? ORDER BY position
    """,
        (application_id,),
    ).fetchall()
    return [
        Attachment(filename=r["filename"], content_type=r["content_type"], data=bytes(r["data"] or b""))
        for r in rows
    ]


def _row_to_application(conn, row) -> Application:
    return Application(
        id=row["id"],
        job_id=row["job_id"],
        processed_by=row["processed_by"],
        applicant_name=row["applicant_name"] or "",
        applicant_email=row["applicant_email"] or "",
        email_subject=row["email_subject"] or "",
        email_body=row["email_body"] or "",
        email_metadata=EmailMetadata(message_id=row["message_id"], thread_id=row["thread_id"]),
        attachments=_load_attachments(conn, row["id"]),
        resume_text=row["resume_text"] or "",
        ai_score=row["ai_score"] or 0,
        ai_summary=row["ai_summary"] or "",
        is_shortlisted=bool(row["is_shortlisted"]),
        sent_at=parse_timestamp(row["sent_at"]),
        created_at=parse_timestamp(row["created_at"]),
    )


def insert_application(application: Application) -> Optional[Application]:
    """
    Persist an application and its attachments.

    The (job_id, message_id) pair is unique; when another cycle already
    stored the same message the insert is ignored and None is returned.
    """
    created_at = application.created_at or utcnow()
    conn = get_db()
    try:
        with conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO applications (
                    job_id, processed_by, applicant_name, applicant_email,
                    email_subject, email_body, resume_text, ai_score, ai_summary,
                    is_shortlisted, sent_at, message_id, thread_id, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    application.job_id,
                    str(application.processed_by),
                    application.applicant_name,
                    application.applicant_email,
                    application.email_subject,
                    application.email_body,
                    application.resume_text,
                    application.ai_score,
                    application.ai_summary,
                    int(application.is_shortlisted),
                    _ts(application.sent_at),
                    application.email_metadata.message_id,
                    application.email_metadata.thread_id,
                    _ts(created_at),
                ),
            )
            if cursor.rowcount == 0:
                return None

            application_id = cursor.lastrowid
            conn.executemany(
                """
                INSERT INTO application_attachments
                (application_id, position, filename, content_type, data)
                VALUES (?, ?, ?, ?, ?)
            """,
                [
                    (application_id, position, a.filename, a.content_type, sqlite3.Binary(a.data))
                    for position, a in enumerate(application.attachments)
                ],
            )

        application.id = application_id
        application.created_at = created_at
        return application
    finally:
        conn.close()


def get_ingested_message_ids(job_id: str) -> Set[str]:
    """Message ids already turned into applications for this job."""
    conn = get_db()
    try:
        rows = conn.execute(
            "SELECT message_id FROM applications WHERE job_id = ?", (job_id,)
        ).fetchall()
        return {r["message_id"] for r in rows}
    finally:
        conn.close()


def get_application(application_id: int) -> Optional[Application]:
    conn = get_db()
    try:
        row = conn.execute("SELECT * FROM applications WHERE id = ?", (application_id,)).fetchone()
        return _row_to_application(conn, row) if row else None
    finally:
        conn.close()


def list_applications(
    job_id: Optional[str] = None, processed_by: Optional[str] = None
) -> List[Application]:
    """List applications, newest first, optionally filtered by job and/or recruiter."""
    clauses = []
    params = []
    if job_id:
        clauses.append("job_id = ?")
        params.append(job_id)
    if processed_by:
        clauses.append("processed_by = ?")
        params.append(str(processed_by))
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    conn = get_db()
    try:
        rows = conn.execute(
            f"SELECT * FROM applications {where} ORDER BY created_at DESC, id DESC", params
        ).fetchall()
        return [_row_to_application(conn, r) for r in rows]
    finally:
        conn.close()


def list_pending_shortlist(job_id: str) -> List[Application]:
    """Shortlisted applications for the job that have not been sent yet."""
    conn = get_db()
    try:
        rows = conn.execute(
            """
            SELECT * FROM applications
            WHERE job_id = ? AND is_shortlisted = 1 AND sent_at IS NULL
            ORDER BY created_at, id
        """,
            (job_id,),
        ).fetchall()
        return [_row_to_application(conn, r) for r in rows]
    finally:
        conn.close()


def update_shortlist(application_id: int, value: Optional[bool] = None) -> Optional[bool]:
    """
    Set (or, with value=None, flip) the shortlist flag of an unsent application.

    Returns the new flag, or None when no unsent application matched.
    """
    conn = get_db()
    try:
        if value is None:
            sql = "UPDATE applications SET is_shortlisted = 1 - is_shortlisted WHERE id = ? AND sent_at IS NULL"
            params = (application_id,)
        else:
            sql = "UPDATE applications SET is_shortlisted = ? WHERE id = ? AND sent_at IS NULL"
            params = (int(bool(value)), application_id)
        cursor = conn.execute(sql, params)
        conn.commit()
        if cursor.rowcount == 0:
            return None
        row = conn.execute(
            "SELECT is_shortlisted FROM applications WHERE id = ?", (application_id,)
        ).fetchone()
        return bool(row["is_shortlisted"])
    finally:
        conn.close()


def mark_application_sent(application_id: int, sent_at: datetime) -> bool:
    """Stamp sent_at once; an already-stamped application is left alone."""
    conn = get_db()
    try:
        cursor = conn.execute(
            "UPDATE applications SET sent_at = ? WHERE id = ? AND sent_at IS NULL",
            (_ts(sent_at), application_id),
        )
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def delete_application(application_id: int) -> bool:
    conn = get_db()
    try:
        cursor = conn.execute("DELETE FROM applications WHERE id = ?", (application_id,))
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def delete_applications(application_ids: Iterable[int]) -> int:
    ids = [int(i) for i in application_ids]
    if not ids:
        return 0
    placeholders = ", ".join("?" for _ in ids)
    conn = get_db()
    try:
        with conn:
            cursor = conn.execute(f"DELETE FROM applications WHERE id IN ({placeholders})", ids)
        return cursor.rowcount
    finally:
        conn.close()
