"""
Tests for log redaction and the operation logger.
"""

import json
import logging


def test_redact_masks_tokens_and_keys():
    from hirebox.logging_config import redact

    text = redact(
        "Authorization: Bearer eyJ0eXAiOi.abc-123 access_token=ya29.secret "
        '{"refresh_token": "1//0abc"} key sk-ant-api03-XYZ'
    )

    assert "eyJ0eXAiOi" not in text
    assert "ya29.secret" not in text
    assert "1//0abc" not in text
    assert "sk-ant-api03" not in text
    assert text.count("[REDACTED]") == 4


def test_redacting_filter_rewrites_record():
    from hirebox.logging_config import RedactingFilter

    record = logging.LogRecord(
        "hirebox", logging.INFO, __file__, 1, "token %s", ("Bearer abc.def",), None
    )

    assert RedactingFilter().filter(record) is True
    assert record.getMessage() == "token Bearer [REDACTED]"


def test_operation_logger_writes_context(tmp_path):
    """Bound context lands on every entry in the run's log file."""
    from hirebox.logging_config import OperationLogger

    op = OperationLogger("fetch", log_dir=tmp_path, user_id="recruiter-1")
    op.bind(job_id="job-1", provider=None)
    op.info("started", candidates=2)
    op.error("message m1 failed", error="boom")

    lines = [json.loads(line) for line in op.log_file.read_text().splitlines()]
    assert [line["message"] for line in lines] == ["started", "message m1 failed"]
    assert all(line["user_id"] == "recruiter-1" and line["job_id"] == "job-1" for line in lines)
    assert "provider" not in lines[0]

    summary = op.get_summary()
    assert summary["errors"] == 1
    assert summary["job_id"] == "job-1"


def test_operation_logger_without_directory_keeps_memory_only():
    from hirebox.logging_config import OperationLogger

    op = OperationLogger("dispatch")
    op.success("sent")

    assert op.log_file is None
    assert op.entries[0]["status"] == "success"
