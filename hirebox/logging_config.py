"""
Logging setup for HireBox.

Console output is colored in development and JSON in production. OAuth
tokens and API keys are masked before any record is formatted, and fetch
and dispatch cycles get an OperationLogger that carries the recruiter and
job on every entry.
"""

import json
import logging
import logging.handlers
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOGS_DIR = Path(__file__).parent.parent / "logs"

LOG_LEVELS = {
    "development": logging.DEBUG,
    "production": logging.INFO,
    "testing": logging.WARNING,
}

# Third-party loggers that are chatty at DEBUG/INFO
NOISY_LOGGERS = (
    "urllib3",
    "httpcore",
    "httpx",
    "werkzeug",
    "google",
    "googleapiclient",
    "msal",
    "anthropic",
)

SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"((?:access|refresh|id)_token['\"]?\s*[:=]\s*['\"]?)[^'\"&\s,}]+", re.IGNORECASE),
    re.compile(r"(code=)[^&\s]+"),
    re.compile(r"()sk-ant-[A-Za-z0-9\-_]+"),
)


def redact(text: str) -> str:
    """Mask bearer tokens, OAuth tokens, auth codes and Anthropic keys."""
    for pattern in SECRET_PATTERNS:
        text = pattern.sub(r"\1[REDACTED]", text)
    return text


class RedactingFilter(logging.Filter):
    """Rewrites record messages so secrets never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with operation context under "data"."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = redact(self.formatException(record.exc_info))
        if getattr(record, "extra_data", None):
            entry["data"] = record.extra_data
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        message = record.getMessage()
        if len(message) > 500:
            message = message[:500] + "..."

        data = getattr(record, "extra_data", None)
        if data:
            message += " " + " ".join(f"{k}={v}" for k, v in data.items())

        line = f"{color}[{timestamp}] {record.levelname:8}{self.RESET} {record.name}: {message}"
        if record.exc_info:
            line += "\n" + redact(self.formatException(record.exc_info))
        return line


def setup_logging(
    level: Optional[str] = None,
    json_logs: bool = False,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL; defaults by FLASK_ENV
        json_logs: JSON lines on the console instead of colored text
        log_file: Rotating JSON log file (always on in production)

    Returns:
        The root logger
    """
    env = os.environ.get("FLASK_ENV", "development")
    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        log_level = LOG_LEVELS.get(env, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    redacting = RedactingFilter()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JSONFormatter() if json_logs else ConsoleFormatter())
    console_handler.addFilter(redacting)
    root_logger.addHandler(console_handler)

    if log_file or env == "production":
        file_path = Path(log_file) if log_file else LOGS_DIR / "hirebox.log"
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            file_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(redacting)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class OperationLogger:
    """
    Log for one fetch or dispatch cycle.

    Every entry carries the context given at construction (recruiter,
    provider, job). Entries are kept in memory for the summary and, when
    ``log_dir`` is set, appended to a JSON-lines file for the run.
    """

    def __init__(self, operation_type: str, log_dir: Optional[Path] = None, **context):
        self.operation_type = operation_type
        self.context = {k: v for k, v in context.items() if v is not None}
        self.start_time = datetime.now(timezone.utc)
        self.log_file = None
        if log_dir is not None:
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            self.log_file = (
                log_dir / f"{operation_type}_{self.start_time.strftime('%Y%m%d_%H%M%S_%f')}.log"
            )
        self.logger = get_logger(f"hirebox.operation.{operation_type}")
        self.entries = []

    def bind(self, **context) -> None:
        """Add context once it is known (e.g. the resolved job id)."""
        self.context.update({k: v for k, v in context.items() if v is not None})

    def log(self, message: str, level: str = "INFO", **data):
        data = {**self.context, **data}
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "message": message,
            **data,
        }
        self.entries.append(entry)

        log_method = getattr(self.logger, level.lower(), self.logger.info)
        log_method(f"[{self.operation_type}] {message}", extra={"extra_data": data})

        if self.log_file is not None:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(redact(json.dumps(entry, default=str)) + "\n")

    def info(self, message: str, **data):
        self.log(message, "INFO", **data)

    def warning(self, message: str, **data):
        self.log(message, "WARNING", **data)

    def error(self, message: str, **data):
        self.log(message, "ERROR", **data)

    def success(self, message: str, **data):
        self.log(message, "INFO", status="success", **data)

    def get_summary(self) -> dict:
        duration = (datetime.now(timezone.utc) - self.start_time).total_seconds()
        return {
            "operation": self.operation_type,
            **self.context,
            "started_at": self.start_time.isoformat(),
            "duration_seconds": round(duration, 2),
            "total_entries": len(self.entries),
            "errors": sum(1 for e in self.entries if e["level"] == "ERROR"),
            "warnings": sum(1 for e in self.entries if e["level"] == "WARNING"),
            "log_file": str(self.log_file) if self.log_file else None,
        }
