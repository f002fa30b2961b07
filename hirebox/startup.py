"""
Startup validation and health checks for HireBox.

Validates environment, configuration, and service dependencies
before the application starts.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from hirebox.logging_config import get_logger
from hirebox.models import utcnow

logger = get_logger(__name__)


class ValidationResult:
    """Result of a validation check."""

    def __init__(
        self,
        name: str,
        passed: bool,
        message: str,
        severity: str = "error",  # error, warning, info
        fix_hint: Optional[str] = None,
    ):
        self.name = name
        self.passed = passed
        self.message = message
        self.severity = severity
        self.fix_hint = fix_hint

    def __str__(self) -> str:
        status = "PASS" if self.passed else self.severity.upper()
        return f"[{status}] {self.name}: {self.message}"


def validate_environment(config=None) -> List[ValidationResult]:
    """
    Validate environment variables and OAuth client settings.

    Scoring and mailbox access degrade instead of failing, so missing keys
    are warnings.
    """
    results = []

    api_key = os.environ.get("ANTHROPIC_API_KEY")
    if api_key and len(api_key) > 10:  # Basic sanity check
        results.append(
            ValidationResult(
                name="AI Provider: Claude/Anthropic",
                passed=True,
                message="Anthropic API key configured",
                severity="info",
            )
        )
    else:
        results.append(
            ValidationResult(
                name="AI Provider: Claude/Anthropic",
                passed=False,
                message="ANTHROPIC_API_KEY not set; applications will be stored unscored",
                severity="warning",
                fix_hint="Set ANTHROPIC_API_KEY in your .env file",
            )
        )

    if config is not None:
        for provider, env_prefix in (("gmail", "GMAIL"), ("microsoft", "MICROSOFT")):
            settings = config.oauth_settings(provider)
            if settings.get("client_id") and settings.get("client_secret"):
                results.append(
                    ValidationResult(
                        name=f"OAuth Client: {provider}",
                        passed=True,
                        message=f"{provider} OAuth client configured",
                        severity="info",
                    )
                )
            else:
                results.append(
                    ValidationResult(
                        name=f"OAuth Client: {provider}",
                        passed=False,
                        message=f"{provider} OAuth client not configured; accounts cannot be connected",
                        severity="warning",
                        fix_hint=f"Set {env_prefix}_CLIENT_ID and {env_prefix}_CLIENT_SECRET",
                    )
                )

    flask_env = os.environ.get("FLASK_ENV", "development")
    results.append(
        ValidationResult(
            name="Flask Environment",
            passed=True,
            message=f"Running in {flask_env} mode",
            severity="info",
        )
    )

    return results


def validate_file_system(config=None) -> List[ValidationResult]:
    """
    Validate file system paths and permissions.

    Returns:
        List of validation results
    """
    from hirebox import database

    results = []
    db_dir = Path(database.DB_PATH).parent

    if not db_dir.exists():
        results.append(
            ValidationResult(
                name="Database Directory",
                passed=False,
                message=f"Database directory does not exist: {db_dir}",
                severity="error",
                fix_hint="Create the directory or change database.path in config.yaml",
            )
        )
    elif not os.access(db_dir, os.W_OK):
        results.append(
            ValidationResult(
                name="Database Directory",
                passed=False,
                message=f"No write permission for database directory: {db_dir}",
                severity="error",
                fix_hint="Fix directory permissions: chmod 755",
            )
        )
    else:
        results.append(
            ValidationResult(
                name="Database Directory",
                passed=True,
                message="Database directory accessible",
                severity="info",
            )
        )

    log_dir = config.operation_log_dir if config is not None else None
    if log_dir is not None:
        try:
            Path(log_dir).mkdir(parents=True, exist_ok=True)
            results.append(
                ValidationResult(
                    name="Operation Logs Directory",
                    passed=True,
                    message=f"Operation logs go to {log_dir}",
                    severity="info",
                )
            )
        except OSError as e:
            results.append(
                ValidationResult(
                    name="Operation Logs Directory",
                    passed=False,
                    message=f"Cannot create operation log directory: {e}",
                    severity="warning",
                    fix_hint="Create directory manually or check permissions",
                )
            )

    return results


def validate_database() -> List[ValidationResult]:
    """
    Validate database connection and schema.

    Returns:
        List of validation results
    """
    results = []

    try:
        from hirebox.database import get_db, init_db

        # Initialize database (creates tables if needed)
        init_db()

        results.append(
            ValidationResult(
                name="Database Connection",
                passed=True,
                message="Database initialized successfully",
                severity="info",
            )
        )

        conn = get_db()
        try:
            critical_tables = ["jobs", "oauth_credentials", "applications", "application_attachments"]
            for table in critical_tables:
                row = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
                ).fetchone()
                if row:
                    results.append(
                        ValidationResult(
                            name=f"Table: {table}",
                            passed=True,
                            message=f"Table '{table}' exists",
                            severity="info",
                        )
                    )
                else:
                    results.append(
                        ValidationResult(
                            name=f"Table: {table}",
                            passed=False,
                            message=f"Critical table '{table}' missing",
                            severity="error",
                        )
                    )
        finally:
            conn.close()

    except Exception as e:
        results.append(
            ValidationResult(
                name="Database Connection",
                passed=False,
                message=f"Database error: {e}",
                severity="error",
                fix_hint="Check database file permissions and integrity",
            )
        )

    return results


def validate_dependencies() -> List[ValidationResult]:
    """
    Validate Python package dependencies.

    Returns:
        List of validation results
    """
    results = []

    critical_packages = [
        ("flask", "Flask web framework"),
        ("anthropic", "Claude AI SDK"),
        ("google.oauth2", "Google OAuth"),
        ("google_auth_oauthlib", "Google OAuth flow"),
        ("googleapiclient", "Gmail API"),
        ("msal", "Microsoft identity platform"),
        ("requests", "HTTP client for Microsoft Graph"),
        ("pypdf", "PDF résumé parsing"),
        ("docx", "Word résumé parsing"),
    ]

    for package, description in critical_packages:
        try:
            __import__(package)
            results.append(
                ValidationResult(
                    name=f"Package: {package}",
                    passed=True,
                    message=f"{description} available",
                    severity="info",
                )
            )
        except ImportError:
            results.append(
                ValidationResult(
                    name=f"Package: {package}",
                    passed=False,
                    message=f"{description} not installed",
                    severity="error",
                    fix_hint="Run: pip install -e .",
                )
            )

    return results


def run_startup_validation(
    config=None, strict: bool = False, log_results: bool = True
) -> Tuple[bool, List[ValidationResult]]:
    """
    Run all startup validations.

    Args:
        config: Optional Config used for OAuth and directory checks
        strict: If True, treat warnings as errors
        log_results: If True, log validation results

    Returns:
        Tuple of (all_passed, results)
    """
    all_results = []

    validators = [
        ("Environment", lambda: validate_environment(config)),
        ("File System", lambda: validate_file_system(config)),
        ("Database", validate_database),
        ("Dependencies", validate_dependencies),
    ]

    for category, validator in validators:
        try:
            all_results.extend(validator())
        except Exception as e:
            all_results.append(
                ValidationResult(
                    name=f"{category} Validation",
                    passed=False,
                    message=f"Validation failed with error: {e}",
                    severity="error",
                )
            )

    if log_results:
        logger.info("=" * 60)
        logger.info("STARTUP VALIDATION RESULTS")
        logger.info("=" * 60)

        for result in all_results:
            if result.passed:
                logger.info(str(result))
            elif result.severity == "error":
                logger.error(str(result))
                if result.fix_hint:
                    logger.error(f"  Hint: {result.fix_hint}")
            elif result.severity == "warning":
                logger.warning(str(result))
                if result.fix_hint:
                    logger.warning(f"  Hint: {result.fix_hint}")
            else:
                logger.info(str(result))

        logger.info("=" * 60)

    errors = [r for r in all_results if not r.passed and r.severity == "error"]
    warnings = [r for r in all_results if not r.passed and r.severity == "warning"]

    if errors:
        logger.error(f"Startup validation failed with {len(errors)} error(s)")
        return False, all_results

    if strict and warnings:
        logger.error(f"Startup validation failed with {len(warnings)} warning(s) (strict mode)")
        return False, all_results

    logger.info("Startup validation passed")
    return True, all_results


def get_health_status() -> Dict:
    """
    Get current health status for health check endpoint.

    Returns:
        Health status dictionary
    """
    status = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "checks": {},
    }

    try:
        from hirebox.database import get_db

        conn = get_db()
        try:
            job_count = conn.execute("SELECT COUNT(*) FROM jobs").fetchone()[0]
            application_count = conn.execute("SELECT COUNT(*) FROM applications").fetchone()[0]
            account_count = conn.execute("SELECT COUNT(*) FROM oauth_credentials").fetchone()[0]
        finally:
            conn.close()
        status["checks"]["database"] = {
            "status": "healthy",
            "job_count": job_count,
            "application_count": application_count,
            "connected_accounts": account_count,
        }
    except Exception as e:
        status["status"] = "unhealthy"
        status["checks"]["database"] = {
            "status": "unhealthy",
            "error": str(e),
        }

    has_key = bool(os.environ.get("ANTHROPIC_API_KEY"))
    status["checks"]["ai_provider"] = {
        "status": "healthy" if has_key else "degraded",
        "provider": "claude",
        "has_key": has_key,
    }

    return status
