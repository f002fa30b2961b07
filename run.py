#!/usr/bin/env python3
"""
HireBox - Main Entry Point

Uses the application factory pattern via hirebox.create_app().

Usage:
    python run.py

Environment Variables:
    FLASK_ENV: development (default), production, testing
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (optional)
    HIREBOX_PORT: Port to listen on (default 5000)
"""

import os
import sys
from pathlib import Path

APP_DIR = Path(__file__).parent

# Load environment variables from .env file
from dotenv import load_dotenv

load_dotenv(APP_DIR / ".env")

# Initialize logging first
from hirebox.logging_config import setup_logging, get_logger

flask_env = os.environ.get("FLASK_ENV", "development")
log_level = os.environ.get("LOG_LEVEL")
json_logs = flask_env == "production"

setup_logging(level=log_level, json_logs=json_logs)
logger = get_logger(__name__)


def main():
    """Main entry point for HireBox."""

    logger.info("=" * 60)
    logger.info("HireBox - Starting Up")
    logger.info("=" * 60)

    from hirebox.config import get_config
    from hirebox.database import configure_database

    try:
        config = get_config()
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration Error: {e}")
        sys.exit(1)

    # Reapply logging now that config.yaml can override the defaults
    setup_logging(
        level=config.log_level,
        json_logs=json_logs or config.json_logs,
        log_file=config.log_file,
    )

    if config.database_path:
        configure_database(config.database_path)

    # Run startup validation
    from hirebox.startup import run_startup_validation

    logger.info("Running startup validation...")
    validation_passed, results = run_startup_validation(
        config=config, strict=False, log_results=True  # Allow warnings in development
    )

    if not validation_passed:
        logger.error("Startup validation failed. Please fix the errors above.")
        sys.exit(1)

    from hirebox import create_app
    from hirebox.database import DB_PATH

    app = create_app(config=config)

    port = int(os.environ.get("HIREBOX_PORT", "5000"))

    logger.info("")
    logger.info("=" * 60)
    logger.info(f"  Environment: {flask_env}")
    logger.info(f"  Configuration: {config.config_path}")
    logger.info(f"  Database: {DB_PATH}")
    logger.info(f"  AI model: {config.ai_provider} / {config.ai_model}")
    logger.info(f"  Fetch timeout: {config.fetch_timeout}s")
    logger.info("")
    logger.info(f"  API: http://localhost:{port}/api")
    logger.info(f"  Health Check: http://localhost:{port}/api/health")
    logger.info("=" * 60)
    logger.info("")

    debug_mode = flask_env != "production"
    app.run(debug=debug_mode, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
