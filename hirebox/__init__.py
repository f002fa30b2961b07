"""
HireBox - Application Factory

Applicant tracking helper: pulls job applications out of a recruiter's
Gmail or Outlook mailbox, scores the résumés with an AI model and sends
shortlisted candidates on as one digest.
"""

import logging

from flask import Flask
from flask_cors import CORS

from hirebox.config import get_config
from hirebox.database import configure_database, init_db

logger = logging.getLogger(__name__)


def build_services(config, store=None, scorer=None, adapter_factory=None) -> dict:
    """
    Wire the credential store, scorer, pipeline and dispatcher from config.

    Any of store, scorer and adapter_factory can be passed in to replace
    the default (tests use fakes here).
    """
    from hirebox.ai import ResumeScorer
    from hirebox.credentials import CredentialStore, default_refreshers
    from hirebox.email import IngestionPipeline, get_adapter
    from hirebox.shortlist import ShortlistDispatcher

    store = store or CredentialStore(refreshers=default_refreshers(config))
    scorer = scorer or ResumeScorer(config=config)
    if adapter_factory is None:
        def adapter_factory(provider, credential_store):
            return get_adapter(provider, credential_store, config)

    return {
        "config": config,
        "store": store,
        "scorer": scorer,
        "pipeline": IngestionPipeline(
            store,
            scorer,
            adapter_factory=adapter_factory,
            timeout=config.fetch_timeout,
            operation_log_dir=config.operation_log_dir,
        ),
        "dispatcher": ShortlistDispatcher(
            store,
            adapter_factory=adapter_factory,
            operation_log_dir=config.operation_log_dir,
        ),
    }


def create_app(config_path=None, config=None, **overrides):
    """
    Application factory for creating Flask app instances.

    Args:
        config_path: Optional path to config.yaml file
        config: Already-built Config (takes precedence over config_path)
        **overrides: store / scorer / adapter_factory replacements

    Returns:
        Configured Flask application instance
    """
    # Load environment variables
    from dotenv import load_dotenv

    load_dotenv()

    if config is None:
        try:
            config = get_config(config_path)
        except FileNotFoundError as e:
            logger.error(f"Configuration Error: {e}")
            raise

    app = Flask(__name__)

    # Enable CORS
    CORS(app)

    app.config["HIREBOX_CONFIG"] = config

    if config.database_path:
        configure_database(config.database_path)
    init_db()

    app.extensions["hirebox"] = build_services(config, **overrides)

    register_blueprints(app)

    return app


def register_blueprints(app):
    """Register all Flask blueprints."""
    from hirebox.routes import register_all_blueprints

    register_all_blueprints(app)
