"""
Routes Package - Flask Blueprints for HireBox

Blueprint structure:
- api_bp: JSON API under /api (jobs, applications, shortlist, mailbox auth)
"""

import logging

from .api import api_bp

logger = logging.getLogger(__name__)


def register_all_blueprints(app):
    """
    Register all Flask blueprints with the application.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(api_bp)
    logger.info("Registered API routes")


__all__ = [
    "api_bp",
    "register_all_blueprints",
]
