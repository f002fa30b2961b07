"""
Model Client Factory - Creates the configured model client

Reads the ai.provider setting from the config and instantiates the
matching client class.
"""

import importlib
import logging
from typing import Optional

from .base import ModelClient

logger = logging.getLogger(__name__)

# Registry of available providers
PROVIDERS = {
    "claude": "hirebox.ai.claude.ClaudeClient",
}

# Default provider if none specified
DEFAULT_PROVIDER = "claude"


def get_model_client(config=None) -> ModelClient:
    """
    Get the configured model client instance.

    Args:
        config: Optional Config. If not provided, reads from
                hirebox.config.get_config()

    Returns:
        ModelClient: An instance of the configured client

    Raises:
        ValueError: If the provider is not supported or its API key is missing

    Example:
        >>> client = get_model_client()
        >>> client.provider_name
        'claude'
    """
    if config is None:
        from hirebox.config import get_config

        config = get_config()

    provider_name = (config.ai_provider or DEFAULT_PROVIDER).lower()

    if provider_name not in PROVIDERS:
        available = ", ".join(PROVIDERS.keys())
        raise ValueError(
            f"Unknown AI provider: '{provider_name}'. " f"Available providers: {available}"
        )

    module_path, class_name = PROVIDERS[provider_name].rsplit(".", 1)
    module = importlib.import_module(module_path)
    client_class = getattr(module, class_name)

    logger.debug(f"Creating {provider_name} model client ({config.ai_model})")
    return client_class(model=config.ai_model, max_tokens=config.ai_max_tokens)
