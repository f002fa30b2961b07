"""
OAuth connect flow for recruiter mailboxes.

The web client sends the recruiter to the provider's consent page and
brings the authorization code back; the resulting tokens are stored with
the credential store.
"""

import logging

from hirebox.email import gmail, microsoft
from hirebox.models import OAuthCredential, Provider

logger = logging.getLogger(__name__)

PROVIDER_MODULES = {
    Provider.GMAIL: gmail,
    Provider.MICROSOFT: microsoft,
}


def start_authorization(provider, state: str, config) -> str:
    """
    Build the consent URL for a provider.

    Args:
        provider: "gmail" or "microsoft"
        state: Opaque value echoed back on the callback
        config: Config holding the OAuth client settings

    Raises:
        ValueError: Unknown provider or OAuth client not configured
    """
    provider = Provider.parse(provider)
    module = PROVIDER_MODULES[provider]
    return module.authorization_url(config.oauth_settings(provider.value), state)


def complete_authorization(store, user_id: str, provider, code: str, config) -> OAuthCredential:
    """Exchange the callback code and store the recruiter's tokens."""
    provider = Provider.parse(provider)
    module = PROVIDER_MODULES[provider]

    tokens = module.exchange_code(config.oauth_settings(provider.value), code)
    credential = store.upsert(user_id, provider, tokens)
    logger.info(f"Connected {provider.value} account {credential.email} for user {user_id}")
    return credential
