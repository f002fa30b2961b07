"""
Credential Store - OAuth credentials per (user, provider)

Holds one token set per recruiter and provider, falls back to the shared
default account, and refreshes expired access tokens through the provider's
token endpoint.
"""

import logging
from typing import Callable, Dict, List, Optional

from hirebox import database
from hirebox.errors import NotFoundError, ReauthRequiredError
from hirebox.models import OAuthCredential, Provider, TokenSet, utcnow

logger = logging.getLogger(__name__)

# refresh_token -> new TokenSet
Refresher = Callable[[str], TokenSet]


def default_refreshers(config) -> Dict[Provider, Refresher]:
    """Token-endpoint refreshers for every supported provider."""
    from hirebox.email import gmail, microsoft

    return {
        Provider.GMAIL: lambda token: gmail.refresh_tokens(
            config.oauth_settings(Provider.GMAIL.value), token
        ),
        Provider.MICROSOFT: lambda token: microsoft.refresh_tokens(
            config.oauth_settings(Provider.MICROSOFT.value), token
        ),
    }


class CredentialStore:
    """
    Persistent OAuth credential store.

    Args:
        refreshers: Provider -> callable taking a refresh token and returning
            a fresh TokenSet. Refreshers raise ReauthRequiredError when the
            provider rejects the refresh token.
        clock: Returns the current UTC time (injectable for tests)
    """

    def __init__(
        self,
        refreshers: Optional[Dict[Provider, Refresher]] = None,
        clock: Optional[Callable] = None,
    ):
        self.refreshers = dict(refreshers or {})
        self.clock = clock or utcnow

    def get_credentials(self, user_id: str, provider) -> OAuthCredential:
        """
        Get the credential for (user_id, provider).

        Falls back to the provider's default account when the user has none.

        Raises:
            NotFoundError: Neither a user credential nor a default exists
        """
        provider = Provider.parse(provider)
        credential = database.get_credential(user_id, provider)
        if credential is None:
            credential = database.get_default_credential(provider)
            if credential is not None:
                logger.debug(
                    f"Using default {provider.value} account {credential.email} for user {user_id}"
                )
        if credential is None:
            raise NotFoundError(f"No {provider.value} credentials connected for user '{user_id}'")
        return credential

    def upsert(self, user_id: str, provider, tokens: TokenSet) -> OAuthCredential:
        """Insert or replace the single credential row for (user_id, provider)."""
        provider = Provider.parse(provider)
        email = tokens.email
        if not email:
            existing = database.get_credential(user_id, provider)
            email = existing.email if existing else ""
        credential = database.upsert_credential(
            user_id,
            provider,
            email,
            tokens.access_token,
            tokens.refresh_token,
            tokens.expires_at,
        )
        logger.info(f"Stored {provider.value} credentials for user {user_id} ({credential.email})")
        return credential

    def refresh(self, user_id: str, provider) -> OAuthCredential:
        """Exchange the stored refresh token for a new access token."""
        return self._refresh(self.get_credentials(user_id, provider))

    def ensure_fresh(self, credential: OAuthCredential) -> OAuthCredential:
        """
        Refresh the credential if its access token has expired.

        The passed object is updated in place and returned.
        """
        if not credential.is_expired(self.clock()):
            return credential

        refreshed = self._refresh(credential)
        credential.access_token = refreshed.access_token
        credential.refresh_token = refreshed.refresh_token
        credential.expires_at = refreshed.expires_at
        return credential

    def delete(self, user_id: str, provider) -> bool:
        provider = Provider.parse(provider)
        credential = database.get_credential(user_id, provider)
        if credential is None:
            return False
        return database.delete_credential(credential.id)

    def set_default(self, user_id: str, provider) -> OAuthCredential:
        """Make the user's credential the shared fallback for its provider."""
        credential = database.set_default_credential(user_id, Provider.parse(provider))
        logger.info(f"Default {credential.provider.value} account is now {credential.email}")
        return credential

    def list_for_user(self, user_id: str) -> List[OAuthCredential]:
        return database.list_credentials(user_id)

    def _refresh(self, credential: OAuthCredential) -> OAuthCredential:
        provider = credential.provider

        if not credential.refresh_token:
            database.delete_credential(credential.id)
            raise ReauthRequiredError(
                f"{provider.value} account {credential.email} has no refresh token; reconnect it"
            )

        refresher = self.refreshers.get(provider)
        if refresher is None:
            raise NotFoundError(f"No token refresher configured for provider '{provider.value}'")

        try:
            tokens = refresher(credential.refresh_token)
        except ReauthRequiredError:
            logger.warning(
                f"Refresh token for {provider.value} account {credential.email} was rejected; "
                f"removing stored credential"
            )
            database.delete_credential(credential.id)
            raise

        updated = database.update_credential_tokens(
            credential.id,
            tokens.access_token,
            tokens.expires_at,
            refresh_token=tokens.refresh_token,
        )
        if updated is None:
            raise ReauthRequiredError(
                f"{provider.value} credentials for {credential.email} were removed during refresh"
            )

        logger.info(f"Refreshed {provider.value} access token for {credential.email}")
        return updated
