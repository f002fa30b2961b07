"""
Adapter registry - picks the mail provider implementation by provider tag.
"""

from hirebox.email.gmail import GmailAdapter
from hirebox.email.microsoft import GraphAdapter
from hirebox.models import Provider

ADAPTERS = {
    Provider.GMAIL: GmailAdapter,
    Provider.MICROSOFT: GraphAdapter,
}


def get_adapter(provider, store, config=None):
    """
    Create the adapter for a credential's provider.

    Args:
        provider: Provider tag (enum or string)
        store: CredentialStore the adapter refreshes tokens through
        config: Optional Config supplying retry and paging settings

    Returns:
        A MailProvider implementation

    Raises:
        ValueError: Unknown provider
    """
    adapter_class = ADAPTERS[Provider.parse(provider)]
    if config is None:
        return adapter_class(store)
    return adapter_class(
        store,
        max_retries=config.max_retries,
        base_delay=config.retry_base_delay,
        max_messages=config.max_messages,
    )
