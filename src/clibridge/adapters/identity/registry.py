"""Build the configured identity provider adapters."""

import httpx

from clibridge.adapters.identity.base import DEFAULT_TIMEOUT, ProviderConfig
from clibridge.adapters.identity.github import GitHubIdentityProvider
from clibridge.adapters.identity.google import GoogleIdentityProvider
from clibridge.adapters.identity.microsoft import MicrosoftIdentityProvider
from clibridge.core.auth.types import ProviderName
from clibridge.core.interfaces import IdentityProviderAdapter

PROVIDER_CLASSES = {
    ProviderName.GOOGLE: GoogleIdentityProvider,
    ProviderName.MICROSOFT: MicrosoftIdentityProvider,
    ProviderName.GITHUB: GitHubIdentityProvider,
}


def build_identity_providers(
    configs: dict[ProviderName, ProviderConfig],
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[ProviderName, IdentityProviderAdapter]:
    """Instantiate an adapter for every provider with a complete client registration.

    Args:
        configs: Client registrations by provider.
        timeout: Per-request timeout for provider calls.
        transport: Custom httpx transport shared by all adapters.

    Returns:
        Adapters keyed by provider name; unconfigured providers are absent.
    """
    providers: dict[ProviderName, IdentityProviderAdapter] = {}
    for name, config in configs.items():
        if not config.client_id or not config.client_secret:
            continue
        providers[name] = PROVIDER_CLASSES[name](config, timeout=timeout, transport=transport)
    return providers
