"""Identity provider adapters for the CLI login flow."""

from clibridge.adapters.identity.base import OAuthIdentityProvider, ProviderConfig, split_name
from clibridge.adapters.identity.github import GitHubIdentityProvider
from clibridge.adapters.identity.google import GoogleIdentityProvider
from clibridge.adapters.identity.microsoft import MicrosoftIdentityProvider
from clibridge.adapters.identity.registry import build_identity_providers
from clibridge.core.interfaces import IdentityProviderAdapter

__all__ = [
    "GitHubIdentityProvider",
    "GoogleIdentityProvider",
    "IdentityProviderAdapter",
    "MicrosoftIdentityProvider",
    "OAuthIdentityProvider",
    "ProviderConfig",
    "build_identity_providers",
    "split_name",
]
