"""Protocol definitions for external dependencies of the login flow.

The core only depends on these protocols, never on the concrete identity
provider, email or scheduling adapters.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from clibridge.core.auth.types import ProviderIdentity, ProviderName, UserAccount


@runtime_checkable
class IdentityProviderAdapter(Protocol):
    """Interface for OAuth identity providers.

    Implementations turn a single-use authorization code into a normalized
    identity. Provider tokens are used for this lookup only and never kept.
    """

    name: ProviderName

    def build_authorization_url(self, state: str, redirect_uri: str) -> str:
        """URL the browser is sent to for consent.

        Args:
            state: CSRF state value round-tripped by the provider.
            redirect_uri: Registered callback URL.

        Returns:
            Provider authorization URL.
        """
        ...

    async def exchange_code(self, code: str, redirect_uri: str) -> ProviderIdentity:
        """Exchange an authorization code for the user's identity.

        Args:
            code: Authorization code from the provider callback.
            redirect_uri: The redirect URI used for the authorization request.

        Returns:
            Normalized identity.

        Raises:
            ProviderExchangeFailed: On any provider or transport failure.
        """
        ...


@runtime_checkable
class WelcomeNotifier(Protocol):
    """Interface for the welcome message sent after the first login."""

    async def send_welcome(self, user: UserAccount) -> bool:
        """Send the welcome message. Returns True if it was delivered."""
        ...


@runtime_checkable
class TaskScheduler(Protocol):
    """Interface for fire-and-forget side effects.

    Scheduled work must never delay or fail the request that scheduled it.
    """

    def schedule(self, name: str, work: Awaitable[object]) -> None:
        """Run ``work`` in the background under a descriptive name."""
        ...
