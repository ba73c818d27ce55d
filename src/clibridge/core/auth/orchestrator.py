"""CLI login orchestrator.

This module drives the browser-mediated login of a CLI:
1. Initiate: mint state and a pending session token, hand back a URL
2. Callback: the provider sends the browser back; bounce it to the CLI
3. Complete: consume state (FAIL FAST), exchange the code, provision the
   account and its default organization, issue the session

The orchestrator contains no infrastructure-specific code; providers,
storage, email and scheduling all come in through protocols.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from urllib.parse import urlencode, urlsplit, urlunsplit
from uuid import UUID

import structlog

from clibridge.core.auth.types import ProviderIdentity, ProviderName, UserAccount
from clibridge.core.exceptions import (
    AccountProvisioningConflict,
    InvalidState,
    UnsupportedProvider,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from clibridge.core.auth.provisioner import AccountProvisioner
    from clibridge.core.auth.sessions import SessionManager
    from clibridge.core.auth.state_store import AuthorizationStateStore
    from clibridge.core.interfaces import (
        IdentityProviderAdapter,
        TaskScheduler,
        WelcomeNotifier,
    )

logger = structlog.get_logger()


@dataclass(frozen=True)
class OrchestratorConfig:
    """Deployment URLs used by the login flow.

    Attributes:
        public_base_url: Externally reachable base URL of this service.
        callback_path: Path registered as redirect URI at every provider.
        selection_path: Web page that lets the user pick a provider.
    """

    public_base_url: str = "http://localhost:8000"
    callback_path: str = "/api/auth/cli/callback"
    selection_path: str = "/auth/cli-login"

    @property
    def redirect_uri(self) -> str:
        """Redirect URI sent to providers."""
        return f"{self.public_base_url.rstrip('/')}{self.callback_path}"

    @property
    def selection_url(self) -> str:
        """Provider selection page."""
        return f"{self.public_base_url.rstrip('/')}{self.selection_path}"


@dataclass(frozen=True)
class LoginInitiation:
    """Where to send the browser, and the state the CLI must hold on to."""

    auth_url: str
    state: str
    provider: ProviderName | None


@dataclass(frozen=True)
class LoginResult:
    """A completed login."""

    token: str
    user_id: UUID
    email: str
    organization_id: UUID
    expires_at: datetime
    is_new_user: bool = False


def append_query(url: str, params: dict[str, str]) -> str:
    """Add query parameters to a URL that may already carry some."""
    parts = urlsplit(url)
    query = urlencode(params)
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class LoginOrchestrator:
    """Runs the CLI login handshake end to end.

    Stateless between calls; everything a login needs to survive the
    browser round-trip lives in the authorization state record.
    """

    def __init__(
        self,
        state_store: AuthorizationStateStore,
        providers: Mapping[ProviderName, IdentityProviderAdapter],
        provisioner: AccountProvisioner,
        sessions: SessionManager,
        scheduler: TaskScheduler | None = None,
        notifier: WelcomeNotifier | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            state_store: One-time authorization state.
            providers: Configured identity providers by name.
            provisioner: User and organization provisioning.
            sessions: CLI session issuance.
            scheduler: Runs the welcome email off the request path.
            notifier: Sends the welcome email; skipped when None.
            config: Deployment URLs.
        """
        self.state_store = state_store
        self.providers = providers
        self.provisioner = provisioner
        self.sessions = sessions
        self.scheduler = scheduler
        self.notifier = notifier
        self.config = config or OrchestratorConfig()

    def get_provider(self, provider: ProviderName | str) -> IdentityProviderAdapter:
        """Look up a configured provider.

        Raises:
            UnsupportedProvider: Unknown or unconfigured provider.
        """
        try:
            name = ProviderName(provider)
        except ValueError:
            raise UnsupportedProvider(f"Unsupported provider: {provider}") from None

        adapter = self.providers.get(name)
        if adapter is None:
            raise UnsupportedProvider(f"Provider not configured: {name.value}")
        return adapter

    async def initiate(
        self,
        callback_url: str,
        provider_hint: ProviderName | None = None,
    ) -> LoginInitiation:
        """Start a login.

        Args:
            callback_url: Local URL the CLI listens on for the browser.
            provider_hint: Send the browser straight to this provider.

        Returns:
            Provider URL (with a hint) or selection page URL, and the state.

        Raises:
            UnsupportedProvider: The hinted provider is not configured.
        """
        adapter = self.get_provider(provider_hint) if provider_hint else None
        record = await self.state_store.create(callback_url, provider_hint)

        if adapter is not None:
            auth_url = adapter.build_authorization_url(record.state, self.config.redirect_uri)
        else:
            auth_url = append_query(
                self.config.selection_url,
                {"state": record.state, "callback": callback_url},
            )

        logger.info(
            "cli_login_initiated",
            provider=provider_hint.value if provider_hint else None,
        )
        return LoginInitiation(auth_url=auth_url, state=record.state, provider=provider_hint)

    async def resolve_callback(
        self,
        state: str,
        code: str | None = None,
        error: str | None = None,
    ) -> str:
        """Compute where to bounce the browser after the provider redirect.

        The state is only read here; the CLI consumes it on completion.

        Args:
            state: State value from the provider redirect.
            code: Authorization code, absent when the user declined.
            error: Provider error code, if any.

        Returns:
            The CLI callback URL with the code (or error) and state appended.

        Raises:
            InvalidState: Unknown or expired state.
        """
        record = await self.state_store.peek(state)

        params = {"state": state}
        if record.provider_hint:
            params["provider"] = record.provider_hint.value
        if error or not code:
            params["error"] = error or "missing_code"
        else:
            params["code"] = code
        return append_query(record.callback_url, params)

    async def complete(
        self,
        state: str,
        code: str,
        provider: ProviderName | str,
    ) -> LoginResult:
        """Finish a login.

        The state is consumed before the provider is contacted, so a failed
        exchange needs a fresh ``initiate``.

        Args:
            state: State value from ``initiate``.
            code: Authorization code from the provider.
            provider: Provider the code came from.

        Returns:
            The new session token and who it belongs to.

        Raises:
            UnsupportedProvider: Provider not configured.
            InvalidState: Unknown, used or expired state, or a provider that
                contradicts the one the login started with.
            ProviderExchangeFailed: The provider rejected the code.
            AccountProvisioningConflict: Provisioning lost a race twice.
        """
        adapter = self.get_provider(provider)
        record = await self.state_store.consume(state)

        log = logger.bind(provider=adapter.name.value)
        if record.provider_hint and record.provider_hint != adapter.name:
            log.warning("cli_login_provider_mismatch", expected=record.provider_hint.value)
            raise InvalidState("Provider does not match the login that was started")

        identity = await adapter.exchange_code(code, self.config.redirect_uri)
        user, created, organization_id = await self._provision(identity)

        token, session = await self.sessions.issue(
            user_id=user.id,
            organization_id=organization_id,
            email=user.email,
            token=record.pending_session_token,
        )

        if created:
            self._schedule_welcome(user)

        log.info(
            "cli_login_completed",
            user_id=str(user.id),
            org_id=str(organization_id),
            new_user=created,
        )
        return LoginResult(
            token=token,
            user_id=user.id,
            email=user.email,
            organization_id=organization_id,
            expires_at=session.expires_at,
            is_new_user=created,
        )

    async def _provision(self, identity: ProviderIdentity) -> tuple[UserAccount, bool, UUID]:
        """Find or create the user and their default organization.

        Retried once on a provisioning conflict; the second attempt finds
        whatever the concurrent writer created.
        """
        try:
            return await self._provision_once(identity)
        except AccountProvisioningConflict:
            logger.warning("account_provisioning_retry")
            return await self._provision_once(identity)

    async def _provision_once(self, identity: ProviderIdentity) -> tuple[UserAccount, bool, UUID]:
        user, created = await self.provisioner.find_or_create_user(
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
        )
        organization_id = await self.provisioner.ensure_default_organization(
            user.id,
            identity.display_name or user.email,
        )
        return user, created, organization_id

    def _schedule_welcome(self, user: UserAccount) -> None:
        if self.scheduler is None or self.notifier is None:
            return
        self.scheduler.schedule("welcome_email", self.notifier.send_welcome(user))
