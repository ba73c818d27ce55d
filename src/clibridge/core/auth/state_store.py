"""Short-lived, one-time-use authorization state for CLI logins."""

from collections.abc import Callable
from datetime import datetime

import structlog

from clibridge.core.auth.repository import CliAuthRepository
from clibridge.core.auth.tokens import (
    as_aware,
    generate_session_token,
    generate_state_token,
    get_expiry,
    utcnow,
)
from clibridge.core.auth.types import AuthorizationState, ProviderName
from clibridge.core.exceptions import InvalidState

logger = structlog.get_logger()

STATE_TTL_MINUTES = 10


class AuthorizationStateStore:
    """Binds a CSRF state value to a pre-minted session token.

    A record lives for ten minutes and can be consumed once. Consumption is a
    single delete-returning call on the repository, so two concurrent
    callbacks for the same state cannot both observe it.
    """

    def __init__(
        self,
        repo: CliAuthRepository,
        clock: Callable[[], datetime] = utcnow,
        ttl_minutes: int = STATE_TTL_MINUTES,
    ) -> None:
        """Initialize the store.

        Args:
            repo: Storage for state records.
            clock: Returns the current UTC time.
            ttl_minutes: Lifetime of a state record.
        """
        self._repo = repo
        self._clock = clock
        self._ttl_minutes = ttl_minutes

    async def create(
        self,
        callback_url: str,
        provider_hint: ProviderName | None = None,
    ) -> AuthorizationState:
        """Mint a state value and a pending session token and persist them.

        Args:
            callback_url: Where the CLI expects the browser to land.
            provider_hint: Provider chosen up front, if any.

        Returns:
            The stored record.
        """
        now = self._clock()
        record = await self._repo.create_authorization_state(
            state=generate_state_token(),
            pending_session_token=generate_session_token(),
            callback_url=callback_url,
            provider_hint=provider_hint,
            created_at=now,
            expires_at=get_expiry(now, minutes=self._ttl_minutes),
        )
        logger.info(
            "cli_login_state_created",
            provider_hint=provider_hint.value if provider_hint else None,
            expires_at=record.expires_at.isoformat(),
        )
        return record

    async def consume(self, state: str) -> AuthorizationState:
        """Remove the record for ``state`` and hand it to the caller.

        The record is gone after this call whatever the outcome, so an
        expired record cleans itself up.

        Args:
            state: State value round-tripped through the provider.

        Returns:
            The consumed record.

        Raises:
            InvalidState: If the state is unknown, already consumed or expired.
        """
        record = await self._repo.delete_authorization_state(state)
        if record is None:
            logger.warning("cli_login_state_unknown")
            raise InvalidState("Invalid or expired state token")

        if self._clock() >= as_aware(record.expires_at):
            logger.warning("cli_login_state_expired", created_at=record.created_at.isoformat())
            raise InvalidState("State token expired")

        return record

    async def peek(self, state: str) -> AuthorizationState:
        """Read a live record without consuming it.

        Raises:
            InvalidState: If the state is unknown, consumed or expired.
        """
        record = await self._repo.get_authorization_state(state)
        if record is None or self._clock() >= as_aware(record.expires_at):
            raise InvalidState("Invalid or expired state token")
        return record

    async def sweep_expired(self) -> int:
        """Delete every record whose TTL elapsed.

        Returns:
            Number of records removed.
        """
        count = await self._repo.delete_expired_authorization_states(self._clock())
        if count:
            logger.info("cli_login_states_swept", count=count)
        return count
