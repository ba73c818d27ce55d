"""CLI session issuance, validation, rotation and revocation."""

from collections.abc import Callable
from datetime import datetime
from uuid import UUID

import structlog

from clibridge.core.auth.repository import CliAuthRepository
from clibridge.core.auth.tokens import (
    DEFAULT_HASH_ROUNDS,
    as_aware,
    generate_session_token,
    get_expiry,
    hash_secret_async,
    session_token_lookup,
    utcnow,
    verify_secret_async,
)
from clibridge.core.auth.types import CliSession, SessionInfo
from clibridge.core.exceptions import InvalidOrExpiredSession

logger = structlog.get_logger()

SESSION_TTL_DAYS = 30


class SessionManager:
    """Manages CLI session tokens bound to a (user, organization) pair.

    Tokens are stored as a non-secret selector plus a salted bcrypt hash.
    Lifecycle:

        ACTIVE --refresh--> ACTIVE (new token, old token dead)
        ACTIVE --revoke-->  DELETED
        ACTIVE --TTL-->     EXPIRED (treated as DELETED)

    Validation never extends a session; only refresh does.
    """

    def __init__(
        self,
        repo: CliAuthRepository,
        clock: Callable[[], datetime] = utcnow,
        hash_rounds: int = DEFAULT_HASH_ROUNDS,
        ttl_days: int = SESSION_TTL_DAYS,
    ) -> None:
        """Initialize the session manager.

        Args:
            repo: Storage for sessions and memberships.
            clock: Returns the current UTC time.
            hash_rounds: bcrypt cost factor for token hashes.
            ttl_days: Session lifetime from issuance or refresh.
        """
        self._repo = repo
        self._clock = clock
        self._hash_rounds = hash_rounds
        self._ttl_days = ttl_days

    async def issue(
        self,
        user_id: UUID,
        organization_id: UUID,
        email: str,
        token: str | None = None,
    ) -> tuple[str, CliSession]:
        """Create a session.

        Args:
            user_id: Session owner.
            organization_id: Organization the session acts in.
            email: Owner's email, echoed back on validation.
            token: Pre-minted token from the login state; minted here if None.

        Returns:
            The plaintext token (shown once) and the stored session.
        """
        token = token or generate_session_token()
        lookup = session_token_lookup(token)
        if lookup is None:
            raise ValueError("Malformed session token")

        now = self._clock()
        session = await self._repo.create_session(
            token_lookup=lookup,
            token_hash=await hash_secret_async(token, self._hash_rounds),
            user_id=user_id,
            organization_id=organization_id,
            email=email,
            created_at=now,
            expires_at=get_expiry(now, days=self._ttl_days),
        )

        logger.info(
            "cli_session_created",
            session_id=str(session.id),
            user_id=str(user_id),
            org_id=str(organization_id),
        )
        return token, session

    async def validate(self, token: str) -> SessionInfo:
        """Resolve a presented token to its session and the user's organizations.

        Args:
            token: Bearer token from the CLI.

        Returns:
            Session info including the user's organization memberships.

        Raises:
            InvalidOrExpiredSession: For any token that does not validate.
        """
        session = await self._authenticate(token)
        organizations = await self._repo.list_user_organizations(session.user_id)

        return SessionInfo(
            session_id=session.id,
            user_id=session.user_id,
            email=session.email,
            organization_id=session.organization_id,
            organizations=organizations,
            expires_at=session.expires_at,
        )

    async def refresh(self, token: str) -> tuple[str, datetime]:
        """Rotate a session's token and extend its lifetime.

        The old token stops validating in the same write that installs the
        new one. If another refresh or a revoke got there first, this call
        fails rather than minting a second live token.

        Args:
            token: Current session token.

        Returns:
            The new plaintext token and its expiry.

        Raises:
            InvalidOrExpiredSession: If the token does not validate or was
                rotated concurrently.
        """
        session = await self._authenticate(token)

        new_token = generate_session_token()
        new_lookup = session_token_lookup(new_token)
        if new_lookup is None:
            raise ValueError("Malformed session token")

        now = self._clock()
        expires_at = get_expiry(now, days=self._ttl_days)
        rotated = await self._repo.rotate_session(
            session_id=session.id,
            expected_lookup=session.token_lookup,
            token_lookup=new_lookup,
            token_hash=await hash_secret_async(new_token, self._hash_rounds),
            expires_at=expires_at,
            last_used_at=now,
        )
        if not rotated:
            logger.warning("cli_session_rotation_lost", session_id=str(session.id))
            raise InvalidOrExpiredSession()

        logger.info("cli_session_rotated", session_id=str(session.id))
        return new_token, expires_at

    async def revoke(self, token: str) -> None:
        """Delete the session behind a token.

        Succeeds silently for unknown, expired or already revoked tokens, so
        logout cannot be used to probe for valid tokens.
        """
        session = await self._find(token)
        if session is None:
            logger.info("cli_session_revoke_noop")
            return

        await self._repo.delete_session(session.id)
        logger.info("cli_session_revoked", session_id=str(session.id))

    async def sweep_expired(self) -> int:
        """Delete every session past its expiry.

        Returns:
            Number of sessions removed.
        """
        count = await self._repo.delete_expired_sessions(self._clock())
        if count:
            logger.info("cli_sessions_swept", count=count)
        return count

    async def _find(self, token: str) -> CliSession | None:
        """Look a token up by selector and check its hash. Ignores expiry."""
        lookup = session_token_lookup(token)
        if lookup is None:
            return None

        session = await self._repo.get_session_by_lookup(lookup)
        if session is None:
            return None

        if not await verify_secret_async(token, session.token_hash):
            return None
        return session

    async def _authenticate(self, token: str) -> CliSession:
        session = await self._find(token)
        if session is None:
            logger.warning("cli_session_invalid", token_prefix=token[:12])
            raise InvalidOrExpiredSession()

        if as_aware(session.expires_at) < self._clock():
            logger.info("cli_session_expired", session_id=str(session.id))
            raise InvalidOrExpiredSession()

        return session
