"""PostgreSQL implementation of CliAuthRepository."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from uuid import UUID

import asyncpg

from clibridge.adapters.db.app_db import AppDatabase, affected_rows
from clibridge.core.auth.types import (
    ApiKey,
    AuthorizationState,
    CliSession,
    ConnectedApplication,
    Membership,
    Organization,
    OrganizationSummary,
    ProviderName,
    Role,
    UserAccount,
)
from clibridge.core.exceptions import DuplicateKeyError


@contextmanager
def unique_violations() -> Iterator[None]:
    """Translate asyncpg unique violations into DuplicateKeyError."""
    try:
        yield
    except asyncpg.UniqueViolationError as e:
        raise DuplicateKeyError(e.constraint_name or "unknown") from e


class PostgresCliAuthRepository:
    """PostgreSQL implementation of the CLI auth repository.

    Relies on the unique indexes declared in ``clibridge.models``; every
    race the services care about is settled by one of them or by a
    conditional UPDATE/DELETE in a single statement.
    """

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    # Authorization state operations
    async def create_authorization_state(
        self,
        state: str,
        pending_session_token: str,
        callback_url: str,
        provider_hint: ProviderName | None,
        created_at: datetime,
        expires_at: datetime,
    ) -> AuthorizationState:
        """Persist a pending login."""
        with unique_violations():
            row = await self._db.execute_returning(
                """
                INSERT INTO cli_login_states
                    (state, pending_session_token, callback_url, provider_hint,
                     created_at, expires_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING *
                """,
                state,
                pending_session_token,
                callback_url,
                provider_hint.value if provider_hint else None,
                created_at,
                expires_at,
            )
        if row is None:
            raise RuntimeError("Failed to create authorization state")
        return AuthorizationState.model_validate(row)

    async def get_authorization_state(self, state: str) -> AuthorizationState | None:
        """Read a pending login without consuming it."""
        row = await self._db.fetch_one(
            "SELECT * FROM cli_login_states WHERE state = $1",
            state,
        )
        return AuthorizationState.model_validate(row) if row else None

    async def delete_authorization_state(self, state: str) -> AuthorizationState | None:
        """Atomically remove and return the record for ``state``."""
        row = await self._db.execute_returning(
            "DELETE FROM cli_login_states WHERE state = $1 RETURNING *",
            state,
        )
        return AuthorizationState.model_validate(row) if row else None

    async def delete_expired_authorization_states(self, now: datetime) -> int:
        """Delete states whose TTL elapsed."""
        status = await self._db.execute(
            "DELETE FROM cli_login_states WHERE expires_at <= $1",
            now,
        )
        return affected_rows(status)

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> UserAccount | None:
        """Get user by ID."""
        row = await self._db.fetch_one("SELECT * FROM users WHERE id = $1", user_id)
        return UserAccount.model_validate(row) if row else None

    async def get_user_by_email(self, email: str) -> UserAccount | None:
        """Get user by normalized email address."""
        row = await self._db.fetch_one("SELECT * FROM users WHERE email = $1", email)
        return UserAccount.model_validate(row) if row else None

    async def create_user(
        self,
        email: str,
        first_name: str | None,
        last_name: str | None,
    ) -> UserAccount:
        """Create an active user without a default organization."""
        with unique_violations():
            row = await self._db.execute_returning(
                """
                INSERT INTO users (email, first_name, last_name)
                VALUES ($1, $2, $3)
                RETURNING *
                """,
                email,
                first_name,
                last_name,
            )
        if row is None:
            raise RuntimeError("Failed to create user")
        return UserAccount.model_validate(row)

    async def set_default_organization(self, user_id: UUID, organization_id: UUID) -> UUID | None:
        """Set the user's default organization if none is set yet."""
        row = await self._db.execute_returning(
            """
            UPDATE users SET default_organization_id = $2
            WHERE id = $1 AND default_organization_id IS NULL
            RETURNING default_organization_id
            """,
            user_id,
            organization_id,
        )
        if row:
            return organization_id

        current: UUID | None = await self._db.fetch_value(
            "SELECT default_organization_id FROM users WHERE id = $1",
            user_id,
        )
        return current

    # Organization operations
    async def get_organization_by_id(self, organization_id: UUID) -> Organization | None:
        """Get organization by ID."""
        row = await self._db.fetch_one(
            "SELECT * FROM organizations WHERE id = $1",
            organization_id,
        )
        return Organization.model_validate(row) if row else None

    async def get_organization_by_slug(self, slug: str) -> Organization | None:
        """Get organization by slug."""
        row = await self._db.fetch_one("SELECT * FROM organizations WHERE slug = $1", slug)
        return Organization.model_validate(row) if row else None

    async def create_organization(
        self,
        name: str,
        slug: str,
        email: str,
        is_personal_workspace: bool,
    ) -> Organization:
        """Create an organization."""
        with unique_violations():
            row = await self._db.execute_returning(
                """
                INSERT INTO organizations (name, slug, email, is_personal_workspace)
                VALUES ($1, $2, $3, $4)
                RETURNING *
                """,
                name,
                slug,
                email,
                is_personal_workspace,
            )
        if row is None:
            raise RuntimeError("Failed to create organization")
        return Organization.model_validate(row)

    async def delete_organization(self, organization_id: UUID) -> bool:
        """Delete an organization and its memberships in one transaction."""
        async with self._db.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    "DELETE FROM organization_members WHERE organization_id = $1",
                    organization_id,
                )
                status = await conn.execute(
                    "DELETE FROM organizations WHERE id = $1",
                    organization_id,
                )
        return affected_rows(status) > 0

    async def get_role_by_name(self, name: str) -> Role | None:
        """Get role by its unique name."""
        row = await self._db.fetch_one("SELECT * FROM roles WHERE name = $1", name)
        return Role.model_validate(row) if row else None

    async def create_role(self, name: str, description: str | None = None) -> Role:
        """Create a role."""
        with unique_violations():
            row = await self._db.execute_returning(
                "INSERT INTO roles (name, description) VALUES ($1, $2) RETURNING *",
                name,
                description,
            )
        if row is None:
            raise RuntimeError("Failed to create role")
        return Role.model_validate(row)

    # Membership operations
    async def add_membership(
        self,
        user_id: UUID,
        organization_id: UUID,
        role_id: UUID,
        joined_at: datetime,
        accepted_at: datetime | None = None,
        invited_by: UUID | None = None,
    ) -> Membership:
        """Add user to organization with role."""
        with unique_violations():
            row = await self._db.execute_returning(
                """
                INSERT INTO organization_members
                    (user_id, organization_id, role_id, joined_at, accepted_at, invited_by)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING *
                """,
                user_id,
                organization_id,
                role_id,
                joined_at,
                accepted_at,
                invited_by,
            )
        if row is None:
            raise RuntimeError("Failed to create membership")
        return Membership.model_validate(row)

    async def get_membership(self, user_id: UUID, organization_id: UUID) -> Membership | None:
        """Get user's membership in an organization."""
        row = await self._db.fetch_one(
            """
            SELECT * FROM organization_members
            WHERE user_id = $1 AND organization_id = $2
            """,
            user_id,
            organization_id,
        )
        return Membership.model_validate(row) if row else None

    async def list_user_organizations(self, user_id: UUID) -> list[OrganizationSummary]:
        """Active organizations the user is an active member of, with role names."""
        rows = await self._db.fetch_all(
            """
            SELECT o.id, o.name, o.slug, COALESCE(r.name, 'member') AS role
            FROM organization_members m
            JOIN organizations o ON o.id = m.organization_id
            LEFT JOIN roles r ON r.id = m.role_id
            WHERE m.user_id = $1 AND m.is_active AND o.is_active
            ORDER BY m.joined_at, o.name
            """,
            user_id,
        )
        return [OrganizationSummary.model_validate(row) for row in rows]

    # CLI session operations
    async def create_session(
        self,
        token_lookup: str,
        token_hash: str,
        user_id: UUID,
        organization_id: UUID,
        email: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> CliSession:
        """Store a new CLI session."""
        with unique_violations():
            row = await self._db.execute_returning(
                """
                INSERT INTO cli_sessions
                    (token_lookup, token_hash, user_id, organization_id, email,
                     created_at, expires_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
                """,
                token_lookup,
                token_hash,
                user_id,
                organization_id,
                email,
                created_at,
                expires_at,
            )
        if row is None:
            raise RuntimeError("Failed to create session")
        return CliSession.model_validate(row)

    async def get_session_by_lookup(self, token_lookup: str) -> CliSession | None:
        """Get a session by its token selector."""
        row = await self._db.fetch_one(
            "SELECT * FROM cli_sessions WHERE token_lookup = $1",
            token_lookup,
        )
        return CliSession.model_validate(row) if row else None

    async def rotate_session(
        self,
        session_id: UUID,
        expected_lookup: str,
        token_lookup: str,
        token_hash: str,
        expires_at: datetime,
        last_used_at: datetime,
    ) -> bool:
        """Replace the session's token if it still carries ``expected_lookup``."""
        with unique_violations():
            status = await self._db.execute(
                """
                UPDATE cli_sessions
                SET token_lookup = $3, token_hash = $4, expires_at = $5, last_used_at = $6
                WHERE id = $1 AND token_lookup = $2
                """,
                session_id,
                expected_lookup,
                token_lookup,
                token_hash,
                expires_at,
                last_used_at,
            )
        return affected_rows(status) == 1

    async def delete_session(self, session_id: UUID) -> bool:
        """Delete a session."""
        status = await self._db.execute("DELETE FROM cli_sessions WHERE id = $1", session_id)
        return affected_rows(status) > 0

    async def delete_expired_sessions(self, now: datetime) -> int:
        """Delete sessions past their expiry."""
        status = await self._db.execute("DELETE FROM cli_sessions WHERE expires_at < $1", now)
        return affected_rows(status)

    # API key operations
    async def create_api_key(
        self,
        organization_id: UUID,
        name: str,
        secret_hash: str,
        prefix: str,
        scopes: list[str],
        created_by: UUID | None,
        created_at: datetime,
    ) -> ApiKey:
        """Store a new API key."""
        row = await self._db.execute_returning(
            """
            INSERT INTO api_keys
                (organization_id, name, secret_hash, prefix, scopes, created_by, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            organization_id,
            name,
            secret_hash,
            prefix,
            scopes,
            created_by,
            created_at,
        )
        if row is None:
            raise RuntimeError("Failed to create API key")
        return ApiKey.model_validate(row)

    async def get_api_key(self, api_key_id: UUID) -> ApiKey | None:
        """Get API key by ID."""
        row = await self._db.fetch_one("SELECT * FROM api_keys WHERE id = $1", api_key_id)
        return ApiKey.model_validate(row) if row else None

    async def list_api_keys(self, organization_id: UUID) -> list[ApiKey]:
        """All keys of an organization, newest first."""
        rows = await self._db.fetch_all(
            """
            SELECT * FROM api_keys
            WHERE organization_id = $1
            ORDER BY created_at DESC
            """,
            organization_id,
        )
        return [ApiKey.model_validate(row) for row in rows]

    async def count_active_api_keys(self, organization_id: UUID) -> int:
        """Number of active keys of an organization."""
        count = await self._db.fetch_value(
            "SELECT COUNT(*) FROM api_keys WHERE organization_id = $1 AND status = 'active'",
            organization_id,
        )
        return int(count or 0)

    async def find_active_api_keys_by_prefix(self, prefix: str) -> list[ApiKey]:
        """Active keys whose display prefix matches."""
        rows = await self._db.fetch_all(
            "SELECT * FROM api_keys WHERE prefix = $1 AND status = 'active'",
            prefix,
        )
        return [ApiKey.model_validate(row) for row in rows]

    async def revoke_api_key(self, api_key_id: UUID, organization_id: UUID) -> bool:
        """Mark a key revoked."""
        status = await self._db.execute(
            """
            UPDATE api_keys SET status = 'revoked'
            WHERE id = $1 AND organization_id = $2 AND status = 'active'
            """,
            api_key_id,
            organization_id,
        )
        return affected_rows(status) > 0

    async def touch_api_key(self, api_key_id: UUID, used_at: datetime) -> None:
        """Update the key's last-used timestamp."""
        await self._db.execute(
            "UPDATE api_keys SET last_used_at = $2 WHERE id = $1",
            api_key_id,
            used_at,
        )

    # Connected application operations
    async def create_application(
        self,
        organization_id: UUID,
        name: str,
        created_by: UUID | None,
        created_at: datetime,
    ) -> ConnectedApplication:
        """Register an application with no API key bound."""
        row = await self._db.execute_returning(
            """
            INSERT INTO applications (organization_id, name, created_by, created_at)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            organization_id,
            name,
            created_by,
            created_at,
        )
        if row is None:
            raise RuntimeError("Failed to create application")
        return ConnectedApplication.model_validate(row)

    async def get_application(self, application_id: UUID) -> ConnectedApplication | None:
        """Get application by ID."""
        row = await self._db.fetch_one(
            "SELECT * FROM applications WHERE id = $1",
            application_id,
        )
        return ConnectedApplication.model_validate(row) if row else None

    async def list_applications(self, organization_id: UUID) -> list[ConnectedApplication]:
        """Non-archived applications of an organization."""
        rows = await self._db.fetch_all(
            """
            SELECT * FROM applications
            WHERE organization_id = $1 AND status <> 'archived'
            ORDER BY created_at DESC
            """,
            organization_id,
        )
        return [ConnectedApplication.model_validate(row) for row in rows]

    async def find_applications_by_api_key(self, api_key_id: UUID) -> list[ConnectedApplication]:
        """Non-archived applications bound to the key."""
        rows = await self._db.fetch_all(
            """
            SELECT * FROM applications
            WHERE api_key_id = $1 AND status <> 'archived'
            """,
            api_key_id,
        )
        return [ConnectedApplication.model_validate(row) for row in rows]

    async def set_application_api_key(self, application_id: UUID, api_key_id: UUID) -> None:
        """Bind a key to an application.

        Raises:
            DuplicateKeyError: uq_applications_active_api_key rejected the write.
        """
        with unique_violations():
            await self._db.execute(
                "UPDATE applications SET api_key_id = $2 WHERE id = $1",
                application_id,
                api_key_id,
            )

    async def archive_application(self, application_id: UUID) -> bool:
        """Archive an application, releasing its key binding."""
        status = await self._db.execute(
            """
            UPDATE applications SET status = 'archived'
            WHERE id = $1 AND status <> 'archived'
            """,
            application_id,
        )
        return affected_rows(status) > 0
