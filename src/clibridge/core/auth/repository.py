"""Repository protocol for CLI auth storage."""

from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

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


@runtime_checkable
class CliAuthRepository(Protocol):
    """Protocol for CLI auth database operations.

    Implementations provide actual storage (PostgreSQL, in-memory). They must
    enforce these unique indexes and raise DuplicateKeyError on violation:
    users.email, organizations.slug, roles.name, cli_sessions.token_lookup,
    and applications.api_key_id over non-archived rows.
    """

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
        ...

    async def get_authorization_state(self, state: str) -> AuthorizationState | None:
        """Read a pending login without consuming it."""
        ...

    async def delete_authorization_state(self, state: str) -> AuthorizationState | None:
        """Atomically remove and return the record for ``state``.

        Two concurrent callers for the same state never both get a record.
        """
        ...

    async def delete_expired_authorization_states(self, now: datetime) -> int:
        """Delete states whose TTL elapsed. Returns the number removed."""
        ...

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> UserAccount | None:
        """Get user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> UserAccount | None:
        """Get user by normalized email address."""
        ...

    async def create_user(
        self,
        email: str,
        first_name: str | None,
        last_name: str | None,
    ) -> UserAccount:
        """Create an active user without a default organization."""
        ...

    async def set_default_organization(self, user_id: UUID, organization_id: UUID) -> UUID | None:
        """Set the user's default organization if none is set yet.

        Returns:
            The user's default organization after the write: ours, or the one
            a concurrent writer set first. None if the user does not exist.
        """
        ...

    # Organization operations
    async def get_organization_by_id(self, organization_id: UUID) -> Organization | None:
        """Get organization by ID."""
        ...

    async def get_organization_by_slug(self, slug: str) -> Organization | None:
        """Get organization by slug."""
        ...

    async def create_organization(
        self,
        name: str,
        slug: str,
        email: str,
        is_personal_workspace: bool,
    ) -> Organization:
        """Create an organization."""
        ...

    async def delete_organization(self, organization_id: UUID) -> bool:
        """Delete an organization together with its memberships.

        Returns:
            True if the organization existed.
        """
        ...

    async def get_role_by_name(self, name: str) -> Role | None:
        """Get role by its unique name."""
        ...

    async def create_role(self, name: str, description: str | None = None) -> Role:
        """Create a role."""
        ...

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
        ...

    async def get_membership(self, user_id: UUID, organization_id: UUID) -> Membership | None:
        """Get user's membership in an organization."""
        ...

    async def list_user_organizations(self, user_id: UUID) -> list[OrganizationSummary]:
        """Active organizations the user is an active member of, with role names."""
        ...

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
        ...

    async def get_session_by_lookup(self, token_lookup: str) -> CliSession | None:
        """Get a session by its token selector."""
        ...

    async def rotate_session(
        self,
        session_id: UUID,
        expected_lookup: str,
        token_lookup: str,
        token_hash: str,
        expires_at: datetime,
        last_used_at: datetime,
    ) -> bool:
        """Replace the session's token if it still carries ``expected_lookup``.

        Returns:
            True if this call rotated the session; False if it was rotated or
            deleted concurrently.
        """
        ...

    async def delete_session(self, session_id: UUID) -> bool:
        """Delete a session. Returns True if a row was removed."""
        ...

    async def delete_expired_sessions(self, now: datetime) -> int:
        """Delete sessions past their expiry. Returns the number removed."""
        ...

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
        ...

    async def get_api_key(self, api_key_id: UUID) -> ApiKey | None:
        """Get API key by ID."""
        ...

    async def list_api_keys(self, organization_id: UUID) -> list[ApiKey]:
        """All keys of an organization, newest first."""
        ...

    async def count_active_api_keys(self, organization_id: UUID) -> int:
        """Number of active keys of an organization."""
        ...

    async def find_active_api_keys_by_prefix(self, prefix: str) -> list[ApiKey]:
        """Active keys whose display prefix matches."""
        ...

    async def revoke_api_key(self, api_key_id: UUID, organization_id: UUID) -> bool:
        """Mark a key revoked. Returns True if an active key was revoked."""
        ...

    async def touch_api_key(self, api_key_id: UUID, used_at: datetime) -> None:
        """Update the key's last-used timestamp."""
        ...

    # Connected application operations
    async def create_application(
        self,
        organization_id: UUID,
        name: str,
        created_by: UUID | None,
        created_at: datetime,
    ) -> ConnectedApplication:
        """Register an application with no API key bound."""
        ...

    async def get_application(self, application_id: UUID) -> ConnectedApplication | None:
        """Get application by ID."""
        ...

    async def list_applications(self, organization_id: UUID) -> list[ConnectedApplication]:
        """Non-archived applications of an organization."""
        ...

    async def find_applications_by_api_key(self, api_key_id: UUID) -> list[ConnectedApplication]:
        """Non-archived applications bound to the key."""
        ...

    async def set_application_api_key(self, application_id: UUID, api_key_id: UUID) -> None:
        """Bind a key to an application, subject to the binding unique index."""
        ...

    async def archive_application(self, application_id: UUID) -> bool:
        """Archive an application, releasing its key binding."""
        ...
