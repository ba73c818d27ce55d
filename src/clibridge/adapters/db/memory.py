"""In-memory implementation of CliAuthRepository.

Used when no application database is configured and in tests. Rows are
pydantic models in dicts; secondary indexes are maintained alongside and
raise DuplicateKeyError under the same names the Postgres indexes use.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from uuid import UUID, uuid4

from clibridge.core.auth.tokens import as_aware, utcnow
from clibridge.core.auth.types import (
    ApiKey,
    ApiKeyStatus,
    ApplicationStatus,
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


class InMemoryCliAuthRepository:
    """Dict-backed repository guarded by a single asyncio lock.

    Every method body runs without awaiting anything but the lock, so each
    call is atomic with respect to the others, the way single statements
    are in Postgres.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        """Initialize empty tables.

        Args:
            clock: Supplies ``created_at`` for rows the caller does not timestamp.
        """
        self._clock = clock
        self._lock = asyncio.Lock()

        self.states: dict[str, AuthorizationState] = {}
        self.users: dict[UUID, UserAccount] = {}
        self.organizations: dict[UUID, Organization] = {}
        self.roles: dict[UUID, Role] = {}
        self.memberships: dict[tuple[UUID, UUID], Membership] = {}
        self.sessions: dict[UUID, CliSession] = {}
        self.api_keys: dict[UUID, ApiKey] = {}
        self.applications: dict[UUID, ConnectedApplication] = {}

        # Unique indexes
        self._users_by_email: dict[str, UUID] = {}
        self._orgs_by_slug: dict[str, UUID] = {}
        self._roles_by_name: dict[str, UUID] = {}
        self._sessions_by_lookup: dict[str, UUID] = {}

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
        async with self._lock:
            if state in self.states:
                raise DuplicateKeyError("uq_cli_login_states_state")
            record = AuthorizationState(
                state=state,
                pending_session_token=pending_session_token,
                callback_url=callback_url,
                provider_hint=provider_hint,
                created_at=created_at,
                expires_at=expires_at,
            )
            self.states[state] = record
            return record

    async def get_authorization_state(self, state: str) -> AuthorizationState | None:
        async with self._lock:
            return self.states.get(state)

    async def delete_authorization_state(self, state: str) -> AuthorizationState | None:
        async with self._lock:
            return self.states.pop(state, None)

    async def delete_expired_authorization_states(self, now: datetime) -> int:
        async with self._lock:
            expired = [s for s, r in self.states.items() if as_aware(r.expires_at) <= now]
            for state in expired:
                del self.states[state]
            return len(expired)

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> UserAccount | None:
        async with self._lock:
            return self.users.get(user_id)

    async def get_user_by_email(self, email: str) -> UserAccount | None:
        async with self._lock:
            user_id = self._users_by_email.get(email)
            return self.users.get(user_id) if user_id else None

    async def create_user(
        self,
        email: str,
        first_name: str | None,
        last_name: str | None,
    ) -> UserAccount:
        async with self._lock:
            if email in self._users_by_email:
                raise DuplicateKeyError("uq_users_email")
            user = UserAccount(
                id=uuid4(),
                email=email,
                first_name=first_name,
                last_name=last_name,
                created_at=self._clock(),
            )
            self.users[user.id] = user
            self._users_by_email[email] = user.id
            return user

    async def set_default_organization(self, user_id: UUID, organization_id: UUID) -> UUID | None:
        async with self._lock:
            user = self.users.get(user_id)
            if user is None:
                return None
            if user.default_organization_id is None:
                user = user.model_copy(update={"default_organization_id": organization_id})
                self.users[user_id] = user
            return user.default_organization_id

    # Organization operations
    async def get_organization_by_id(self, organization_id: UUID) -> Organization | None:
        async with self._lock:
            return self.organizations.get(organization_id)

    async def get_organization_by_slug(self, slug: str) -> Organization | None:
        async with self._lock:
            org_id = self._orgs_by_slug.get(slug)
            return self.organizations.get(org_id) if org_id else None

    async def create_organization(
        self,
        name: str,
        slug: str,
        email: str,
        is_personal_workspace: bool,
    ) -> Organization:
        async with self._lock:
            if slug in self._orgs_by_slug:
                raise DuplicateKeyError("uq_organizations_slug")
            org = Organization(
                id=uuid4(),
                name=name,
                slug=slug,
                email=email,
                is_personal_workspace=is_personal_workspace,
                created_at=self._clock(),
            )
            self.organizations[org.id] = org
            self._orgs_by_slug[slug] = org.id
            return org

    async def delete_organization(self, organization_id: UUID) -> bool:
        async with self._lock:
            org = self.organizations.pop(organization_id, None)
            if org is None:
                return False
            self._orgs_by_slug.pop(org.slug, None)
            for key in [k for k in self.memberships if k[1] == organization_id]:
                del self.memberships[key]
            return True

    async def get_role_by_name(self, name: str) -> Role | None:
        async with self._lock:
            role_id = self._roles_by_name.get(name)
            return self.roles.get(role_id) if role_id else None

    async def create_role(self, name: str, description: str | None = None) -> Role:
        async with self._lock:
            if name in self._roles_by_name:
                raise DuplicateKeyError("uq_roles_name")
            role = Role(id=uuid4(), name=name, description=description)
            self.roles[role.id] = role
            self._roles_by_name[name] = role.id
            return role

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
        async with self._lock:
            key = (user_id, organization_id)
            if key in self.memberships:
                raise DuplicateKeyError("uq_organization_members_user_org")
            membership = Membership(
                user_id=user_id,
                organization_id=organization_id,
                role_id=role_id,
                joined_at=joined_at,
                accepted_at=accepted_at,
                invited_by=invited_by,
            )
            self.memberships[key] = membership
            return membership

    async def get_membership(self, user_id: UUID, organization_id: UUID) -> Membership | None:
        async with self._lock:
            return self.memberships.get((user_id, organization_id))

    async def list_user_organizations(self, user_id: UUID) -> list[OrganizationSummary]:
        async with self._lock:
            memberships = sorted(
                (m for m in self.memberships.values() if m.user_id == user_id and m.is_active),
                key=lambda m: as_aware(m.joined_at),
            )
            summaries = []
            for membership in memberships:
                org = self.organizations.get(membership.organization_id)
                if org is None or not org.is_active:
                    continue
                role = self.roles.get(membership.role_id)
                summaries.append(
                    OrganizationSummary(
                        id=org.id,
                        name=org.name,
                        slug=org.slug,
                        role=role.name if role else "member",
                    )
                )
            return summaries

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
        async with self._lock:
            if token_lookup in self._sessions_by_lookup:
                raise DuplicateKeyError("uq_cli_sessions_token_lookup")
            session = CliSession(
                id=uuid4(),
                token_lookup=token_lookup,
                token_hash=token_hash,
                user_id=user_id,
                organization_id=organization_id,
                email=email,
                created_at=created_at,
                expires_at=expires_at,
            )
            self.sessions[session.id] = session
            self._sessions_by_lookup[token_lookup] = session.id
            return session

    async def get_session_by_lookup(self, token_lookup: str) -> CliSession | None:
        async with self._lock:
            session_id = self._sessions_by_lookup.get(token_lookup)
            return self.sessions.get(session_id) if session_id else None

    async def rotate_session(
        self,
        session_id: UUID,
        expected_lookup: str,
        token_lookup: str,
        token_hash: str,
        expires_at: datetime,
        last_used_at: datetime,
    ) -> bool:
        async with self._lock:
            session = self.sessions.get(session_id)
            if session is None or session.token_lookup != expected_lookup:
                return False
            if token_lookup in self._sessions_by_lookup:
                raise DuplicateKeyError("uq_cli_sessions_token_lookup")

            del self._sessions_by_lookup[expected_lookup]
            self._sessions_by_lookup[token_lookup] = session_id
            self.sessions[session_id] = session.model_copy(
                update={
                    "token_lookup": token_lookup,
                    "token_hash": token_hash,
                    "expires_at": expires_at,
                    "last_used_at": last_used_at,
                }
            )
            return True

    async def delete_session(self, session_id: UUID) -> bool:
        async with self._lock:
            session = self.sessions.pop(session_id, None)
            if session is None:
                return False
            self._sessions_by_lookup.pop(session.token_lookup, None)
            return True

    async def delete_expired_sessions(self, now: datetime) -> int:
        async with self._lock:
            expired = [s for s in self.sessions.values() if as_aware(s.expires_at) < now]
            for session in expired:
                del self.sessions[session.id]
                self._sessions_by_lookup.pop(session.token_lookup, None)
            return len(expired)

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
        async with self._lock:
            api_key = ApiKey(
                id=uuid4(),
                organization_id=organization_id,
                name=name,
                secret_hash=secret_hash,
                prefix=prefix,
                scopes=list(scopes),
                created_by=created_by,
                created_at=created_at,
            )
            self.api_keys[api_key.id] = api_key
            return api_key

    async def get_api_key(self, api_key_id: UUID) -> ApiKey | None:
        async with self._lock:
            return self.api_keys.get(api_key_id)

    async def list_api_keys(self, organization_id: UUID) -> list[ApiKey]:
        async with self._lock:
            keys = [k for k in self.api_keys.values() if k.organization_id == organization_id]
            return sorted(keys, key=lambda k: as_aware(k.created_at), reverse=True)

    async def count_active_api_keys(self, organization_id: UUID) -> int:
        async with self._lock:
            return sum(
                1
                for k in self.api_keys.values()
                if k.organization_id == organization_id and k.is_active
            )

    async def find_active_api_keys_by_prefix(self, prefix: str) -> list[ApiKey]:
        async with self._lock:
            return [k for k in self.api_keys.values() if k.prefix == prefix and k.is_active]

    async def revoke_api_key(self, api_key_id: UUID, organization_id: UUID) -> bool:
        async with self._lock:
            api_key = self.api_keys.get(api_key_id)
            if api_key is None or api_key.organization_id != organization_id:
                return False
            if not api_key.is_active:
                return False
            self.api_keys[api_key_id] = api_key.model_copy(
                update={"status": ApiKeyStatus.REVOKED}
            )
            return True

    async def touch_api_key(self, api_key_id: UUID, used_at: datetime) -> None:
        async with self._lock:
            api_key = self.api_keys.get(api_key_id)
            if api_key:
                self.api_keys[api_key_id] = api_key.model_copy(update={"last_used_at": used_at})

    # Connected application operations
    async def create_application(
        self,
        organization_id: UUID,
        name: str,
        created_by: UUID | None,
        created_at: datetime,
    ) -> ConnectedApplication:
        async with self._lock:
            application = ConnectedApplication(
                id=uuid4(),
                organization_id=organization_id,
                name=name,
                created_by=created_by,
                created_at=created_at,
            )
            self.applications[application.id] = application
            return application

    async def get_application(self, application_id: UUID) -> ConnectedApplication | None:
        async with self._lock:
            return self.applications.get(application_id)

    async def list_applications(self, organization_id: UUID) -> list[ConnectedApplication]:
        async with self._lock:
            live = [
                a
                for a in self.applications.values()
                if a.organization_id == organization_id
                and a.status != ApplicationStatus.ARCHIVED
            ]
            return sorted(live, key=lambda a: as_aware(a.created_at), reverse=True)

    async def find_applications_by_api_key(self, api_key_id: UUID) -> list[ConnectedApplication]:
        async with self._lock:
            return self._live_bound_to(api_key_id)

    async def set_application_api_key(self, application_id: UUID, api_key_id: UUID) -> None:
        async with self._lock:
            application = self.applications.get(application_id)
            if application is None:
                return
            holders = [a for a in self._live_bound_to(api_key_id) if a.id != application_id]
            if holders and application.status != ApplicationStatus.ARCHIVED:
                raise DuplicateKeyError("uq_applications_active_api_key")
            self.applications[application_id] = application.model_copy(
                update={"api_key_id": api_key_id}
            )

    async def archive_application(self, application_id: UUID) -> bool:
        async with self._lock:
            application = self.applications.get(application_id)
            if application is None or application.status == ApplicationStatus.ARCHIVED:
                return False
            self.applications[application_id] = application.model_copy(
                update={"status": ApplicationStatus.ARCHIVED}
            )
            return True

    def _live_bound_to(self, api_key_id: UUID) -> list[ConnectedApplication]:
        return [
            a
            for a in self.applications.values()
            if a.api_key_id == api_key_id and a.status != ApplicationStatus.ARCHIVED
        ]
