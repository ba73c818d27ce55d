"""Auth domain types."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class ProviderName(str, Enum):
    """Identity providers a CLI login can go through."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"
    GITHUB = "github"


class ApiKeyStatus(str, Enum):
    """API key lifecycle states."""

    ACTIVE = "active"
    REVOKED = "revoked"


class ApplicationStatus(str, Enum):
    """Connected application lifecycle states."""

    ACTIVE = "active"
    ARCHIVED = "archived"


OWNER_ROLE_NAME = "org_owner"


class AuthorizationState(BaseModel):
    """One pending CLI login, keyed by its CSRF state value."""

    state: str
    pending_session_token: str
    callback_url: str
    provider_hint: ProviderName | None = None
    created_at: datetime
    expires_at: datetime


class ProviderIdentity(BaseModel):
    """Normalized identity resolved from a provider authorization code."""

    email: str
    first_name: str
    last_name: str = ""

    @property
    def display_name(self) -> str:
        """First and last name joined, last name omitted when empty."""
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name


class UserAccount(BaseModel):
    """User domain model."""

    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    default_organization_id: UUID | None = None
    is_active: bool = True
    created_at: datetime


class Organization(BaseModel):
    """Organization domain model."""

    id: UUID
    name: str
    slug: str
    email: str = ""
    plan: str = "free"
    is_personal_workspace: bool = False
    is_active: bool = True
    created_at: datetime


class Role(BaseModel):
    """Named role that memberships point at."""

    id: UUID
    name: str
    description: str | None = None
    is_active: bool = True


class Membership(BaseModel):
    """User's membership in an organization."""

    user_id: UUID
    organization_id: UUID
    role_id: UUID
    is_active: bool = True
    joined_at: datetime
    accepted_at: datetime | None = None
    invited_by: UUID | None = None


class OrganizationSummary(BaseModel):
    """Organization as listed for a CLI user."""

    id: UUID
    name: str
    slug: str
    role: str = "member"


class CliSession(BaseModel):
    """Stored CLI session. Only the token's selector and hash are kept."""

    id: UUID
    token_lookup: str
    token_hash: str
    user_id: UUID
    organization_id: UUID
    email: str
    created_at: datetime
    expires_at: datetime
    last_used_at: datetime | None = None


class SessionInfo(BaseModel):
    """Result of validating a CLI session token."""

    session_id: UUID
    user_id: UUID
    email: str
    organization_id: UUID
    organizations: list[OrganizationSummary] = Field(default_factory=list)
    expires_at: datetime


class ApiKey(BaseModel):
    """Organization-scoped API key. The secret itself is never stored."""

    id: UUID
    organization_id: UUID
    name: str
    secret_hash: str
    prefix: str
    scopes: list[str] = Field(default_factory=lambda: ["*"])
    status: ApiKeyStatus = ApiKeyStatus.ACTIVE
    created_by: UUID | None = None
    created_at: datetime
    last_used_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        """Whether the key can still authenticate."""
        return self.status == ApiKeyStatus.ACTIVE

    def has_scope(self, scope: str) -> bool:
        """Check a scope, honouring the unrestricted ``*`` scope."""
        return "*" in self.scopes or scope in self.scopes


class ConnectedApplication(BaseModel):
    """Application registered from the CLI and bound to at most one API key."""

    id: UUID
    organization_id: UUID
    name: str
    status: ApplicationStatus = ApplicationStatus.ACTIVE
    api_key_id: UUID | None = None
    created_by: UUID | None = None
    created_at: datetime
