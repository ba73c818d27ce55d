"""CLI auth domain types and services."""

from clibridge.core.auth.api_keys import ApiKeyIssuer, ApiKeyListing
from clibridge.core.auth.applications import ApplicationRegistry, RegisteredApplication
from clibridge.core.auth.orchestrator import (
    LoginInitiation,
    LoginOrchestrator,
    LoginResult,
    OrchestratorConfig,
)
from clibridge.core.auth.provisioner import AccountProvisioner, generate_slug
from clibridge.core.auth.repository import CliAuthRepository
from clibridge.core.auth.sessions import SessionManager
from clibridge.core.auth.state_store import AuthorizationStateStore
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
    ProviderIdentity,
    ProviderName,
    Role,
    SessionInfo,
    UserAccount,
)

__all__ = [
    "ApiKey",
    "ApiKeyStatus",
    "ApplicationStatus",
    "AuthorizationState",
    "CliSession",
    "ConnectedApplication",
    "Membership",
    "Organization",
    "OrganizationSummary",
    "ProviderIdentity",
    "ProviderName",
    "Role",
    "SessionInfo",
    "UserAccount",
    "AuthorizationStateStore",
    "AccountProvisioner",
    "generate_slug",
    "SessionManager",
    "ApiKeyIssuer",
    "ApiKeyListing",
    "ApplicationRegistry",
    "RegisteredApplication",
    "LoginOrchestrator",
    "LoginInitiation",
    "LoginResult",
    "OrchestratorConfig",
    "CliAuthRepository",
]
