"""API middleware."""

from clibridge.entrypoints.api.middleware.auth import (
    CallerContext,
    CliSessionContext,
    authenticate_request,
    ensure_organization_access,
    require_scope,
    verify_cli_session,
)

__all__ = [
    # CLI session auth
    "CliSessionContext",
    "verify_cli_session",
    # Session or API key auth
    "CallerContext",
    "authenticate_request",
    "require_scope",
    "ensure_organization_access",
]
