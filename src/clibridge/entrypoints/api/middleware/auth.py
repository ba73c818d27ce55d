"""CLI session and API key authentication dependencies."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from clibridge.core.auth.api_keys import ApiKeyIssuer
from clibridge.core.auth.sessions import SessionManager
from clibridge.core.auth.types import OrganizationSummary
from clibridge.core.exceptions import InvalidOrExpiredSession, OrganizationAccessDenied
from clibridge.entrypoints.api.deps import get_api_key_issuer, get_session_manager
from clibridge.entrypoints.api.errors import to_http_exception

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)
API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


@dataclass
class CliSessionContext:
    """Context from a validated CLI session token."""

    session_id: UUID
    user_id: UUID
    email: str
    organization_id: UUID
    organizations: list[OrganizationSummary]
    token: str

    def can_access(self, organization_id: UUID) -> bool:
        """Whether the session's user is an active member of the organization."""
        return any(org.id == organization_id for org in self.organizations)


@dataclass
class CallerContext:
    """Caller authenticated with either a CLI session or an API key."""

    method: str  # "cli_session" or "api_key"
    organization_id: UUID
    user_id: UUID | None = None
    api_key_id: UUID | None = None
    scopes: list[str] = field(default_factory=lambda: ["*"])
    organization_ids: set[UUID] = field(default_factory=set)

    def has_scope(self, scope: str) -> bool:
        """Check a scope, honouring the unrestricted ``*`` scope."""
        return "*" in self.scopes or scope in self.scopes

    def can_access(self, organization_id: UUID) -> bool:
        """Sessions reach every membership; API keys only their own organization."""
        return organization_id in self.organization_ids


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"error": message, "code": "UNAUTHENTICATED"},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> str:
    """Raw bearer token, without validating it."""
    if not credentials or not credentials.credentials:
        raise _unauthorized("Missing authentication token")
    return credentials.credentials


async def verify_cli_session(
    request: Request,
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
    token: Annotated[str, Depends(require_bearer_token)],
) -> CliSessionContext:
    """Validate the CLI session bearer token and return its context.

    Raises:
        HTTPException: 401 if the token is missing, unknown, rotated,
            revoked or expired. The message is the same for every cause.
    """
    try:
        info = await sessions.validate(token)
    except InvalidOrExpiredSession as e:
        raise to_http_exception(e) from None

    context = CliSessionContext(
        session_id=info.session_id,
        user_id=info.user_id,
        email=info.email,
        organization_id=info.organization_id,
        organizations=info.organizations,
        token=token,
    )

    # Store in request state for downstream use
    request.state.auth_context = context

    logger.debug("cli_session_verified", user_id=str(context.user_id))
    return context


async def authenticate_request(
    request: Request,
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
    api_keys: Annotated[ApiKeyIssuer, Depends(get_api_key_issuer)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
    api_key: str | None = Security(API_KEY_HEADER),
) -> CallerContext:
    """Accept either a CLI session bearer token or an ``X-API-Key`` header.

    A bearer token wins when both are sent.
    """
    if credentials and credentials.credentials:
        session = await verify_cli_session(request, sessions, credentials.credentials)
        context = CallerContext(
            method="cli_session",
            organization_id=session.organization_id,
            user_id=session.user_id,
            organization_ids={org.id for org in session.organizations},
        )
    elif api_key:
        record = await api_keys.verify(api_key)
        if record is None:
            raise _unauthorized("Invalid API key")
        context = CallerContext(
            method="api_key",
            organization_id=record.organization_id,
            user_id=record.created_by,
            api_key_id=record.id,
            scopes=list(record.scopes),
            organization_ids={record.organization_id},
        )
    else:
        raise _unauthorized("Missing CLI session token or API key")

    request.state.auth_context = context
    return context


def require_scope(required_scope: str) -> Callable[..., Any]:
    """Dependency to require a specific scope.

    CLI sessions act for a signed-in user and carry every scope.

    Usage:
        @router.post("/")
        async def create_item(
            caller: Annotated[CallerContext, Depends(require_scope("applications:write"))],
        ):
            ...
    """

    async def scope_checker(
        caller: Annotated[CallerContext, Depends(authenticate_request)],
    ) -> CallerContext:
        if not caller.has_scope(required_scope):
            raise HTTPException(
                status_code=403,
                detail={
                    "error": f"Scope '{required_scope}' required",
                    "code": "INSUFFICIENT_PERMISSIONS",
                },
            )
        return caller

    return scope_checker


def ensure_organization_access(
    context: CliSessionContext | CallerContext,
    organization_id: UUID,
) -> None:
    """Raise 403 unless the caller may act in the organization."""
    if not context.can_access(organization_id):
        logger.warning("organization_access_denied", org_id=str(organization_id))
        raise to_http_exception(OrganizationAccessDenied(organization_id))
