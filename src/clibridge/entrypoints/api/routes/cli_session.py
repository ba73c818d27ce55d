"""CLI session routes: validate, refresh, revoke."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Security
from fastapi.security import HTTPAuthorizationCredentials

from clibridge.core.auth.sessions import SessionManager
from clibridge.core.exceptions import ClibridgeError
from clibridge.entrypoints.api.deps import get_session_manager
from clibridge.entrypoints.api.errors import to_http_exception
from clibridge.entrypoints.api.middleware.auth import bearer_scheme, require_bearer_token
from clibridge.entrypoints.api.schemas import CamelModel, SuccessResponse

router = APIRouter(prefix="/session", tags=["cli-session"])


class OrganizationItem(CamelModel):
    """Organization the session's user belongs to."""

    id: UUID
    name: str
    slug: str
    role: str


class ValidateSessionResponse(CamelModel):
    """Who a session token belongs to."""

    valid: bool = True
    user_id: UUID
    email: str
    organization_id: UUID
    organizations: list[OrganizationItem]
    expires_at: datetime


class RefreshSessionResponse(CamelModel):
    """Replacement session token."""

    token: str
    expires_at: datetime


@router.get("/validate", response_model=ValidateSessionResponse)
async def validate_session(
    token: Annotated[str, Depends(require_bearer_token)],
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
) -> ValidateSessionResponse:
    """Check a session token and describe its user and organizations."""
    try:
        info = await sessions.validate(token)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return ValidateSessionResponse(
        user_id=info.user_id,
        email=info.email,
        organization_id=info.organization_id,
        organizations=[
            OrganizationItem(id=org.id, name=org.name, slug=org.slug, role=org.role)
            for org in info.organizations
        ],
        expires_at=info.expires_at,
    )


@router.post("/refresh", response_model=RefreshSessionResponse)
async def refresh_session(
    token: Annotated[str, Depends(require_bearer_token)],
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
) -> RefreshSessionResponse:
    """Rotate the session token. The presented token stops working."""
    try:
        new_token, expires_at = await sessions.refresh(token)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return RefreshSessionResponse(token=new_token, expires_at=expires_at)


@router.post("/revoke", response_model=SuccessResponse)
async def revoke_session(
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> SuccessResponse:
    """Log out. Always succeeds, with or without a valid token."""
    if credentials and credentials.credentials:
        await sessions.revoke(credentials.credentials)
    return SuccessResponse()
