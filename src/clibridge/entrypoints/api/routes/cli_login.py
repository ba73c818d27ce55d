"""CLI login routes: initiate, provider callback bounce, complete."""

from datetime import datetime
from typing import Annotated
from urllib.parse import urlsplit
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from pydantic import Field, field_validator

from clibridge.core.auth.orchestrator import LoginOrchestrator
from clibridge.core.auth.types import ProviderName
from clibridge.core.exceptions import ClibridgeError
from clibridge.entrypoints.api.deps import get_orchestrator
from clibridge.entrypoints.api.errors import to_http_exception
from clibridge.entrypoints.api.schemas import CamelModel

router = APIRouter(prefix="/login", tags=["cli-login"])

# Provider redirect URI; lives outside /api/v1 so it stays stable across API versions
callback_router = APIRouter(tags=["cli-login"])


class InitiateLoginRequest(CamelModel):
    """Start a CLI login."""

    callback_url: str = Field(..., min_length=1)
    provider: ProviderName | None = None

    @field_validator("callback_url")
    @classmethod
    def validate_callback_url(cls, value: str) -> str:
        """Only http(s) URLs can receive the browser redirect."""
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("callbackUrl must be an absolute http(s) URL")
        return value


class InitiateLoginResponse(CamelModel):
    """Where the CLI should open the browser."""

    auth_url: str
    state: str
    provider: ProviderName | None = None


class CompleteLoginRequest(CamelModel):
    """Finish a CLI login with the code the browser brought back."""

    state: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    provider: str = Field(..., min_length=1)


class CompleteLoginResponse(CamelModel):
    """Issued CLI session."""

    token: str
    user_id: UUID
    email: str
    organization_id: UUID
    expires_at: datetime


@router.post("/initiate", response_model=InitiateLoginResponse)
async def initiate_login(
    body: InitiateLoginRequest,
    orchestrator: Annotated[LoginOrchestrator, Depends(get_orchestrator)],
) -> InitiateLoginResponse:
    """Mint state for a CLI login and return the URL to open.

    Without a provider the URL points at the provider selection page.
    """
    try:
        initiation = await orchestrator.initiate(body.callback_url, body.provider)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return InitiateLoginResponse(
        auth_url=initiation.auth_url,
        state=initiation.state,
        provider=initiation.provider,
    )


@router.post("/complete", response_model=CompleteLoginResponse)
async def complete_login(
    body: CompleteLoginRequest,
    orchestrator: Annotated[LoginOrchestrator, Depends(get_orchestrator)],
) -> CompleteLoginResponse:
    """Exchange the authorization code and issue a CLI session.

    Args:
        body: State from initiate, the provider's code and the provider name.
        orchestrator: Login orchestrator.

    Returns:
        The session token, the user and the organization it is bound to.
    """
    try:
        result = await orchestrator.complete(body.state, body.code, body.provider)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return CompleteLoginResponse(
        token=result.token,
        user_id=result.user_id,
        email=result.email,
        organization_id=result.organization_id,
        expires_at=result.expires_at,
    )


@callback_router.get("/api/auth/cli/callback", include_in_schema=False)
async def provider_callback(
    orchestrator: Annotated[LoginOrchestrator, Depends(get_orchestrator)],
    state: Annotated[str, Query(min_length=1)],
    code: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    """Send the browser on to the CLI's local callback with the code."""
    try:
        target = await orchestrator.resolve_callback(state, code=code, error=error)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return RedirectResponse(target, status_code=302)
