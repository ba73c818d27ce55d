"""CLI API key routes."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from clibridge.core.auth.api_keys import ApiKeyIssuer
from clibridge.core.auth.types import ApiKey
from clibridge.core.exceptions import ClibridgeError
from clibridge.entrypoints.api.deps import get_api_key_issuer
from clibridge.entrypoints.api.errors import to_http_exception
from clibridge.entrypoints.api.middleware.auth import CliSessionContext, verify_cli_session
from clibridge.entrypoints.api.schemas import CamelModel, SuccessResponse

router = APIRouter(prefix="/api-keys", tags=["cli-api-keys"])


class ApiKeyItem(CamelModel):
    """API key as listed; the secret is only shown as a prefix preview."""

    id: UUID
    name: str
    key_preview: str
    scopes: list[str]
    status: str
    created_at: datetime
    last_used: datetime | None = None

    @classmethod
    def from_key(cls, key: ApiKey) -> "ApiKeyItem":
        """Build a listing entry from a stored key."""
        return cls(
            id=key.id,
            name=key.name,
            key_preview=f"{key.prefix}...",
            scopes=key.scopes,
            status=key.status.value,
            created_at=key.created_at,
            last_used=key.last_used_at,
        )


class ApiKeyListResponse(CamelModel):
    """Keys of an organization with its plan limit (-1 = unlimited)."""

    keys: list[ApiKeyItem]
    limit: int
    current_count: int


class CreateApiKeyRequest(CamelModel):
    """Generate an API key. Defaults to the session's organization."""

    organization_id: UUID | None = None
    name: str = Field(..., min_length=1, max_length=100)
    scopes: list[str] | None = None


class CreateApiKeyResponse(CamelModel):
    """Newly generated key. ``key`` is never returned again."""

    key: str
    id: UUID
    name: str
    scopes: list[str]
    created_at: datetime


@router.get("", response_model=ApiKeyListResponse)
async def list_api_keys(
    auth: Annotated[CliSessionContext, Depends(verify_cli_session)],
    api_keys: Annotated[ApiKeyIssuer, Depends(get_api_key_issuer)],
    organization_id: Annotated[UUID | None, Query(alias="organizationId")] = None,
) -> ApiKeyListResponse:
    """List an organization's API keys with its key limit."""
    try:
        listing = await api_keys.list_keys(
            organization_id or auth.organization_id,
            auth.user_id,
        )
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return ApiKeyListResponse(
        keys=[ApiKeyItem.from_key(key) for key in listing.keys],
        limit=listing.limit,
        current_count=listing.current_count,
    )


@router.post("", response_model=CreateApiKeyResponse)
async def create_api_key(
    body: CreateApiKeyRequest,
    auth: Annotated[CliSessionContext, Depends(verify_cli_session)],
    api_keys: Annotated[ApiKeyIssuer, Depends(get_api_key_issuer)],
) -> CreateApiKeyResponse:
    """Generate an API key.

    Returns 403 with code LIMIT_REACHED when the organization's plan
    allows no more keys.
    """
    try:
        plaintext, key = await api_keys.generate(
            organization_id=body.organization_id or auth.organization_id,
            caller_user_id=auth.user_id,
            name=body.name.strip(),
            scopes=body.scopes,
        )
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return CreateApiKeyResponse(
        key=plaintext,
        id=key.id,
        name=key.name,
        scopes=key.scopes,
        created_at=key.created_at,
    )


@router.delete("/{api_key_id}", response_model=SuccessResponse)
async def revoke_api_key(
    api_key_id: UUID,
    auth: Annotated[CliSessionContext, Depends(verify_cli_session)],
    api_keys: Annotated[ApiKeyIssuer, Depends(get_api_key_issuer)],
    organization_id: Annotated[UUID | None, Query(alias="organizationId")] = None,
) -> SuccessResponse:
    """Revoke an API key of the organization."""
    try:
        await api_keys.revoke(organization_id or auth.organization_id, api_key_id, auth.user_id)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return SuccessResponse()
