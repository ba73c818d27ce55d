"""Connected application routes.

Reachable with a CLI session or an API key. API keys only see their own
organization and need the matching ``applications:*`` scope.
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import Field, field_validator

from clibridge.core.auth.api_keys import ApiKeyIssuer
from clibridge.core.auth.applications import ApplicationRegistry
from clibridge.core.auth.types import ConnectedApplication
from clibridge.core.exceptions import ClibridgeError
from clibridge.entrypoints.api.deps import get_api_key_issuer, get_application_registry
from clibridge.entrypoints.api.errors import to_http_exception
from clibridge.entrypoints.api.middleware.auth import (
    CallerContext,
    ensure_organization_access,
    require_scope,
)
from clibridge.entrypoints.api.schemas import CamelModel, SuccessResponse

router = APIRouter(prefix="/applications", tags=["cli-applications"])

ReadCaller = Annotated[CallerContext, Depends(require_scope("applications:read"))]
WriteCaller = Annotated[CallerContext, Depends(require_scope("applications:write"))]


class ApplicationResponse(CamelModel):
    """Connected application."""

    id: UUID
    organization_id: UUID
    name: str
    status: str
    api_key_id: UUID | None = None
    created_at: datetime

    @classmethod
    def from_application(cls, application: ConnectedApplication) -> "ApplicationResponse":
        """Build a response from the domain model."""
        return cls(
            id=application.id,
            organization_id=application.organization_id,
            name=application.name,
            status=application.status.value,
            api_key_id=application.api_key_id,
            created_at=application.created_at,
        )


class ApplicationListResponse(CamelModel):
    """Applications of an organization."""

    applications: list[ApplicationResponse]
    total: int


class RegisterApplicationRequest(CamelModel):
    """Register an application. Defaults to the caller's organization."""

    organization_id: UUID | None = None
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        """Reject names that are only whitespace."""
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class ApplicationApiKey(CamelModel):
    """Key minted for a new application. ``key`` is never returned again."""

    id: UUID
    key: str
    prefix: str


class RegisterApplicationResponse(CamelModel):
    """Registered application and its key."""

    success: bool = True
    application_id: UUID
    api_key: ApplicationApiKey


class BindApiKeyRequest(CamelModel):
    """Point an application at another API key."""

    api_key_id: UUID


@router.get("", response_model=ApplicationListResponse)
async def list_applications(
    caller: ReadCaller,
    registry: Annotated[ApplicationRegistry, Depends(get_application_registry)],
    organization_id: Annotated[UUID | None, Query(alias="organizationId")] = None,
) -> ApplicationListResponse:
    """List the organization's non-archived applications."""
    org_id = organization_id or caller.organization_id
    ensure_organization_access(caller, org_id)

    applications = await registry.list_applications(org_id)
    return ApplicationListResponse(
        applications=[ApplicationResponse.from_application(app) for app in applications],
        total=len(applications),
    )


@router.post("", response_model=RegisterApplicationResponse, status_code=201)
async def register_application(
    body: RegisterApplicationRequest,
    caller: WriteCaller,
    registry: Annotated[ApplicationRegistry, Depends(get_application_registry)],
) -> RegisterApplicationResponse:
    """Register an application and mint the API key it will use."""
    org_id = body.organization_id or caller.organization_id
    ensure_organization_access(caller, org_id)

    try:
        registered = await registry.register(org_id, body.name, created_by=caller.user_id)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return RegisterApplicationResponse(
        application_id=registered.application.id,
        api_key=ApplicationApiKey(
            id=registered.api_key.id,
            key=registered.plaintext_key,
            prefix=f"{registered.api_key.prefix}...",
        ),
    )


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: UUID,
    caller: ReadCaller,
    registry: Annotated[ApplicationRegistry, Depends(get_application_registry)],
) -> ApplicationResponse:
    """Get one application."""
    try:
        application = await registry.find(application_id)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    ensure_organization_access(caller, application.organization_id)
    return ApplicationResponse.from_application(application)


@router.put("/{application_id}/api-key", response_model=SuccessResponse)
async def bind_api_key(
    application_id: UUID,
    body: BindApiKeyRequest,
    caller: WriteCaller,
    registry: Annotated[ApplicationRegistry, Depends(get_application_registry)],
    api_keys: Annotated[ApiKeyIssuer, Depends(get_api_key_issuer)],
) -> SuccessResponse:
    """Bind an API key to the application.

    Returns 409 with code API_KEY_ALREADY_LINKED when the key already
    serves another application.
    """
    try:
        application = await registry.find(application_id)
        ensure_organization_access(caller, application.organization_id)
        await api_keys.bind_to_application(application_id, body.api_key_id)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return SuccessResponse()


@router.delete("/{application_id}", response_model=SuccessResponse)
async def archive_application(
    application_id: UUID,
    caller: WriteCaller,
    registry: Annotated[ApplicationRegistry, Depends(get_application_registry)],
) -> SuccessResponse:
    """Archive the application. Its API key becomes free to bind again."""
    try:
        application = await registry.find(application_id)
        ensure_organization_access(caller, application.organization_id)
        await registry.archive(application.organization_id, application_id)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return SuccessResponse()
