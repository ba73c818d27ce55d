"""CLI organization routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import Field, field_validator

from clibridge.core.auth.provisioner import AccountProvisioner
from clibridge.core.exceptions import ClibridgeError
from clibridge.entrypoints.api.deps import get_provisioner
from clibridge.entrypoints.api.errors import to_http_exception
from clibridge.entrypoints.api.middleware.auth import CliSessionContext, verify_cli_session
from clibridge.entrypoints.api.schemas import CamelModel

router = APIRouter(prefix="/organizations", tags=["cli-organizations"])


class OrganizationResponse(CamelModel):
    """Organization with the caller's role in it."""

    id: UUID
    name: str
    slug: str
    role: str


class OrganizationListResponse(CamelModel):
    """Organizations the caller belongs to."""

    organizations: list[OrganizationResponse]


class CreateOrganizationRequest(CamelModel):
    """Create an additional organization."""

    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        """Reject names that are only whitespace."""
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class CreatedOrganizationResponse(CamelModel):
    """Newly created organization."""

    id: UUID
    name: str
    slug: str


@router.get("", response_model=OrganizationListResponse)
async def list_organizations(
    auth: Annotated[CliSessionContext, Depends(verify_cli_session)],
    provisioner: Annotated[AccountProvisioner, Depends(get_provisioner)],
) -> OrganizationListResponse:
    """List the caller's organizations with role names."""
    organizations = await provisioner.list_organizations(auth.user_id)
    return OrganizationListResponse(
        organizations=[
            OrganizationResponse(id=org.id, name=org.name, slug=org.slug, role=org.role)
            for org in organizations
        ]
    )


@router.post("", response_model=CreatedOrganizationResponse)
async def create_organization(
    body: CreateOrganizationRequest,
    auth: Annotated[CliSessionContext, Depends(verify_cli_session)],
    provisioner: Annotated[AccountProvisioner, Depends(get_provisioner)],
) -> CreatedOrganizationResponse:
    """Create an organization owned by the caller."""
    try:
        org = await provisioner.create_organization(auth.user_id, body.name)
    except ClibridgeError as e:
        raise to_http_exception(e) from None

    return CreatedOrganizationResponse(id=org.id, name=org.name, slug=org.slug)
