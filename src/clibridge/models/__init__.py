"""SQLAlchemy table declarations for the application database."""

from clibridge.models.api_key import ApiKey, Application
from clibridge.models.base import BaseModel, metadata
from clibridge.models.cli_auth import CliLoginState, CliSession
from clibridge.models.organization import Organization, OrganizationMember, Role
from clibridge.models.user import User

__all__ = [
    "ApiKey",
    "Application",
    "BaseModel",
    "CliLoginState",
    "CliSession",
    "Organization",
    "OrganizationMember",
    "Role",
    "User",
    "metadata",
]
