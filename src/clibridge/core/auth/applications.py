"""Connected applications registered from the CLI."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

import structlog

from clibridge.core.auth.api_keys import ApiKeyIssuer
from clibridge.core.auth.repository import CliAuthRepository
from clibridge.core.auth.tokens import utcnow
from clibridge.core.auth.types import ApiKey, ApplicationStatus, ConnectedApplication
from clibridge.core.exceptions import ApplicationNotFound

logger = structlog.get_logger()


@dataclass(frozen=True)
class RegisteredApplication:
    """A new application together with the key minted for it."""

    application: ConnectedApplication
    api_key: ApiKey
    plaintext_key: str


class ApplicationRegistry:
    """Registers, lists and archives connected applications.

    Callers are expected to have checked organization access already; the
    registry works on behalf of a session user or an API key alike.
    """

    def __init__(
        self,
        repo: CliAuthRepository,
        api_keys: ApiKeyIssuer,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the registry.

        Args:
            repo: Storage for applications.
            api_keys: Mints and binds the application keys.
            clock: Returns the current UTC time.
        """
        self._repo = repo
        self._api_keys = api_keys
        self._clock = clock

    async def register(
        self,
        organization_id: UUID,
        name: str,
        created_by: UUID | None = None,
    ) -> RegisteredApplication:
        """Create an application, mint a key for it and bind the two.

        The key is minted first so an organization at its key limit does not
        end up with an application that has no key.

        Args:
            organization_id: Owning organization.
            name: Application display name.
            created_by: User registering it, None when called with an API key.

        Returns:
            The application, its key record and the plaintext key.

        Raises:
            ApiKeyLimitReached: Organization is at its plan's key limit.
        """
        plaintext, api_key = await self._api_keys.issue(
            organization_id=organization_id,
            name=f"{name} API Key",
            created_by=created_by,
        )
        application = await self._repo.create_application(
            organization_id=organization_id,
            name=name,
            created_by=created_by,
            created_at=self._clock(),
        )
        await self._api_keys.bind_to_application(application.id, api_key.id)

        logger.info(
            "application_registered",
            application_id=str(application.id),
            org_id=str(organization_id),
            api_key_id=str(api_key.id),
        )
        return RegisteredApplication(
            application=application.model_copy(update={"api_key_id": api_key.id}),
            api_key=api_key,
            plaintext_key=plaintext,
        )

    async def list_applications(self, organization_id: UUID) -> list[ConnectedApplication]:
        """Non-archived applications of an organization."""
        return await self._repo.list_applications(organization_id)

    async def find(self, application_id: UUID) -> ConnectedApplication:
        """Get an active application by id, whatever its organization."""
        application = await self._repo.get_application(application_id)
        if application is None or application.status != ApplicationStatus.ACTIVE:
            raise ApplicationNotFound(f"Application {application_id} not found")
        return application

    async def get(self, organization_id: UUID, application_id: UUID) -> ConnectedApplication:
        """Get an active application of the organization.

        Raises:
            ApplicationNotFound: Missing, archived or owned by another organization.
        """
        application = await self.find(application_id)
        if application.organization_id != organization_id:
            raise ApplicationNotFound(f"Application {application_id} not found")
        return application

    async def archive(self, organization_id: UUID, application_id: UUID) -> None:
        """Archive an application, which frees its key for another binding.

        Raises:
            ApplicationNotFound: Missing, archived or owned by another organization.
        """
        await self.get(organization_id, application_id)
        if not await self._repo.archive_application(application_id):
            raise ApplicationNotFound(f"Application {application_id} not found")

        logger.info("application_archived", application_id=str(application_id))
