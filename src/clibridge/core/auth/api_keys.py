"""Organization-scoped API keys and their application bindings."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

import structlog

from clibridge.core.auth.repository import CliAuthRepository
from clibridge.core.auth.tokens import (
    DEFAULT_HASH_ROUNDS,
    api_key_display_prefix,
    generate_api_key,
    hash_secret_async,
    utcnow,
    verify_secret_async,
)
from clibridge.core.auth.types import ApiKey, ApplicationStatus
from clibridge.core.entitlements import EntitlementsAdapter, Feature
from clibridge.core.exceptions import (
    ApiKeyAlreadyLinked,
    ApiKeyLimitReached,
    ApiKeyNotFound,
    ApplicationNotFound,
    DuplicateKeyError,
    OrganizationAccessDenied,
)

logger = structlog.get_logger()

UNRESTRICTED_SCOPE = "*"


@dataclass(frozen=True)
class ApiKeyListing:
    """An organization's keys with its plan limit (-1 = unlimited)."""

    keys: list[ApiKey]
    limit: int
    current_count: int


def normalize_scopes(scopes: list[str] | None) -> list[str]:
    """Strip, drop blanks and de-duplicate scopes, keeping order.

    An empty result means unrestricted.
    """
    seen: list[str] = []
    for scope in scopes or []:
        scope = scope.strip()
        if scope and scope not in seen:
            seen.append(scope)
    return seen or [UNRESTRICTED_SCOPE]


class ApiKeyIssuer:
    """Generates, lists, revokes and verifies API keys.

    Also owns the invariant that an active key is bound to at most one
    non-archived connected application. The store's unique index on the
    binding is the authority; the scan here only produces a friendly error.
    """

    def __init__(
        self,
        repo: CliAuthRepository,
        entitlements: EntitlementsAdapter,
        clock: Callable[[], datetime] = utcnow,
        hash_rounds: int = DEFAULT_HASH_ROUNDS,
    ) -> None:
        """Initialize the issuer.

        Args:
            repo: Storage for keys, memberships and applications.
            entitlements: Source of per-organization key limits.
            clock: Returns the current UTC time.
            hash_rounds: bcrypt cost factor for key hashes.
        """
        self._repo = repo
        self._entitlements = entitlements
        self._clock = clock
        self._hash_rounds = hash_rounds

    async def generate(
        self,
        organization_id: UUID,
        caller_user_id: UUID,
        name: str,
        scopes: list[str] | None = None,
    ) -> tuple[str, ApiKey]:
        """Generate a key for an organization.

        Args:
            organization_id: Organization that will own the key.
            caller_user_id: User asking for the key; must be a member.
            name: Display name.
            scopes: Granted scopes, unrestricted when omitted.

        Returns:
            The plaintext key (returned only here) and the stored record.

        Raises:
            OrganizationAccessDenied: Caller is not an active member.
            ApiKeyLimitReached: Organization is at its plan's limit.
        """
        await self.require_member(organization_id, caller_user_id)
        return await self.issue(
            organization_id=organization_id,
            name=name,
            scopes=scopes,
            created_by=caller_user_id,
        )

    async def issue(
        self,
        organization_id: UUID,
        name: str,
        scopes: list[str] | None = None,
        created_by: UUID | None = None,
    ) -> tuple[str, ApiKey]:
        """Create a key for a caller whose access was already checked.

        Raises:
            ApiKeyLimitReached: Organization is at its plan's limit.
        """
        limit = await self._entitlements.get_limit(organization_id, Feature.MAX_API_KEYS)
        if limit != -1:
            current = await self._repo.count_active_api_keys(organization_id)
            if current >= limit:
                plan = await self._entitlements.get_plan(organization_id)
                logger.info(
                    "api_key_limit_reached",
                    org_id=str(organization_id),
                    limit=limit,
                    plan=plan.value,
                )
                raise ApiKeyLimitReached(limit=limit, plan=plan.value)

        plaintext = generate_api_key()
        api_key = await self._repo.create_api_key(
            organization_id=organization_id,
            name=name,
            secret_hash=await hash_secret_async(plaintext, self._hash_rounds),
            prefix=api_key_display_prefix(plaintext),
            scopes=normalize_scopes(scopes),
            created_by=created_by,
            created_at=self._clock(),
        )

        logger.info(
            "api_key_created",
            api_key_id=str(api_key.id),
            org_id=str(organization_id),
            prefix=api_key.prefix,
        )
        return plaintext, api_key

    async def list_keys(self, organization_id: UUID, caller_user_id: UUID) -> ApiKeyListing:
        """List an organization's keys with its limit and active count."""
        await self.require_member(organization_id, caller_user_id)

        keys = await self._repo.list_api_keys(organization_id)
        limit = await self._entitlements.get_limit(organization_id, Feature.MAX_API_KEYS)
        current = sum(1 for key in keys if key.is_active)
        return ApiKeyListing(keys=keys, limit=limit, current_count=current)

    async def revoke(self, organization_id: UUID, api_key_id: UUID, caller_user_id: UUID) -> None:
        """Revoke a key of an organization the caller belongs to.

        Raises:
            OrganizationAccessDenied: Caller is not an active member.
            ApiKeyNotFound: No active key with that id in the organization.
        """
        await self.require_member(organization_id, caller_user_id)

        if not await self._repo.revoke_api_key(api_key_id, organization_id):
            raise ApiKeyNotFound(f"API key {api_key_id} not found")

        logger.info("api_key_revoked", api_key_id=str(api_key_id), org_id=str(organization_id))

    async def verify(self, plaintext: str) -> ApiKey | None:
        """Resolve a presented key to its active record.

        Args:
            plaintext: Key as sent by the client.

        Returns:
            The matching active key, or None.
        """
        if not plaintext:
            return None

        candidates = await self._repo.find_active_api_keys_by_prefix(
            api_key_display_prefix(plaintext)
        )
        for candidate in candidates:
            if await verify_secret_async(plaintext, candidate.secret_hash):
                await self._repo.touch_api_key(candidate.id, self._clock())
                return candidate

        logger.warning("api_key_invalid", prefix=api_key_display_prefix(plaintext))
        return None

    async def bind_to_application(self, application_id: UUID, api_key_id: UUID) -> None:
        """Bind a key to an application.

        Binding a key to the application that already holds it is a no-op.

        Args:
            application_id: Target application.
            api_key_id: Key to bind.

        Raises:
            ApplicationNotFound: Application missing or archived.
            ApiKeyNotFound: Key missing, revoked or of another organization.
            ApiKeyAlreadyLinked: Another non-archived application holds the key.
        """
        application = await self._repo.get_application(application_id)
        if application is None or application.status != ApplicationStatus.ACTIVE:
            raise ApplicationNotFound(f"Application {application_id} not found")

        api_key = await self._repo.get_api_key(api_key_id)
        if (
            api_key is None
            or not api_key.is_active
            or api_key.organization_id != application.organization_id
        ):
            raise ApiKeyNotFound(f"API key {api_key_id} not found")

        if application.api_key_id == api_key_id:
            return

        await self._raise_if_linked_elsewhere(application_id, api_key_id)

        try:
            await self._repo.set_application_api_key(application_id, api_key_id)
        except DuplicateKeyError:
            # A concurrent bind won the unique index
            await self._raise_if_linked_elsewhere(application_id, api_key_id)
            raise

        logger.info(
            "api_key_bound",
            api_key_id=str(api_key_id),
            application_id=str(application_id),
        )

    async def _raise_if_linked_elsewhere(self, application_id: UUID, api_key_id: UUID) -> None:
        linked = await self._repo.find_applications_by_api_key(api_key_id)
        for other in linked:
            if other.id != application_id:
                logger.info(
                    "api_key_already_linked",
                    api_key_id=str(api_key_id),
                    linked_application_id=str(other.id),
                )
                raise ApiKeyAlreadyLinked(
                    api_key_id=api_key_id,
                    linked_application_id=other.id,
                    linked_application_name=other.name,
                )

    async def require_member(self, organization_id: UUID, user_id: UUID) -> None:
        """Raise OrganizationAccessDenied unless the user is an active member."""
        membership = await self._repo.get_membership(user_id, organization_id)
        if membership is None or not membership.is_active:
            logger.warning(
                "organization_access_denied",
                org_id=str(organization_id),
                user_id=str(user_id),
            )
            raise OrganizationAccessDenied(organization_id)
