"""Find-or-create provisioning for user accounts and organizations."""

import re
import secrets
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

import structlog

from clibridge.core.auth.repository import CliAuthRepository
from clibridge.core.auth.tokens import utcnow
from clibridge.core.auth.types import (
    OWNER_ROLE_NAME,
    Organization,
    OrganizationSummary,
    Role,
    UserAccount,
)
from clibridge.core.exceptions import AccountProvisioningConflict, DuplicateKeyError

logger = structlog.get_logger()

SLUG_MAX_LENGTH = 50
SLUG_FALLBACK = "organization"
MAX_SLUG_ATTEMPTS = 100
MAX_RANDOM_SLUG_ATTEMPTS = 5
RANDOM_SLUG_SUFFIX_RANGE = 100_000


def normalize_email(email: str) -> str:
    """Normalize an email address for the unique index."""
    return email.strip().lower()


def generate_slug(name: str) -> str:
    """Generate a URL-safe slug from a display name.

    Apostrophes are dropped so "Jane's Organization" becomes
    "janes-organization" rather than "jane-s-organization".
    """
    slug = name.lower().replace("'", "").replace("’", "")
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")[:SLUG_MAX_LENGTH].strip("-")
    return slug or SLUG_FALLBACK


def default_organization_name(display_name: str) -> str:
    """Name of the personal workspace created on first login."""
    display_name = display_name.strip()
    if not display_name:
        return "My Organization"
    return f"{display_name}'s Organization"


class AccountProvisioner:
    """Creates users, organizations, owner roles and memberships idempotently.

    Uniqueness of emails and slugs is enforced by the repository's unique
    indexes. The read-before-write probes here only keep the common path
    cheap; a DuplicateKeyError from a concurrent writer is always expected
    and handled.
    """

    def __init__(
        self,
        repo: CliAuthRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the provisioner.

        Args:
            repo: Storage for users, organizations and memberships.
            clock: Returns the current UTC time.
        """
        self._repo = repo
        self._clock = clock

    async def find_or_create_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
    ) -> tuple[UserAccount, bool]:
        """Find a user by email or create one.

        Args:
            email: Email from the identity provider.
            first_name: First name from the identity provider.
            last_name: Last name from the identity provider.

        Returns:
            The user and whether this call created it.

        Raises:
            AccountProvisioningConflict: If the insert collided with a writer
                whose row cannot be read back.
        """
        email = normalize_email(email)

        existing = await self._repo.get_user_by_email(email)
        if existing:
            return existing, False

        try:
            user = await self._repo.create_user(
                email=email,
                first_name=first_name,
                last_name=last_name,
            )
        except DuplicateKeyError:
            # A concurrent first login for the same email won the insert
            winner = await self._repo.get_user_by_email(email)
            if winner is None:
                raise AccountProvisioningConflict(
                    "User creation collided with a concurrent login"
                ) from None
            logger.info("user_create_race_resolved", user_id=str(winner.id))
            return winner, False

        logger.info("user_created", user_id=str(user.id))
        return user, True

    async def ensure_default_organization(self, user_id: UUID, display_name_hint: str) -> UUID:
        """Return the user's default organization, creating a personal one if needed.

        Args:
            user_id: User to provision for.
            display_name_hint: Name used to derive the organization name and slug.

        Returns:
            The default organization's ID.

        Raises:
            AccountProvisioningConflict: If the user does not exist.
        """
        user = await self._repo.get_user_by_id(user_id)
        if user is None:
            raise AccountProvisioningConflict(f"User {user_id} not found")

        if user.default_organization_id:
            return user.default_organization_id

        org = await self._create_owned_organization(
            user=user,
            name=default_organization_name(display_name_hint),
            is_personal_workspace=True,
        )

        default_org_id = await self._repo.set_default_organization(user.id, org.id)
        if default_org_id is None:
            raise AccountProvisioningConflict(f"User {user_id} not found")

        if default_org_id != org.id:
            # A concurrent login set the default first; drop our workspace
            await self._repo.delete_organization(org.id)
            logger.warning(
                "default_organization_race_lost",
                user_id=str(user.id),
                discarded_org_id=str(org.id),
                default_org_id=str(default_org_id),
            )
        return default_org_id

    async def create_organization(self, user_id: UUID, name: str) -> Organization:
        """Create an additional organization owned by the user.

        Args:
            user_id: Owner of the new organization.
            name: Organization display name.

        Returns:
            The created organization.
        """
        user = await self._repo.get_user_by_id(user_id)
        if user is None:
            raise AccountProvisioningConflict(f"User {user_id} not found")

        return await self._create_owned_organization(
            user=user,
            name=name,
            is_personal_workspace=False,
        )

    async def list_organizations(self, user_id: UUID) -> list[OrganizationSummary]:
        """Get all organizations a user belongs to with their role names."""
        return await self._repo.list_user_organizations(user_id)

    async def _create_owned_organization(
        self,
        user: UserAccount,
        name: str,
        is_personal_workspace: bool,
    ) -> Organization:
        """Create organization, owner role if missing, and owner membership."""
        org = await self._insert_with_unique_slug(
            name=name,
            email=user.email,
            is_personal_workspace=is_personal_workspace,
        )

        owner_role = await self._get_or_create_owner_role()
        now = self._clock()
        await self._repo.add_membership(
            user_id=user.id,
            organization_id=org.id,
            role_id=owner_role.id,
            joined_at=now,
            accepted_at=now,
            invited_by=user.id,
        )

        logger.info(
            "organization_created",
            org_id=str(org.id),
            slug=org.slug,
            owner_id=str(user.id),
            personal=is_personal_workspace,
        )
        return org

    async def _insert_with_unique_slug(
        self,
        name: str,
        email: str,
        is_personal_workspace: bool,
    ) -> Organization:
        """Insert an organization, probing base, base-2, base-3, ... for a free slug.

        After MAX_SLUG_ATTEMPTS candidates, falls back to random numeric
        suffixes. Every insert is guarded by the unique slug index, so a
        concurrent writer taking a probed slug just moves us on.
        """
        base_slug = generate_slug(name)

        for attempt in range(1, MAX_SLUG_ATTEMPTS + 1):
            candidate = base_slug if attempt == 1 else f"{base_slug}-{attempt}"
            if await self._repo.get_organization_by_slug(candidate):
                continue
            org = await self._try_insert(name, candidate, email, is_personal_workspace)
            if org:
                return org

        for _ in range(MAX_RANDOM_SLUG_ATTEMPTS):
            candidate = f"{base_slug}-{secrets.randbelow(RANDOM_SLUG_SUFFIX_RANGE)}"
            org = await self._try_insert(name, candidate, email, is_personal_workspace)
            if org:
                return org

        raise AccountProvisioningConflict(f"Could not allocate a unique slug for '{name}'")

    async def _try_insert(
        self,
        name: str,
        slug: str,
        email: str,
        is_personal_workspace: bool,
    ) -> Organization | None:
        try:
            return await self._repo.create_organization(
                name=name,
                slug=slug,
                email=email,
                is_personal_workspace=is_personal_workspace,
            )
        except DuplicateKeyError:
            logger.debug("organization_slug_taken", slug=slug)
            return None

    async def _get_or_create_owner_role(self) -> Role:
        role = await self._repo.get_role_by_name(OWNER_ROLE_NAME)
        if role:
            return role
        try:
            return await self._repo.create_role(
                name=OWNER_ROLE_NAME,
                description="Organization owner with full permissions",
            )
        except DuplicateKeyError:
            role = await self._repo.get_role_by_name(OWNER_ROLE_NAME)
            if role is None:
                raise
            return role
