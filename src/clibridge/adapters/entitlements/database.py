"""Database-backed entitlements adapter - reads plan from the organization."""

from uuid import UUID

from clibridge.core.auth.repository import CliAuthRepository
from clibridge.core.entitlements.features import Feature, Plan, parse_plan, plan_limit


class DatabaseEntitlementsAdapter:
    """Entitlements adapter that reads the org plan from storage.

    This is the production adapter for enforcing plan-based limits.
    """

    def __init__(self, repo: CliAuthRepository) -> None:
        """Initialize with the auth repository.

        Args:
            repo: Repository holding organizations and their plan column.
        """
        self._repo = repo

    async def get_plan(self, org_id: UUID) -> Plan:
        """Get org's current plan.

        Args:
            org_id: Organization UUID.

        Returns:
            Plan enum value, defaults to FREE if not found.
        """
        org = await self._repo.get_organization_by_id(org_id)
        if org is None:
            return Plan.FREE
        return parse_plan(org.plan)

    async def get_limit(self, org_id: UUID, feature: Feature) -> int:
        """Get numeric limit for org (-1 = unlimited).

        Args:
            org_id: Organization UUID.
            feature: Feature limit.

        Returns:
            Limit value, -1 for unlimited, 0 if not available.
        """
        plan = await self.get_plan(org_id)
        return plan_limit(plan, feature)
