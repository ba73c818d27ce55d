"""OpenCore entitlements adapter - one plan for the whole deployment."""

from uuid import UUID

from clibridge.core.entitlements.features import Feature, Plan, plan_limit


class OpenCoreAdapter:
    """Entitlements adapter for self-hosted deployments.

    Every organization gets the same plan, FREE unless configured otherwise.
    No external dependencies.
    """

    def __init__(self, plan: Plan = Plan.FREE) -> None:
        """Initialize with the deployment-wide plan."""
        self._plan = plan

    async def get_limit(self, org_id: UUID, feature: Feature) -> int:
        """Get numeric limit of the configured plan."""
        return plan_limit(self._plan, feature)

    async def get_plan(self, org_id: UUID) -> Plan:
        """Get org's current plan."""
        return self._plan
