"""Protocol definitions for entitlements adapters."""

from typing import Protocol, runtime_checkable
from uuid import UUID

from clibridge.core.entitlements.features import Feature, Plan


@runtime_checkable
class EntitlementsAdapter(Protocol):
    """Protocol for pluggable entitlements backend.

    Implementations:
    - OpenCoreAdapter: one fixed plan for every organization
    - DatabaseEntitlementsAdapter: plan stored on the organization
    """

    async def get_limit(self, org_id: UUID, feature: Feature) -> int:
        """Get numeric limit for org (-1 = unlimited).

        Args:
            org_id: Organization identifier
            feature: Feature limit to get

        Returns:
            Limit value, -1 for unlimited
        """
        ...

    async def get_plan(self, org_id: UUID) -> Plan:
        """Get org's current plan.

        Args:
            org_id: Organization identifier

        Returns:
            Current plan
        """
        ...
