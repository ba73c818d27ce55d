"""Entitlements adapter factory configuration."""

from clibridge.adapters.entitlements.database import DatabaseEntitlementsAdapter
from clibridge.adapters.entitlements.opencore import OpenCoreAdapter
from clibridge.core.auth.repository import CliAuthRepository
from clibridge.core.entitlements.features import parse_plan
from clibridge.core.entitlements.interfaces import EntitlementsAdapter


def get_entitlements_adapter(
    repo: CliAuthRepository,
    license_plan: str | None = None,
) -> EntitlementsAdapter:
    """Get the configured entitlements adapter.

    Selection priority:
    1. license_plan set -> OpenCoreAdapter pinned to that plan (self-hosted)
    2. Otherwise -> DatabaseEntitlementsAdapter (plan stored per organization)

    Args:
        repo: Storage the database adapter reads organizations from.
        license_plan: Deployment-wide plan name, e.g. from LICENSE_PLAN.

    Returns:
        Configured entitlements adapter instance
    """
    if license_plan and license_plan.strip():
        return OpenCoreAdapter(plan=parse_plan(license_plan))

    return DatabaseEntitlementsAdapter(repo)
