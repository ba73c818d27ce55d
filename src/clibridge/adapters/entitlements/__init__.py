"""Entitlements adapters."""

from clibridge.adapters.entitlements.database import DatabaseEntitlementsAdapter
from clibridge.adapters.entitlements.opencore import OpenCoreAdapter

__all__ = ["DatabaseEntitlementsAdapter", "OpenCoreAdapter"]
