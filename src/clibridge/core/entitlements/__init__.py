"""Entitlements module for plan-based limits."""

from clibridge.core.entitlements.features import PLAN_FEATURES, Feature, Plan, parse_plan
from clibridge.core.entitlements.interfaces import EntitlementsAdapter

__all__ = [
    "Feature",
    "Plan",
    "PLAN_FEATURES",
    "EntitlementsAdapter",
    "parse_plan",
]
