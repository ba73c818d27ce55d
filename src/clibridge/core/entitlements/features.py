"""Feature registry and plan definitions."""

from enum import Enum


class Feature(str, Enum):
    """Features that can be gated by plan."""

    # Limits (numeric, -1 = unlimited)
    MAX_API_KEYS = "max_api_keys"


class Plan(str, Enum):
    """Available license tiers."""

    FREE = "free"
    PRO = "pro"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    AGENCY = "agency"
    ENTERPRISE = "enterprise"


# Plan feature definitions - what each plan includes
PLAN_FEATURES: dict[Plan, dict[Feature, int | bool]] = {
    Plan.FREE: {
        Feature.MAX_API_KEYS: 1,
    },
    Plan.PRO: {
        Feature.MAX_API_KEYS: 1,
    },
    Plan.STARTER: {
        Feature.MAX_API_KEYS: 1,
    },
    Plan.PROFESSIONAL: {
        Feature.MAX_API_KEYS: 3,
    },
    Plan.AGENCY: {
        Feature.MAX_API_KEYS: 5,
    },
    Plan.ENTERPRISE: {
        Feature.MAX_API_KEYS: -1,  # unlimited
    },
}


def parse_plan(value: str | None) -> Plan:
    """Map a stored plan name to a Plan, defaulting to FREE for unknown names."""
    if not value:
        return Plan.FREE
    try:
        return Plan(value.strip().lower())
    except ValueError:
        return Plan.FREE


def plan_limit(plan: Plan, feature: Feature) -> int:
    """Numeric limit of a plan, 0 when the plan does not include the feature."""
    limit = PLAN_FEATURES.get(plan, {}).get(feature)
    if isinstance(limit, bool) or not isinstance(limit, int):
        return 0
    return limit
