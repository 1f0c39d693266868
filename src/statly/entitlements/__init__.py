"""
Subscription tiers, their limits and the oracle that reports them.
"""

from .oracle import EntitlementOracle, EntitlementService, StaticEntitlementOracle, create_oracle
from .policy import (
    Tier,
    allowed_refresh_intervals,
    can_add_configuration,
    can_use_logo,
    clamp_refresh_interval,
    is_interval_allowed,
    max_configurations,
)

__all__ = [
    "Tier",
    "EntitlementOracle",
    "EntitlementService",
    "StaticEntitlementOracle",
    "create_oracle",
    "max_configurations",
    "allowed_refresh_intervals",
    "can_use_logo",
    "can_add_configuration",
    "is_interval_allowed",
    "clamp_refresh_interval",
]
