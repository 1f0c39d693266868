"""
Subscription limits.

Pure functions from a tier to what that tier may do. They are consulted by
the editor when a configuration is saved and by the refresh engine when it
schedules the next tick.
"""

from enum import Enum
from typing import List, Optional

from ..store.models import RefreshInterval

# Number of configurations a basic subscription may keep
BASIC_MAX_CONFIGURATIONS = 2

# Basic subscriptions may not refresh faster than this
BASIC_MIN_REFRESH_INTERVAL = RefreshInterval.TWO_HOURS


class Tier(str, Enum):
    """Subscription tier. UNKNOWN until the oracle has answered once."""

    UNKNOWN = "unknown"
    BASIC = "basic"
    PRO = "pro"

    @property
    def is_pro(self) -> bool:
        return self is Tier.PRO

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


def _effective(tier: Tier) -> Tier:
    # An unresolved tier gets the most restrictive limits
    return Tier.PRO if Tier(tier) is Tier.PRO else Tier.BASIC


def max_configurations(tier: Tier) -> Optional[int]:
    """Maximum number of stored configurations, None meaning unbounded."""
    return None if _effective(tier).is_pro else BASIC_MAX_CONFIGURATIONS


def allowed_refresh_intervals(tier: Tier) -> List[RefreshInterval]:
    """Refresh intervals the tier may use, fastest first."""
    if _effective(tier).is_pro:
        return list(RefreshInterval)
    return [i for i in RefreshInterval if i >= BASIC_MIN_REFRESH_INTERVAL]


def can_use_logo(tier: Tier) -> bool:
    return _effective(tier).is_pro


def is_interval_allowed(tier: Tier, interval: RefreshInterval) -> bool:
    return RefreshInterval.parse(interval) in allowed_refresh_intervals(tier)


def can_add_configuration(tier: Tier, current_count: int) -> bool:
    limit = max_configurations(tier)
    return limit is None or current_count < limit


def clamp_refresh_interval(tier: Tier, interval: RefreshInterval) -> RefreshInterval:
    """
    Return the nearest interval the tier allows.

    That is the requested interval itself when allowed, otherwise the
    fastest allowed interval that is not faster than the requested one,
    falling back to the slowest allowed interval.

    Example:
        >>> clamp_refresh_interval(Tier.BASIC, RefreshInterval.FIFTEEN_MINUTES)
        <RefreshInterval.TWO_HOURS: 120>
    """
    interval = RefreshInterval.parse(interval)
    allowed = allowed_refresh_intervals(tier)
    if interval in allowed:
        return interval
    slower = [i for i in allowed if i >= interval]
    return slower[0] if slower else allowed[-1]
