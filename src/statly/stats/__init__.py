"""
Stats endpoint client and snapshot types.
"""

from .client import StatsClient
from .models import Stat, StatSnapshot, TrendDirection

__all__ = ["StatsClient", "Stat", "StatSnapshot", "TrendDirection"]
