"""
Refresh engine, its render states and its backoff policy.
"""

from .engine import RefreshEngine
from .policy import Outcome, RefreshPolicy
from .states import (
    ConfigurationError,
    ConfigurationOk,
    ConfigurationStale,
    NoConfigurationsExist,
    NoConfigurationSelected,
    RenderState,
    TimelineEntry,
)

__all__ = [
    "RefreshEngine",
    "RefreshPolicy",
    "Outcome",
    "RenderState",
    "NoConfigurationsExist",
    "NoConfigurationSelected",
    "ConfigurationError",
    "ConfigurationOk",
    "ConfigurationStale",
    "TimelineEntry",
]
