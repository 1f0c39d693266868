"""
Utility modules for Statly.
"""

from .errors import (
    STALE_DATA_SERVED,
    ConfigurationError,
    DecodeError,
    EntitlementError,
    InvalidEndpoint,
    ServerError,
    StatlyError,
    StatsClientError,
    TransportError,
    error_boundary,
    safe_execute,
)

__all__ = [
    "STALE_DATA_SERVED",
    "StatlyError",
    "ConfigurationError",
    "EntitlementError",
    "StatsClientError",
    "InvalidEndpoint",
    "TransportError",
    "ServerError",
    "DecodeError",
    "error_boundary",
    "safe_execute",
]
