"""
Persistence for widget configurations, logos and cached stats.
"""

from .backend import FileStore, KeyValueStore, MemoryStore
from .cache import StatsCache
from .configurations import ConfigurationStore
from .models import Configuration, RefreshInterval, Styling

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "FileStore",
    "StatsCache",
    "ConfigurationStore",
    "Configuration",
    "RefreshInterval",
    "Styling",
]
