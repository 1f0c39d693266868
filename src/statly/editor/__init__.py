"""
Configuration editing: drafts, connection tests, policy coercion and logos.
"""

from .editor import ConfigurationEditor
from .logo import normalize_logo

__all__ = ["ConfigurationEditor", "normalize_logo"]
