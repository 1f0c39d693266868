"""
Settings file loading.
"""

from .loader import SettingsLoader

__all__ = ["SettingsLoader"]
