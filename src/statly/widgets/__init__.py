"""
Widget instances and their text rendering.
"""

from .base import FAMILY_STAT_LIMITS, StatsWidget
from .text import render_text

__all__ = ["StatsWidget", "FAMILY_STAT_LIMITS", "render_text"]
