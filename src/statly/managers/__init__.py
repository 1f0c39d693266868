"""
Managers coordinating Statly's services.

- WidgetManager: widget lifecycle and local tick scheduling
"""

from .widget import WidgetManager

__all__ = ["WidgetManager"]
